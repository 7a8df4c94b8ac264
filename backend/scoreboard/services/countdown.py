import time
from typing import Callable, Optional


class CountdownTimer:
    """Shared countdown clock, measured in whole seconds.

    ``tick`` advances by exactly one second. ``poll`` applies every full
    second elapsed since the last anchor, and the anchor moves in 1s steps,
    so the cadence does not drift with poll jitter or pause history.
    ``on_expire`` is called once each time the clock runs down to zero.
    """

    def __init__(self, initial_seconds: int = 0, on_expire: Optional[Callable[[], None]] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.remaining = max(0, int(initial_seconds))
        self.paused = False
        self.on_expire = on_expire
        self._clock = clock
        self._anchor: Optional[float] = None
        self._expired = False

    @property
    def running(self) -> bool:
        return not self.paused and self.remaining > 0

    def pause(self) -> None:
        self.paused = True
        self._anchor = None

    def resume(self) -> None:
        self.paused = False
        self._anchor = self._clock()

    def toggle(self) -> None:
        if self.paused:
            self.resume()
        else:
            self.pause()

    def reset(self) -> None:
        self.remaining = 0
        self._anchor = None

    def set_time(self, minutes: int, seconds: int) -> None:
        self.remaining = int(minutes) * 60 + int(seconds)
        self._expired = False
        self._anchor = self._clock()

    def tick(self) -> bool:
        """Advance one second. Returns True if this tick reached zero."""
        if not self.running:
            return False
        self.remaining -= 1
        if self.remaining == 0 and not self._expired:
            self._expired = True
            self._anchor = None
            if self.on_expire is not None:
                self.on_expire()
            return True
        return False

    def poll(self, now: Optional[float] = None) -> int:
        """Apply the ticks that are due by ``now``; returns how many were applied."""
        if not self.running:
            self._anchor = None
            return 0
        now = self._clock() if now is None else now
        if self._anchor is None:
            self._anchor = now
            return 0
        applied = 0
        while self.running and now - self._anchor >= 1.0:
            self._anchor += 1.0
            self.tick()
            applied += 1
        return applied

    def to_dict(self) -> dict:
        return {
            'remaining': self.remaining,
            'paused': self.paused,
            'minutes': self.remaining // 60,
            'seconds': self.remaining % 60,
        }
