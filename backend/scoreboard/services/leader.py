from dataclasses import dataclass
from typing import Iterable, Optional


@dataclass(frozen=True)
class LeaderChange:
    transition: bool
    leader_id: Optional[str]
    name: Optional[str] = None
    score: Optional[int] = None


def current_leader(teams: Iterable) -> Optional[object]:
    """Return the top-scoring team, or None when nobody has scored above zero.

    Ties go to the team met first, so the leader only changes when another
    team strictly overtakes it.
    """
    leader = None
    for team in teams:
        if leader is None or team.score > leader.score:
            leader = team
    if leader is None or leader.score <= 0:
        return None
    return leader


class LeaderTracker:
    """Remembers the previous leader so only real changes are announced."""

    def __init__(self):
        self.previous_id: Optional[str] = None
        self._baseline_set = False

    def reset(self) -> None:
        self.previous_id = None
        self._baseline_set = False

    def observe(self, teams: Iterable) -> LeaderChange:
        leader = current_leader(teams)
        leader_id = leader.id if leader is not None else None
        fired = (
            self._baseline_set
            and leader_id is not None
            and leader_id != self.previous_id
        )
        self.previous_id = leader_id
        self._baseline_set = True
        if leader is None:
            return LeaderChange(transition=False, leader_id=None)
        return LeaderChange(transition=fired, leader_id=leader_id, name=leader.name, score=leader.score)
