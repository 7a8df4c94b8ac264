import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, List, Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from scoreboard import db, socketio
from scoreboard.models import Team, LastAction, ScoreHistory, CardPenalty
from .countdown import CountdownTimer
from .errors import StoreError, TeamNotFound
from .leader import LeaderTracker, current_leader
from .ledger import ScoreLedger, TeamSnapshot, CARD_POINTS
from .notifications import Notifier
from .sessions import GameSessionController, rank_teams


def _points(n: int) -> str:
    return f"{n} point{'s' if n > 1 else ''}"


@dataclass(frozen=True)
class TrackerSettings:
    default_countdown_sec: int = 10
    countdown_poll_sec: float = 0.25
    celebration_ms: int = 3000
    history_page_size: int = 20
    game_history_limit: int = 10
    default_emoji: str = '⚽'
    background_timer: bool = True

    @classmethod
    def from_config(cls, config) -> 'TrackerSettings':
        return cls(
            default_countdown_sec=int(config.get('DEFAULT_COUNTDOWN_SEC', 10)),
            countdown_poll_sec=float(config.get('COUNTDOWN_POLL_SEC', 0.25)),
            celebration_ms=int(config.get('CELEBRATION_MS', 3000)),
            history_page_size=int(config.get('HISTORY_PAGE_SIZE', 20)),
            game_history_limit=int(config.get('GAME_HISTORY_LIMIT', 10)),
            default_emoji=config.get('DEFAULT_TEAM_EMOJI', '⚽'),
            background_timer=not config.get('TESTING', False),
        )


class TeamTracker:
    """Everything one operator's scoreboard needs, behind a single lock.

    Writes go to the database first; the in-memory team mirror only moves
    once the write is committed. After each change the leader is
    re-evaluated and events go out through the notifier.
    """

    def __init__(self, operator_id: int, settings: TrackerSettings, logger, notifier: Notifier = None):
        self.operator_id = operator_id
        self.settings = settings
        self.logger = logger
        self.notifier = notifier or Notifier(operator_id)
        self.ledger = ScoreLedger(operator_id, logger)
        self.leader = LeaderTracker()
        self.sessions = GameSessionController(operator_id, logger)
        self.countdown = CountdownTimer(settings.default_countdown_sec, on_expire=self._times_up)
        self._teams: Dict[str, TeamSnapshot] = {}
        self._lock = threading.RLock()
        self._worker_running = False

    # ---- loading and reads ----

    def load(self) -> None:
        with self._lock:
            try:
                rows = (
                    Team.query.filter_by(user_id=self.operator_id)
                    .order_by(Team.is_pinned.desc(), Team.created_at.asc())
                    .all()
                )
            except SQLAlchemyError as exc:
                db.session.rollback()
                self.logger.error(f"[load-failed] operator={self.operator_id} error={exc}")
                self.notifier.error('Failed to load teams. Please try again.')
                raise StoreError('Failed to load teams') from exc
            self._teams = {row.id: TeamSnapshot.from_row(row) for row in rows}
            self.leader.reset()
            self.leader.observe(self._teams.values())
            self.sessions.recover()
            self.logger.info(f"[load] operator={self.operator_id} teams={len(self._teams)}")
            if self.countdown.running and not self._worker_running:
                self.countdown.resume()
                self._ensure_countdown_worker()

    def get_team(self, team_id: str) -> TeamSnapshot:
        team = self._teams.get(team_id)
        if team is None:
            raise TeamNotFound(team_id)
        return team

    def teams(self) -> List[TeamSnapshot]:
        # Pinned first; otherwise keep creation order
        return sorted(self._teams.values(), key=lambda t: not t.is_pinned)

    def leaderboard(self) -> List[dict]:
        board = []
        for rank, team in rank_teams(list(self._teams.values())):
            entry = team.to_dict()
            entry['rank'] = rank
            entry['is_leader'] = rank == 1 and team.score > 0
            board.append(entry)
        return board

    def stats(self) -> dict:
        scores = [t.score for t in self._teams.values()]
        leader = current_leader(self._teams.values())
        return {
            'teams': len(scores),
            'total_points': sum(scores),
            'leading_score': max(scores) if scores else 0,
            'leader_id': leader.id if leader is not None else None,
        }

    # ---- team management ----

    def add_team(self, name: str, emoji: Optional[str] = None) -> TeamSnapshot:
        name = (name or '').strip()
        if not name:
            raise ValueError('Team name is required')
        with self._lock, self._reported('Failed to add team. Please try again.'):
            team = Team(
                name=name,
                emoji=emoji or self.settings.default_emoji,
                user_id=self.operator_id,
                score=0,
                is_pinned=False,
            )
            self._commit(team, action='add-team')
            snapshot = TeamSnapshot.from_row(team)
            self._teams[snapshot.id] = snapshot
            self._after_change()
        self.notifier.notify('Team added!', f"{name} has been added to the competition.")
        return snapshot

    def rename_team(self, team_id: str, name: str) -> TeamSnapshot:
        name = (name or '').strip()
        if not name:
            raise ValueError('Team name is required')
        return self._update_team(team_id, 'Failed to update team name. Please try again.', name=name)

    def set_pinned(self, team_id: str, pinned: bool) -> TeamSnapshot:
        return self._update_team(team_id, 'Failed to update team. Please try again.', is_pinned=bool(pinned))

    def delete_team(self, team_id: str) -> None:
        with self._lock, self._reported('Failed to delete team. Please try again.'):
            team = Team.query.filter_by(id=team_id, user_id=self.operator_id).first()
            if team is None:
                raise TeamNotFound(team_id)
            try:
                for model in (LastAction, ScoreHistory, CardPenalty):
                    model.query.filter_by(team_id=team_id).delete()
                db.session.delete(team)
                db.session.commit()
            except SQLAlchemyError as exc:
                db.session.rollback()
                self.logger.error(f"[delete-team-failed] team={team_id} error={exc}")
                raise StoreError('Failed to delete team') from exc
            self._teams.pop(team_id, None)
            self.logger.info(f"[delete-team] operator={self.operator_id} team={team_id}")
            self._after_change()
        self.notifier.notify('Team removed', 'Team has been deleted from the competition')

    # ---- scoring ----

    def change_score(self, team_id: str, delta: int, answer: Optional[str] = None) -> Optional[TeamSnapshot]:
        with self._lock, self._reported('Failed to update score. Please try again.'):
            self.get_team(team_id)
            snapshot = self.ledger.apply_delta(team_id, delta, 'point', answer)
            if not self._apply(snapshot):
                return None
        delta = int(delta)
        if delta > 0:
            self.notifier.notify('Score updated!', f"{snapshot.name} scored {_points(delta)}!")
        elif delta < 0:
            self.notifier.notify('Score deducted', f"{snapshot.name} lost {_points(abs(delta))}")
        return snapshot

    def reset_score(self, team_id: str) -> Optional[TeamSnapshot]:
        with self._lock, self._reported('Failed to update score. Please try again.'):
            self.get_team(team_id)
            snapshot = self.ledger.reset_score(team_id)
            if not self._apply(snapshot):
                return None
        self.notifier.notify('Score reset', f"{snapshot.name} is back to 0")
        return snapshot

    def card_penalty(self, team_id: str, card: str) -> Optional[TeamSnapshot]:
        with self._lock, self._reported('Failed to add card penalty. Please try again.'):
            self.get_team(team_id)
            snapshot = self.ledger.penalize(team_id, card)
            if not self._apply(snapshot):
                return None
        points = CARD_POINTS[card]
        title = '🟨 Yellow Card!' if card == 'yellow' else '🟥 Red Card!'
        self.notifier.notify(
            title, f"{snapshot.name} received a {card} card (-{_points(points)})", duration=3000,
        )
        return snapshot

    def undo(self, team_id: Optional[str] = None) -> Optional[TeamSnapshot]:
        """Undo the last change for one team, or the operator's latest change."""
        with self._lock, self._reported('Failed to undo action. Please try again.'):
            if team_id is not None:
                self.get_team(team_id)
            result = self.ledger.undo_last(team_id)
            if result is None or not self._apply(result.team):
                result = None
        if result is None:
            suffix = ' for this team' if team_id is not None else ''
            self.notifier.notify('Nothing to undo', f"No recent actions found{suffix}")
            return None
        self.notifier.notify('Action undone', f"{result.team.name}'s score restored to {result.team.score}")
        return result.team

    def history(self, team_id: str, limit: Optional[int] = None, offset: int = 0) -> List[dict]:
        limit = self.settings.history_page_size if limit is None else limit
        with self._reported('Failed to load team history'):
            try:
                return [entry.to_dict() for entry in self.ledger.get_history(team_id, limit, offset)]
            except SQLAlchemyError as exc:
                db.session.rollback()
                raise StoreError('Failed to load history') from exc

    # ---- game sessions ----

    def start_game(self) -> dict:
        with self._lock, self._reported('Failed to start game. Please try again.'):
            session = self.sessions.start()
        self.notifier.emit('game_started', {'session_id': session.id})
        self.notifier.notify('🎮 Game Started!', 'Good luck to all teams!', duration=3000)
        return self.sessions.to_dict()

    def end_game(self, save: bool = True) -> dict:
        with self._lock, self._reported('Failed to end game. Please try again.'):
            if save:
                outcome = self.sessions.end_and_save(list(self._teams.values()))
            else:
                outcome = self.sessions.end_and_discard()

        payload = {
            'session_id': outcome.session_id,
            'saved': save,
            'state': outcome.state,
            'duration': outcome.duration,
            'results': outcome.results,
            'winner': outcome.winner,
        }
        if save and outcome.winner is not None:
            winner = outcome.winner
            payload['celebrate_ms'] = self.settings.celebration_ms
            self.notifier.notify(
                '🏆 Game Ended & Saved!',
                f"Winner: {winner['team_name']} with {winner['final_score']} points!",
                duration=5000,
            )
        elif save:
            self.notifier.notify('🏆 Game Ended & Saved!', 'No teams took part.', duration=5000)
        else:
            self.notifier.notify('Game Ended', 'Game ended without saving to history.', duration=3000)
        self.notifier.emit('game_ended', payload)
        return payload

    def game_history(self, limit: Optional[int] = None) -> List[dict]:
        limit = self.settings.game_history_limit if limit is None else limit
        with self._reported('Failed to load game history'):
            try:
                return self.sessions.history(limit)
            except SQLAlchemyError as exc:
                db.session.rollback()
                raise StoreError('Failed to load game history') from exc

    def delete_game(self, session_id: str) -> None:
        with self._lock, self._reported('Failed to delete game'):
            self.sessions.delete_saved(session_id)
        self.notifier.notify('Game Deleted', 'The game has been removed from history')

    # ---- countdown ----

    def timer_state(self) -> dict:
        return self.countdown.to_dict()

    def pause_timer(self) -> dict:
        with self._lock:
            self.countdown.pause()
        return self._timer_changed()

    def resume_timer(self) -> dict:
        with self._lock:
            self.countdown.resume()
        return self._timer_changed()

    def toggle_timer(self) -> dict:
        with self._lock:
            self.countdown.toggle()
        return self._timer_changed()

    def reset_timer(self) -> dict:
        with self._lock:
            self.countdown.reset()
        self.notifier.notify('Timer Reset', 'Countdown timer has been reset to 0:00')
        return self._timer_changed()

    def set_timer(self, minutes: int, seconds: int) -> dict:
        with self._lock:
            self.countdown.set_time(minutes, seconds)
        self.notifier.notify('Timer Set', f"Timer set to {int(minutes)}:{int(seconds):02d}")
        return self._timer_changed()

    def _timer_changed(self) -> dict:
        state = self.countdown.to_dict()
        self.notifier.emit('timer_update', state)
        if self.countdown.running:
            self._ensure_countdown_worker()
        return state

    def _times_up(self) -> None:
        self.logger.info(f"[timer-fire] operator={self.operator_id} countdown finished")
        self.notifier.emit('times_up', {})
        self.notifier.notify("⏰ Time's Up!", 'The countdown has finished!', duration=5000)

    def _ensure_countdown_worker(self) -> None:
        if not self.settings.background_timer:
            return
        with self._lock:
            if self._worker_running:
                return
            self._worker_running = True
        socketio.start_background_task(self._countdown_worker)

    def _countdown_worker(self) -> None:
        try:
            while True:
                socketio.sleep(self.settings.countdown_poll_sec)
                with self._lock:
                    if not self.countdown.running:
                        # Must be cleared under the lock _ensure_countdown_worker checks
                        self._worker_running = False
                        return
                    applied = self.countdown.poll()
                if applied:
                    self.notifier.emit('timer_update', self.countdown.to_dict())
        except Exception:
            with self._lock:
                self._worker_running = False
            raise

    # ---- internals ----

    @contextmanager
    def _reported(self, message: str):
        try:
            yield
        except StoreError:
            self.notifier.error(message)
            raise

    def _commit(self, row, action: str) -> None:
        try:
            db.session.add(row)
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            self.logger.error(f"[{action}-failed] operator={self.operator_id} error={exc}")
            raise StoreError(f'Failed to {action.replace("-", " ")}') from exc
        self.logger.info(f"[{action}] operator={self.operator_id} id={row.id}")

    def _update_team(self, team_id: str, failure: str, **fields) -> TeamSnapshot:
        with self._lock, self._reported(failure):
            team = Team.query.filter_by(id=team_id, user_id=self.operator_id).first()
            if team is None:
                raise TeamNotFound(team_id)
            for key, value in fields.items():
                setattr(team, key, value)
            self._commit(team, action='update-team')
            snapshot = TeamSnapshot.from_row(team)
            if team_id in self._teams:
                self._teams[team_id] = snapshot
        if 'name' in fields:
            self.notifier.notify('Team renamed', f'Team name updated to "{snapshot.name}"')
        return snapshot

    def _apply(self, snapshot: TeamSnapshot) -> bool:
        """Move a committed write into the mirror, unless the team is gone."""
        if snapshot.id not in self._teams:
            self.logger.info(f"[stale-write] team={snapshot.id} no longer tracked; result dropped")
            return False
        self._teams[snapshot.id] = snapshot
        self.notifier.emit('scores_changed', {'team': snapshot.to_dict()})
        self._after_change()
        return True

    def _after_change(self) -> None:
        change = self.leader.observe(self._teams.values())
        if not change.transition:
            return
        self.logger.info(f"[leader] operator={self.operator_id} team={change.leader_id} score={change.score}")
        self.notifier.emit('leader_changed', {
            'team_id': change.leader_id,
            'name': change.name,
            'score': change.score,
            'celebrate_ms': self.settings.celebration_ms,
        })
        self.notifier.notify(
            '🎉 New Leader!',
            f"{change.name} has taken the lead with {change.score} points!",
            duration=4000,
        )


_registry_lock = threading.Lock()


def get_tracker(operator_id: int, app=None) -> TeamTracker:
    """Return the operator's tracker, creating and loading it on first use."""
    app = app or current_app._get_current_object()
    trackers = app.extensions.setdefault('scoreboard_trackers', {})
    with _registry_lock:
        tracker = trackers.get(operator_id)
        if tracker is None:
            tracker = TeamTracker(operator_id, TrackerSettings.from_config(app.config), app.logger)
            tracker.load()
            trackers[operator_id] = tracker
    return tracker
