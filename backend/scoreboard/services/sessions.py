import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from scoreboard import db
from scoreboard.models import GameSession, GameTeamResult
from .errors import InvalidTransition, SessionNotFound, StoreError


IDLE = 'idle'
ACTIVE = 'active'
SAVED = 'saved'
DISCARDED = 'discarded'


def _utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def rank_teams(teams: Sequence) -> List[tuple]:
    """Pair each team with its 1-based rank, highest score first.

    The sort is stable, so tied teams keep their input order and still get
    distinct positions.
    """
    ordered = sorted(teams, key=lambda t: t.score, reverse=True)
    return [(index + 1, team) for index, team in enumerate(ordered)]


@dataclass(frozen=True)
class SessionOutcome:
    session_id: str
    state: str
    duration: Optional[int] = None
    results: List[dict] = field(default_factory=list)
    winner: Optional[dict] = None


class GameSessionController:
    """Lifecycle of one operator's timed game: idle -> active -> saved/discarded.

    Terminal states are reported in the returned ``SessionOutcome``; the
    controller itself drops straight back to idle so the next game can start.
    """

    def __init__(self, operator_id: int, logger, now: Callable[[], datetime] = None):
        self.operator_id = operator_id
        self.logger = logger
        self._now = now or (lambda: datetime.now(timezone.utc))
        self.state = IDLE
        self.session_id: Optional[str] = None
        self.started_at: Optional[datetime] = None

    def recover(self) -> None:
        """Pick up an active session left in the database by a previous run."""
        active = (
            GameSession.query.filter_by(user_id=self.operator_id, is_active=True)
            .order_by(GameSession.started_at.desc())
            .first()
        )
        if active is None:
            return
        self.state = ACTIVE
        self.session_id = active.id
        self.started_at = _utc(active.started_at)
        self.logger.info(f"[game-recover] operator={self.operator_id} session={active.id}")

    def start(self) -> GameSession:
        if self.state != IDLE:
            raise InvalidTransition('A game is already in progress')
        try:
            existing = GameSession.query.filter_by(user_id=self.operator_id, is_active=True).first()
            if existing is not None:
                raise InvalidTransition('A game is already in progress')
            started_at = self._now()
            session = GameSession(user_id=self.operator_id, started_at=started_at, is_active=True)
            db.session.add(session)
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            self.logger.error(f"[game-start-failed] operator={self.operator_id} error={exc}")
            raise StoreError('Failed to start game') from exc

        self.state = ACTIVE
        self.session_id = session.id
        self.started_at = started_at
        self.logger.info(f"[game-start] operator={self.operator_id} session={session.id}")
        return session

    def end_and_save(self, teams: Sequence) -> SessionOutcome:
        self._require_active()
        ended_at = self._now()
        duration = max(0, math.floor((ended_at - _utc(self.started_at)).total_seconds()))
        ranked = rank_teams(teams)
        try:
            session = db.session.get(GameSession, self.session_id)
            if session is None:
                raise SessionNotFound(self.session_id)
            session.ended_at = ended_at
            session.total_duration = duration
            session.is_active = False
            rows = [
                GameTeamResult(
                    game_session_id=session.id,
                    team_id=team.id,
                    team_name=team.name,
                    final_score=team.score,
                    correct_answers=team.correct_answers or 0,
                    wrong_answers=team.wrong_answers or 0,
                    rank=rank,
                )
                for rank, team in ranked
            ]
            db.session.add_all(rows)
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            self.logger.error(f"[game-save-failed] session={self.session_id} error={exc}")
            raise StoreError('Failed to end game') from exc

        results = [r.to_dict() for r in rows]
        winner = results[0] if results else None
        outcome = SessionOutcome(
            session_id=self.session_id, state=SAVED, duration=duration, results=results, winner=winner,
        )
        self.logger.info(
            f"[game-save] session={self.session_id} duration={duration}s teams={len(results)} "
            f"winner={winner['team_name'] if winner else None}"
        )
        self._to_idle()
        return outcome

    def end_and_discard(self) -> SessionOutcome:
        self._require_active()
        try:
            session = db.session.get(GameSession, self.session_id)
            if session is not None:
                db.session.delete(session)
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            self.logger.error(f"[game-discard-failed] session={self.session_id} error={exc}")
            raise StoreError('Failed to end game') from exc

        outcome = SessionOutcome(session_id=self.session_id, state=DISCARDED)
        self.logger.info(f"[game-discard] session={self.session_id}")
        self._to_idle()
        return outcome

    def history(self, limit: int = 10) -> List[dict]:
        sessions = (
            GameSession.query.filter_by(user_id=self.operator_id, is_active=False)
            .order_by(GameSession.ended_at.desc())
            .limit(limit)
            .all()
        )
        return [s.to_dict(include_results=True) for s in sessions]

    def delete_saved(self, session_id: str) -> None:
        session = GameSession.query.filter_by(id=session_id, user_id=self.operator_id).first()
        if session is None:
            raise SessionNotFound(session_id)
        if session.is_active:
            raise InvalidTransition('End the game before deleting it')
        try:
            GameTeamResult.query.filter_by(game_session_id=session.id).delete()
            db.session.delete(session)
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            self.logger.error(f"[game-delete-failed] session={session_id} error={exc}")
            raise StoreError('Failed to delete game') from exc
        self.logger.info(f"[game-delete] session={session_id}")

    def to_dict(self) -> dict:
        return {
            'state': self.state,
            'session_id': self.session_id,
            'started_at': self.started_at.isoformat() if self.started_at else None,
        }

    def _require_active(self) -> None:
        if self.state != ACTIVE or self.session_id is None:
            raise InvalidTransition('No game in progress')

    def _to_idle(self) -> None:
        self.state = IDLE
        self.session_id = None
        self.started_at = None
