from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Callable, Iterator, Optional, Union

from sqlalchemy.exc import SQLAlchemyError

from scoreboard import db
from scoreboard.models import (
    Team, ScoreHistory, LastAction, CardPenalty, ANSWER_TYPES, CARD_TYPES, CHANGE_TYPES,
)
from .errors import StoreError, TeamNotFound


CARD_POINTS = {'yellow': 1, 'red': 2}


@dataclass(frozen=True)
class TeamSnapshot:
    id: str
    name: str
    score: int
    emoji: str
    is_pinned: bool
    correct_answers: int
    wrong_answers: int

    @classmethod
    def from_row(cls, team: Team) -> 'TeamSnapshot':
        return cls(
            id=team.id,
            name=team.name,
            score=team.score,
            emoji=team.emoji,
            is_pinned=bool(team.is_pinned),
            correct_answers=team.correct_answers or 0,
            wrong_answers=team.wrong_answers or 0,
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class HistoryEntry:
    team_id: str
    previous_score: int
    new_score: int
    change_type: str
    change_amount: int
    created_at: Optional[datetime]

    def to_dict(self) -> dict:
        payload = asdict(self)
        payload['created_at'] = self.created_at.isoformat() if self.created_at else None
        return payload


# A pending score change is one of three shapes; ``kind`` is the stored change_type.

@dataclass(frozen=True)
class PointChange:
    delta: int
    answer: Optional[str] = None

    @property
    def kind(self) -> str:
        return 'point'


@dataclass(frozen=True)
class CardChange:
    card: str
    delta: int

    @property
    def kind(self) -> str:
        return f'{self.card}_card'

    @property
    def answer(self) -> None:
        return None


@dataclass(frozen=True)
class ResetChange:
    delta: int

    @property
    def kind(self) -> str:
        return 'reset'

    @property
    def answer(self) -> None:
        return None


ScoreChange = Union[PointChange, CardChange, ResetChange]


def change_from_action(action: LastAction) -> ScoreChange:
    """Rebuild the tagged change from a stored last_actions row."""
    if action.change_type == 'point':
        return PointChange(action.score_change, action.answer_type)
    if action.change_type == 'reset':
        return ResetChange(action.score_change)
    return CardChange(action.change_type.split('_', 1)[0], action.score_change)


@dataclass(frozen=True)
class UndoResult:
    team: TeamSnapshot
    undone: ScoreChange


class ScoreLedger:
    """Applies score changes for one operator's teams.

    Every write is a single transaction: the undo slot for (operator, team) is
    replaced, the team row is updated and a history row is appended. If the
    commit fails nothing is kept and ``StoreError`` is raised.
    """

    def __init__(self, operator_id: int, logger):
        self.operator_id = operator_id
        self.logger = logger

    def apply_delta(self, team_id: str, delta: int, change_type: str = 'point',
                    answer: Optional[str] = None) -> TeamSnapshot:
        if change_type not in CHANGE_TYPES:
            raise ValueError(f'Unknown change type: {change_type}')
        if answer is not None and answer not in ANSWER_TYPES:
            raise ValueError(f'Unknown answer type: {answer}')
        if answer is not None and change_type != 'point':
            raise ValueError('Only point changes can record an answer')
        delta = int(delta)
        if change_type == 'point':
            change = PointChange(delta, answer)
        elif change_type == 'reset':
            change = ResetChange(delta)
        else:
            change = CardChange(change_type.split('_', 1)[0], delta)
        return self._write(team_id, lambda previous: change)

    def reset_score(self, team_id: str) -> TeamSnapshot:
        return self._write(team_id, lambda previous: ResetChange(0 - previous))

    def penalize(self, team_id: str, card: str) -> TeamSnapshot:
        if card not in CARD_TYPES:
            raise ValueError(f'Unknown card type: {card}')
        change = CardChange(card, -CARD_POINTS[card])
        return self._write(team_id, lambda previous: change)

    def undo_last(self, team_id: Optional[str] = None) -> Optional[UndoResult]:
        """Restore the score saved in the newest undo slot.

        With ``team_id`` only that team's slot is considered, otherwise the
        most recent slot across all of the operator's teams. Returns None when
        there is nothing to undo. Answer counters are left as they are.
        """
        try:
            query = LastAction.query.filter_by(user_id=self.operator_id)
            if team_id is not None:
                query = query.filter_by(team_id=team_id)
            action = query.order_by(LastAction.created_at.desc()).first()
            if action is None:
                self.logger.info(f"[undo-noop] operator={self.operator_id} team={team_id}")
                return None
            action_team_id = action.team_id
            team = self._team_query(action_team_id).first()
            undone = change_from_action(action)
            restored = action.previous_score
            db.session.delete(action)
            if team is not None:
                team.score = restored
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            self.logger.error(f"[undo-failed] operator={self.operator_id} team={team_id} error={exc}")
            raise StoreError('Failed to undo action') from exc

        if team is None:
            self.logger.warning(
                f"[undo-orphan] operator={self.operator_id} team={action_team_id} slot removed; team no longer exists"
            )
            return None
        snapshot = TeamSnapshot.from_row(team)
        self.logger.info(
            f"[undo] operator={self.operator_id} team={snapshot.id} kind={undone.kind} score -> {snapshot.score}"
        )
        return UndoResult(team=snapshot, undone=undone)

    def get_history(self, team_id: str, limit: int = 20, offset: int = 0) -> Iterator[HistoryEntry]:
        """Yield up to ``limit`` history entries, newest first, starting at ``offset``."""
        if self._team_query(team_id).first() is None:
            raise TeamNotFound(team_id)
        query = (
            ScoreHistory.query.filter_by(team_id=team_id)
            .order_by(ScoreHistory.created_at.desc())
            .offset(max(0, int(offset)))
            .limit(max(0, int(limit)))
        )
        for row in query:
            yield HistoryEntry(
                team_id=row.team_id,
                previous_score=row.previous_score,
                new_score=row.new_score,
                change_type=row.change_type,
                change_amount=row.change_amount,
                created_at=row.created_at,
            )

    def _team_query(self, team_id: str):
        return Team.query.filter_by(id=team_id, user_id=self.operator_id)

    def _write(self, team_id: str, build: Callable[[int], ScoreChange]) -> TeamSnapshot:
        try:
            team = self._team_query(team_id).with_for_update().first()
            if team is None:
                raise TeamNotFound(team_id)
            previous = team.score
            change = build(previous)
            new_score = previous + change.delta

            # Replace the undo slot for this team
            LastAction.query.filter_by(user_id=self.operator_id, team_id=team_id).delete()
            db.session.add(LastAction(
                user_id=self.operator_id,
                team_id=team_id,
                action_type='score_change',
                previous_score=previous,
                score_change=change.delta,
                change_type=change.kind,
                answer_type=change.answer,
            ))

            team.score = new_score
            if change.answer == 'correct':
                team.correct_answers = (team.correct_answers or 0) + 1
            elif change.answer == 'wrong':
                team.wrong_answers = (team.wrong_answers or 0) + 1

            if isinstance(change, CardChange):
                db.session.add(CardPenalty(
                    team_id=team_id,
                    card_type=change.card,
                    points_deducted=-change.delta,
                ))

            db.session.add(ScoreHistory(
                team_id=team_id,
                previous_score=previous,
                new_score=new_score,
                change_type=change.kind,
                change_amount=change.delta,
            ))
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            self.logger.error(f"[score-failed] operator={self.operator_id} team={team_id} error={exc}")
            raise StoreError('Failed to update score') from exc

        snapshot = TeamSnapshot.from_row(team)
        self.logger.info(
            f"[score] team={team_id} {previous} -> {snapshot.score} kind={change.kind} answer={change.answer}"
        )
        return snapshot
