from scoreboard import db, bcrypt
from flask_login import UserMixin
from datetime import datetime, timezone
import uuid


CHANGE_TYPES = ('point', 'yellow_card', 'red_card', 'reset')
ANSWER_TYPES = ('correct', 'wrong')
CARD_TYPES = ('yellow', 'red')


def _uuid():
    return str(uuid.uuid4())


def _now():
    return datetime.now(timezone.utc)


class User(UserMixin, db.Model):
    __tablename__ = 'user'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False)

    def set_password(self, password):
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password):
        return bcrypt.check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
        }


class Team(db.Model):
    __tablename__ = 'teams'
    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    name = db.Column(db.String(128), nullable=False)
    score = db.Column(db.Integer, nullable=False, default=0)
    emoji = db.Column(db.String(16), nullable=False, default='⚽')
    is_pinned = db.Column(db.Boolean, nullable=False, default=False)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_now)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_now, onupdate=_now)
    correct_answers = db.Column(db.Integer, nullable=False, default=0)
    wrong_answers = db.Column(db.Integer, nullable=False, default=0)

    # History, undo slots and card records go away with the team
    history = db.relationship('ScoreHistory', backref='team', lazy='dynamic', cascade='all, delete-orphan')
    last_actions = db.relationship('LastAction', backref='team', lazy='dynamic', cascade='all, delete-orphan')
    card_penalties = db.relationship('CardPenalty', backref='team', lazy='dynamic', cascade='all, delete-orphan')

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'score': self.score,
            'emoji': self.emoji,
            'is_pinned': self.is_pinned,
            'correct_answers': self.correct_answers,
            'wrong_answers': self.wrong_answers,
        }


class ScoreHistory(db.Model):
    __tablename__ = 'score_history'
    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    team_id = db.Column(db.String(36), db.ForeignKey('teams.id'), nullable=False, index=True)
    previous_score = db.Column(db.Integer, nullable=False)
    new_score = db.Column(db.Integer, nullable=False)
    change_type = db.Column(db.String(16), nullable=False)
    change_amount = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_now, index=True)

    def to_dict(self):
        return {
            'id': self.id,
            'team_id': self.team_id,
            'previous_score': self.previous_score,
            'new_score': self.new_score,
            'change_type': self.change_type,
            'change_amount': self.change_amount,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


class LastAction(db.Model):
    """The single pending undo slot for one (operator, team) pair."""
    __tablename__ = 'last_actions'
    __table_args__ = (db.UniqueConstraint('user_id', 'team_id', name='uq_last_action_user_team'),)
    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    team_id = db.Column(db.String(36), db.ForeignKey('teams.id'), nullable=False)
    action_type = db.Column(db.String(32), nullable=False, default='score_change')
    previous_score = db.Column(db.Integer, nullable=False)
    score_change = db.Column(db.Integer, nullable=False)
    change_type = db.Column(db.String(16), nullable=False)
    answer_type = db.Column(db.String(16), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_now, index=True)


class CardPenalty(db.Model):
    __tablename__ = 'card_penalties'
    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    team_id = db.Column(db.String(36), db.ForeignKey('teams.id'), nullable=False, index=True)
    card_type = db.Column(db.String(8), nullable=False)
    points_deducted = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_now)


class GameSession(db.Model):
    __tablename__ = 'game_sessions'
    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    started_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_now)
    ended_at = db.Column(db.DateTime(timezone=True), nullable=True)
    total_duration = db.Column(db.Integer, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    results = db.relationship(
        'GameTeamResult', backref='session', lazy='dynamic', cascade='all, delete-orphan',
        order_by='GameTeamResult.rank',
    )

    def to_dict(self, include_results=False):
        payload = {
            'id': self.id,
            'started_at': self.started_at.isoformat() if self.started_at else None,
            'ended_at': self.ended_at.isoformat() if self.ended_at else None,
            'total_duration': self.total_duration,
            'is_active': self.is_active,
        }
        if include_results:
            payload['results'] = [r.to_dict() for r in self.results]
        return payload


class GameTeamResult(db.Model):
    __tablename__ = 'game_team_results'
    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    game_session_id = db.Column(db.String(36), db.ForeignKey('game_sessions.id'), nullable=False, index=True)
    # Snapshot only: the team may be deleted later
    team_id = db.Column(db.String(36), nullable=False)
    team_name = db.Column(db.String(128), nullable=False)
    final_score = db.Column(db.Integer, nullable=False)
    correct_answers = db.Column(db.Integer, nullable=False, default=0)
    wrong_answers = db.Column(db.Integer, nullable=False, default=0)
    rank = db.Column(db.Integer, nullable=False)

    def to_dict(self):
        return {
            'game_session_id': self.game_session_id,
            'team_id': self.team_id,
            'team_name': self.team_name,
            'final_score': self.final_score,
            'correct_answers': self.correct_answers,
            'wrong_answers': self.wrong_answers,
            'rank': self.rank,
        }
