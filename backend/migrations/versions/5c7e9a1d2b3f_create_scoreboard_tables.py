"""create scoreboard tables: teams, score history, undo slots, card penalties, game sessions

Revision ID: 5c7e9a1d2b3f
Revises:
Create Date: 2026-10-17 12:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5c7e9a1d2b3f'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    existing_tables = set(sa.inspect(bind).get_table_names())

    if 'user' not in existing_tables:
        op.create_table(
            'user',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('username', sa.String(length=64), nullable=False),
            sa.Column('password_hash', sa.String(length=256), nullable=False),
        )
        op.create_index('ix_user_username', 'user', ['username'], unique=True)

    op.create_table(
        'teams',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('score', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('emoji', sa.String(length=16), nullable=False, server_default='⚽'),
        sa.Column('is_pinned', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('correct_answers', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('wrong_answers', sa.Integer(), nullable=False, server_default='0'),
    )
    op.create_index('ix_teams_user_id', 'teams', ['user_id'])

    op.create_table(
        'score_history',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('team_id', sa.String(length=36), sa.ForeignKey('teams.id', ondelete='CASCADE'), nullable=False),
        sa.Column('previous_score', sa.Integer(), nullable=False),
        sa.Column('new_score', sa.Integer(), nullable=False),
        sa.Column('change_type', sa.String(length=16), nullable=False),
        sa.Column('change_amount', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_score_history_team_id', 'score_history', ['team_id'])
    op.create_index('ix_score_history_created_at', 'score_history', ['created_at'])

    op.create_table(
        'last_actions',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('team_id', sa.String(length=36), sa.ForeignKey('teams.id', ondelete='CASCADE'), nullable=False),
        sa.Column('action_type', sa.String(length=32), nullable=False),
        sa.Column('previous_score', sa.Integer(), nullable=False),
        sa.Column('score_change', sa.Integer(), nullable=False),
        sa.Column('change_type', sa.String(length=16), nullable=False),
        sa.Column('answer_type', sa.String(length=16), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('user_id', 'team_id', name='uq_last_action_user_team'),
    )
    op.create_index('ix_last_actions_user_id', 'last_actions', ['user_id'])
    op.create_index('ix_last_actions_created_at', 'last_actions', ['created_at'])

    op.create_table(
        'card_penalties',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('team_id', sa.String(length=36), sa.ForeignKey('teams.id', ondelete='CASCADE'), nullable=False),
        sa.Column('card_type', sa.String(length=8), nullable=False),
        sa.Column('points_deducted', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_card_penalties_team_id', 'card_penalties', ['team_id'])

    op.create_table(
        'game_sessions',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('ended_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('total_duration', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    op.create_index('ix_game_sessions_user_id', 'game_sessions', ['user_id'])

    op.create_table(
        'game_team_results',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('game_session_id', sa.String(length=36), sa.ForeignKey('game_sessions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('team_id', sa.String(length=36), nullable=False),
        sa.Column('team_name', sa.String(length=128), nullable=False),
        sa.Column('final_score', sa.Integer(), nullable=False),
        sa.Column('correct_answers', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('wrong_answers', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('rank', sa.Integer(), nullable=False),
    )
    op.create_index('ix_game_team_results_game_session_id', 'game_team_results', ['game_session_id'])


def downgrade():
    for table in ('game_team_results', 'game_sessions', 'card_penalties', 'last_actions', 'score_history', 'teams'):
        op.drop_table(table)
