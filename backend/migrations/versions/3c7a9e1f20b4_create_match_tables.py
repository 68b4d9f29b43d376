"""create user, question bank and match tables

Revision ID: 3c7a9e1f20b4
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3c7a9e1f20b4'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'user',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('password_hash', sa.String(length=256), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_user_username', 'user', ['username'], unique=True)

    op.create_table(
        'match',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('host_id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(length=100), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('current_round', sa.Integer(), nullable=False),
        sa.Column('current_question', sa.Integer(), nullable=False),
        sa.Column('max_rounds', sa.Integer(), nullable=False),
        sa.Column('questions_per_round', sa.Integer(), nullable=False),
        sa.Column('settings', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('started_at', sa.DateTime(), nullable=True),
        sa.Column('ended_at', sa.DateTime(), nullable=True),
        sa.CheckConstraint("status IN ('setup', 'active', 'paused', 'completed')", name='ck_match_status'),
        sa.CheckConstraint('current_round >= 1 AND current_round <= max_rounds', name='ck_match_round'),
        sa.CheckConstraint('current_question >= 1 AND current_question <= questions_per_round', name='ck_match_question'),
        sa.ForeignKeyConstraint(['host_id'], ['user.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_match_host_id', 'match', ['host_id'])

    op.create_table(
        'question',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('category', sa.String(length=64), nullable=False),
        sa.Column('subcategory', sa.String(length=64), nullable=True),
        sa.Column('difficulty', sa.String(length=16), nullable=True),
        sa.Column('text', sa.Text(), nullable=False),
        sa.Column('a', sa.Text(), nullable=False),
        sa.Column('b', sa.Text(), nullable=True),
        sa.Column('c', sa.Text(), nullable=True),
        sa.Column('d', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_question_category', 'question', ['category'])

    op.create_table(
        'question_usage',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('host_id', sa.Integer(), nullable=False),
        sa.Column('question_id', sa.Integer(), nullable=False),
        sa.Column('match_id', sa.Integer(), nullable=False),
        sa.Column('used_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['host_id'], ['user.id']),
        sa.ForeignKeyConstraint(['question_id'], ['question.id']),
        sa.ForeignKeyConstraint(['match_id'], ['match.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('host_id', 'question_id', name='uq_question_usage_host_question'),
    )
    op.create_index('ix_question_usage_match_id', 'question_usage', ['match_id'])

    op.create_table(
        'match_question',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('match_id', sa.Integer(), nullable=False),
        sa.Column('question_id', sa.Integer(), nullable=False),
        sa.Column('round_number', sa.Integer(), nullable=False),
        sa.Column('question_order', sa.Integer(), nullable=False),
        sa.Column('shuffled_answers', sa.Text(), nullable=False),
        sa.Column('correct_position', sa.Integer(), nullable=False),
        sa.Column('displayed_at', sa.DateTime(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.CheckConstraint('correct_position >= 0 AND correct_position <= 3', name='ck_match_question_correct'),
        sa.ForeignKeyConstraint(['match_id'], ['match.id']),
        sa.ForeignKeyConstraint(['question_id'], ['question.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('match_id', 'round_number', 'question_order', name='uq_match_question_slot'),
        sa.UniqueConstraint('match_id', 'question_id', name='uq_match_question_question'),
    )

    # captain_id points at player, which does not exist yet; the FK is added below
    op.create_table(
        'team',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('match_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=30), nullable=False),
        sa.Column('join_code', sa.String(length=6), nullable=False),
        sa.Column('captain_id', sa.Integer(), nullable=True),
        sa.Column('score', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('score >= 0', name='ck_team_score'),
        sa.ForeignKeyConstraint(['match_id'], ['match.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('match_id', 'name', name='uq_team_match_name'),
        sa.UniqueConstraint('match_id', 'join_code', name='uq_team_match_join_code'),
    )
    op.create_index('ix_team_match_id', 'team', ['match_id'])
    op.create_index('ix_team_join_code', 'team', ['join_code'])

    op.create_table(
        'player',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('match_id', sa.Integer(), nullable=False),
        sa.Column('team_id', sa.Integer(), nullable=True),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('display_name', sa.String(length=20), nullable=False),
        sa.Column('joined_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['match_id'], ['match.id']),
        sa.ForeignKeyConstraint(['team_id'], ['team.id']),
        sa.ForeignKeyConstraint(['user_id'], ['user.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('match_id', 'display_name', name='uq_player_match_name'),
    )
    op.create_index('ix_player_match_id', 'player', ['match_id'])
    op.create_index('ix_player_team_id', 'player', ['team_id'])

    with op.batch_alter_table('team') as batch_op:
        batch_op.create_foreign_key('fk_team_captain_id', 'player', ['captain_id'], ['id'])

    op.create_table(
        'submission',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('match_id', sa.Integer(), nullable=False),
        sa.Column('team_id', sa.Integer(), nullable=False),
        sa.Column('match_question_id', sa.Integer(), nullable=False),
        sa.Column('selected_position', sa.Integer(), nullable=False),
        sa.Column('is_correct', sa.Boolean(), nullable=False),
        sa.Column('points_earned', sa.Integer(), nullable=False),
        sa.Column('response_time', sa.Float(), nullable=False),
        sa.Column('submitted_by', sa.Integer(), nullable=False),
        sa.Column('submitted_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('selected_position >= 0 AND selected_position <= 3', name='ck_submission_position'),
        sa.CheckConstraint('points_earned >= 0', name='ck_submission_points'),
        sa.ForeignKeyConstraint(['match_id'], ['match.id']),
        sa.ForeignKeyConstraint(['team_id'], ['team.id']),
        sa.ForeignKeyConstraint(['match_question_id'], ['match_question.id']),
        sa.ForeignKeyConstraint(['submitted_by'], ['player.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('team_id', 'match_question_id', name='uq_submission_team_question'),
    )
    op.create_index('ix_submission_match_id', 'submission', ['match_id'])
    op.create_index('ix_submission_match_question_id', 'submission', ['match_question_id'])


def downgrade():
    op.drop_table('submission')
    with op.batch_alter_table('team') as batch_op:
        batch_op.drop_constraint('fk_team_captain_id', type_='foreignkey')
    op.drop_table('player')
    op.drop_table('team')
    op.drop_table('match_question')
    op.drop_table('question_usage')
    op.drop_table('question')
    op.drop_table('match')
    op.drop_table('user')
