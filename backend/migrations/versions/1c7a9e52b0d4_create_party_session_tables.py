"""create game_session, member and submission tables

Revision ID: 1c7a9e52b0d4
Revises:
Create Date: 2026-10-19 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '1c7a9e52b0d4'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    existing_tables = set(insp.get_table_names())

    if 'game_session' not in existing_tables:
        op.create_table(
            'game_session',
            sa.Column('id', sa.String(length=36), primary_key=True),
            sa.Column('code', sa.String(length=8), nullable=False),
            sa.Column('host_token_hash', sa.String(length=64), nullable=False),
            sa.Column('status', sa.String(length=16), nullable=False, server_default='lobby'),
            sa.Column('reveal_order', sa.Text(), nullable=True),
            sa.Column('reveal_index', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        )
        op.create_index('ix_game_session_code', 'game_session', ['code'], unique=True)

    if 'member' not in existing_tables:
        op.create_table(
            'member',
            sa.Column('id', sa.String(length=36), primary_key=True),
            sa.Column('session_id', sa.String(length=36), sa.ForeignKey('game_session.id'), nullable=False),
            sa.Column('client_id', sa.String(length=128), nullable=False),
            sa.Column('display_name', sa.String(length=64), nullable=False),
            sa.Column('joined_at', sa.DateTime(timezone=True), nullable=False),
            sa.UniqueConstraint('session_id', 'client_id', name='uq_member_session_client'),
        )
        op.create_index('ix_member_session_id', 'member', ['session_id'])

    if 'submission' not in existing_tables:
        op.create_table(
            'submission',
            sa.Column('id', sa.String(length=36), primary_key=True),
            sa.Column('session_id', sa.String(length=36), sa.ForeignKey('game_session.id'), nullable=False),
            sa.Column('member_id', sa.String(length=36), sa.ForeignKey('member.id'), nullable=False),
            sa.Column('text', sa.String(length=80), nullable=False),
            sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
            sa.UniqueConstraint('session_id', 'member_id', name='uq_submission_session_member'),
        )
        op.create_index('ix_submission_session_id', 'submission', ['session_id'])


def downgrade():
    op.drop_index('ix_submission_session_id', table_name='submission')
    op.drop_table('submission')
    op.drop_index('ix_member_session_id', table_name='member')
    op.drop_table('member')
    op.drop_index('ix_game_session_code', table_name='game_session')
    op.drop_table('game_session')
