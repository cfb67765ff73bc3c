"""create account, election, user_election, stake and message tables

Revision ID: 5a7c0e91b2d4
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5a7c0e91b2d4'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'account',
        sa.Column('id', sa.String(length=32), primary_key=True),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('balance', sa.Integer(), nullable=False),
    )
    op.create_index('ix_account_username', 'account', ['username'], unique=True)

    op.create_table(
        'election',
        sa.Column('id', sa.String(length=32), primary_key=True),
        sa.Column('legacy_id', sa.String(length=32), nullable=True),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('candidates', sa.Text(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('winner', sa.String(length=120), nullable=True),
        sa.Column('vote_threshold', sa.Integer(), nullable=False),
        sa.Column('vote_counts', sa.Text(), nullable=False),
        sa.Column('entry_bonus', sa.Integer(), nullable=False),
        sa.Column('vote_cost', sa.Integer(), nullable=False),
        sa.Column('is_visible', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('start_time', sa.DateTime(timezone=True), nullable=True),
        sa.Column('end_time', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_election_legacy_id', 'election', ['legacy_id'], unique=True)

    op.create_table(
        'user_election',
        sa.Column('id', sa.String(length=32), primary_key=True),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('election_id', sa.String(length=32), sa.ForeignKey('election.id'), nullable=False),
        sa.Column('has_joined', sa.Boolean(), nullable=False),
        sa.Column('has_received_bonus', sa.Boolean(), nullable=False),
        sa.Column('has_voted', sa.Boolean(), nullable=False),
        sa.Column('has_received_payout', sa.Boolean(), nullable=False),
        sa.Column('payouts', sa.Text(), nullable=False),
        sa.Column('joined_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('username', 'election_id', name='uq_user_election'),
    )
    op.create_index('ix_user_election_username', 'user_election', ['username'])
    op.create_index('ix_user_election_election_id', 'user_election', ['election_id'])

    op.create_table(
        'stake',
        sa.Column('id', sa.String(length=32), primary_key=True),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('election_id', sa.String(length=32), sa.ForeignKey('election.id'), nullable=False),
        sa.Column('candidate', sa.String(length=120), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('balance_change', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_stake_username', 'stake', ['username'])
    op.create_index('ix_stake_election_id', 'stake', ['election_id'])

    op.create_table(
        'message',
        sa.Column('id', sa.String(length=32), primary_key=True),
        sa.Column('election_id', sa.String(length=32), sa.ForeignKey('election.id'), nullable=False),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('time', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_message_election_id', 'message', ['election_id'])
    op.create_index('ix_message_time', 'message', ['time'])


def downgrade():
    for table in ('message', 'stake', 'user_election', 'election', 'account'):
        op.drop_table(table)
