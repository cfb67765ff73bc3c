"""add per-election seq to message

Revision ID: b81d4f3a9c60
Revises: 5a7c0e91b2d4
Create Date: 2026-10-19 12:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'b81d4f3a9c60'
down_revision = '5a7c0e91b2d4'
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    cols = {c['name'] for c in insp.get_columns('message')}
    with op.batch_alter_table('message') as batch_op:
        if 'seq' not in cols:
            batch_op.add_column(sa.Column('seq', sa.Integer(), nullable=False, server_default='0'))
            batch_op.create_index('ix_message_seq', ['seq'])


def downgrade():
    with op.batch_alter_table('message') as batch_op:
        batch_op.drop_index('ix_message_seq')
        batch_op.drop_column('seq')
