"""Add verified column to users"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'b2c4e6f8a0d1'
down_revision = 'a1b3c5d7e9f0'
branch_labels = None
depends_on = None


def upgrade():
    with op.batch_alter_table('users', schema=None) as batch_op:
        batch_op.add_column(sa.Column('verified', sa.Boolean(), nullable=True))
    op.execute("UPDATE users SET verified = false WHERE verified IS NULL;")
    with op.batch_alter_table('users', schema=None) as batch_op:
        batch_op.alter_column('verified', nullable=False, server_default=sa.text('false'))


def downgrade():
    with op.batch_alter_table('users', schema=None) as batch_op:
        batch_op.drop_column('verified')
