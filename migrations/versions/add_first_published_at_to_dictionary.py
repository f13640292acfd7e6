"""track when a dictionary term first went live

Revision ID: add_first_published_at_to_dictionary
Revises: add_lifecycle_to_dictionary
Create Date: 2026-10-19 09:40:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'add_first_published_at_to_dictionary'
down_revision = 'add_lifecycle_to_dictionary'
branch_labels = None
depends_on = None


def upgrade():
    op.add_column('dictionary', sa.Column('first_published_at', sa.DateTime(), nullable=True))
    # Terms that are live today have public links already
    op.execute("UPDATE dictionary SET first_published_at = updated_at WHERE status = 'published'")


def downgrade():
    op.drop_column('dictionary', 'first_published_at')
