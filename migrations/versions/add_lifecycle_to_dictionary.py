"""add review status and translation cache to dictionary

Revision ID: add_lifecycle_to_dictionary
Revises:
Create Date: 2026-09-28 10:15:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'add_lifecycle_to_dictionary'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # Terms that already existed were live, so they start out published
    op.add_column('dictionary', sa.Column('status', sa.String(length=20), nullable=False, server_default='published'))
    op.create_index('ix_dictionary_status', 'dictionary', ['status'])
    op.add_column('dictionary', sa.Column('translations', sa.JSON(), nullable=False, server_default='{}'))
    op.add_column('dictionary', sa.Column('translation_updated_at', sa.DateTime(), nullable=True))


def downgrade():
    op.drop_column('dictionary', 'translation_updated_at')
    op.drop_column('dictionary', 'translations')
    op.drop_index('ix_dictionary_status', table_name='dictionary')
    op.drop_column('dictionary', 'status')
