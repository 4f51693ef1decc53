"""Create tokens and bookmarks tables

Revision ID: 3f1c2a7b9d10
Revises: 
Create Date: 2026-10-19 09:12:44.318205

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '3f1c2a7b9d10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create credential store tables and enable pgcrypto for secret encryption."""
    op.execute('CREATE EXTENSION IF NOT EXISTS pgcrypto')

    op.create_table(
        'tokens',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('token', sa.String(length=64), nullable=False),
        sa.Column('type', sa.String(length=20), nullable=False),
        sa.Column('dbaddr', sa.String(length=255), nullable=False),
        sa.Column('dbname', sa.String(length=128), nullable=False),
        sa.Column('username', sa.String(length=128), nullable=False),
        sa.Column('password', postgresql.BYTEA(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_tokens_token', 'tokens', ['token'], unique=True)
    op.create_index('ix_tokens_target', 'tokens', ['dbaddr', 'dbname'])

    op.create_table(
        'bookmarks',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('token_id', sa.Integer(), nullable=False),
        sa.Column('account_name', sa.String(length=128), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['token_id'], ['tokens.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_bookmarks_lookup', 'bookmarks', ['token_id', 'account_name'])


def downgrade() -> None:
    """Drop credential store tables."""
    op.drop_index('ix_bookmarks_lookup', table_name='bookmarks')
    op.drop_table('bookmarks')
    op.drop_index('ix_tokens_target', table_name='tokens')
    op.drop_index('ix_tokens_token', table_name='tokens')
    op.drop_table('tokens')
    # pgcrypto is left in place, other schemas may depend on it
