"""create words, learning_records and user_preferences tables

Revision ID: f1a2b3c4d5e6
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'f1a2b3c4d5e6'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the vocabulary tables."""
    op.create_table(
        'words',
        sa.Column('position', sa.Integer(), primary_key=True),
        sa.Column('word_id', sa.String(), nullable=False, unique=True),
        sa.Column('kanji', sa.String(), nullable=False),
        sa.Column('kana', sa.String(), nullable=False, server_default=''),
        sa.Column('type', sa.String(), nullable=False, server_default='无'),
        sa.Column('meaning', sa.Text(), nullable=False, server_default='无'),
    )
    op.create_table(
        'learning_records',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('word_id', sa.String(), nullable=False, unique=True),
        sa.Column('next_review_time', sa.BigInteger(), nullable=False),
        sa.Column('interval_level', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_mastered', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('show_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_favorite', sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    op.create_table(
        'user_preferences',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user', sa.String(), nullable=False, unique=True),
        sa.Column('data', sa.Text(), nullable=False, server_default='{}'),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )


def downgrade() -> None:
    """Drop the vocabulary tables."""
    op.drop_table('user_preferences')
    op.drop_table('learning_records')
    op.drop_table('words')
