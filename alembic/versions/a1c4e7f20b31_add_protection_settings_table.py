"""add_protection_settings_table

Revision ID: a1c4e7f20b31
Revises:
Create Date: 2026-10-19 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = 'a1c4e7f20b31'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Создаём таблицу protection_settings: карта настроек защиты, одна запись на сообщество."""
    op.create_table(
        'protection_settings',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('community', sa.String(), nullable=False, comment='Имя сообщества в нижнем регистре'),
        sa.Column('values', sa.JSON(), nullable=False, comment='Карта "имя настройки -> значение"'),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_protection_settings_community', 'protection_settings', ['community'], unique=True)


def downgrade() -> None:
    """Удаляем таблицу protection_settings."""
    op.drop_index('ix_protection_settings_community', table_name='protection_settings')
    op.drop_table('protection_settings')
