import os
import sys
from logging.config import fileConfig

from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config

from alembic import context

# Добавляем путь до корня проекта (чтобы работал импорт hivebot)
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

# hivebot.config сам выбирает и загружает .env по ENVIRONMENT
from hivebot.config import DATABASE_URL
from hivebot.database.models import Base

# Отдельный URL для миграций имеет приоритет (например, другой пользователь БД)
ALEMBIC_URL = os.getenv("ALEMBIC_URL") or DATABASE_URL

config = context.config
config.set_main_option("sqlalchemy.url", ALEMBIC_URL)

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    connectable = async_engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)

    await connectable.dispose()


def do_run_migrations(connection: Connection) -> None:
    context.configure(connection=connection, target_metadata=target_metadata)

    with context.begin_transaction():
        context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    import asyncio

    asyncio.run(run_migrations_online())
