# hivebot/runner.py
"""
Запуск приложения защиты в одном процессе.

Слой интеграции с платформой создаёт свой PlatformClient и передаёт
его в run(); события платформы он направляет в методы ProtectorApp.
"""

import asyncio
import logging
from typing import Optional

from hivebot.config import APP_ACCOUNT_NAME, COMMUNITY_NAME, LOG_LEVEL, log_configuration
from hivebot.database.session import init_db
from hivebot.platform import PlatformClient
from hivebot.scheduler import AsyncioJobScheduler
from hivebot.services.protection.app import ProtectorApp, database_settings_loader
from hivebot.services.redis_conn import redis, test_connection
from hivebot.utils.logger import setup_logging

logger = logging.getLogger(__name__)


async def run(platform: PlatformClient, stop_event: Optional[asyncio.Event] = None) -> None:
    """
    Запускает приложение и ждёт сигнала остановки.

    Args:
        platform: Клиент платформы
        stop_event: Событие остановки (по умолчанию работаем бесконечно)
    """
    setup_logging(LOG_LEVEL)
    log_configuration()

    if not COMMUNITY_NAME:
        raise RuntimeError("COMMUNITY_NAME не задан")

    # Без Redis работа невозможна: очереди и кэш живут там
    if not await test_connection():
        raise RuntimeError("Redis недоступен")

    # ✅ Создаём таблицы в БД на основе моделей (если они не существуют)
    await init_db()

    scheduler = AsyncioJobScheduler()
    app = ProtectorApp(
        redis,
        platform,
        scheduler,
        COMMUNITY_NAME,
        APP_ACCOUNT_NAME,
        database_settings_loader(COMMUNITY_NAME),
    )
    app.register_jobs(scheduler)

    await app.on_install_or_upgrade()
    logger.info(f"🛡 HiveBot запущен для {COMMUNITY_NAME} от имени {APP_ACCOUNT_NAME}")

    stop_event = stop_event or asyncio.Event()
    try:
        await stop_event.wait()
    finally:
        await scheduler.shutdown()
        await redis.aclose()
        logger.info("🛑 HiveBot остановлен")
