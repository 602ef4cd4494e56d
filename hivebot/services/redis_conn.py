# hivebot/services/redis_conn.py
import logging

from redis.asyncio import Redis

from hivebot.config import REDIS_DB, REDIS_HOST, REDIS_PORT, REDIS_URL

logger = logging.getLogger(__name__)

# Общий клиент хранилища ключ-значение; сервисы получают его явно через конструктор
if REDIS_URL:
    redis = Redis.from_url(REDIS_URL, decode_responses=True)
else:
    redis = Redis(host=REDIS_HOST, port=REDIS_PORT, db=REDIS_DB, decode_responses=True)


async def test_connection() -> bool:
    """Проверяет соединение с Redis."""
    try:
        await redis.ping()
        logger.info(f"✅ Соединение с Redis ({REDIS_URL or f'{REDIS_HOST}:{REDIS_PORT}'}) установлено")
        return True
    except Exception as e:
        logger.error(f"❌ Ошибка подключения к Redis ({REDIS_URL or f'{REDIS_HOST}:{REDIS_PORT}'}): {e}")
        return False
