# hivebot/config.py
import logging
import os

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Всегда ищем .env относительно корня проекта
BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

# Определяем окружение
ENVIRONMENT = os.getenv("ENVIRONMENT", "development")

# Получаем путь до .env файла в зависимости от окружения
if ENVIRONMENT == "production":
    env_file = ".env.prod"
elif ENVIRONMENT == "testing":
    env_file = ".env.test"
else:
    env_file = ".env.dev"

# Проверяем, есть ли переменная ENV_PATH (для Docker)
env_path = os.getenv("ENV_PATH")
if not env_path:
    env_path = os.path.join(BASE_DIR, env_file)

# Загружаем .env файл (отсутствие файла не ошибка - берём системные переменные)
load_dotenv(dotenv_path=env_path)

# Redis настройки
REDIS_URL = os.getenv("REDIS_URL", "")
REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
REDIS_PORT = int(os.getenv("REDIS_PORT", "6379"))
REDIS_DB = int(os.getenv("REDIS_DB", "0"))

# Настройки базы данных (по умолчанию локальный SQLite)
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite+aiosqlite:///{os.path.join(BASE_DIR, 'hivebot.db')}")

# Настройки логирования
DEBUG = os.getenv("DEBUG", "false").lower() == "true"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Аккаунт, от имени которого выполняются действия, и защищаемое сообщество
APP_ACCOUNT_NAME = os.getenv("APP_ACCOUNT_NAME", "hive-protect")
COMMUNITY_NAME = os.getenv("COMMUNITY_NAME", "")

# Настройка уровня приложения: домены, запрещённые на всей платформе
SITEWIDE_BANNED_DOMAINS = os.getenv("SITEWIDE_BANNED_DOMAINS", "beacons.ai")


def _mask_db_url(url: str) -> str:
    """Маскирует credentials в DATABASE_URL для безопасного логирования"""
    if not url:
        return "NOT SET"
    if "@" in url:
        protocol_and_creds, rest = url.split("@", 1)
        protocol = protocol_and_creds.split("://")[0] if "://" in protocol_and_creds else ""
        return f"{protocol}://***@{rest}"
    return url


def log_configuration() -> None:
    """Выводит в лог текущую конфигурацию (без секретных данных)"""
    logger.info(f"[Config] Окружение: {ENVIRONMENT}")
    logger.info(f"[Config] Загрузка env из: {os.path.abspath(env_path)}")
    logger.info(f"[Config] DATABASE_URL: {_mask_db_url(DATABASE_URL)}")
    logger.info(f"[Config] REDIS: {REDIS_URL or f'{REDIS_HOST}:{REDIS_PORT}/{REDIS_DB}'}")
    logger.info(f"[Config] APP_ACCOUNT_NAME: {APP_ACCOUNT_NAME}")
    logger.info(f"[Config] COMMUNITY_NAME: {COMMUNITY_NAME or 'NOT SET'}")
    logger.info(f"[Config] LOG_LEVEL: {LOG_LEVEL}")
