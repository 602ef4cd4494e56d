# hivebot/utils/logger.py
import logging
from typing import Optional, Union

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'

# Сторонние логгеры, которые слишком шумят на INFO
NOISY_LOGGERS = ("aiohttp.access", "aiosqlite", "sqlalchemy.engine", "asyncio")


def setup_logging(level: Union[int, str] = logging.INFO, handler: Optional[logging.Handler] = None) -> logging.Logger:
    """
    Настраивает корневой логгер: консольный обработчик и единый формат.

    Повторный вызов не добавляет дубликаты обработчиков.

    Args:
        level: Уровень логирования (число или имя, например "DEBUG")
        handler: Свой обработчик вместо консольного (для тестов)

    Returns:
        Корневой логгер
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root = logging.getLogger()
    root.setLevel(level)

    # Создаем обработчик для консоли, если он ещё не установлен
    if handler is None:
        handler = logging.StreamHandler()
    if not any(getattr(existing, "_hivebot", False) for existing in root.handlers):
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._hivebot = True
        root.addHandler(handler)

    # Отключаем INFO-логи сторонних библиотек
    for logger_name in NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    return root
