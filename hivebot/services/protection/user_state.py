# hivebot/services/protection/user_state.py
"""
Состояние пользователя в Redis.

История банов, счётчик одобрений, ручное исключение и расписание
проверки "жив ли аккаунт". Все ключи персональные, поэтому разные
пользователи никогда не конфликтуют.
"""

# Импортируем логгер для записи событий
import logging
# Импортируем datetime для работы с отметками времени
from datetime import datetime, timedelta, timezone
# Импортируем типы для аннотаций
from typing import Optional

# Импортируем асинхронный клиент Redis
from redis.asyncio import Redis

# Импортируем ключи и таймингы
from hivebot.constants import DAYS_BETWEEN_CLEANUP_CHECKS, DEFAULT_KEYS, KeySpace
# Импортируем текущее время
from hivebot.platform import utcnow


# Создаём логгер для этого модуля
logger = logging.getLogger(__name__)


def to_millis(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


def from_millis(value) -> datetime:
    return datetime.fromtimestamp(int(float(value)) / 1000, tz=timezone.utc)


class UserStateStore:
    """
    Персональное состояние пользователей.

    Пример использования:
        state = UserStateStore(redis)
        await state.record_ban("someone")
        banned_at = await state.last_banned_at("someone")
    """

    def __init__(self, redis: Redis, keys: KeySpace = DEFAULT_KEYS):
        # Сохраняем клиент Redis
        self.redis = redis
        # Сохраняем пространство ключей
        self.keys = keys

    # ─────────────────────────────────────────────────────────────────────────
    # История банов
    # ─────────────────────────────────────────────────────────────────────────

    async def last_banned_at(self, username: str) -> Optional[datetime]:
        """Время последнего бана приложением или None."""
        raw = await self.redis.get(self.keys.prev_banned(username))
        if not raw:
            return None
        return from_millis(raw)

    async def record_ban(self, username: str, moment: Optional[datetime] = None) -> None:
        """Запоминает время бана (хранится в миллисекундах)."""
        await self.redis.set(self.keys.prev_banned(username), str(to_millis(moment or utcnow())))

    async def clear_ban(self, username: str) -> None:
        await self.redis.delete(self.keys.prev_banned(username))

    # ─────────────────────────────────────────────────────────────────────────
    # Одобрения
    # ─────────────────────────────────────────────────────────────────────────

    async def approval_count(self, username: str) -> int:
        """Сколько помеченных приложением элементов пользователя одобрили модераторы."""
        score = await self.redis.zscore(self.keys.approvals, username)
        return int(score or 0)

    async def increment_approvals(self, username: str) -> int:
        new_count = await self.redis.zincrby(self.keys.approvals, 1, username)
        return int(new_count)

    # ─────────────────────────────────────────────────────────────────────────
    # Ручное исключение
    # ─────────────────────────────────────────────────────────────────────────

    async def is_exempt(self, username: str) -> bool:
        return await self.redis.exists(self.keys.user_exempt(username)) == 1

    async def toggle_exempt(self, username: str) -> bool:
        """
        Переключает ручное исключение.

        Returns:
            bool: Новое состояние (True - пользователь исключён)
        """
        if await self.is_exempt(username):
            await self.redis.delete(self.keys.user_exempt(username))
            logger.info(f"Пользователь {username} удалён из списка исключений")
            return False

        await self.redis.set(self.keys.user_exempt(username), "true")
        # Ключ исключения должен быть удалён, если аккаунт исчезнет
        await self.schedule_liveness_check(username)
        logger.info(f"Пользователь {username} добавлен в список исключений")
        return True

    # ─────────────────────────────────────────────────────────────────────────
    # Проверка существования аккаунта
    # ─────────────────────────────────────────────────────────────────────────

    async def schedule_liveness_check(self, username: str, days: int = DAYS_BETWEEN_CLEANUP_CHECKS) -> None:
        ready_at = utcnow() + timedelta(days=days)
        await self.redis.zadd(self.keys.cleanup_log, {username: to_millis(ready_at)})

    async def purge(self, username: str) -> None:
        """Удаляет всё сохранённое о пользователе (аккаунт удалён)."""
        await self.redis.zrem(self.keys.approvals, username)
        await self.redis.delete(
            self.keys.prev_banned(username),
            self.keys.mod_note_added(username),
            self.keys.replies_made(username),
            self.keys.user_exempt(username),
            self.keys.anti_block_note_added(username),
        )
        await self.redis.zrem(self.keys.cleanup_log, username)
