# hivebot/services/protection/block_checker.py
"""
Детектор блокировки аккаунта приложения.

Если пользователь заблокировал аккаунт приложения, его активность
в чужих сообществах видна только там, где приложение модерирует.
Признак носит рекомендательный характер и сам по себе действий не вызывает.
"""

# Импортируем json для хранения флага в кэше
import json
# Импортируем логгер для записи событий
import logging
# Импортируем timedelta для порога возраста
from datetime import timedelta
# Импортируем типы для аннотаций
from typing import List, Sequence

# Импортируем асинхронный клиент Redis
from redis.asyncio import Redis

# Импортируем ключи и TTL
from hivebot.constants import APP_IS_MOD_TTL, DEFAULT_KEYS, KeySpace
# Импортируем интерфейс платформы
from hivebot.platform import ContentItem, PlatformClient, PlatformError, utcnow


# Создаём логгер для этого модуля
logger = logging.getLogger(__name__)

# Минимальная длина истории для уверенного вывода
MIN_HISTORY_ITEMS = 20
# Минимум сообществ в истории
MIN_COMMUNITIES = 3
# Минимальный возраст аккаунта
MIN_ACCOUNT_AGE = timedelta(days=30)


class BlockChecker:
    """
    Проверяет, не заблокировал ли пользователь аккаунт приложения.

    Пример использования:
        checker = BlockChecker(redis, platform, "mysub", "hive-protect")
        if await checker.is_user_blocking("someone", history):
            ...
    """

    def __init__(
        self,
        redis: Redis,
        platform: PlatformClient,
        community: str,
        app_account: str,
        keys: KeySpace = DEFAULT_KEYS,
    ):
        self.redis = redis
        self.platform = platform
        self.community = community
        self.app_account = app_account
        self.keys = keys

    async def app_is_moderator_of(self, community: str) -> bool:
        """Модерирует ли приложение сообщество (кэшируется на 7 дней)."""
        key = self.keys.app_is_mod_of(community)
        # Пробуем взять значение из кэша
        cached = await self.redis.get(key)
        if cached:
            return json.loads(cached)

        try:
            is_mod = await self.platform.is_moderator(community, self.app_account)
        except PlatformError as exc:
            # Ошибку не кэшируем, следующая проверка спросит платформу снова
            logger.warning(f"[ENGINE] Не удалось проверить модерацию {community}: {exc}")
            return False

        logger.debug(f"[ENGINE] Приложение модерирует {community}? {is_mod}")
        await self.redis.set(key, json.dumps(is_mod), ex=APP_IS_MOD_TTL)
        return is_mod

    async def is_user_blocking(self, username: str, history: Sequence[ContentItem]) -> bool:
        """
        Проверяет признаки блокировки.

        Args:
            username: Имя пользователя
            history: Загруженная история пользователя

        Returns:
            bool: True если пользователь, вероятно, заблокировал приложение
        """
        # Короткая история не даёт уверенности
        if len(history) < MIN_HISTORY_ITEMS:
            return False

        # Собираем сообщества без повторов, сохраняя порядок
        own = self.community.lower()
        communities: List[str] = []
        for item in history:
            if item.community.lower() != own and item.community not in communities:
                communities.append(item.community)

        if not communities:
            return False

        # Если хоть одно сообщество не модерируется приложением - блокировки нет
        for community in communities:
            if not await self.app_is_moderator_of(community):
                return False

        if len(communities) < MIN_COMMUNITIES:
            return False

        try:
            profile = await self.platform.get_user(username)
        except PlatformError:
            profile = None

        # Молодой аккаунт ещё не успел накопить историю
        if profile is not None and profile.created_at > utcnow() - MIN_ACCOUNT_AGE:
            return False

        return True
