# hivebot/services/protection/mod_actions.py
"""
Реакция на действия модераторов.

Бан и разбан сбрасывают кэш вердикта и отменяют повторную проверку.
Одобрение элемента, на который приложение жаловалось, увеличивает
счётчик одобрений пользователя.
"""

import logging
from typing import Optional

from redis.asyncio import Redis

from hivebot.constants import DEFAULT_KEYS, KeySpace
from hivebot.services.protection.second_check import SecondCheckQueue
from hivebot.services.protection.settings_service import ProtectionSettings
from hivebot.services.protection.user_state import UserStateStore
from hivebot.services.protection.verdict_cache import VerdictCache

logger = logging.getLogger(__name__)

BAN_ACTIONS = ("banuser", "unbanuser")
APPROVE_ACTIONS = ("approvecomment", "approvelink")


class ModerationActionHandler:
    def __init__(self, redis: Redis, second_check: SecondCheckQueue, keys: KeySpace = DEFAULT_KEYS):
        self.redis = redis
        self.keys = keys
        self.cache = VerdictCache(redis, keys)
        self.user_state = UserStateStore(redis, keys)
        self.second_check = second_check

    async def handle(
        self,
        action: str,
        target_user: Optional[str],
        target_item: Optional[str],
        settings: ProtectionSettings,
    ) -> None:
        if not target_user:
            return

        if action in BAN_ACTIONS:
            logger.info(f"Действие {action} для {target_user}, сбрасываем кэш вердикта")
            await self.cache.invalidate(target_user)
            await self.second_check.dequeue(target_user)

            if action == "unbanuser" and settings.clear_history_on_unban:
                await self.user_state.clear_ban(target_user)
                logger.info(f"История банов {target_user} очищена после разбана")
            return

        if action in APPROVE_ACTIONS:
            await self._handle_approval(target_user, target_item)

    async def _handle_approval(self, username: str, item_id: Optional[str]) -> None:
        if not item_id:
            return

        # Учитываются только элементы, на которые жаловалось приложение
        if not await self.redis.exists(self.keys.item_reported(item_id)):
            return

        count = await self.user_state.increment_approvals(username)
        await self.user_state.schedule_liveness_check(username)
        await self.cache.invalidate(username)
        logger.info(f"Одобрен элемент {item_id} пользователя {username}, одобрений: {count}")
