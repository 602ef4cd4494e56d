# hivebot/services/protection/actions/pipeline.py
"""
Конвейер действий защиты.

Все включённые действия выполняются параллельно. Сбой одного действия
логируется и не мешает остальным; порядок завершения не гарантирован.
"""

# Импортируем asyncio для параллельного выполнения действий
import asyncio
# Импортируем логгер для записи событий
import logging
# Импортируем типы для аннотаций
from typing import List, Optional, Sequence

# Импортируем асинхронный клиент Redis
from redis.asyncio import Redis

# Импортируем ключи
from hivebot.constants import DEFAULT_KEYS, KeySpace
# Импортируем интерфейс платформы
from hivebot.platform import ContentItem, HistoryKind, PlatformClient, PlatformError
# Импортируем действия
from hivebot.services.protection.actions import default_actions
from hivebot.services.protection.actions.base import ActionContext, EnforcementAction
from hivebot.services.protection.settings_service import ProtectionSettings
from hivebot.services.protection.user_state import UserStateStore
from hivebot.services.protection.verdict_cache import Verdict


# Создаём логгер для этого модуля
logger = logging.getLogger(__name__)


class EnforcementPipeline:
    """
    Применяет набор действий к одному вердикту.

    Пример использования:
        pipeline = EnforcementPipeline(redis, platform, "mysub")
        executed = await pipeline.enforce("someone", "t3_abc", verdict, settings)
    """

    def __init__(
        self,
        redis: Redis,
        platform: PlatformClient,
        community: str,
        keys: KeySpace = DEFAULT_KEYS,
        actions: Optional[Sequence[EnforcementAction]] = None,
    ):
        self.redis = redis
        self.platform = platform
        self.community = community
        self.keys = keys
        self.user_state = UserStateStore(redis, keys)
        self.actions: List[EnforcementAction] = list(actions) if actions is not None else default_actions()

    async def resolve_target(self, username: str, target_id: Optional[str]) -> Optional[ContentItem]:
        """
        Находит элемент, к которому привязать действия.

        Без идентификатора берётся самый свежий элемент пользователя
        в этом сообществе.
        """
        try:
            if target_id:
                return await self.platform.get_item(target_id)

            history = await self.platform.get_user_history(username, kind=HistoryKind.ALL)
        except PlatformError as exc:
            logger.warning(f"[ACTION] Не удалось найти элемент для {username}: {exc}")
            return None

        own = self.community.lower()
        return next((item for item in history if item.community.lower() == own), None)

    async def enforce(
        self,
        username: str,
        target_id: Optional[str],
        verdict: Verdict,
        settings: ProtectionSettings,
    ) -> List[str]:
        """
        Выполняет все включённые действия.

        Args:
            username: Пользователь
            target_id: Идентификатор элемента или None
            verdict: Вердикт проверки
            settings: Снимок настроек

        Returns:
            Имена действий, которые были запущены
        """
        if not verdict.is_actionable:
            return []

        ctx = self._context(username, None, verdict, settings)
        enabled = [action for action in self.actions if action.is_enabled(ctx)]
        if not enabled:
            logger.info(f"[ACTION] Для {username} нет включённых действий")
            return []

        if any(action.requires_target for action in enabled):
            target = await self.resolve_target(username, target_id)
            if target is not None:
                ctx = self._context(username, target, verdict, settings)
            else:
                logger.info(f"[ACTION] Элемент {username} не найден, выполняются только действия без элемента")
                enabled = [action for action in enabled if not action.requires_target]

        results = await asyncio.gather(*(action.execute(ctx) for action in enabled), return_exceptions=True)

        for action, result in zip(enabled, results):
            if isinstance(result, BaseException):
                logger.error(f"[ACTION] Действие {action.name} для {username} завершилось с ошибкой: {result!r}")

        return [action.name for action in enabled]

    def _context(
        self,
        username: str,
        target: Optional[ContentItem],
        verdict: Verdict,
        settings: ProtectionSettings,
    ) -> ActionContext:
        return ActionContext(
            username=username,
            community=self.community,
            target=target,
            verdict=verdict,
            settings=settings,
            platform=self.platform,
            redis=self.redis,
            keys=self.keys,
            user_state=self.user_state,
        )
