# hivebot/services/protection/app.py
"""
Фасад приложения защиты.

Связывает компоненты и предоставляет обработчики событий платформы
и задач планировщика. Слой интеграции с платформой вызывает только
методы ProtectorApp.
"""

# Импортируем логгер для записи событий
import logging
# Импортируем типы для аннотаций
from typing import Awaitable, Callable, List, Optional

# Импортируем асинхронный клиент Redis
from redis.asyncio import Redis

# Импортируем ключи и имена задач
from hivebot.constants import CHECK_QUEUE_JOB, CLEANUP_JOB, DEFAULT_KEYS, KeySpace, SECOND_CHECK_JOB
# Импортируем сессию БД
from hivebot.database.session import get_session
# Импортируем интерфейс платформы
from hivebot.platform import PlatformClient
# Импортируем интерфейс планировщика
from hivebot.scheduler import JobScheduler
# Импортируем компоненты защиты
from hivebot.services.protection.actions.pipeline import EnforcementPipeline
from hivebot.services.protection.check_queue import UserCheckQueue
from hivebot.services.protection.cleanup_service import CleanupService
from hivebot.services.protection.decision_engine import DecisionEngine
from hivebot.services.protection.install_service import InstallService
from hivebot.services.protection.mod_actions import ModerationActionHandler
from hivebot.services.protection.second_check import SecondCheckQueue
from hivebot.services.protection.settings_service import ProtectionSettings, get_protection_settings
from hivebot.services.protection.user_state import UserStateStore
from hivebot.services.protection.verdict_cache import VerdictCache


# Создаём логгер для этого модуля
logger = logging.getLogger(__name__)

SettingsLoader = Callable[[], Awaitable[ProtectionSettings]]


def database_settings_loader(community: str) -> SettingsLoader:
    """
    Создаёт загрузчик настроек из таблицы protection_settings.

    Args:
        community: Имя сообщества

    Returns:
        Асинхронная функция без аргументов, возвращающая ProtectionSettings
    """
    async def load() -> ProtectionSettings:
        async with get_session() as session:
            return await get_protection_settings(session, community)

    return load


class ProtectorApp:
    """
    Приложение защиты одного сообщества.

    Пример использования:
        app = ProtectorApp(redis, platform, scheduler, "mysub", "hive-protect",
                           database_settings_loader("mysub"))
        app.register_jobs(scheduler)
        await app.on_content_created("t3_abc", "someone")
    """

    def __init__(
        self,
        redis: Redis,
        platform: PlatformClient,
        scheduler: JobScheduler,
        community: str,
        app_account: str,
        settings_loader: SettingsLoader,
        keys: KeySpace = DEFAULT_KEYS,
    ):
        self.redis = redis
        self.platform = platform
        self.scheduler = scheduler
        self.community = community
        self.app_account = app_account
        self.settings_loader = settings_loader
        self.keys = keys

        # Собираем компоненты снизу вверх
        self.second_check = SecondCheckQueue(redis, scheduler, keys)
        self.engine = DecisionEngine(redis, platform, community, app_account, keys, second_check=self.second_check)
        self.pipeline = EnforcementPipeline(redis, platform, community, keys)
        self.check_queue = UserCheckQueue(
            redis, platform, scheduler, self.engine, self.pipeline, community, app_account, keys
        )
        self.cleanup = CleanupService(redis, platform, scheduler, community, app_account, keys)
        self.mod_actions = ModerationActionHandler(redis, self.second_check, keys)
        self.installer = InstallService(redis, platform, scheduler, community, self.cleanup, keys)
        self.user_state = UserStateStore(redis, keys)
        self.cache = VerdictCache(redis, keys)

    def register_jobs(self, scheduler) -> None:
        """Регистрирует обработчики задач в планировщике внутри процесса."""
        scheduler.register(
            CHECK_QUEUE_JOB,
            lambda data: self.on_scheduled_debounce_sweep(from_cron=bool(data.get("from_cron"))),
        )
        scheduler.register(SECOND_CHECK_JOB, lambda data: self.on_scheduled_second_check())
        scheduler.register(
            CLEANUP_JOB,
            lambda data: self.on_scheduled_liveness_sweep(from_cron=bool(data.get("from_cron"))),
        )

    # ═══════════════════════════════════════════════════════════════════════
    # СОБЫТИЯ ПЛАТФОРМЫ
    # ═══════════════════════════════════════════════════════════════════════

    async def on_content_created(self, item_id: str, author: Optional[str]) -> bool:
        """Новый пост или комментарий: автор ставится в очередь проверки."""
        if not author or not item_id:
            logger.warning("Событие создания элемента без автора или идентификатора")
            return False
        return await self.check_queue.enqueue(author, item_id)

    async def on_moderation_action(
        self,
        action: str,
        target_user: Optional[str],
        target_item: Optional[str] = None,
    ) -> None:
        settings = await self.settings_loader()
        await self.mod_actions.handle(action, target_user, target_item, settings)

    async def on_manual_exemption_toggle(self, username: str) -> bool:
        """
        Переключает ручное исключение пользователя.

        Returns:
            bool: True если пользователь теперь исключён
        """
        is_exempt = await self.user_state.toggle_exempt(username)
        await self.cache.invalidate(username)
        return is_exempt

    async def on_install_or_upgrade(self) -> None:
        settings = await self.settings_loader()
        await self.installer.on_install_or_upgrade(settings)

    # ═══════════════════════════════════════════════════════════════════════
    # ЗАДАЧИ ПЛАНИРОВЩИКА
    # ═══════════════════════════════════════════════════════════════════════

    async def on_scheduled_debounce_sweep(self, from_cron: bool = False) -> int:
        settings = await self.settings_loader()
        return await self.check_queue.run(settings, from_cron=from_cron)

    async def on_scheduled_second_check(self) -> List[str]:
        settings = await self.settings_loader()
        return await self.second_check.run(self.engine, self.pipeline, settings)

    async def on_scheduled_liveness_sweep(self, from_cron: bool = False) -> int:
        return await self.cleanup.run(from_cron=from_cron)
