# hivebot/services/protection/install_service.py
"""
Установка и обновление приложения в сообществе.

Пересоздаёт периодические задачи, заполняет расписание очистки
и один раз проверяет настройки на превышение лимитов платформы.
"""

# Импортируем логгер для записи событий
import logging
# Импортируем random для случайного смещения очистки
import random
# Импортируем timedelta для интервалов
from datetime import timedelta

# Импортируем асинхронный клиент Redis
from redis.asyncio import Redis

# Импортируем ключи и имена задач
from hivebot.constants import CHECK_QUEUE_JOB, CLEANUP_JOB, DEFAULT_KEYS, KeySpace, SECOND_CHECK_JOB
# Импортируем интерфейс платформы
from hivebot.platform import PlatformClient, utcnow
# Импортируем интерфейс планировщика
from hivebot.scheduler import JobScheduler
# Импортируем сервис очистки
from hivebot.services.protection.cleanup_service import CleanupService
# Импортируем настройки и лимиты
from hivebot.services.protection.settings_service import (
    BAN_MESSAGE_MAX_LENGTH,
    BAN_NOTE_MAX_LENGTH,
    ProtectionSettings,
)
# Импортируем перевод времени в миллисекунды
from hivebot.services.protection.user_state import to_millis


# Создаём логгер для этого модуля
logger = logging.getLogger(__name__)

CLEANUP_INTERVAL = timedelta(hours=6)
CHECK_QUEUE_INTERVAL = timedelta(minutes=1)
SECOND_CHECK_INTERVAL = timedelta(hours=1)


class InstallService:
    def __init__(
        self,
        redis: Redis,
        platform: PlatformClient,
        scheduler: JobScheduler,
        community: str,
        cleanup: CleanupService,
        keys: KeySpace = DEFAULT_KEYS,
    ):
        self.redis = redis
        self.platform = platform
        self.scheduler = scheduler
        self.community = community
        self.cleanup = cleanup
        self.keys = keys

    async def on_install_or_upgrade(self, settings: ProtectionSettings) -> None:
        """
        Обработчик установки и обновления.

        Args:
            settings: Текущий снимок настроек
        """
        await self.reset_jobs()

        if not await self.redis.exists(self.keys.cleanup_populated):
            await self.cleanup.add_entries_for_banned_accounts()
            await self.redis.set(self.keys.cleanup_populated, str(to_millis(utcnow())))
        else:
            await self.cleanup.reschedule_entries()

        await self.check_oversize_settings(settings)

    async def reset_jobs(self) -> None:
        """Отменяет все задачи и регистрирует периодические заново."""
        for job in await self.scheduler.list_jobs():
            await self.scheduler.cancel_job(job.id)

        # Случайное смещение: сообщества не должны запускать очистку одновременно
        minute = random.randrange(60)
        hour = random.randrange(6)
        logger.info(f"Очистка будет запускаться каждые 6 часов в {minute} минут, начиная с {hour} часа")

        now = utcnow()
        first_cleanup = now.replace(minute=minute, second=0, microsecond=0) + timedelta(hours=hour)
        if first_cleanup <= now:
            first_cleanup += CLEANUP_INTERVAL
        await self.scheduler.run_periodic(CLEANUP_JOB, CLEANUP_INTERVAL, first_run_at=first_cleanup)
        await self.scheduler.run_periodic(CHECK_QUEUE_JOB, CHECK_QUEUE_INTERVAL)
        await self.scheduler.run_periodic(SECOND_CHECK_JOB, SECOND_CHECK_INTERVAL)

    async def check_oversize_settings(self, settings: ProtectionSettings) -> bool:
        """
        Один раз сообщает модераторам о слишком длинных текстах бана.

        Returns:
            bool: True если сообщение отправлено
        """
        if await self.redis.exists(self.keys.oversize_settings_checked):
            return False

        message_too_long = bool(settings.ban_message) and len(settings.ban_message) > BAN_MESSAGE_MAX_LENGTH
        note_too_long = bool(settings.ban_note) and len(settings.ban_note) > BAN_NOTE_MAX_LENGTH
        sent = False

        if settings.ban_enabled and (message_too_long or note_too_long):
            text = f"Thanks for upgrading HiveBot on /r/{self.community}.\n\n"
            text += "There's an issue with the settings that needs to be addressed for this app to work properly.\n\n"
            if message_too_long:
                text += f"* The Ban Message is too long - it needs to be under {BAN_MESSAGE_MAX_LENGTH} characters long.\n"
            if note_too_long:
                text += f"* The Ban Note is too long - it needs to be under {BAN_NOTE_MAX_LENGTH} characters long.\n"
            text += "\nIt is likely that HiveBot will not be able to ban users until this is resolved. Sorry for the inconvenience."

            await self.platform.send_private_message(f"/r/{self.community}", "HiveBot Configuration Issue", text)
            logger.warning(f"Настройки бана в {self.community} превышают лимиты, модераторы уведомлены")
            sent = True

        await self.redis.set(self.keys.oversize_settings_checked, "true")
        return sent
