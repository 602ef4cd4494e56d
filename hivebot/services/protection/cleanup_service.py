# hivebot/services/protection/cleanup_service.py
"""
Очистка данных удалённых аккаунтов.

Каждый пользователь, о котором приложение что-то хранит, раз в 28 дней
проверяется на существование. Для удалённых аккаунтов все персональные
ключи стираются.
"""

# Импортируем логгер для записи событий
import logging
# Импортируем random для разброса расписания
import random
# Импортируем time для бюджета времени прохода
import time
# Импортируем timedelta для расчёта времени
from datetime import timedelta
# Импортируем типы для аннотаций
from typing import List

# Импортируем асинхронный клиент Redis
from redis.asyncio import Redis

# Импортируем ключи, имена задач и тайминги
from hivebot.constants import (
    CLEANUP_JOB,
    CLEANUP_RECENTLY_RUN_TTL,
    CLEANUP_RUN_BUDGET,
    DAYS_BETWEEN_CLEANUP_CHECKS,
    DEFAULT_KEYS,
    KeySpace,
)
# Импортируем интерфейс платформы
from hivebot.platform import PlatformClient, PlatformError, utcnow
# Импортируем интерфейс планировщика
from hivebot.scheduler import JobScheduler
# Импортируем хранилище состояния пользователя
from hivebot.services.protection.user_state import UserStateStore, to_millis


# Создаём логгер для этого модуля
logger = logging.getLogger(__name__)

# Начальное заполнение разносится на двое суток
INITIAL_SPREAD_MINUTES = 60 * 24 * 2
# Имя удалённого автора в журнале модерации
DELETED_USER = "[deleted]"


class CleanupService:
    """
    Проверка существования аккаунтов и удаление данных.

    Пример использования:
        cleanup = CleanupService(redis, platform, scheduler, "mysub", "hive-protect")
        await cleanup.run(from_cron=True)
    """

    def __init__(
        self,
        redis: Redis,
        platform: PlatformClient,
        scheduler: JobScheduler,
        community: str,
        app_account: str,
        keys: KeySpace = DEFAULT_KEYS,
        run_budget: float = CLEANUP_RUN_BUDGET,
    ):
        self.redis = redis
        self.platform = platform
        self.scheduler = scheduler
        self.community = community
        self.app_account = app_account
        self.keys = keys
        self.run_budget = run_budget
        self.user_state = UserStateStore(redis, keys)

    async def due_users(self) -> List[str]:
        return await self.redis.zrangebyscore(self.keys.cleanup_log, 0, to_millis(utcnow()))

    async def user_active(self, username: str) -> bool:
        """
        Проверяет, существует ли аккаунт.

        Если профиль недоступен, пробуем получить заметки модераторов:
        для заблокированного или скрытого аккаунта они доступны,
        для удалённого - нет.
        """
        try:
            profile = await self.platform.get_user(username)
        except PlatformError:
            profile = None

        if profile is not None:
            return True

        try:
            await self.platform.get_mod_notes(self.community, username)
        except PlatformError:
            return False

        return True

    async def run(self, from_cron: bool = False) -> int:
        """
        Обрабатывает пользователей, у которых подошла проверка.

        Returns:
            int: Количество удалённых аккаунтов
        """
        logger.info("[CLEANUP] Запуск очистки")
        usernames = await self.due_users()
        if not usernames:
            logger.info("[CLEANUP] Нет пользователей для проверки")
            return 0

        if from_cron and await self.redis.exists(self.keys.cleanup_recently_run):
            logger.debug("[CLEANUP] Очистка недавно запускалась, пропускаем")
            return 0
        await self.redis.set(self.keys.cleanup_recently_run, "true", ex=CLEANUP_RECENTLY_RUN_TTL)

        # Запрос своего аккаунта: если платформа нестабильна, упадём до удаления данных
        await self.platform.get_user(self.app_account)

        deadline = time.monotonic() + self.run_budget
        purged = 0

        while usernames and time.monotonic() < deadline:
            username = usernames.pop(0)

            if await self.user_active(username):
                await self.user_state.schedule_liveness_check(username)
                logger.debug(f"[CLEANUP] {username} активен, следующая проверка через {DAYS_BETWEEN_CLEANUP_CHECKS} дней")
                continue

            await self.user_state.purge(username)
            purged += 1
            logger.info(f"[CLEANUP] 🧹 {username} удалён, данные стёрты")

        if usernames:
            logger.info(f"[CLEANUP] Осталось {len(usernames)} пользователей, планируем продолжение")
            await self.scheduler.run_job(CLEANUP_JOB, utcnow() + timedelta(seconds=5))

        return purged

    async def add_entries_for_banned_accounts(self) -> int:
        """
        Добавляет в расписание пользователей, забаненных приложением ранее.

        Returns:
            int: Количество добавленных пользователей
        """
        entries = await self.platform.get_moderation_log(self.community, self.app_account, "banuser", limit=1000)

        usernames: List[str] = []
        for entry in entries:
            author = entry.target_author
            if author and author != DELETED_USER and author not in usernames:
                usernames.append(author)

        if not usernames:
            return 0

        # Разносим проверки по времени, чтобы не создавать пиковую нагрузку
        now = utcnow()
        mapping = {
            username: to_millis(now + timedelta(minutes=random.random() * INITIAL_SPREAD_MINUTES))
            for username in usernames
        }
        await self.redis.zadd(self.keys.cleanup_log, mapping)
        logger.info(f"[CLEANUP] Добавлено ранее забаненных пользователей: {len(usernames)}")
        return len(usernames)

    async def reschedule_entries(self, days: int = DAYS_BETWEEN_CLEANUP_CHECKS) -> int:
        """
        Перераспределяет расписание, если изменился интервал проверок.

        Returns:
            int: Количество перенесённых записей
        """
        previous = await self.redis.get(self.keys.prev_time_between_checks)
        if previous == str(days):
            return 0

        usernames = await self.redis.zrange(self.keys.cleanup_log, 0, -1)
        if usernames:
            now = utcnow()
            mapping = {
                username: to_millis(now + timedelta(minutes=random.random() * 60 * 24 * days))
                for username in usernames
            }
            await self.redis.zadd(self.keys.cleanup_log, mapping)
            logger.info(f"[CLEANUP] Перенесено записей: {len(usernames)}")

        await self.redis.set(self.keys.prev_time_between_checks, str(days))
        return len(usernames)
