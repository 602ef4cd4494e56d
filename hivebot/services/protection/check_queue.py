# hivebot/services/protection/check_queue.py
"""
Очередь проверки новых постов и комментариев.

Новый элемент не проверяется сразу: платформа отдаёт свежую историю
с задержкой. Элемент ждёт в очереди несколько секунд, после чего
периодическая задача проверяет автора и запускает действия.
"""

# Импортируем логгер для записи событий
import logging
# Импортируем time для бюджета времени прохода
import time
# Импортируем timedelta для расчёта времени готовности
from datetime import timedelta
# Импортируем типы для аннотаций
from typing import List, Tuple

# Импортируем асинхронный клиент Redis
from redis.asyncio import Redis

# Импортируем ключи, имена задач и тайминги
from hivebot.constants import (
    ALREADY_CHECKED_TTL,
    CHECK_QUEUE_DELAY,
    CHECK_QUEUE_JOB,
    CHECK_QUEUE_RECENTLY_RUN_TTL,
    DEFAULT_KEYS,
    KeySpace,
    QUEUE_RUN_BUDGET,
    USER_BLOCKING_TTL,
)
# Импортируем интерфейс платформы
from hivebot.platform import PlatformClient, is_comment_id, is_post_id, utcnow
# Импортируем интерфейс планировщика
from hivebot.scheduler import JobScheduler
# Импортируем компоненты защиты
from hivebot.services.protection.actions.pipeline import EnforcementPipeline
from hivebot.services.protection.decision_engine import DecisionEngine
from hivebot.services.protection.exemptions import is_automation_account
from hivebot.services.protection.settings_service import ContentTypeToActOn, ProtectionSettings
from hivebot.services.protection.user_state import UserStateStore, to_millis


# Создаём логгер для этого модуля
logger = logging.getLogger(__name__)

BLOCKING_REPORT_REASON = "User may be blocking bot. Check history for subs not modded by HiveBot."
BLOCKING_NOTE = "User may be blocking HiveBot"
BLOCKING_NOTE_LABEL = "SPAM_WARNING"


def parse_entry(member: str) -> Tuple[str, str]:
    """Разбирает запись очереди "username:itemId"."""
    username, _, item_id = member.partition(":")
    return username, item_id


def should_act_on(item_id: str, content_type: ContentTypeToActOn) -> bool:
    """Подходит ли тип элемента под настройку "на что реагировать"."""
    if content_type == ContentTypeToActOn.POSTS_ONLY and is_comment_id(item_id):
        return False
    if content_type == ContentTypeToActOn.COMMENTS_ONLY and is_post_id(item_id):
        return False
    return True


class UserCheckQueue:
    """
    Очередь отложенной проверки авторов.

    Пример использования:
        queue = UserCheckQueue(redis, platform, scheduler, engine, pipeline, "mysub", "hive-protect")
        await queue.enqueue("someone", "t3_abc")
        await queue.run(settings, from_cron=True)
    """

    def __init__(
        self,
        redis: Redis,
        platform: PlatformClient,
        scheduler: JobScheduler,
        engine: DecisionEngine,
        pipeline: EnforcementPipeline,
        community: str,
        app_account: str,
        keys: KeySpace = DEFAULT_KEYS,
        run_budget: float = QUEUE_RUN_BUDGET,
    ):
        self.redis = redis
        self.platform = platform
        self.scheduler = scheduler
        self.engine = engine
        self.pipeline = pipeline
        self.community = community
        self.app_account = app_account
        self.keys = keys
        self.run_budget = run_budget
        self.user_state = UserStateStore(redis, keys)

    # ═══════════════════════════════════════════════════════════════════════
    # ПРИЁМ СОБЫТИЙ
    # ═══════════════════════════════════════════════════════════════════════

    async def enqueue(self, username: str, item_id: str) -> bool:
        """
        Ставит автора нового элемента в очередь.

        Returns:
            bool: False если автор служебный и проверка не нужна
        """
        if is_automation_account(username, self.community, self.app_account):
            logger.debug(f"[CHECK_QUEUE] {username} служебный аккаунт, пропускаем")
            return False

        ready_at = utcnow() + timedelta(seconds=CHECK_QUEUE_DELAY)
        await self.redis.zadd(self.keys.check_queue, {f"{username}:{item_id}": to_millis(ready_at)})
        return True

    # ═══════════════════════════════════════════════════════════════════════
    # ОБРАБОТКА ОЧЕРЕДИ
    # ═══════════════════════════════════════════════════════════════════════

    async def due_entries(self) -> List[str]:
        return await self.redis.zrangebyscore(self.keys.check_queue, 0, to_millis(utcnow()))

    async def run(self, settings: ProtectionSettings, from_cron: bool = False) -> int:
        """
        Обрабатывает готовые записи в пределах бюджета времени.

        Args:
            settings: Снимок настроек
            from_cron: Запуск по расписанию (а не разовой задачей)

        Returns:
            int: Количество обработанных записей
        """
        entries = await self.due_entries()
        if not entries:
            return 0

        # Защита от наложения периодического и разового запусков
        if from_cron and await self.redis.exists(self.keys.check_queue_recently_run):
            logger.debug("[CHECK_QUEUE] Очередь недавно обрабатывалась, пропускаем")
            return 0
        await self.redis.set(self.keys.check_queue_recently_run, "true", ex=CHECK_QUEUE_RECENTLY_RUN_TTL)

        deadline = time.monotonic() + self.run_budget
        processed = 0

        while entries and time.monotonic() < deadline:
            member = entries.pop(0)
            username, item_id = parse_entry(member)
            try:
                await self.check_user(username, item_id, settings)
            except Exception as exc:
                logger.exception(f"[CHECK_QUEUE] Ошибка проверки {username} ({item_id}): {exc}")
            finally:
                await self.redis.zrem(self.keys.check_queue, member)
            processed += 1

        if entries:
            logger.info(f"[CHECK_QUEUE] Очередь обработана не полностью, осталось {len(entries)}")
            await self.scheduler.run_job(CHECK_QUEUE_JOB, utcnow())
        else:
            await self.redis.delete(self.keys.check_queue_recently_run)

        return processed

    async def check_user(self, username: str, item_id: str, settings: ProtectionSettings) -> None:
        """Проверяет одного автора и при необходимости запускает действия."""
        verdict = await self.engine.evaluate(username, settings)

        if not verdict.is_actionable:
            if verdict.is_possibly_blocking:
                await self._handle_blocking_user(username, item_id, settings)
            return

        # Платформа может прислать событие о том же элементе повторно
        checked_key = self.keys.already_checked(item_id)
        if await self.redis.exists(checked_key):
            logger.info(f"[CHECK_QUEUE] Повторное событие для {item_id}")
            return
        await self.redis.set(checked_key, "true", ex=ALREADY_CHECKED_TTL)

        if not should_act_on(item_id, settings.content_type_to_act_on):
            logger.debug(f"[CHECK_QUEUE] Тип {item_id} не входит в настройку, пропускаем")
            return

        await self.pipeline.enforce(username, item_id, verdict, settings)

    async def _handle_blocking_user(self, username: str, item_id: str, settings: ProtectionSettings) -> None:
        blocking_key = self.keys.user_blocking(username)
        if not await self.redis.exists(blocking_key):
            await self.platform.report_item(item_id, BLOCKING_REPORT_REASON)
            logger.info(f"[CHECK_QUEUE] 🚩 Жалоба на {item_id}: {username} может блокировать приложение")
        # Пока пользователь продолжает писать, повторной жалобы не будет
        await self.redis.set(blocking_key, "true", ex=USER_BLOCKING_TTL)

        if not settings.anti_block_checker_add_mod_note:
            return

        note_key = self.keys.anti_block_note_added(username)
        if await self.redis.exists(note_key):
            return

        await self.platform.add_mod_note(self.community, username, BLOCKING_NOTE, BLOCKING_NOTE_LABEL)
        await self.redis.set(note_key, "true")
        await self.user_state.schedule_liveness_check(username)
