# hivebot/services/protection/second_check.py
"""
Очередь повторной проверки.

Пользователь, прошедший первую проверку, один раз перепроверяется
через заданное число часов: к этому моменту у него могла появиться
новая активность в отслеживаемых сообществах.
"""

# Импортируем логгер для записи событий
import logging
# Импортируем timedelta для расчёта времени
from datetime import timedelta
# Импортируем типы для аннотаций
from typing import TYPE_CHECKING, List, Optional

# Импортируем асинхронный клиент Redis
from redis.asyncio import Redis

# Импортируем ключи, имена задач и тайминги
from hivebot.constants import (
    DEFAULT_KEYS,
    KeySpace,
    SECOND_CHECK_ADHOC_DELAY,
    SECOND_CHECK_BATCH_SIZE,
    SECOND_CHECK_JOB,
    SECOND_CHECK_MIN_GAP,
    SECOND_CHECKED_TTL,
)
# Импортируем текущее время
from hivebot.platform import utcnow
# Импортируем интерфейс планировщика
from hivebot.scheduler import JobScheduler
# Импортируем перевод времени в миллисекунды и обратно
from hivebot.services.protection.user_state import from_millis, to_millis

if TYPE_CHECKING:
    from hivebot.services.protection.actions.pipeline import EnforcementPipeline
    from hivebot.services.protection.decision_engine import DecisionEngine
    from hivebot.services.protection.settings_service import ProtectionSettings


# Создаём логгер для этого модуля
logger = logging.getLogger(__name__)


class SecondCheckQueue:
    """
    Очередь повторных проверок в отсортированном множестве Redis.

    Пример использования:
        queue = SecondCheckQueue(redis, scheduler)
        await queue.enqueue("someone", interval_hours=24)
        await queue.run(engine, pipeline, settings)
    """

    def __init__(
        self,
        redis: Redis,
        scheduler: JobScheduler,
        keys: KeySpace = DEFAULT_KEYS,
        batch_size: int = SECOND_CHECK_BATCH_SIZE,
    ):
        self.redis = redis
        self.scheduler = scheduler
        self.keys = keys
        self.batch_size = batch_size

    async def enqueue(self, username: str, interval_hours: int) -> bool:
        """
        Ставит пользователя в очередь, если он ещё не запланирован.

        Returns:
            bool: True если пользователь добавлен
        """
        marker = self.keys.second_checked(username)
        # Пользователь уже проверялся повторно за последние 28 дней
        if await self.redis.exists(marker):
            return False

        # Пользователь уже ждёт проверки
        if await self.redis.zscore(self.keys.second_check_queue, username) is not None:
            return False

        now = utcnow()
        ready_at = now + timedelta(hours=interval_hours)
        await self.redis.zadd(self.keys.second_check_queue, {username: to_millis(ready_at)})
        await self.redis.set(marker, str(to_millis(now)), ex=SECOND_CHECKED_TTL)
        logger.info(f"[SECOND_CHECK] {username} запланирован на {ready_at.isoformat()}")
        return True

    async def dequeue(self, username: str) -> None:
        await self.redis.zrem(self.keys.second_check_queue, username)

    async def due_entries(self) -> List[str]:
        now_ms = to_millis(utcnow())
        return await self.redis.zrangebyscore(
            self.keys.second_check_queue, 0, now_ms, start=0, num=self.batch_size
        )

    async def run(
        self,
        engine: "DecisionEngine",
        pipeline: "EnforcementPipeline",
        settings: "ProtectionSettings",
    ) -> List[str]:
        """
        Обрабатывает пачку готовых записей.

        Кэш игнорируется, действия выполняются без конкретного элемента.

        Returns:
            Список пользователей, против которых запущены действия
        """
        usernames = await self.due_entries()
        if not usernames:
            return []

        # Удаляем пачку сразу: повторная проверка выполняется не больше одного раза
        await self.redis.zrem(self.keys.second_check_queue, *usernames)

        actioned = []
        for username in usernames:
            logger.info(f"[SECOND_CHECK] Повторная проверка {username}")
            try:
                verdict = await engine.evaluate(username, settings, ignore_cache=True)
                if not verdict.is_actionable:
                    continue
                await pipeline.enforce(username, None, verdict, settings)
                actioned.append(username)
            except Exception as exc:
                logger.exception(f"[SECOND_CHECK] Ошибка повторной проверки {username}: {exc}")

        await self.schedule_next_run()
        return actioned

    async def schedule_next_run(self) -> Optional[str]:
        """
        Планирует разовый запуск к ближайшей записи очереди.

        Запуск не планируется, если периодическая задача сработает раньше
        или почти одновременно.

        Returns:
            Идентификатор задачи или None
        """
        first = await self.redis.zrange(self.keys.second_check_queue, 0, 0, withscores=True)
        if not first:
            return None

        _, score = first[0]
        next_run = from_millis(score) + timedelta(seconds=SECOND_CHECK_ADHOC_DELAY)

        next_periodic = await self.scheduler.next_periodic_run(SECOND_CHECK_JOB)
        if next_periodic is not None and (next_periodic - next_run).total_seconds() < SECOND_CHECK_MIN_GAP:
            logger.debug("[SECOND_CHECK] Периодическая задача сработает раньше, разовая не нужна")
            return None

        job_id = await self.scheduler.run_job(SECOND_CHECK_JOB, next_run)
        logger.info(f"[SECOND_CHECK] Следующий запуск в {next_run.isoformat()}")
        return job_id
