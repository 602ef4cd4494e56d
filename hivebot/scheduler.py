# hivebot/scheduler.py
"""
Планировщик задач.

JobScheduler - интерфейс, который ядро использует для разовых и
периодических задач. AsyncioJobScheduler - реализация внутри процесса
на asyncio.create_task (годится для одного воркера и для тестов).

Периодические задачи задаются интервалом и временем первого запуска,
а не cron-выражением.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol

from hivebot.platform import utcnow

logger = logging.getLogger(__name__)

JobHandler = Callable[[Dict[str, Any]], Awaitable[Any]]


@dataclass
class ScheduledJob:
    """
    Запланированная задача.

    Attributes:
        id: Идентификатор задачи
        name: Имя обработчика
        run_at: Время следующего запуска
        interval: Период для повторяющихся задач (None для разовых)
        data: Данные, передаваемые обработчику
    """
    id: str
    name: str
    run_at: datetime
    interval: Optional[timedelta] = None
    data: Dict[str, Any] = field(default_factory=dict)


class JobScheduler(Protocol):
    async def run_job(self, name: str, run_at: datetime, data: Optional[Dict[str, Any]] = None) -> str: ...

    async def run_periodic(
        self,
        name: str,
        interval: timedelta,
        first_run_at: Optional[datetime] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> str: ...

    async def next_periodic_run(self, name: str) -> Optional[datetime]: ...

    async def list_jobs(self) -> List[ScheduledJob]: ...

    async def cancel_job(self, job_id: str) -> None: ...


class AsyncioJobScheduler:
    """
    Планировщик внутри процесса.

    Пример использования:
        scheduler = AsyncioJobScheduler()
        scheduler.register(CLEANUP_JOB, handler)
        await scheduler.run_periodic(CLEANUP_JOB, timedelta(hours=6))
    """

    def __init__(self):
        # Обработчики по имени задачи
        self._handlers: Dict[str, JobHandler] = {}
        # Активные задачи: id -> (описание, asyncio.Task)
        self._jobs: Dict[str, ScheduledJob] = {}
        self._tasks: Dict[str, asyncio.Task] = {}

    def register(self, name: str, handler: JobHandler) -> None:
        self._handlers[name] = handler

    async def run_job(self, name: str, run_at: datetime, data: Optional[Dict[str, Any]] = None) -> str:
        job = ScheduledJob(id=uuid.uuid4().hex, name=name, run_at=run_at, data=dict(data or {}))
        self._start(job)
        return job.id

    async def run_periodic(
        self,
        name: str,
        interval: timedelta,
        first_run_at: Optional[datetime] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> str:
        payload = {"from_cron": True}
        payload.update(data or {})
        job = ScheduledJob(
            id=uuid.uuid4().hex,
            name=name,
            run_at=first_run_at or utcnow() + interval,
            interval=interval,
            data=payload,
        )
        self._start(job)
        return job.id

    async def next_periodic_run(self, name: str) -> Optional[datetime]:
        runs = [job.run_at for job in self._jobs.values() if job.name == name and job.interval is not None]
        return min(runs) if runs else None

    async def list_jobs(self) -> List[ScheduledJob]:
        return list(self._jobs.values())

    async def cancel_job(self, job_id: str) -> None:
        task = self._tasks.pop(job_id, None)
        self._jobs.pop(job_id, None)
        if task is not None and task is not asyncio.current_task():
            task.cancel()

    async def shutdown(self) -> None:
        """Отменяет все задачи (при остановке процесса)."""
        for job_id in list(self._tasks):
            await self.cancel_job(job_id)

    def _start(self, job: ScheduledJob) -> None:
        self._jobs[job.id] = job
        self._tasks[job.id] = asyncio.create_task(self._loop(job))

    async def _loop(self, job: ScheduledJob) -> None:
        while True:
            delay = (job.run_at - utcnow()).total_seconds()
            if delay > 0:
                await asyncio.sleep(delay)

            handler = self._handlers.get(job.name)
            if handler is None:
                logger.error(f"[SCHEDULER] Нет обработчика для задачи {job.name}")
            else:
                try:
                    await handler(dict(job.data))
                except Exception as exc:
                    # Сбой одной задачи не должен останавливать планировщик
                    logger.exception(f"[SCHEDULER] Задача {job.name} завершилась с ошибкой: {exc}")

            if job.interval is None:
                self._jobs.pop(job.id, None)
                self._tasks.pop(job.id, None)
                return
            job.run_at = max(job.run_at + job.interval, utcnow())
