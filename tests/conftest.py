import os
import sys
from dataclasses import replace
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Optional
from unittest.mock import AsyncMock

import pytest

# Устанавливаем DATABASE_URL ДО импорта hivebot.config:
# движок создаётся при импорте модуля сессии
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "testing")

# Гарантируем, что пакет hivebot доступен для импортов из тестов
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from fakeredis import aioredis as fakeredis_aioredis
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from hivebot.database import session as db_session_module
from hivebot.database.models import Base
from hivebot.platform import ContentItem, ContentKind, UserProfile, utcnow
from hivebot.scheduler import ScheduledJob
from hivebot.services.protection.matcher import DomainRule
from hivebot.services.protection.settings_service import ProtectionSettings


@pytest.fixture
async def fake_redis():
    """Хранилище ключ-значение на fakeredis."""
    client = fakeredis_aioredis.FakeRedis(decode_responses=True)

    try:
        yield client
    finally:
        await client.flushall()
        await client.aclose()


@pytest.fixture
async def db_session(monkeypatch):
    """Изолированная сессия БД на SQLite в памяти."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, expire_on_commit=False)
    # Подменяем глобальную фабрику, чтобы get_session() работал с тестовой БД
    monkeypatch.setattr(db_session_module, "engine", engine)
    monkeypatch.setattr(db_session_module, "async_session", session_factory)

    session = session_factory()
    try:
        yield session
    finally:
        await session.close()
        await engine.dispose()


@pytest.fixture
def profile_factory() -> Callable[..., UserProfile]:
    def _factory(username: str = "spammer", age_days: int = 400, **kwargs) -> UserProfile:
        return UserProfile(username=username, created_at=utcnow() - timedelta(days=age_days), **kwargs)

    return _factory


@pytest.fixture
def platform(profile_factory):
    """Async mock клиента платформы с безопасными значениями по умолчанию."""
    client = AsyncMock()
    client.get_user.side_effect = lambda username: profile_factory(username)
    client.get_user_flair.return_value = None
    client.get_social_links.return_value = []
    client.get_user_history.return_value = []
    client.is_moderator.return_value = False
    client.is_approved_user.return_value = False
    client.is_banned.return_value = False
    client.reply_to_item.return_value = "t1_reply"
    client.get_mod_notes.return_value = []
    client.get_moderation_log.return_value = []
    return client


class RecordingScheduler:
    """Планировщик, который только запоминает вызовы."""

    def __init__(self, next_periodic: Optional[datetime] = None):
        self.jobs = []
        self.cancelled = []
        self.next_periodic = next_periodic
        self._counter = 0

    async def run_job(self, name, run_at, data=None):
        return self._add(name, run_at, None, data)

    async def run_periodic(self, name, interval, first_run_at=None, data=None):
        payload = {"from_cron": True}
        payload.update(data or {})
        return self._add(name, first_run_at or utcnow() + interval, interval, payload)

    async def next_periodic_run(self, name):
        return self.next_periodic

    async def list_jobs(self):
        return list(self.jobs)

    async def cancel_job(self, job_id):
        self.cancelled.append(job_id)
        self.jobs = [job for job in self.jobs if job.id != job_id]

    def named(self, name):
        return [job for job in self.jobs if job.name == name]

    def _add(self, name, run_at, interval, data):
        self._counter += 1
        job = ScheduledJob(id=f"job-{self._counter}", name=name, run_at=run_at, interval=interval, data=dict(data or {}))
        self.jobs.append(job)
        return job.id


@pytest.fixture
def scheduler():
    return RecordingScheduler()


@pytest.fixture
def item_factory() -> Callable[..., ContentItem]:
    """Фабрика элементов истории."""
    counter = {"value": 0}

    def _factory(
        community: str = "badsub1",
        kind: ContentKind = ContentKind.COMMENT,
        days_ago: float = 1,
        url: str = "",
        author: str = "spammer",
        score: int = 1,
        item_id: Optional[str] = None,
    ) -> ContentItem:
        counter["value"] += 1
        if item_id is None:
            prefix = "t3_" if kind == ContentKind.POST else "t1_"
            item_id = f"{prefix}{counter['value']:04d}"
        return ContentItem(
            id=item_id,
            kind=kind,
            author=author,
            community=community,
            created_at=utcnow() - timedelta(days=days_ago),
            url=url,
            permalink=f"/r/{community}/comments/{item_id}",
            score=score,
        )

    return _factory


@pytest.fixture
def settings_factory() -> Callable[..., ProtectionSettings]:
    """Снимок настроек с отслеживаемыми сообществами и быстрыми порогами."""
    base = ProtectionSettings(
        watched_communities=("badsub1", "badsub2", "badsub3"),
        domain_rules=(DomainRule("spam.example"),),
        combined_threshold=2,
        min_distinct_communities=1,
        sitewide_banned_domains=("beacons.ai",),
    )

    def _factory(**overrides) -> ProtectionSettings:
        return replace(base, **overrides)

    return _factory
