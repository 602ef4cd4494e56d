# hivebot/services/protection/verdict_cache.py
"""
Вердикт проверки пользователя и его кэш в Redis.

Вердикт с совпадениями живёт час (после апелляции нужна быстрая
перепроверка), чистый вердикт живёт 12 часов.
"""

import json
import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from redis.asyncio import Redis
from redis.exceptions import RedisError

from hivebot.constants import DEFAULT_KEYS, KeySpace, NEGATIVE_VERDICT_TTL, POSITIVE_VERDICT_TTL

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Verdict:
    """
    Результат одной проверки пользователя.

    Attributes:
        matched_communities: Отслеживаемые сообщества, где найдена активность
        matched_domains: Отслеживаемые домены из ссылок и профиля
        latest_permalink: Ссылка на самый свежий совпавший элемент
        is_enforceable: Пользователя можно банить (с учётом прошлых банов)
        is_possibly_blocking: Пользователь, вероятно, заблокировал аккаунт приложения
    """
    matched_communities: Tuple[str, ...] = ()
    matched_domains: Tuple[str, ...] = ()
    latest_permalink: Optional[str] = None
    is_enforceable: bool = False
    is_possibly_blocking: bool = False

    @classmethod
    def clean(cls, is_possibly_blocking: bool = False) -> "Verdict":
        return cls(is_possibly_blocking=is_possibly_blocking)

    @property
    def is_actionable(self) -> bool:
        """Есть совпадения по сообществам или доменам."""
        return bool(self.matched_communities or self.matched_domains)

    def to_json(self) -> str:
        return json.dumps({
            "badSubs": list(self.matched_communities),
            "badDomains": list(self.matched_domains),
            "itemPermalink": self.latest_permalink,
            "userBannable": self.is_enforceable,
            "userBlocking": self.is_possibly_blocking,
        })

    @classmethod
    def from_json(cls, raw: str) -> "Verdict":
        data = json.loads(raw)
        return cls(
            matched_communities=tuple(data.get("badSubs") or ()),
            matched_domains=tuple(data.get("badDomains") or ()),
            latest_permalink=data.get("itemPermalink"),
            is_enforceable=bool(data.get("userBannable")),
            is_possibly_blocking=bool(data.get("userBlocking")),
        )


def ttl_for(verdict: Verdict) -> int:
    return POSITIVE_VERDICT_TTL if verdict.is_actionable else NEGATIVE_VERDICT_TTL


class VerdictCache:
    """Кэш последнего вердикта по имени пользователя."""

    def __init__(self, redis: Redis, keys: KeySpace = DEFAULT_KEYS):
        self.redis = redis
        self.keys = keys

    async def get(self, username: str) -> Optional[Verdict]:
        raw = await self.redis.get(self.keys.verdict(username))
        if not raw:
            return None
        try:
            return Verdict.from_json(raw)
        except (ValueError, TypeError) as exc:
            # Повреждённая запись равносильна промаху кэша
            logger.warning(f"[ENGINE] Некорректный вердикт в кэше для {username}: {exc}")
            return None

    async def store(self, username: str, verdict: Verdict) -> None:
        """Сохраняет вердикт. Сбой хранилища только логируется."""
        try:
            await self.redis.set(self.keys.verdict(username), verdict.to_json(), ex=ttl_for(verdict))
        except RedisError as exc:
            logger.error(f"[ENGINE] Не удалось сохранить вердикт для {username}: {exc}")

    async def invalidate(self, username: str) -> None:
        await self.redis.delete(self.keys.verdict(username))
