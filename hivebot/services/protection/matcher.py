# hivebot/services/protection/matcher.py
"""
Сопоставление доменов и проверка порогов.

Чистые функции без I/O и без состояния.
"""

from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, List, Sequence
from urllib.parse import urlsplit

from hivebot.platform import ContentItem, ContentKind


# Правило "*" совпадает с любым хостом
SENTINEL_HOST = "*"
PLATFORM_DOMAIN = "reddit.com"


@dataclass(frozen=True)
class DomainRule:
    """
    Доменное правило.

    Attributes:
        host: Хост без "www." и без "*."
        is_wildcard: Совпадают ли также поддомены
    """
    host: str
    is_wildcard: bool = False

    def matches(self, host: str) -> bool:
        if self.host == SENTINEL_HOST:
            return True
        if host == self.host:
            return True
        # Граница обязательно по точке: notthebbc.co.uk не совпадает с bbc.co.uk
        return self.is_wildcard and host.endswith(f".{self.host}")


@dataclass(frozen=True)
class ClassifiedItem:
    """
    Элемент истории с тегами совпадения.

    Attributes:
        item: Исходный пост или комментарий
        matched_by_community: Опубликован в отслеживаемом сообществе
        matched_by_domain: Ссылка ведёт на отслеживаемый домен
    """
    item: ContentItem
    matched_by_community: bool
    matched_by_domain: bool

    @property
    def created_at(self) -> datetime:
        return self.item.created_at

    @property
    def community(self) -> str:
        return self.item.community

    @property
    def url(self) -> str:
        return self.item.url

    @property
    def permalink(self) -> str:
        return self.item.permalink

    @property
    def kind(self) -> ContentKind:
        return self.item.kind

    @property
    def is_tagged(self) -> bool:
        return self.matched_by_community or self.matched_by_domain


def trim_leading_www(hostname: str) -> str:
    if hostname.startswith("www."):
        return hostname[4:]
    return hostname


def domain_from_url(url: str) -> str:
    """
    Извлекает хост из ссылки.

    Относительные ссылки на сообщества и профили считаются доменом платформы.
    Для пустой или некорректной ссылки возвращает пустую строку.
    """
    if not url:
        return ""
    if url.startswith("/r/") or url.startswith("/u"):
        return PLATFORM_DOMAIN

    try:
        hostname = urlsplit(url).hostname
    except ValueError:
        return ""
    return trim_leading_www(hostname or "")


def parse_name_list(raw: Any) -> List[str]:
    """Разбирает список имён через запятую (в нижнем регистре, без пустых)."""
    if not raw:
        return []
    if isinstance(raw, (list, tuple)):
        raw = ",".join(str(part) for part in raw)
    return [name.strip().lower() for name in str(raw).split(",") if name.strip()]


def parse_domain_rules(raw: Any) -> List[DomainRule]:
    """
    Разбирает список доменов через запятую.

    "*.example.com" превращается в правило с поддоменами для example.com,
    ведущий "www." отбрасывается.
    """
    rules = []
    for domain in parse_name_list(raw):
        domain = trim_leading_www(domain)
        if domain.startswith("*."):
            rules.append(DomainRule(host=domain[2:], is_wildcard=True))
        elif domain:
            rules.append(DomainRule(host=domain))
    return rules


def is_domain_in_list(host: str, rules: Iterable[DomainRule]) -> bool:
    return any(rule.matches(host) for rule in rules)


def _is_over(items: Sequence[ClassifiedItem], threshold: int, min_distinct_communities: int) -> bool:
    if len(items) < threshold:
        return False

    domain_count = sum(1 for item in items if item.matched_by_domain)
    if domain_count >= threshold:
        return True

    distinct = Counter(item.community.lower() for item in items if item.matched_by_community)
    return len(distinct) >= min_distinct_communities


def is_over_threshold(
    items: Sequence[ClassifiedItem],
    combined_threshold: int,
    post_threshold: int,
    comment_threshold: int,
    min_distinct_communities: int,
) -> bool:
    """
    Проверяет, превышает ли набор элементов хотя бы один из порогов.

    Порог выполнен, если доменных совпадений не меньше порога, либо
    элементов не меньше порога и различных отслеживаемых сообществ не меньше
    min_distinct_communities. Нулевой порог выключен.

    Args:
        items: Помеченные элементы истории
        combined_threshold: Порог по всем элементам
        post_threshold: Порог только по постам
        comment_threshold: Порог только по комментариям
        min_distinct_communities: Минимум различных сообществ

    Returns:
        bool: True если хотя бы одна проверка сработала
    """
    if combined_threshold and _is_over(items, combined_threshold, min_distinct_communities):
        return True

    if post_threshold:
        posts = [item for item in items if item.kind == ContentKind.POST]
        if _is_over(posts, post_threshold, min_distinct_communities):
            return True

    if comment_threshold:
        comments = [item for item in items if item.kind == ContentKind.COMMENT]
        if _is_over(comments, comment_threshold, min_distinct_communities):
            return True

    return False
