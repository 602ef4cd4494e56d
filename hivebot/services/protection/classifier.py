# hivebot/services/protection/classifier.py
"""
Классификатор истории пользователя.

Загружает недавние посты и комментарии, помечает каждый элемент
по способу совпадения (сообщество / домен) и отбрасывает непомеченные.
"""

# Импортируем логгер для записи событий
import logging
# Импортируем dataclass для результата классификации
from dataclasses import dataclass, field
# Импортируем datetime для фильтра по времени
from datetime import datetime, timedelta
# Импортируем типы для аннотаций
from typing import List, Optional, Sequence

# Импортируем интерфейс платформы
from hivebot.platform import ContentItem, HistoryKind, PlatformClient, PlatformError, utcnow
# Импортируем функции сопоставления
from hivebot.services.protection.matcher import ClassifiedItem, domain_from_url, is_domain_in_list
# Импортируем снимок настроек
from hivebot.services.protection.settings_service import ProtectionSettings


# Создаём логгер для этого модуля
logger = logging.getLogger(__name__)

HISTORY_LIMIT = 100


@dataclass
class ClassifiedHistory:
    """
    Результат классификации.

    Attributes:
        history: Все загруженные элементы (нужны детектору блокировки)
        tagged: Помеченные элементы без фильтра по времени
    """
    history: List[ContentItem] = field(default_factory=list)
    tagged: List[ClassifiedItem] = field(default_factory=list)


def history_kind_for(settings: ProtectionSettings) -> Optional[HistoryKind]:
    """
    Выбирает минимальный набор истории для активных порогов.

    Returns:
        HistoryKind или None, если ни один порог не задан
    """
    if settings.combined_threshold or (settings.post_threshold and settings.comment_threshold):
        return HistoryKind.ALL
    if settings.post_threshold:
        return HistoryKind.POSTS
    if settings.comment_threshold:
        return HistoryKind.COMMENTS
    return None


def filter_recent(items: Sequence[ClassifiedItem], days: int, now: Optional[datetime] = None) -> List[ClassifiedItem]:
    """Оставляет элементы, созданные за последние days дней."""
    cutoff = (now or utcnow()) - timedelta(days=days)
    return [item for item in items if item.created_at > cutoff]


def filter_created_after(items: Sequence[ClassifiedItem], moment: datetime) -> List[ClassifiedItem]:
    return [item for item in items if item.created_at > moment]


class HistoryClassifier:
    """
    Классификатор истории для одного сообщества.

    Пример использования:
        classifier = HistoryClassifier(platform, "mysub")
        result = await classifier.classify("someone", settings)
        recent = filter_recent(result.tagged, settings.days_to_monitor)
    """

    def __init__(self, platform: PlatformClient, community: str):
        self.platform = platform
        self.community = community

    async def fetch_history(self, username: str, kind: HistoryKind) -> List[ContentItem]:
        """
        Загружает историю пользователя.

        Ошибка платформы (аккаунт недоступен и т.п.) означает "нет данных",
        поэтому возвращается пустой список.
        """
        try:
            return list(await self.platform.get_user_history(username, kind=kind, limit=HISTORY_LIMIT))
        except PlatformError as exc:
            logger.warning(f"[ENGINE] Не удалось получить историю {username}: {exc}")
            return []

    def tag(self, items: Sequence[ContentItem], settings: ProtectionSettings) -> List[ClassifiedItem]:
        """Помечает элементы и отбрасывает те, что ни с чем не совпали."""
        watched = set(settings.watched_communities)
        own = self.community.lower()
        tagged = []

        for item in items:
            # Элементы из своего сообщества не учитываются
            if item.community.lower() == own:
                continue

            # Элемент без внешней ссылки по домену не сопоставляется
            domain = domain_from_url(item.url)
            classified = ClassifiedItem(
                item=item,
                matched_by_community=item.community.lower() in watched,
                matched_by_domain=bool(domain) and is_domain_in_list(domain, settings.domain_rules),
            )
            if classified.is_tagged:
                tagged.append(classified)

        return tagged

    async def classify(self, username: str, settings: ProtectionSettings) -> ClassifiedHistory:
        kind = history_kind_for(settings)
        if kind is None:
            return ClassifiedHistory()

        history = await self.fetch_history(username, kind)
        return ClassifiedHistory(history=history, tagged=self.tag(history, settings))

    async def matching_social_domains(self, username: str, settings: ProtectionSettings) -> List[str]:
        """
        Возвращает домены ссылок профиля, совпавшие с доменными правилами.

        Проверка выполняется только при включённой настройке и непустых правилах.
        """
        if not settings.check_social_links or not settings.domain_rules:
            return []

        try:
            links = await self.platform.get_social_links(username)
        except PlatformError as exc:
            logger.warning(f"[ENGINE] Не удалось получить ссылки профиля {username}: {exc}")
            return []

        domains = []
        for link in links:
            domain = domain_from_url(link)
            if domain and is_domain_in_list(domain, settings.domain_rules) and domain not in domains:
                domains.append(domain)
        return domains
