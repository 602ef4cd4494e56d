# hivebot/services/protection/decision_engine.py
"""
Движок принятия решений.

Превращает историю пользователя в вердикт: классификация, проверка
порогов, политика повторного бана, исключения и кэширование результата.
"""

# Импортируем asyncio для параллельных проверок ролей
import asyncio
# Импортируем логгер для записи событий
import logging
# Импортируем timedelta для проверки возраста аккаунта
from datetime import timedelta
# Импортируем типы для аннотаций
from typing import List, Optional, Sequence

# Импортируем асинхронный клиент Redis
from redis.asyncio import Redis

# Импортируем ключи
from hivebot.constants import DEFAULT_KEYS, KeySpace
# Импортируем интерфейс платформы
from hivebot.platform import PlatformClient, PlatformError, UserProfile, utcnow
# Импортируем компоненты проверки
from hivebot.services.protection.block_checker import BlockChecker
from hivebot.services.protection.classifier import (
    ClassifiedHistory,
    HistoryClassifier,
    filter_created_after,
    filter_recent,
)
from hivebot.services.protection.exemptions import is_approved_user, is_moderator
from hivebot.services.protection.matcher import ClassifiedItem, domain_from_url, is_over_threshold
from hivebot.services.protection.second_check import SecondCheckQueue
from hivebot.services.protection.settings_service import PrevBanBehaviour, ProtectionSettings
from hivebot.services.protection.user_state import UserStateStore
from hivebot.services.protection.verdict_cache import Verdict, VerdictCache


# Создаём логгер для этого модуля
logger = logging.getLogger(__name__)


def _unique(values) -> List[str]:
    result: List[str] = []
    for value in values:
        if value and value not in result:
            result.append(value)
    return result


class DecisionEngine:
    """
    Вычисляет вердикт для пользователя.

    Пример использования:
        engine = DecisionEngine(redis, platform, "mysub", "hive-protect")
        verdict = await engine.evaluate("someone", settings)
    """

    def __init__(
        self,
        redis: Redis,
        platform: PlatformClient,
        community: str,
        app_account: str,
        keys: KeySpace = DEFAULT_KEYS,
        second_check: Optional[SecondCheckQueue] = None,
    ):
        self.redis = redis
        self.platform = platform
        self.community = community
        self.app_account = app_account
        self.keys = keys

        self.classifier = HistoryClassifier(platform, community)
        self.cache = VerdictCache(redis, keys)
        self.user_state = UserStateStore(redis, keys)
        self.block_checker = BlockChecker(redis, platform, community, app_account, keys)
        self.second_check = second_check

    # ═══════════════════════════════════════════════════════════════════════
    # ОСНОВНОЙ МЕТОД
    # ═══════════════════════════════════════════════════════════════════════

    async def evaluate(self, username: str, settings: ProtectionSettings, ignore_cache: bool = False) -> Verdict:
        """
        Вычисляет вердикт для пользователя.

        Args:
            username: Имя пользователя
            settings: Снимок настроек сообщества
            ignore_cache: Пересчитать вердикт, даже если он есть в кэше

        Returns:
            Verdict
        """
        # Без порогов приложение ничего не делает
        if not settings.has_thresholds:
            logger.debug("[ENGINE] Пороги не заданы, проверка пропущена")
            return Verdict.clean()

        if username.lower() in settings.user_whitelist:
            logger.info(f"[ENGINE] {username} в белом списке")
            return Verdict.clean()

        # Ручное исключение проверяется до любых обращений к платформе
        if await self.user_state.is_exempt(username):
            logger.info(f"[ENGINE] {username} исключён модераторами вручную")
            return Verdict.clean()

        if not ignore_cache:
            cached = await self.cache.get(username)
            if cached is not None:
                return cached

        if not settings.has_detection_rules:
            logger.debug("[ENGINE] Не заданы ни сообщества, ни домены")
            return Verdict.clean()

        classified = await self.classifier.classify(username, settings)
        social_domains = await self.classifier.matching_social_domains(username, settings)

        verdict = await self._decide(username, settings, classified, social_domains)

        if not verdict.is_actionable:
            verdict = await self._finish_clean(username, settings, classified)

        await self.cache.store(username, verdict)
        return verdict

    # ═══════════════════════════════════════════════════════════════════════
    # ЭТАПЫ
    # ═══════════════════════════════════════════════════════════════════════

    async def _decide(
        self,
        username: str,
        settings: ProtectionSettings,
        classified: ClassifiedHistory,
        social_domains: Sequence[str],
    ) -> Verdict:
        if not classified.tagged and not social_domains:
            return Verdict.clean()

        items = filter_recent(classified.tagged, settings.days_to_monitor)
        fails_checks = bool(social_domains) or self._over_threshold(items, settings)

        if not fails_checks:
            return Verdict.clean()

        logger.info(f"[ENGINE] {username} превышает порог ({len(items)} элементов, {len(social_domains)} доменов профиля)")

        is_enforceable = True
        banned_at = await self.user_state.last_banned_at(username)
        if banned_at is not None:
            behaviour = settings.prev_ban_behaviour
            logger.info(f"[ENGINE] {username} уже банился {banned_at.isoformat()}, политика: {behaviour.value}")

            if behaviour == PrevBanBehaviour.NEVER_REBAN:
                is_enforceable = False
            elif behaviour == PrevBanBehaviour.ONLY_REBAN_IF_NEW_CONTENT:
                # Ссылки профиля не имеют даты и новым контентом не считаются
                items = filter_created_after(items, banned_at)
                if not self._over_threshold(items, settings):
                    return Verdict.clean()

        if await self._is_exempt(username, settings, items):
            return Verdict.clean()

        domains = list(social_domains) + [domain_from_url(item.url) for item in items if item.matched_by_domain]
        return Verdict(
            matched_communities=tuple(_unique(item.community for item in items if item.matched_by_community)),
            matched_domains=tuple(_unique(domains)),
            latest_permalink=items[0].permalink if items else None,
            is_enforceable=is_enforceable,
        )

    @staticmethod
    def _over_threshold(items: Sequence[ClassifiedItem], settings: ProtectionSettings) -> bool:
        return is_over_threshold(
            items,
            settings.combined_threshold,
            settings.post_threshold,
            settings.comment_threshold,
            settings.min_distinct_communities,
        )

    async def _is_exempt(self, username: str, settings: ProtectionSettings, items: Sequence[ClassifiedItem]) -> bool:
        """
        Проверяет исключения для пользователя, превысившего порог.

        Дешёвые проверки идут первыми, роли в сообществе проверяются последними.
        """
        profile = await self._get_profile(username)
        if profile is None:
            # Аккаунт недоступен (например, теневой бан при повторной проверке)
            logger.info(f"[ENGINE] Профиль {username} недоступен, действий не будет")
            return True

        if profile.is_admin:
            logger.info(f"[ENGINE] {username} администратор платформы")
            return True

        if await self._flair_is_whitelisted(username, settings):
            return True

        if settings.exempt_account_older_than_days and \
                profile.created_at < utcnow() - timedelta(days=settings.exempt_account_older_than_days):
            logger.info(f"[ENGINE] {username} старше {settings.exempt_account_older_than_days} дней")
            return True

        if settings.exempt_link_karma and profile.link_karma > settings.exempt_link_karma:
            logger.info(f"[ENGINE] {username} имеет карму за посты {profile.link_karma}")
            return True

        if settings.exempt_comment_karma and profile.comment_karma > settings.exempt_comment_karma:
            logger.info(f"[ENGINE] {username} имеет карму за комментарии {profile.comment_karma}")
            return True

        threshold = settings.exempt_low_karma_in_problematic_communities
        if threshold and items:
            karma = sum(item.item.score for item in items)
            if karma < threshold:
                logger.info(f"[ENGINE] {username} имеет низкую карму ({karma}) в отслеживаемых сообществах")
                return True

        # Самая дорогая проверка: только когда всё остальное ведёт к действиям
        checks = [is_moderator(self.platform, self.community, username, self.app_account)]
        if settings.exempt_approved_users:
            checks.append(is_approved_user(self.platform, self.community, username))

        if any(await asyncio.gather(*checks)):
            logger.info(f"[ENGINE] {username} модератор или одобренный пользователь")
            return True

        return False

    async def _get_profile(self, username: str) -> Optional[UserProfile]:
        try:
            return await self.platform.get_user(username)
        except PlatformError as exc:
            logger.warning(f"[ENGINE] Не удалось получить профиль {username}: {exc}")
            return None

    async def _flair_is_whitelisted(self, username: str, settings: ProtectionSettings) -> bool:
        if not settings.flair_whitelist and not settings.flair_css_class_whitelist:
            return False

        try:
            flair = await self.platform.get_user_flair(self.community, username)
        except PlatformError as exc:
            logger.warning(f"[ENGINE] Не удалось получить флер {username}: {exc}")
            return False

        if flair is None:
            return False

        if flair.text and flair.text.lower() in settings.flair_whitelist:
            logger.info(f"[ENGINE] Флер {username} ({flair.text}) в белом списке")
            return True

        if flair.css_class and flair.css_class.lower() in settings.flair_css_class_whitelist:
            logger.info(f"[ENGINE] CSS-класс флера {username} ({flair.css_class}) в белом списке")
            return True

        return False

    async def _finish_clean(
        self,
        username: str,
        settings: ProtectionSettings,
        classified: ClassifiedHistory,
    ) -> Verdict:
        """Дополняет чистый вердикт признаком блокировки и ставит повторную проверку."""
        is_blocking = False
        if settings.anti_block_checker_enabled:
            is_blocking = await self.block_checker.is_user_blocking(username, classified.history)
            if is_blocking:
                logger.warning(f"[ENGINE] {username} может блокировать аккаунт приложения")

        if settings.second_check_interval_hours and self.second_check is not None:
            await self.second_check.enqueue(username, settings.second_check_interval_hours)

        return Verdict.clean(is_possibly_blocking=is_blocking)
