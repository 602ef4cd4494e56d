# hivebot/services/protection/settings_service.py
"""
Сервис настроек защиты сообщества.

Настройки приходят плоской картой "имя -> значение" (как их задаёт
форма настроек) и превращаются в неизменяемый снимок ProtectionSettings.
Снимок читается один раз на вычисление и передаётся всем компонентам:
ни один компонент не меняет его.

В БД карта хранится в таблице protection_settings (одна запись на сообщество).
"""

# Импортируем логгер для записи событий
import logging
# Импортируем re для проверки адреса вебхука
import re
# Импортируем dataclass для снимка настроек
from dataclasses import dataclass, field
# Импортируем Enum для вариантов select-настроек
from enum import Enum
# Импортируем типы для аннотаций
from typing import Any, Dict, List, Mapping, Optional, Tuple

# Импортируем AsyncSession для асинхронной работы с БД
from sqlalchemy.ext.asyncio import AsyncSession
# Импортируем select для построения запросов
from sqlalchemy import select

# Импортируем модель настроек
from hivebot.database.models import ProtectionSettingsRecord
# Импортируем разбор доменных правил
from hivebot.services.protection.matcher import DomainRule, parse_domain_rules, parse_name_list, trim_leading_www
# Импортируем настройку уровня приложения
from hivebot.config import SITEWIDE_BANNED_DOMAINS


# Создаём логгер для этого модуля
logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# ИМЕНА НАСТРОЕК
# ═══════════════════════════════════════════════════════════════════════════════

class AppSetting(str, Enum):
    # Параметры детекции
    SUBREDDITS = "subreddits"
    NUMBER_OF_SUBREDDITS_THAT_MUST_MATCH = "numSubredditsToMatch"
    DOMAINS = "domains"
    CONTENT_TYPE_TO_ACT_ON = "contenttypetoacton"
    COMBINED_ITEM_COUNT = "itemcount"
    POST_COUNT = "postcount"
    COMMENT_COUNT = "commentcount"
    EXEMPT_LOW_KARMA_IN_PROBLEMATIC_SUBS = "exemptAccountsWithKarmaInProblematicSubs"
    DAYS_TO_MONITOR = "daystomonitor"
    CHECK_SOCIAL_LINKS = "checkSocialLinks"

    # Исключения
    EXEMPT_APPROVED_USER = "exemptapproveduser"
    USER_WHITELIST = "userWhitelist"
    FLAIR_WHITELIST = "flairWhitelist"
    FLAIR_CSS_CLASS_WHITELIST = "flairCSSClassWhitelist"
    EXEMPT_ACCOUNT_OLDER_THAN_DAYS = "exemptAccountOlderThanDays"
    EXEMPT_ACCOUNT_WITH_LINK_KARMA = "exemptAccountWithThisLinkKarma"
    EXEMPT_ACCOUNT_WITH_COMMENT_KARMA = "exemptAccountWithThisCommentKarma"

    # Бан
    BAN_ENABLED = "banenabled"
    BEHAVIOUR_IF_PREV_BAN = "behaviourifprevban"
    APPLY_BAN_BEHAVIOUR_TO_OTHER_ACTIONS = "banBehaviourForAllActions"
    BAN_MESSAGE = "banmessage"
    BAN_NOTE = "bannote"
    BAN_DURATION = "banduration"
    CLEAR_HISTORY_ON_UNBAN = "clearHistoryOnUnban"

    # Удаление
    REMOVE_ENABLED = "removeenabled"
    REMOVE_AS_SPAM = "removeAsSpam"
    PURGE_CONTENT = "purgeContent"

    # Ответ
    REPLY_TEMPLATE = "removalreasontemplate"
    LOCK_REPLY = "lockreply"
    STICKY_REPLY = "stickyreply"
    NUMBER_OF_REPLIES_TO_MAKE = "numberOfRepliesToMake"

    # Жалоба
    REPORT_ENABLED = "reportenabled"
    REPORT_TEMPLATE = "reporttemplate"
    REPORT_NUMBER = "reportnumber"

    # Сообщение модераторам
    MODMAIL_ENABLED = "modmailEnabled"
    MODMAIL_NUMBER = "modmailNumber"

    # Заметки модераторов
    MOD_NOTE_ENABLED = "modNoteEnabled"
    MOD_NOTE_TYPE = "modNoteType"
    MOD_NOTE_TEMPLATE = "modNoteTemplate"

    # Оповещение в Discord/Slack
    DISCORD_OR_SLACK_WEBHOOK = "discordOrSlackWebhook"
    DISCORD_SUPPRESS_EMBEDS = "discordSuppressEmbeds"

    # Детектор блокировки
    ANTI_BLOCK_CHECKER_ENABLED = "antiBlockCheckerEnabled"
    ANTI_BLOCK_CHECKER_ADD_MOD_NOTE = "antiBlockCheckerAddModNote"

    # Повторная проверка (часы)
    SECOND_CHECK_INTERVAL = "secondCheckInterval"

    # Уровень приложения
    SITEWIDE_BANNED_DOMAINS = "sitewideBannedDomains"


class PrevBanBehaviour(str, Enum):
    NEVER_REBAN = "never"
    ALWAYS_REBAN = "always"
    ONLY_REBAN_IF_NEW_CONTENT = "newonly"


class ContentTypeToActOn(str, Enum):
    POSTS_AND_COMMENTS = "all"
    POSTS_ONLY = "posts"
    COMMENTS_ONLY = "comments"


class PurgeOption(str, Enum):
    NONE = "none"
    LAST_DAY = "day"
    LAST_WEEK = "week"
    LAST_MONTH = "month"
    ALL_TIME = "allTime"


class ModNoteType(str, Enum):
    NATIVE = "native"
    TOOLBOX = "toolbox"
    BOTH = "both"


# Ограничения платформы на длину текста бана
BAN_MESSAGE_MAX_LENGTH = 900
BAN_NOTE_MAX_LENGTH = 80

# Домены самой платформы нельзя отслеживать
DISALLOWED_DOMAINS = ("reddit.com", "redd.it")

WEBHOOK_REGEX = re.compile(r"^https://(?:discord(?:app)?\.com/api/webhooks/|hooks\.slack\.com/services)")


class SettingsValidationError(ValueError):
    """Карта настроек не прошла проверку."""

    def __init__(self, problems: List[str]):
        super().__init__("; ".join(problems))
        self.problems = problems


# ═══════════════════════════════════════════════════════════════════════════════
# СНИМОК НАСТРОЕК
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ProtectionSettings:
    """
    Неизменяемый снимок настроек сообщества.

    Значения по умолчанию совпадают с дефолтами формы настроек.
    """
    # Детекция
    watched_communities: Tuple[str, ...] = ()
    min_distinct_communities: int = 1
    domain_rules: Tuple[DomainRule, ...] = ()
    content_type_to_act_on: ContentTypeToActOn = ContentTypeToActOn.POSTS_AND_COMMENTS
    combined_threshold: int = 6
    post_threshold: int = 0
    comment_threshold: int = 0
    days_to_monitor: int = 28
    check_social_links: bool = False

    # Исключения
    exempt_low_karma_in_problematic_communities: int = 0
    exempt_approved_users: bool = False
    user_whitelist: Tuple[str, ...] = ()
    flair_whitelist: Tuple[str, ...] = ()
    flair_css_class_whitelist: Tuple[str, ...] = ()
    exempt_account_older_than_days: int = 0
    exempt_link_karma: int = 0
    exempt_comment_karma: int = 0

    # Бан
    ban_enabled: bool = True
    prev_ban_behaviour: PrevBanBehaviour = PrevBanBehaviour.NEVER_REBAN
    apply_ban_behaviour_to_other_actions: bool = False
    ban_message: Optional[str] = None
    ban_note: Optional[str] = None
    ban_duration_days: int = 0
    clear_history_on_unban: bool = False

    # Удаление
    remove_enabled: bool = True
    remove_as_spam: bool = False
    purge_option: PurgeOption = PurgeOption.NONE

    # Ответ
    reply_template: Optional[str] = None
    lock_reply: bool = True
    sticky_reply: bool = False
    max_replies_per_user: int = 0

    # Жалоба
    report_enabled: bool = False
    report_template: Optional[str] = "Content found in: {{sublist}}"
    report_approval_threshold: int = 3

    # Сообщение модераторам
    modmail_enabled: bool = False
    modmail_approval_threshold: int = 3

    # Заметки
    mod_note_enabled: bool = False
    mod_note_type: ModNoteType = ModNoteType.NATIVE
    mod_note_template: Optional[str] = "User has history in: {{sublist}}"

    # Вебхук
    webhook_url: Optional[str] = None
    discord_suppress_embeds: bool = False

    # Детектор блокировки
    anti_block_checker_enabled: bool = False
    anti_block_checker_add_mod_note: bool = False

    # Повторная проверка (часы; 0 - выключено)
    second_check_interval_hours: int = 0

    # Уровень приложения
    sitewide_banned_domains: Tuple[str, ...] = field(default_factory=lambda: _split_list(SITEWIDE_BANNED_DOMAINS))

    @property
    def has_thresholds(self) -> bool:
        """Задан ли хотя бы один порог."""
        return bool(self.combined_threshold or self.post_threshold or self.comment_threshold)

    @property
    def has_detection_rules(self) -> bool:
        return bool(self.watched_communities or self.domain_rules)

    @classmethod
    def from_mapping(cls, values: Optional[Mapping[str, Any]]) -> "ProtectionSettings":
        """
        Строит снимок из плоской карты настроек.

        Неизвестные ключи игнорируются, отсутствующие берутся по умолчанию.

        Args:
            values: Карта "имя настройки -> значение"

        Returns:
            ProtectionSettings
        """
        values = dict(values or {})
        defaults = cls()

        def get(setting: AppSetting, default):
            value = values.get(setting.value)
            return default if value is None else value

        kwargs: Dict[str, Any] = dict(
            watched_communities=tuple(parse_name_list(get(AppSetting.SUBREDDITS, ""))),
            min_distinct_communities=_int(get(AppSetting.NUMBER_OF_SUBREDDITS_THAT_MUST_MATCH, 1), 1),
            domain_rules=tuple(parse_domain_rules(get(AppSetting.DOMAINS, ""))),
            content_type_to_act_on=_choice(
                get(AppSetting.CONTENT_TYPE_TO_ACT_ON, None), ContentTypeToActOn, defaults.content_type_to_act_on
            ),
            combined_threshold=_int(get(AppSetting.COMBINED_ITEM_COUNT, defaults.combined_threshold)),
            post_threshold=_int(get(AppSetting.POST_COUNT, 0)),
            comment_threshold=_int(get(AppSetting.COMMENT_COUNT, 0)),
            days_to_monitor=_int(get(AppSetting.DAYS_TO_MONITOR, defaults.days_to_monitor), defaults.days_to_monitor),
            check_social_links=bool(get(AppSetting.CHECK_SOCIAL_LINKS, False)),
            exempt_low_karma_in_problematic_communities=_int(get(AppSetting.EXEMPT_LOW_KARMA_IN_PROBLEMATIC_SUBS, 0)),
            exempt_approved_users=bool(get(AppSetting.EXEMPT_APPROVED_USER, False)),
            user_whitelist=tuple(parse_name_list(get(AppSetting.USER_WHITELIST, ""))),
            flair_whitelist=tuple(parse_name_list(get(AppSetting.FLAIR_WHITELIST, ""))),
            flair_css_class_whitelist=tuple(parse_name_list(get(AppSetting.FLAIR_CSS_CLASS_WHITELIST, ""))),
            exempt_account_older_than_days=_int(get(AppSetting.EXEMPT_ACCOUNT_OLDER_THAN_DAYS, 0)),
            exempt_link_karma=_int(get(AppSetting.EXEMPT_ACCOUNT_WITH_LINK_KARMA, 0)),
            exempt_comment_karma=_int(get(AppSetting.EXEMPT_ACCOUNT_WITH_COMMENT_KARMA, 0)),
            ban_enabled=bool(get(AppSetting.BAN_ENABLED, True)),
            prev_ban_behaviour=_choice(
                get(AppSetting.BEHAVIOUR_IF_PREV_BAN, None), PrevBanBehaviour, defaults.prev_ban_behaviour
            ),
            apply_ban_behaviour_to_other_actions=bool(get(AppSetting.APPLY_BAN_BEHAVIOUR_TO_OTHER_ACTIONS, False)),
            ban_message=get(AppSetting.BAN_MESSAGE, None) or None,
            ban_note=get(AppSetting.BAN_NOTE, None) or None,
            ban_duration_days=_int(get(AppSetting.BAN_DURATION, 0)),
            clear_history_on_unban=bool(get(AppSetting.CLEAR_HISTORY_ON_UNBAN, False)),
            remove_enabled=bool(get(AppSetting.REMOVE_ENABLED, True)),
            remove_as_spam=bool(get(AppSetting.REMOVE_AS_SPAM, False)),
            purge_option=_choice(get(AppSetting.PURGE_CONTENT, None), PurgeOption, defaults.purge_option),
            reply_template=get(AppSetting.REPLY_TEMPLATE, None) or None,
            lock_reply=bool(get(AppSetting.LOCK_REPLY, True)),
            sticky_reply=bool(get(AppSetting.STICKY_REPLY, False)),
            max_replies_per_user=_int(get(AppSetting.NUMBER_OF_REPLIES_TO_MAKE, 0)),
            report_enabled=bool(get(AppSetting.REPORT_ENABLED, False)),
            report_template=get(AppSetting.REPORT_TEMPLATE, defaults.report_template) or None,
            report_approval_threshold=_int(get(AppSetting.REPORT_NUMBER, 3)),
            modmail_enabled=bool(get(AppSetting.MODMAIL_ENABLED, False)),
            modmail_approval_threshold=_int(get(AppSetting.MODMAIL_NUMBER, 3)),
            mod_note_enabled=bool(get(AppSetting.MOD_NOTE_ENABLED, False)),
            mod_note_type=_choice(get(AppSetting.MOD_NOTE_TYPE, None), ModNoteType, defaults.mod_note_type),
            mod_note_template=get(AppSetting.MOD_NOTE_TEMPLATE, defaults.mod_note_template) or None,
            webhook_url=get(AppSetting.DISCORD_OR_SLACK_WEBHOOK, None) or None,
            discord_suppress_embeds=bool(get(AppSetting.DISCORD_SUPPRESS_EMBEDS, False)),
            anti_block_checker_enabled=bool(get(AppSetting.ANTI_BLOCK_CHECKER_ENABLED, False)),
            anti_block_checker_add_mod_note=bool(get(AppSetting.ANTI_BLOCK_CHECKER_ADD_MOD_NOTE, False)),
            second_check_interval_hours=_int(get(AppSetting.SECOND_CHECK_INTERVAL, 0)),
        )

        sitewide = values.get(AppSetting.SITEWIDE_BANNED_DOMAINS.value)
        if sitewide is not None:
            kwargs["sitewide_banned_domains"] = _split_list(sitewide)

        return cls(**kwargs)


def _split_list(raw: Any) -> Tuple[str, ...]:
    if not raw:
        return ()
    return tuple(part.strip() for part in str(raw).split(",") if part.strip())


def _int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _choice(value: Any, enum_cls, default):
    """Select-настройки приходят строкой или списком из одного элемента."""
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
    if value is None:
        return default
    try:
        return enum_cls(value)
    except ValueError:
        logger.warning(f"Неизвестное значение {value!r} для {enum_cls.__name__}, используем {default.value}")
        return default


# ═══════════════════════════════════════════════════════════════════════════════
# ВАЛИДАЦИЯ
# ═══════════════════════════════════════════════════════════════════════════════

def validate_settings(values: Mapping[str, Any]) -> List[str]:
    """
    Проверяет карту настроек.

    Args:
        values: Карта "имя настройки -> значение"

    Returns:
        Список описаний проблем (пустой, если всё в порядке)
    """
    problems: List[str] = []

    domains = values.get(AppSetting.DOMAINS.value) or ""
    items = [trim_leading_www(domain.strip()) for domain in str(domains).lower().split(",")]
    bad_items = [
        item for item in items
        if item and (item in DISALLOWED_DOMAINS or any(item.endswith(f".{bad}") for bad in DISALLOWED_DOMAINS))
    ]
    if bad_items:
        problems.append(f"Invalid domains in list: {', '.join(bad_items)}")

    days = values.get(AppSetting.DAYS_TO_MONITOR.value)
    if days is not None and _int(days) < 1:
        problems.append("Days to monitor must be at least 1")

    ban_message = values.get(AppSetting.BAN_MESSAGE.value)
    if ban_message and len(ban_message) > BAN_MESSAGE_MAX_LENGTH:
        problems.append(f"Ban message is too long. {len(ban_message)}/{BAN_MESSAGE_MAX_LENGTH}")

    ban_note = values.get(AppSetting.BAN_NOTE.value)
    if ban_note and len(ban_note) > BAN_NOTE_MAX_LENGTH:
        problems.append(f"Ban note is too long. {len(ban_note)}/{BAN_NOTE_MAX_LENGTH}")

    webhook = values.get(AppSetting.DISCORD_OR_SLACK_WEBHOOK.value)
    if webhook and not WEBHOOK_REGEX.match(webhook):
        problems.append("Please enter a valid Discord or Slack webhook URL")

    return problems


# ═══════════════════════════════════════════════════════════════════════════════
# РАБОТА С БД
# ═══════════════════════════════════════════════════════════════════════════════

async def get_settings_record(session: AsyncSession, community: str) -> Optional[ProtectionSettingsRecord]:
    """
    Получает запись настроек сообщества.

    Args:
        session: Асинхронная сессия SQLAlchemy
        community: Имя сообщества

    Returns:
        ProtectionSettingsRecord или None если записи нет
    """
    # Строим запрос по имени сообщества (регистр не важен)
    query = select(ProtectionSettingsRecord).where(ProtectionSettingsRecord.community == community.lower())
    # Выполняем запрос
    result = await session.execute(query)
    return result.scalar_one_or_none()


async def get_protection_settings(session: AsyncSession, community: str) -> ProtectionSettings:
    """
    Получает снимок настроек сообщества.

    Если записи нет - создаёт её с пустой картой (действуют значения по умолчанию).

    Args:
        session: Асинхронная сессия SQLAlchemy
        community: Имя сообщества

    Returns:
        ProtectionSettings
    """
    record = await get_settings_record(session, community)

    # Если настроек нет - создаём запись с дефолтами
    if record is None:
        logger.info(f"Создаём дефолтные настройки защиты для {community}")
        record = ProtectionSettingsRecord(community=community.lower(), values={})
        session.add(record)
        await session.commit()
        await session.refresh(record)

    return ProtectionSettings.from_mapping(record.values)


async def save_protection_settings(
    session: AsyncSession,
    community: str,
    values: Mapping[str, Any],
) -> ProtectionSettings:
    """
    Сохраняет карту настроек сообщества.

    Args:
        session: Асинхронная сессия SQLAlchemy
        community: Имя сообщества
        values: Полная карта настроек

    Returns:
        ProtectionSettings: Снимок сохранённых настроек

    Raises:
        SettingsValidationError: Если карта не прошла проверку
    """
    problems = validate_settings(values)
    if problems:
        raise SettingsValidationError(problems)

    record = await get_settings_record(session, community)
    if record is None:
        record = ProtectionSettingsRecord(community=community.lower(), values=dict(values))
        session.add(record)
    else:
        # JSON требует явного присваивания нового объекта
        record.values = dict(values)

    await session.commit()
    logger.info(f"Настройки защиты для {community} сохранены ({len(values)} ключей)")

    return ProtectionSettings.from_mapping(values)
