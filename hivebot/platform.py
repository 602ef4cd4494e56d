# hivebot/platform.py
"""
Интерфейс платформы контента.

Ядро не знает, как устроен API платформы: оно вызывает методы
PlatformClient и работает с простыми структурами ниже.
Идентификаторы элементов следуют формату платформы:
t3_* - посты, t1_* - комментарии.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Protocol


POST_ID_PREFIX = "t3_"
COMMENT_ID_PREFIX = "t1_"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ═══════════════════════════════════════════════════════════════════════════════
# ИСКЛЮЧЕНИЯ
# ═══════════════════════════════════════════════════════════════════════════════

class PlatformError(Exception):
    """Базовая ошибка обращения к платформе."""


class UserNotFoundError(PlatformError):
    """Аккаунт удалён, заблокирован или недоступен."""


class ContentNotFoundError(PlatformError):
    """Пост или комментарий не найден."""


# ═══════════════════════════════════════════════════════════════════════════════
# СТРУКТУРЫ ДАННЫХ
# ═══════════════════════════════════════════════════════════════════════════════

class ContentKind(str, Enum):
    """Тип элемента контента (дискриминант вместо иерархии классов)."""
    POST = "post"
    COMMENT = "comment"


class HistoryKind(str, Enum):
    """Какие элементы истории запрашивать у платформы."""
    ALL = "all"
    POSTS = "posts"
    COMMENTS = "comments"


@dataclass(frozen=True)
class ContentItem:
    """
    Пост или комментарий пользователя.

    Attributes:
        id: Идентификатор элемента (t3_* или t1_*)
        kind: Тип элемента
        author: Имя автора
        community: Сообщество, где опубликован элемент
        created_at: Время создания (UTC, aware)
        url: Внешняя ссылка (для постов-ссылок) или пустая строка
        permalink: Постоянная ссылка на элемент
        score: Рейтинг элемента
    """
    id: str
    kind: ContentKind
    author: str
    community: str
    created_at: datetime
    url: str = ""
    permalink: str = ""
    score: int = 0

    @property
    def is_post(self) -> bool:
        return self.kind == ContentKind.POST


@dataclass(frozen=True)
class UserProfile:
    username: str
    created_at: datetime
    link_karma: int = 0
    comment_karma: int = 0
    is_admin: bool = False


@dataclass(frozen=True)
class UserFlair:
    text: Optional[str] = None
    css_class: Optional[str] = None


@dataclass(frozen=True)
class ModLogEntry:
    action: str
    moderator: str
    target_author: Optional[str] = None


def is_post_id(thing_id: str) -> bool:
    return thing_id.startswith(POST_ID_PREFIX)


def is_comment_id(thing_id: str) -> bool:
    return thing_id.startswith(COMMENT_ID_PREFIX)


# ═══════════════════════════════════════════════════════════════════════════════
# КЛИЕНТ ПЛАТФОРМЫ
# ═══════════════════════════════════════════════════════════════════════════════

class PlatformClient(Protocol):
    """
    Операции платформы, которые использует ядро.

    Ошибки сети и доступа выражаются через PlatformError и наследников.
    Таймауты - ответственность реализации.
    """

    # Пользователи
    async def get_user(self, username: str) -> Optional[UserProfile]: ...

    async def get_user_flair(self, community: str, username: str) -> Optional[UserFlair]: ...

    async def get_social_links(self, username: str) -> List[str]: ...

    async def get_user_history(
        self,
        username: str,
        kind: HistoryKind = HistoryKind.ALL,
        limit: int = 100,
        timeframe: Optional[str] = None,
    ) -> List[ContentItem]: ...

    # Контент
    async def get_item(self, item_id: str) -> ContentItem: ...

    async def remove_item(self, item_id: str, is_spam: bool = False) -> None: ...

    async def report_item(self, item_id: str, reason: str) -> None: ...

    async def reply_to_item(self, item_id: str, text: str) -> str: ...

    async def distinguish_comment(self, comment_id: str, sticky: bool = False) -> None: ...

    async def lock_comment(self, comment_id: str) -> None: ...

    # Роли в сообществе
    async def is_moderator(self, community: str, username: str) -> bool: ...

    async def is_approved_user(self, community: str, username: str) -> bool: ...

    async def is_banned(self, community: str, username: str) -> bool: ...

    async def ban_user(
        self,
        community: str,
        username: str,
        reason: str,
        message: Optional[str] = None,
        duration_days: Optional[int] = None,
    ) -> None: ...

    # Сообщения и заметки
    async def send_modmail(self, community: str, subject: str, body: str) -> None: ...

    async def send_private_message(self, to: str, subject: str, text: str) -> None: ...

    async def add_mod_note(
        self,
        community: str,
        username: str,
        note: str,
        label: str,
        item_id: Optional[str] = None,
    ) -> None: ...

    async def add_toolbox_note(self, community: str, username: str, note: str, permalink: str) -> None: ...

    async def get_mod_notes(self, community: str, username: str) -> List[str]: ...

    async def get_moderation_log(
        self,
        community: str,
        moderator: str,
        action: str,
        limit: int = 1000,
    ) -> List[ModLogEntry]: ...
