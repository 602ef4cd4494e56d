# hivebot/services/protection/actions/base.py
"""
Базовый интерфейс действий защиты.

Каждое действие решает, включено ли оно для данного контекста,
и выполняет себя. Контекст неизменяем: действия только читают
снимок настроек и вердикт.
"""

# Импортируем abc для абстрактного интерфейса
from abc import ABC, abstractmethod
# Импортируем dataclass для контекста
from dataclasses import dataclass
# Импортируем типы для аннотаций
from typing import Optional

# Импортируем асинхронный клиент Redis
from redis.asyncio import Redis

# Импортируем ключи
from hivebot.constants import KeySpace
# Импортируем интерфейс платформы
from hivebot.platform import ContentItem, PlatformClient
# Импортируем снимок настроек
from hivebot.services.protection.settings_service import ProtectionSettings
# Импортируем хранилище состояния пользователя
from hivebot.services.protection.user_state import UserStateStore
# Импортируем вердикт
from hivebot.services.protection.verdict_cache import Verdict


@dataclass(frozen=True)
class ActionContext:
    """
    Всё, что нужно действию.

    Attributes:
        username: Пользователь, против которого выполняются действия
        community: Сообщество, где работает приложение
        target: Элемент, к которому привязаны действия (может отсутствовать)
        verdict: Вердикт проверки
        settings: Снимок настроек
        platform: Клиент платформы
        redis: Клиент Redis
        keys: Пространство ключей
        user_state: Хранилище состояния пользователя
    """
    username: str
    community: str
    target: Optional[ContentItem]
    verdict: Verdict
    settings: ProtectionSettings
    platform: PlatformClient
    redis: Redis
    keys: KeySpace
    user_state: UserStateStore


class EnforcementAction(ABC):
    """Одно действие защиты."""

    name: str = "action"
    # Действию нужен конкретный пост или комментарий
    requires_target: bool = True

    def is_enabled(self, ctx: ActionContext) -> bool:
        """
        Включено ли действие.

        Если политика бана распространяется на все действия, а пользователя
        банить нельзя, действие пропускается.
        """
        if ctx.settings.apply_ban_behaviour_to_other_actions and not ctx.verdict.is_enforceable:
            return False
        return True

    @abstractmethod
    async def execute(self, ctx: ActionContext) -> None:
        ...

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.name}>"
