# hivebot/services/protection/exemptions.py
"""
Проверки ролей пользователя в сообществе.
"""

import logging

from hivebot.platform import PlatformClient, PlatformError

logger = logging.getLogger(__name__)

AUTOMODERATOR = "AutoModerator"


def is_automation_account(username: str, community: str, app_account: str) -> bool:
    """Служебные аккаунты: автомодератор, команда модераторов и само приложение."""
    lowered = username.lower()
    return lowered in (
        AUTOMODERATOR.lower(),
        f"{community}-modteam".lower(),
        app_account.lower(),
    )


async def is_moderator(platform: PlatformClient, community: str, username: str, app_account: str = "") -> bool:
    if is_automation_account(username, community, app_account):
        return True

    try:
        return await platform.is_moderator(community, username)
    except PlatformError as exc:
        # Закрытое сообщество: считаем, что не модератор
        logger.warning(f"[ENGINE] Не удалось проверить модератора {username} в {community}: {exc}")
        return False


async def is_approved_user(platform: PlatformClient, community: str, username: str) -> bool:
    try:
        return await platform.is_approved_user(community, username)
    except PlatformError as exc:
        logger.warning(f"[ENGINE] Не удалось проверить одобренного пользователя {username}: {exc}")
        return False
