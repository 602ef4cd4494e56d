# hivebot/services/protection/actions/webhook.py
"""
Оповещение в Discord или Slack через вебхук.

Доставка без гарантий: ошибки только логируются и не мешают
остальным действиям.
"""

# Импортируем asyncio для обработки таймаута
import asyncio
# Импортируем логгер для записи событий
import logging
# Импортируем типы для аннотаций
from typing import Any, Dict

# Импортируем aiohttp для асинхронных HTTP запросов
import aiohttp

from hivebot.services.protection.actions.base import ActionContext, EnforcementAction

# Создаём логгер для этого модуля
logger = logging.getLogger(__name__)

# Таймаут запроса к вебхуку (секунды)
WEBHOOK_TIMEOUT_SECONDS = 10


def is_discord_webhook(url: str) -> bool:
    return "discord.com" in url or "discordapp.com" in url


def build_webhook_payload(ctx: ActionContext, url: str) -> Dict[str, Any]:
    """
    Формирует тело запроса.

    Discord ожидает поле content, Slack - поле text. Для Discord ссылка
    может быть обёрнута в <...>, чтобы не показывать превью.
    """
    verdict = ctx.verdict
    message = f"/u/{ctx.username} has been flagged by HiveBot on /r/{ctx.community}.\n"

    if verdict.matched_communities:
        message += f"* Problematic Subreddits found: {', '.join(verdict.matched_communities)}\n"
    if verdict.matched_domains:
        message += f"* Problematic Domains found: {', '.join(verdict.matched_domains)}\n"

    kind = ctx.target.kind.value
    link = ctx.target.permalink
    # Подавление превью работает только в Discord
    if "slack.com" in url or not ctx.settings.discord_suppress_embeds:
        message += f"User was caught after making [this {kind}]({link})."
    else:
        message += f"User was caught after making [this {kind}](<{link}>)."

    if is_discord_webhook(url):
        return {"content": message}
    return {"text": message}


async def send_webhook(url: str, payload: Dict[str, Any]) -> bool:
    """
    Отправляет POST на вебхук.

    Returns:
        bool: True если сервер ответил 2xx
    """
    try:
        # Создаём таймаут для запроса (не зависаем если сервис недоступен)
        timeout = aiohttp.ClientTimeout(total=WEBHOOK_TIMEOUT_SECONDS)

        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.post(url, json=payload) as response:
                if response.status >= 300:
                    logger.warning(f"[ACTION] Вебхук вернул статус {response.status}")
                    return False
                return True

    except asyncio.TimeoutError:
        logger.warning("[ACTION] Таймаут вебхука")
        return False

    except aiohttp.ClientError as e:
        logger.error(f"[ACTION] Ошибка сети при отправке вебхука: {e}")
        return False


class WebhookAction(EnforcementAction):
    name = "webhook"

    def is_enabled(self, ctx: ActionContext) -> bool:
        return super().is_enabled(ctx) and bool(ctx.settings.webhook_url)

    async def execute(self, ctx: ActionContext) -> None:
        url = ctx.settings.webhook_url
        if await send_webhook(url, build_webhook_payload(ctx, url)):
            logger.info(f"[ACTION] 🔔 Оповещение о {ctx.username} отправлено в вебхук")
