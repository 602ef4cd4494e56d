# hivebot/services/protection/actions/remove.py
"""Удаление элемента и, при необходимости, чистка истории пользователя."""

import asyncio
import logging

from hivebot.platform import HistoryKind
from hivebot.services.protection.actions.base import ActionContext, EnforcementAction
from hivebot.services.protection.settings_service import PurgeOption

logger = logging.getLogger(__name__)

PURGE_LIMIT = 1000

# Период выборки истории для каждой опции чистки
PURGE_TIMEFRAMES = {
    PurgeOption.LAST_DAY: "day",
    PurgeOption.LAST_WEEK: "week",
    PurgeOption.LAST_MONTH: "month",
    PurgeOption.ALL_TIME: None,
}


class RemoveAction(EnforcementAction):
    name = "remove"

    def is_enabled(self, ctx: ActionContext) -> bool:
        # Как и бан, удаление только для вердикта, допускающего бан
        return ctx.settings.remove_enabled and ctx.verdict.is_enforceable

    async def execute(self, ctx: ActionContext) -> None:
        is_spam = ctx.settings.remove_as_spam
        item_ids = [ctx.target.id]

        purge = ctx.settings.purge_option
        if purge != PurgeOption.NONE:
            history = await ctx.platform.get_user_history(
                ctx.username,
                kind=HistoryKind.ALL,
                limit=PURGE_LIMIT,
                timeframe=PURGE_TIMEFRAMES[purge],
            )
            own = ctx.community.lower()
            for item in history:
                if item.community.lower() == own and item.id not in item_ids:
                    item_ids.append(item.id)

        await asyncio.gather(*(ctx.platform.remove_item(item_id, is_spam=is_spam) for item_id in item_ids))
        logger.info(f"[ACTION] Удалено элементов {ctx.username}: {len(item_ids)}")
