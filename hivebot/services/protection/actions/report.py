# hivebot/services/protection/actions/report.py
"""Жалоба на элемент (только если элемент остаётся на месте)."""

import logging

from hivebot.constants import ITEM_REPORTED_TTL
from hivebot.platform import utcnow
from hivebot.services.protection.actions.base import ActionContext, EnforcementAction
from hivebot.services.protection.templates import render
from hivebot.services.protection.user_state import to_millis

logger = logging.getLogger(__name__)


class ReportAction(EnforcementAction):
    name = "report"

    def is_enabled(self, ctx: ActionContext) -> bool:
        settings = ctx.settings
        # Жаловаться на удалённый элемент бессмысленно
        return (
            super().is_enabled(ctx)
            and settings.report_enabled
            and bool(settings.report_template)
            and not settings.remove_enabled
        )

    async def execute(self, ctx: ActionContext) -> None:
        approvals = await ctx.user_state.approval_count(ctx.username)
        threshold = ctx.settings.report_approval_threshold
        if threshold and approvals >= threshold:
            logger.info(f"[ACTION] У {ctx.username} слишком много одобрений ({approvals}), жалоба не нужна")
            return

        reason = render(ctx.settings.report_template, ctx.verdict, ctx.username, approvals=approvals)
        await ctx.platform.report_item(ctx.target.id, reason)
        # По этому маркеру одобрение элемента увеличит счётчик
        await ctx.redis.set(ctx.keys.item_reported(ctx.target.id), str(to_millis(utcnow())), ex=ITEM_REPORTED_TTL)

        logger.info(f"[ACTION] 🚩 Жалоба на {ctx.target.id}")
