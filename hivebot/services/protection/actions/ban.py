# hivebot/services/protection/actions/ban.py
"""Бан пользователя в сообществе."""

import logging

from hivebot.services.protection.actions.base import ActionContext, EnforcementAction
from hivebot.services.protection.templates import render

logger = logging.getLogger(__name__)

BAN_REASON_PREFIX = "HiveBot"
DEFAULT_BAN_REASON = "Banned by HiveBot. Matches in {{sublist}}"
BAN_REASON_LIMIT = 100
BAN_MESSAGE_LIMIT = 1000


class BanAction(EnforcementAction):
    name = "ban"
    # Бан не привязан к конкретному элементу
    requires_target = False

    def is_enabled(self, ctx: ActionContext) -> bool:
        return ctx.settings.ban_enabled and ctx.verdict.is_enforceable

    async def execute(self, ctx: ActionContext) -> None:
        settings = ctx.settings

        if await ctx.platform.is_banned(ctx.community, ctx.username):
            logger.info(f"[ACTION] {ctx.username} уже забанен, пропускаем")
            return

        message = None
        if settings.ban_message:
            message = render(settings.ban_message, ctx.verdict, ctx.username)[:BAN_MESSAGE_LIMIT]

        if settings.ban_note:
            reason = f"{BAN_REASON_PREFIX}: {settings.ban_note}"
        else:
            reason = DEFAULT_BAN_REASON
        reason = render(reason, ctx.verdict, ctx.username)[:BAN_REASON_LIMIT]

        await ctx.platform.ban_user(
            ctx.community,
            ctx.username,
            reason=reason,
            message=message,
            # 0 дней означает бессрочный бан
            duration_days=settings.ban_duration_days or None,
        )

        await ctx.user_state.record_ban(ctx.username)
        await ctx.user_state.schedule_liveness_check(ctx.username)

        logger.info(f"[ACTION] 🔨 {ctx.username} забанен в {ctx.community}")
