# hivebot/services/protection/actions/modmail.py
"""Сообщение в почту модераторов."""

import logging

from hivebot.services.protection.actions.base import ActionContext, EnforcementAction

logger = logging.getLogger(__name__)


def build_summary(ctx: ActionContext) -> str:
    """Собирает текст сообщения в markdown."""
    verdict = ctx.verdict
    lines = [f"User /u/{ctx.username} has been identified by HiveBot as potentially having undesirable history.", ""]

    if verdict.matched_communities:
        lines.append(f"* Problematic Subreddits found: {', '.join(verdict.matched_communities)}")
    if verdict.matched_domains:
        lines.append(f"* Problematic Domains found: {', '.join(verdict.matched_domains)}")
    if verdict.matched_communities or verdict.matched_domains:
        lines.append("")

    lines.append(f"User was caught after making [this post or comment]({ctx.target.permalink}).")
    return "\n".join(lines)


class ModmailAction(EnforcementAction):
    name = "modmail"

    def is_enabled(self, ctx: ActionContext) -> bool:
        return super().is_enabled(ctx) and ctx.settings.modmail_enabled

    async def execute(self, ctx: ActionContext) -> None:
        approvals = await ctx.user_state.approval_count(ctx.username)
        threshold = ctx.settings.modmail_approval_threshold
        if threshold and approvals >= threshold:
            logger.info(f"[ACTION] У {ctx.username} слишком много одобрений ({approvals}), сообщение не нужно")
            return

        await ctx.platform.send_modmail(
            ctx.community,
            subject=f"HiveBot notice for /u/{ctx.username}",
            body=build_summary(ctx),
        )
        logger.info(f"[ACTION] 📨 Сообщение модераторам о {ctx.username} отправлено")
