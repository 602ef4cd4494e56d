# hivebot/services/protection/actions/reply.py
"""Ответ на элемент пользователя по шаблону."""

import logging

from hivebot.services.protection.actions.base import ActionContext, EnforcementAction
from hivebot.services.protection.templates import redact_domains, render

logger = logging.getLogger(__name__)

REPLY_FOOTER = (
    "*I am a bot, and this action was performed automatically. "
    "Please [contact the moderators of this subreddit](/message/compose/?to=/r/{community}) "
    "if you have any questions or concerns.*"
)


class ReplyAction(EnforcementAction):
    name = "reply"

    def is_enabled(self, ctx: ActionContext) -> bool:
        return super().is_enabled(ctx) and bool(ctx.settings.reply_template)

    async def execute(self, ctx: ActionContext) -> None:
        settings = ctx.settings
        counter_key = ctx.keys.replies_made(ctx.username)

        if settings.max_replies_per_user > 0:
            replies_made = int(await ctx.redis.get(counter_key) or 0)
            if replies_made >= settings.max_replies_per_user:
                logger.info(f"[ACTION] Лимит ответов для {ctx.username} исчерпан ({replies_made})")
                return

        await ctx.redis.incrby(counter_key, 1)
        # Счётчик нужно удалить, если аккаунт исчезнет
        await ctx.user_state.schedule_liveness_check(ctx.username)

        text = render(settings.reply_template, ctx.verdict, ctx.username)
        text = redact_domains(text, settings.sitewide_banned_domains)
        text = f"{text.strip()}\n\n{REPLY_FOOTER.format(community=ctx.target.community)}"

        reply_id = await ctx.platform.reply_to_item(ctx.target.id, text)
        # Закрепить можно только ответ на пост
        await ctx.platform.distinguish_comment(reply_id, sticky=ctx.target.is_post and settings.sticky_reply)
        if settings.lock_reply:
            await ctx.platform.lock_comment(reply_id)

        logger.info(f"[ACTION] 💬 Ответ оставлен на {ctx.target.id}")
