# hivebot/services/protection/actions/mod_note.py
"""Заметка модераторов о пользователе (один раз на пользователя)."""

import asyncio
import logging

from hivebot.platform import utcnow
from hivebot.services.protection.actions.base import ActionContext, EnforcementAction
from hivebot.services.protection.settings_service import ModNoteType
from hivebot.services.protection.templates import render
from hivebot.services.protection.user_state import to_millis

logger = logging.getLogger(__name__)

LABEL_BOT_BAN = "BOT_BAN"
LABEL_ABUSE_WARNING = "ABUSE_WARNING"


class ModNoteAction(EnforcementAction):
    name = "mod_note"

    def is_enabled(self, ctx: ActionContext) -> bool:
        return super().is_enabled(ctx) and ctx.settings.mod_note_enabled and bool(ctx.settings.mod_note_template)

    async def execute(self, ctx: ActionContext) -> None:
        marker = ctx.keys.mod_note_added(ctx.username)
        if await ctx.redis.exists(marker):
            return

        note = render(ctx.settings.mod_note_template, ctx.verdict, ctx.username)
        note_type = ctx.settings.mod_note_type
        calls = []

        if note_type in (ModNoteType.NATIVE, ModNoteType.BOTH):
            label = LABEL_BOT_BAN if ctx.settings.ban_enabled else LABEL_ABUSE_WARNING
            calls.append(ctx.platform.add_mod_note(ctx.community, ctx.username, note, label, item_id=ctx.target.id))

        if note_type in (ModNoteType.TOOLBOX, ModNoteType.BOTH):
            calls.append(ctx.platform.add_toolbox_note(ctx.community, ctx.username, note, ctx.target.permalink))

        calls.append(ctx.redis.set(marker, str(to_millis(utcnow()))))
        await asyncio.gather(*calls)

        logger.info(f"[ACTION] 📝 Заметка о {ctx.username} добавлена ({note_type.value})")
