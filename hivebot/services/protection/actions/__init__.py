# hivebot/services/protection/actions/__init__.py
"""
Действия защиты.

Набор фиксирован и упорядочен; каждое действие независимо решает,
включено ли оно.
"""

from typing import List

from hivebot.services.protection.actions.base import ActionContext, EnforcementAction
from hivebot.services.protection.actions.ban import BanAction
from hivebot.services.protection.actions.mod_note import ModNoteAction
from hivebot.services.protection.actions.modmail import ModmailAction
from hivebot.services.protection.actions.remove import RemoveAction
from hivebot.services.protection.actions.reply import ReplyAction
from hivebot.services.protection.actions.report import ReportAction
from hivebot.services.protection.actions.webhook import WebhookAction

ALL_ACTIONS = (
    BanAction,
    ReportAction,
    RemoveAction,
    ModmailAction,
    ReplyAction,
    ModNoteAction,
    WebhookAction,
)


def default_actions() -> List[EnforcementAction]:
    return [action_cls() for action_cls in ALL_ACTIONS]


__all__ = [
    "ActionContext",
    "EnforcementAction",
    "ALL_ACTIONS",
    "default_actions",
    "BanAction",
    "ReportAction",
    "RemoveAction",
    "ModmailAction",
    "ReplyAction",
    "ModNoteAction",
    "WebhookAction",
]
