# hivebot/__init__.py
"""
HiveBot - защита сообщества от пользователей с нежелательной историей.

Бот анализирует недавнюю историю пользователя (сообщества и домены),
выносит вердикт и однократно применяет настроенный набор действий.
"""

__version__ = "1.4.0"
