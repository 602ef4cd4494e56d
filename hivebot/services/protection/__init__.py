# hivebot/services/protection/__init__.py
"""
Модуль защиты сообщества.

Содержит:
- matcher.py - сопоставление доменов и проверка порогов
- classifier.py - загрузка и разметка истории пользователя
- verdict_cache.py - вердикт и его кэш
- decision_engine.py - вычисление вердикта
- check_queue.py - отложенная проверка новых элементов
- second_check.py - повторная проверка прошедших пользователей
- cleanup_service.py - очистка данных удалённых аккаунтов
- actions/ - действия защиты и их конвейер
- app.py - фасад для слоя интеграции с платформой
"""

# Импортируем сервисы для удобного доступа извне модуля
from hivebot.services.protection.settings_service import (
    ProtectionSettings,
    SettingsValidationError,
    get_protection_settings,
    save_protection_settings,
    validate_settings,
)

from hivebot.services.protection.verdict_cache import Verdict, VerdictCache
from hivebot.services.protection.decision_engine import DecisionEngine
from hivebot.services.protection.actions.pipeline import EnforcementPipeline
from hivebot.services.protection.app import ProtectorApp, database_settings_loader

__all__ = [
    # Settings
    "ProtectionSettings",
    "SettingsValidationError",
    "get_protection_settings",
    "save_protection_settings",
    "validate_settings",
    # Engine
    "Verdict",
    "VerdictCache",
    "DecisionEngine",
    "EnforcementPipeline",
    # App
    "ProtectorApp",
    "database_settings_loader",
]
