# hivebot/constants.py
"""
Константы приложения: имена задач планировщика, ключи Redis и TTL.

Все ключи собраны в KeySpace, который передаётся сервисам явно.
Так несколько сообществ могут делить один Redis (через префикс),
а тесты подменяют хранилище без глобального состояния.
"""

from dataclasses import dataclass


# ═══════════════════════════════════════════════════════════════════════════════
# ИМЕНА ЗАДАЧ ПЛАНИРОВЩИКА
# ═══════════════════════════════════════════════════════════════════════════════

CHECK_QUEUE_JOB = "checkUserQueue"
SECOND_CHECK_JOB = "secondCheckJob"
CLEANUP_JOB = "cleanupDeletedAccounts"


# ═══════════════════════════════════════════════════════════════════════════════
# ТАЙМИНГИ (секунды)
# ═══════════════════════════════════════════════════════════════════════════════

# Вердикт с совпадениями кэшируем коротко: после апелляции нужна быстрая перепроверка
POSITIVE_VERDICT_TTL = 60 * 60
# Чистый вердикт кэшируем надолго, чтобы не нагружать платформу
NEGATIVE_VERDICT_TTL = 12 * 60 * 60

# Задержка перед первой проверкой (лаг чтения после записи на платформе)
CHECK_QUEUE_DELAY = 10
# Бюджет времени одного прохода очереди / очистки
QUEUE_RUN_BUDGET = 10
CLEANUP_RUN_BUDGET = 10
# Флаги "недавно запускался"
CHECK_QUEUE_RECENTLY_RUN_TTL = 30
CLEANUP_RECENTLY_RUN_TTL = 60

# Маркер "элемент уже проверен" и защита от повторного отчёта о блокировке
ALREADY_CHECKED_TTL = 6 * 60 * 60
USER_BLOCKING_TTL = 7 * 24 * 60 * 60
ITEM_REPORTED_TTL = 7 * 24 * 60 * 60
APP_IS_MOD_TTL = 7 * 24 * 60 * 60

# Повторная проверка: маркер "уже запланирован" и размер пачки
SECOND_CHECKED_TTL = 28 * 24 * 60 * 60
SECOND_CHECK_BATCH_SIZE = 50
# Минимальный зазор между разовой и периодической задачей
SECOND_CHECK_MIN_GAP = 2 * 60
SECOND_CHECK_ADHOC_DELAY = 60

# Очистка удалённых аккаунтов
DAYS_BETWEEN_CLEANUP_CHECKS = 28


# ═══════════════════════════════════════════════════════════════════════════════
# КЛЮЧИ REDIS
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class KeySpace:
    """
    Пространство ключей Redis.

    Attributes:
        prefix: Общий префикс для всех ключей (пустой - исторические имена)
    """
    prefix: str = ""

    def _key(self, name: str) -> str:
        return f"{self.prefix}{name}"

    # Отсортированные множества (score = время готовности в миллисекундах)
    @property
    def check_queue(self) -> str:
        return self._key("UserCheckQueue")

    @property
    def second_check_queue(self) -> str:
        return self._key("secondCheckQueue")

    @property
    def cleanup_log(self) -> str:
        return self._key("cleanupStore")

    @property
    def approvals(self) -> str:
        return self._key("ItemApprovalCount")

    # Служебные флаги
    @property
    def check_queue_recently_run(self) -> str:
        return self._key("UserCheckQueueRunRecently")

    @property
    def cleanup_recently_run(self) -> str:
        return self._key("cleanupRecentlyRun")

    @property
    def cleanup_populated(self) -> str:
        return self._key("CleanupPopulated")

    @property
    def prev_time_between_checks(self) -> str:
        return self._key("prevTimeBetweenChecks")

    @property
    def oversize_settings_checked(self) -> str:
        return self._key("OneOffSizeCheck")

    # Ключи на пользователя
    def verdict(self, username: str) -> str:
        return self._key(f"participation-lastcheck-{username}")

    def prev_banned(self, username: str) -> str:
        return self._key(f"participation-prevbanned-{username}")

    def mod_note_added(self, username: str) -> str:
        return self._key(f"modNoteAdded:{username}")

    def replies_made(self, username: str) -> str:
        return self._key(f"repliesMade:{username}")

    def user_exempt(self, username: str) -> str:
        return self._key(f"userExempt:{username}")

    def anti_block_note_added(self, username: str) -> str:
        return self._key(f"antiBlockModNoteAdded~{username}")

    def user_blocking(self, username: str) -> str:
        return self._key(f"userBlocking~{username}")

    def second_checked(self, username: str) -> str:
        return self._key(f"secondchecked~{username}")

    # Ключи на элемент контента
    def already_checked(self, item_id: str) -> str:
        return self._key(f"alreadyChecked~{item_id}")

    def item_reported(self, item_id: str) -> str:
        return self._key(f"itemreported~{item_id}")

    # Ключи на сообщество
    def app_is_mod_of(self, community: str) -> str:
        return self._key(f"appUserIsModOf~{community}")


DEFAULT_KEYS = KeySpace()
