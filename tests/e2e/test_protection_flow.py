"""
E2E-тесты для защиты сообщества.

Тестирует полный поток внутри процесса:
- Событие о новом элементе -> очередь проверки
- Проход очереди по расписанию -> вердикт
- Вердикт -> конвейер действий
- Действия модераторов -> сброс кэша и счётчики одобрений

Платформа подменяется AsyncMock, Redis - fakeredis.

Запуск:
    pytest tests/e2e/test_protection_flow.py -v -s
"""

from datetime import timedelta

import pytest

from hivebot.constants import CHECK_QUEUE_JOB, CLEANUP_JOB, SECOND_CHECK_JOB
from hivebot.platform import ContentKind, utcnow
from hivebot.scheduler import AsyncioJobScheduler
from hivebot.services.protection.app import ProtectorApp
from hivebot.services.protection.settings_service import PrevBanBehaviour
from hivebot.services.protection.user_state import to_millis

COMMUNITY = "homesub"
APP_ACCOUNT = "hive-protect"


async def make_queue_due(redis):
    """Сдвигает все записи очереди проверки в прошлое."""
    past = to_millis(utcnow() - timedelta(seconds=1))
    members = await redis.zrange("UserCheckQueue", 0, -1)
    if members:
        await redis.zadd("UserCheckQueue", {member: past for member in members})


@pytest.fixture
def settings_holder(settings_factory):
    """Изменяемая ссылка на снимок настроек для загрузчика."""
    return {"settings": settings_factory()}


@pytest.fixture
def app(fake_redis, platform, scheduler, settings_holder):
    async def loader():
        return settings_holder["settings"]

    return ProtectorApp(fake_redis, platform, scheduler, COMMUNITY, APP_ACCOUNT, loader)


@pytest.fixture
def new_post(platform, item_factory):
    post = item_factory(COMMUNITY, kind=ContentKind.POST, item_id="t3_new", days_ago=0)
    platform.get_item.return_value = post
    return post


# ============================================================
# СОБЫТИЕ -> ОЧЕРЕДЬ -> ВЕРДИКТ -> ДЕЙСТВИЯ
# ============================================================

class TestContentFlow:

    async def test_spammer_is_banned_and_content_removed(
        self, app, fake_redis, platform, item_factory, settings_holder, settings_factory, new_post
    ):
        platform.get_user_history.return_value = [
            item_factory("badsub1", days_ago=1),
            item_factory("badsub2", days_ago=2),
            item_factory("badsub3", days_ago=3),
        ]
        settings_holder["settings"] = settings_factory(combined_threshold=2, min_distinct_communities=2)

        assert await app.on_content_created("t3_new", "spammer")
        # До истечения задержки проверка не выполняется
        assert await app.on_scheduled_debounce_sweep(from_cron=True) == 0

        await make_queue_due(fake_redis)
        processed = await app.on_scheduled_debounce_sweep(from_cron=True)

        assert processed == 1
        verdict = await app.cache.get("spammer")
        assert verdict.is_actionable
        assert sorted(verdict.matched_communities) == ["badsub1", "badsub2", "badsub3"]

        platform.ban_user.assert_awaited_once()
        platform.remove_item.assert_awaited_once_with("t3_new", is_spam=False)
        assert await app.user_state.last_banned_at("spammer") is not None
        assert await fake_redis.zcard("UserCheckQueue") == 0

    async def test_clean_user_gets_second_check(
        self, app, fake_redis, platform, settings_holder, settings_factory, new_post
    ):
        settings_holder["settings"] = settings_factory(second_check_interval_hours=12)

        await app.on_content_created("t3_new", "newbie")
        await make_queue_due(fake_redis)
        await app.on_scheduled_debounce_sweep(from_cron=True)

        platform.ban_user.assert_not_awaited()
        platform.remove_item.assert_not_awaited()
        assert await fake_redis.zscore("secondCheckQueue", "newbie") is not None

    async def test_second_check_catches_later_activity(
        self, app, fake_redis, platform, item_factory, settings_holder, settings_factory
    ):
        settings_holder["settings"] = settings_factory(second_check_interval_hours=12)
        await app.engine.evaluate("sleeper", settings_holder["settings"])

        # Пользователь успел наследить в отслеживаемых сообществах
        own_comment = item_factory(COMMUNITY, item_id="t1_own")
        platform.get_user_history.return_value = [
            own_comment,
            item_factory("badsub1"),
            item_factory("badsub2"),
        ]
        await fake_redis.zadd("secondCheckQueue", {"sleeper": to_millis(utcnow() - timedelta(minutes=1))})

        actioned = await app.on_scheduled_second_check()

        assert actioned == ["sleeper"]
        platform.ban_user.assert_awaited_once()
        # Элемент найден в истории пользователя в этом сообществе
        platform.remove_item.assert_awaited_once_with("t1_own", is_spam=False)

    async def test_automation_accounts_never_queued(self, app, fake_redis):
        assert not await app.on_content_created("t3_new", "AutoModerator")
        assert not await app.on_content_created("t3_new", APP_ACCOUNT)
        assert await fake_redis.zcard("UserCheckQueue") == 0


class TestPreviouslyBannedUser:

    async def test_notifications_continue_without_reban(
        self, app, fake_redis, platform, item_factory, settings_holder, settings_factory, new_post
    ):
        platform.get_user_history.return_value = [
            item_factory("badsub1", days_ago=1),
            item_factory("badsub2", days_ago=2),
        ]
        settings_holder["settings"] = settings_factory(
            prev_ban_behaviour=PrevBanBehaviour.NEVER_REBAN,
            apply_ban_behaviour_to_other_actions=False,
            remove_enabled=False,
            report_enabled=True,
            modmail_enabled=True,
            reply_template="Hello {{username}}",
        )
        await app.user_state.record_ban("returning", utcnow() - timedelta(days=30))

        await app.on_content_created("t3_new", "returning")
        await make_queue_due(fake_redis)
        await app.on_scheduled_debounce_sweep(from_cron=True)

        verdict = await app.cache.get("returning")
        assert verdict.is_actionable
        assert not verdict.is_enforceable

        platform.ban_user.assert_not_awaited()
        platform.remove_item.assert_not_awaited()
        platform.reply_to_item.assert_awaited_once()
        platform.report_item.assert_awaited_once()
        platform.send_modmail.assert_awaited_once()

    async def test_ban_policy_applied_to_all_actions(
        self, app, fake_redis, platform, item_factory, settings_holder, settings_factory, new_post
    ):
        platform.get_user_history.return_value = [
            item_factory("badsub1", days_ago=1),
            item_factory("badsub2", days_ago=2),
        ]
        settings_holder["settings"] = settings_factory(
            apply_ban_behaviour_to_other_actions=True,
            modmail_enabled=True,
            reply_template="Hello",
        )
        await app.user_state.record_ban("returning", utcnow() - timedelta(days=30))

        await app.on_content_created("t3_new", "returning")
        await make_queue_due(fake_redis)
        await app.on_scheduled_debounce_sweep(from_cron=True)

        platform.ban_user.assert_not_awaited()
        platform.remove_item.assert_not_awaited()
        platform.reply_to_item.assert_not_awaited()
        platform.send_modmail.assert_not_awaited()


# ============================================================
# ДЕЙСТВИЯ МОДЕРАТОРОВ
# ============================================================

class TestModeratorFeedback:

    async def test_approvals_stop_reports(
        self, app, fake_redis, platform, item_factory, settings_holder, settings_factory
    ):
        history = [item_factory("badsub1"), item_factory("badsub2")]
        platform.get_user_history.return_value = history
        settings_holder["settings"] = settings_factory(
            ban_enabled=False,
            remove_enabled=False,
            report_enabled=True,
            report_approval_threshold=2,
        )

        for index in range(3):
            item_id = f"t1_item{index}"
            platform.get_item.return_value = item_factory(COMMUNITY, item_id=item_id)
            await app.on_content_created(item_id, "regular")
            await make_queue_due(fake_redis)
            await app.on_scheduled_debounce_sweep(from_cron=True)
            # Модераторы одобряют элемент, на который пожаловалось приложение
            await app.on_moderation_action("approvecomment", "regular", item_id)

        assert platform.report_item.await_count == 2
        # Третий элемент не получил жалобу, его одобрение не учитывается
        assert await app.user_state.approval_count("regular") == 2

    async def test_manual_exemption(
        self, app, fake_redis, platform, item_factory, settings_holder, new_post
    ):
        platform.get_user_history.return_value = [item_factory("badsub1"), item_factory("badsub2")]

        assert await app.on_manual_exemption_toggle("friend")
        await app.on_content_created("t3_new", "friend")
        await make_queue_due(fake_redis)
        await app.on_scheduled_debounce_sweep(from_cron=True)

        platform.ban_user.assert_not_awaited()
        platform.get_user_history.assert_not_awaited()

    async def test_unban_resets_cached_verdict(
        self, app, fake_redis, platform, item_factory, settings_holder, new_post
    ):
        platform.get_user_history.return_value = [item_factory("badsub1"), item_factory("badsub2")]
        await app.engine.evaluate("appealer", settings_holder["settings"])
        assert await app.cache.get("appealer") is not None

        await app.on_moderation_action("unbanuser", "appealer")

        assert await app.cache.get("appealer") is None


# ============================================================
# УСТАНОВКА И ПЛАНИРОВЩИК
# ============================================================

class TestInstall:

    async def test_install_schedules_jobs(self, app, scheduler, platform):
        await app.on_install_or_upgrade()

        names = sorted(job.name for job in scheduler.jobs)
        assert names == sorted([CHECK_QUEUE_JOB, CLEANUP_JOB, SECOND_CHECK_JOB])
        platform.get_moderation_log.assert_awaited_once()

    async def test_register_jobs_routes_handlers(self, fake_redis, platform, settings_factory):
        scheduler = AsyncioJobScheduler()
        settings = settings_factory()

        async def loader():
            return settings

        app = ProtectorApp(fake_redis, platform, scheduler, COMMUNITY, APP_ACCOUNT, loader)
        app.register_jobs(scheduler)

        try:
            assert set(scheduler._handlers) == {CHECK_QUEUE_JOB, CLEANUP_JOB, SECOND_CHECK_JOB}
            assert await scheduler._handlers[CHECK_QUEUE_JOB]({"from_cron": True}) == 0
            assert await scheduler._handlers[SECOND_CHECK_JOB]({}) == []
            assert await scheduler._handlers[CLEANUP_JOB]({"from_cron": True}) == 0
        finally:
            await scheduler.shutdown()
