"""
Unit-тесты для очереди проверки новых элементов.
"""

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from hivebot.constants import CHECK_QUEUE_JOB
from hivebot.platform import utcnow
from hivebot.services.protection.check_queue import (
    BLOCKING_NOTE,
    BLOCKING_REPORT_REASON,
    UserCheckQueue,
    parse_entry,
    should_act_on,
)
from hivebot.services.protection.settings_service import ContentTypeToActOn
from hivebot.services.protection.user_state import from_millis, to_millis
from hivebot.services.protection.verdict_cache import Verdict

COMMUNITY = "homesub"
APP_ACCOUNT = "hive-protect"

BAD_VERDICT = Verdict(matched_communities=("badsub1",), is_enforceable=True)


@pytest.fixture
def engine():
    mock = AsyncMock()
    mock.evaluate.return_value = BAD_VERDICT
    return mock


@pytest.fixture
def pipeline():
    return AsyncMock()


@pytest.fixture
def queue(fake_redis, platform, scheduler, engine, pipeline):
    return UserCheckQueue(fake_redis, platform, scheduler, engine, pipeline, COMMUNITY, APP_ACCOUNT)


async def make_due(redis, *members):
    past = to_millis(utcnow() - timedelta(seconds=1))
    await redis.zadd("UserCheckQueue", {member: past for member in members})


class TestHelpers:

    def test_parse_entry(self):
        assert parse_entry("someone:t3_abc") == ("someone", "t3_abc")

    @pytest.mark.parametrize("item_id, content_type, expected", [
        ("t3_a", ContentTypeToActOn.POSTS_AND_COMMENTS, True),
        ("t1_a", ContentTypeToActOn.POSTS_AND_COMMENTS, True),
        ("t3_a", ContentTypeToActOn.POSTS_ONLY, True),
        ("t1_a", ContentTypeToActOn.POSTS_ONLY, False),
        ("t3_a", ContentTypeToActOn.COMMENTS_ONLY, False),
        ("t1_a", ContentTypeToActOn.COMMENTS_ONLY, True),
    ])
    def test_should_act_on(self, item_id, content_type, expected):
        assert should_act_on(item_id, content_type) is expected


class TestEnqueue:

    async def test_enqueue_with_delay(self, queue, fake_redis):
        assert await queue.enqueue("someone", "t3_abc")

        score = await fake_redis.zscore("UserCheckQueue", "someone:t3_abc")
        assert from_millis(score) > utcnow() + timedelta(seconds=5)
        # Запись ещё не готова
        assert await queue.due_entries() == []

    @pytest.mark.parametrize("username", ["AutoModerator", "homesub-ModTeam", "Hive-Protect"])
    async def test_automation_accounts_skipped(self, queue, fake_redis, username):
        assert not await queue.enqueue(username, "t3_abc")
        assert await fake_redis.zcard("UserCheckQueue") == 0


class TestRun:

    async def test_processes_due_entries(self, queue, fake_redis, pipeline, settings_factory):
        await make_due(fake_redis, "spammer:t3_abc")
        settings = settings_factory()

        processed = await queue.run(settings, from_cron=True)

        assert processed == 1
        pipeline.enforce.assert_awaited_once_with("spammer", "t3_abc", BAD_VERDICT, settings)
        assert await fake_redis.zcard("UserCheckQueue") == 0
        assert not await fake_redis.exists("UserCheckQueueRunRecently")

    async def test_recently_run_guard(self, queue, fake_redis, engine, settings_factory):
        await make_due(fake_redis, "spammer:t3_abc")
        await fake_redis.set("UserCheckQueueRunRecently", "true")

        assert await queue.run(settings_factory(), from_cron=True) == 0
        engine.evaluate.assert_not_awaited()

    async def test_adhoc_run_ignores_guard(self, queue, fake_redis, settings_factory):
        await make_due(fake_redis, "spammer:t3_abc")
        await fake_redis.set("UserCheckQueueRunRecently", "true")

        assert await queue.run(settings_factory(), from_cron=False) == 1

    async def test_failed_entry_is_removed(self, queue, fake_redis, engine, pipeline, settings_factory):
        await make_due(fake_redis, "broken:t3_bad", "spammer:t3_abc")

        def evaluate(username, settings):
            if username == "broken":
                raise RuntimeError("boom")
            return BAD_VERDICT

        engine.evaluate.side_effect = evaluate

        processed = await queue.run(settings_factory())

        assert processed == 2
        assert await fake_redis.zcard("UserCheckQueue") == 0
        pipeline.enforce.assert_awaited_once()

    async def test_out_of_budget_schedules_followup(
        self, fake_redis, platform, scheduler, engine, pipeline, settings_factory
    ):
        queue = UserCheckQueue(
            fake_redis, platform, scheduler, engine, pipeline, COMMUNITY, APP_ACCOUNT, run_budget=0
        )
        await make_due(fake_redis, "a:t3_1", "b:t3_2")

        processed = await queue.run(settings_factory(), from_cron=True)

        assert processed == 0
        assert scheduler.named(CHECK_QUEUE_JOB)
        assert await fake_redis.zcard("UserCheckQueue") == 2


class TestCheckUser:

    async def test_duplicate_event_is_ignored(self, queue, pipeline, settings_factory):
        await queue.check_user("spammer", "t3_abc", settings_factory())
        await queue.check_user("spammer", "t3_abc", settings_factory())

        pipeline.enforce.assert_awaited_once()

    async def test_content_type_filter(self, queue, pipeline, settings_factory):
        settings = settings_factory(content_type_to_act_on=ContentTypeToActOn.POSTS_ONLY)

        await queue.check_user("spammer", "t1_abc", settings)

        pipeline.enforce.assert_not_awaited()

    async def test_clean_verdict(self, queue, engine, pipeline, platform, settings_factory):
        engine.evaluate.return_value = Verdict.clean()

        await queue.check_user("someone", "t3_abc", settings_factory())

        pipeline.enforce.assert_not_awaited()
        platform.report_item.assert_not_awaited()


class TestBlockingUser:

    async def test_reported_once_while_active(self, queue, engine, fake_redis, platform, settings_factory):
        engine.evaluate.return_value = Verdict.clean(is_possibly_blocking=True)

        await queue.check_user("hider", "t3_first", settings_factory())
        await queue.check_user("hider", "t3_second", settings_factory())

        platform.report_item.assert_awaited_once_with("t3_first", BLOCKING_REPORT_REASON)
        assert await fake_redis.ttl("userBlocking~hider") > 0

    async def test_mod_note_added_once(self, queue, engine, fake_redis, platform, settings_factory):
        engine.evaluate.return_value = Verdict.clean(is_possibly_blocking=True)
        settings = settings_factory(anti_block_checker_add_mod_note=True)

        await queue.check_user("hider", "t3_first", settings)
        await queue.check_user("hider", "t3_second", settings)

        platform.add_mod_note.assert_awaited_once_with(COMMUNITY, "hider", BLOCKING_NOTE, "SPAM_WARNING")
        assert await fake_redis.zscore("cleanupStore", "hider") is not None
