"""
Unit-тесты для очистки данных удалённых аккаунтов.
"""

from datetime import timedelta

import pytest

from hivebot.constants import CLEANUP_JOB
from hivebot.platform import ModLogEntry, PlatformError, UserNotFoundError, utcnow
from hivebot.services.protection.cleanup_service import CleanupService
from hivebot.services.protection.user_state import UserStateStore, from_millis, to_millis

COMMUNITY = "homesub"
APP_ACCOUNT = "hive-protect"


@pytest.fixture
def cleanup(fake_redis, platform, scheduler):
    return CleanupService(fake_redis, platform, scheduler, COMMUNITY, APP_ACCOUNT)


async def make_due(redis, *usernames):
    past = to_millis(utcnow() - timedelta(minutes=1))
    await redis.zadd("cleanupStore", {username: past for username in usernames})


def deleted_accounts(platform, profile_factory, *usernames):
    def get_user(username):
        if username in usernames:
            raise UserNotFoundError(username)
        return profile_factory(username)

    def get_mod_notes(community, username):
        if username in usernames:
            raise PlatformError("not found")
        return []

    platform.get_user.side_effect = get_user
    platform.get_mod_notes.side_effect = get_mod_notes


class TestUserActive:

    async def test_profile_available(self, cleanup):
        assert await cleanup.user_active("someone")

    async def test_suspended_account_has_notes(self, cleanup, platform):
        platform.get_user.side_effect = UserNotFoundError("suspended")

        assert await cleanup.user_active("suspended")

    async def test_deleted_account(self, cleanup, platform, profile_factory):
        deleted_accounts(platform, profile_factory, "gone")

        assert not await cleanup.user_active("gone")


class TestRun:

    async def test_purges_deleted_and_reschedules_active(self, cleanup, fake_redis, platform, profile_factory):
        deleted_accounts(platform, profile_factory, "gone")
        await UserStateStore(fake_redis).record_ban("gone")
        await make_due(fake_redis, "gone", "alive")

        purged = await cleanup.run(from_cron=True)

        assert purged == 1
        assert not await fake_redis.exists("participation-prevbanned-gone")
        assert await fake_redis.zscore("cleanupStore", "gone") is None
        score = await fake_redis.zscore("cleanupStore", "alive")
        assert from_millis(score) > utcnow() + timedelta(days=27)

    async def test_nothing_due(self, cleanup, platform):
        assert await cleanup.run(from_cron=True) == 0
        platform.get_user.assert_not_awaited()

    async def test_recently_run_guard(self, cleanup, fake_redis):
        await make_due(fake_redis, "someone")
        await fake_redis.set("cleanupRecentlyRun", "true")

        assert await cleanup.run(from_cron=True) == 0
        assert await fake_redis.zscore("cleanupStore", "someone") is not None

    async def test_platform_outage_aborts_before_purge(self, cleanup, fake_redis, platform):
        await make_due(fake_redis, "someone")
        platform.get_user.side_effect = PlatformError("platform down")

        with pytest.raises(PlatformError):
            await cleanup.run()

        assert await fake_redis.zscore("cleanupStore", "someone") is not None

    async def test_out_of_budget_schedules_followup(self, fake_redis, platform, scheduler):
        cleanup = CleanupService(fake_redis, platform, scheduler, COMMUNITY, APP_ACCOUNT, run_budget=0)
        await make_due(fake_redis, "a", "b")

        await cleanup.run()

        assert scheduler.named(CLEANUP_JOB)


class TestPopulate:

    async def test_adds_previously_banned_users(self, cleanup, fake_redis, platform):
        platform.get_moderation_log.return_value = [
            ModLogEntry(action="banuser", moderator=APP_ACCOUNT, target_author="spammer"),
            ModLogEntry(action="banuser", moderator=APP_ACCOUNT, target_author="spammer"),
            ModLogEntry(action="banuser", moderator=APP_ACCOUNT, target_author="[deleted]"),
            ModLogEntry(action="banuser", moderator=APP_ACCOUNT, target_author="other"),
        ]

        added = await cleanup.add_entries_for_banned_accounts()

        assert added == 2
        assert sorted(await fake_redis.zrange("cleanupStore", 0, -1)) == ["other", "spammer"]
        platform.get_moderation_log.assert_awaited_once_with(COMMUNITY, APP_ACCOUNT, "banuser", limit=1000)

    async def test_spread_over_two_days(self, cleanup, fake_redis, platform):
        platform.get_moderation_log.return_value = [
            ModLogEntry(action="banuser", moderator=APP_ACCOUNT, target_author=f"user{index}") for index in range(20)
        ]

        await cleanup.add_entries_for_banned_accounts()

        for _, score in await fake_redis.zrange("cleanupStore", 0, -1, withscores=True):
            assert from_millis(score) <= utcnow() + timedelta(days=2)


class TestReschedule:

    async def test_only_when_interval_changes(self, cleanup, fake_redis):
        await fake_redis.zadd("cleanupStore", {"someone": to_millis(utcnow() + timedelta(days=90))})

        assert await cleanup.reschedule_entries(days=28) == 1
        score = await fake_redis.zscore("cleanupStore", "someone")
        assert from_millis(score) <= utcnow() + timedelta(days=28)
        assert await fake_redis.get("prevTimeBetweenChecks") == "28"

        assert await cleanup.reschedule_entries(days=28) == 0
