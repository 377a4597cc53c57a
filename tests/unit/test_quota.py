# ============================================================================
# tests/unit/test_quota.py
# ============================================================================
"""
Tests for monthly upload quotas and plan limits
"""

from datetime import datetime, timezone

import pytest

from lab_reconciliation.reconciliation.quota import QuotaPolicy, next_monthly_reset
from lab_reconciliation.utils.exceptions import QuotaExceededError


@pytest.fixture
def quota(store):
    return QuotaPolicy(store)


class TestNextMonthlyReset:
    """Test monthly reset date"""

    def test_mid_month(self):
        """Test reset is the first of next month"""
        now = datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc)
        assert next_monthly_reset(now) == datetime(2026, 4, 1, tzinfo=timezone.utc)

    def test_december_rolls_year(self):
        """Test December rolls over to January"""
        now = datetime(2026, 12, 31, 23, 59, tzinfo=timezone.utc)
        assert next_monthly_reset(now) == datetime(2027, 1, 1, tzinfo=timezone.utc)

    def test_first_instant_of_month(self):
        """Test first instant of a month resets at the next one"""
        now = datetime(2026, 4, 1, tzinfo=timezone.utc)
        assert next_monthly_reset(now) == datetime(2026, 5, 1, tzinfo=timezone.utc)


class TestUploadLimit:
    """Test monthly upload limit"""

    def test_new_free_account_has_three_uploads(self, quota, account, clock):
        """Test new free account has three uploads"""
        allowance = quota.check_upload_limit(account, clock())

        assert allowance.allowed
        assert allowance.remaining == 3

    def test_first_check_schedules_reset(self, quota, store, account, clock):
        """Test first check schedules the next reset"""
        quota.check_upload_limit(account, clock())

        stored = store.get_account(account.id)
        assert stored.monthly_uploads_reset_at == datetime(2026, 4, 1, tzinfo=timezone.utc)

    def test_limit_reached(self, quota, store, account, clock):
        """Test limit reached disallows uploads"""
        quota.check_upload_limit(account, clock())
        for _ in range(3):
            quota.increment_upload_count(account)

        allowance = quota.check_upload_limit(store.get_account(account.id), clock())

        assert not allowance.allowed
        assert allowance.remaining == 0

    def test_ensure_upload_allowed_raises(self, quota, store, account, clock):
        """Test ensure_upload_allowed raises at the limit"""
        store.update_account(account.id, monthly_uploads=3, monthly_uploads_reset_at=datetime(2026, 4, 1, tzinfo=timezone.utc))

        with pytest.raises(QuotaExceededError) as excinfo:
            quota.ensure_upload_allowed(store.get_account(account.id), clock())
        assert excinfo.value.plan == "free"

    def test_unlimited_plan(self, quota, store, account, clock):
        """Test unlimited plan"""
        store.update_account(account.id, plan="pro", monthly_uploads=500)

        allowance = quota.check_upload_limit(store.get_account(account.id), clock())

        assert allowance.allowed
        assert allowance.remaining is None

    def test_unknown_plan_uses_free_limits(self, quota, store, account, clock):
        """Test unknown plan uses free limits"""
        store.update_account(account.id, plan="mystery")

        allowance = quota.check_upload_limit(store.get_account(account.id), clock())

        assert allowance.remaining == 3


class TestReset:
    """Test counter reset and increment"""

    def test_counter_resets_when_due(self, quota, store, account, clock):
        """Test counter resets once due"""
        quota.check_upload_limit(account, clock())
        quota.increment_upload_count(account)
        quota.increment_upload_count(account)

        clock.now = datetime(2026, 4, 1, tzinfo=timezone.utc)
        fresh = store.get_account(account.id)
        assert quota.reset_if_due(fresh, clock())

        stored = store.get_account(account.id)
        assert stored.monthly_uploads == 0
        assert stored.monthly_uploads_reset_at == datetime(2026, 5, 1, tzinfo=timezone.utc)

    def test_no_reset_before_due(self, quota, store, account, clock):
        """Test counter kept before the reset date"""
        quota.check_upload_limit(account, clock())
        quota.increment_upload_count(account)

        clock.advance(days=10)
        fresh = store.get_account(account.id)

        assert not quota.reset_if_due(fresh, clock())
        assert fresh.monthly_uploads == 1


def test_increment_returns_new_count(quota, store, account):
    """Test increment returns the stored count"""
    assert quota.increment_upload_count(account) == 1
    assert quota.increment_upload_count(account) == 2
    assert account.monthly_uploads == 2
    assert store.get_account(account.id).monthly_uploads == 2


@pytest.mark.parametrize("plan,count,expected", [
    ("free", 0, True),
    ("free", 1, True),
    ("free", 2, False),
    ("pro", 9, True),
    ("pro", 10, False),
])
def test_can_add_profile(quota, store, account, plan, count, expected):
    """Test profile limit per plan"""
    store.update_account(account.id, plan=plan)
    assert quota.can_add_profile(store.get_account(account.id), count) is expected
