# ============================================================================
# src/lab_reconciliation/reconciliation/quota.py
# ============================================================================
"""
Upload Quota

- Monthly counter resets to zero on the first access at or after the
  account's stored reset timestamp; the next reset is the first day of the
  following month (UTC midnight).
- Uploads are charged once per original document that completes. Failed
  uploads and continuation pages are never charged, and nothing is ever
  refunded.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional
import logging

from ..constants.plans import get_plan_limits
from ..core.models import Account
from ..utils.exceptions import QuotaExceededError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UploadAllowance:
    allowed: bool
    remaining: Optional[int]    # None = unlimited


def next_monthly_reset(now: datetime) -> datetime:
    """First instant of the month after `now`, in UTC."""
    now = now.astimezone(timezone.utc)
    if now.month == 12:
        return datetime(now.year + 1, 1, 1, tzinfo=timezone.utc)
    return datetime(now.year, now.month + 1, 1, tzinfo=timezone.utc)


class QuotaPolicy:

    def __init__(self, store):
        self.store = store

    def reset_if_due(self, account: Account, now: datetime) -> bool:
        reset_at = account.monthly_uploads_reset_at
        if reset_at is not None and now < reset_at:
            return False

        account.monthly_uploads = 0
        account.monthly_uploads_reset_at = next_monthly_reset(now)
        self.store.update_account(
            account.id,
            monthly_uploads=0,
            monthly_uploads_reset_at=account.monthly_uploads_reset_at,
        )
        logger.info(f"Monthly upload counter reset for account {account.id}")
        return True

    def check_upload_limit(self, account: Account, now: datetime) -> UploadAllowance:
        self.reset_if_due(account, now)

        limits = get_plan_limits(account.plan)
        if limits.uploads_per_month is None:
            return UploadAllowance(allowed=True, remaining=None)

        remaining = limits.uploads_per_month - account.monthly_uploads
        return UploadAllowance(allowed=remaining > 0, remaining=max(0, remaining))

    def ensure_upload_allowed(self, account: Account, now: datetime) -> UploadAllowance:
        """check_upload_limit that raises QuotaExceededError when nothing is left."""
        allowance = self.check_upload_limit(account, now)
        if not allowance.allowed:
            raise QuotaExceededError(
                f"Monthly upload limit reached for account {account.id}", account.plan
            )
        return allowance

    def can_add_profile(self, account: Account, profile_count: int) -> bool:
        return profile_count < get_plan_limits(account.plan).max_profiles

    def increment_upload_count(self, account: Account) -> int:
        count = self.store.increment_monthly_uploads(account.id)
        account.monthly_uploads = count
        return count
