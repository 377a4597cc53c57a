# ============================================================================
# src/lab_reconciliation/reconciliation/pending_name.py
# ============================================================================
"""
Pending-Name State Machine

Entered when a parsed document has no patient name and is not a
continuation page. One pending state per account:

    select_profile --(existing profile id)--> resolved
    select_profile --("new")--------------->  enter_name
    enter_name -----(name, >= 2 chars)----->  resolved
    enter_name -----(shorter text)--------->  enter_name   (rejected)
    enter_name -----(no letters, "--")----->  enter_name   (rejected)

The state expires PENDING_NAME_TIMEOUT_SECONDS after its last transition.
Expiry is noticed on the next interaction (or by expire_stale); the
document is then failed with reason "timeout". Starting a new pending
state while one is outstanding fails the older document as "superseded".
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import List, Optional
import logging

from ..config.ingestion_config import IngestionSettings, ingestion_settings
from ..constants.enums import DocumentStatus, FailureReason, NEW_PROFILE_CHOICE, PendingStage
from ..core.models import Profile
from ..core.state_store import TTLStateStore
from ..matching.name_key import name_key
from ..matching.profile_resolver import ProfileResolver
from ..parsing.base import ParseResult


@dataclass
class PendingNameState:
    document_id: str
    account_id: str
    parsed: ParseResult
    remaining: Optional[int]            # uploads left, for the final summary
    stage: PendingStage = PendingStage.SELECT_PROFILE
    created_at: Optional[datetime] = None


class TransitionKind(str, Enum):
    NONE = "none"                   # nothing pending for the account
    EXPIRED = "expired"             # state timed out, document failed
    AWAIT_NAME = "await_name"       # moved to enter_name
    REJECTED = "rejected"           # name too short, state unchanged
    RESOLVED = "resolved"           # profile chosen, state consumed
    INVALID = "invalid"             # input does not fit the current stage


@dataclass
class Transition:
    kind: TransitionKind
    state: Optional[PendingNameState] = None
    profile: Optional[Profile] = None


class PendingNameMachine:

    def __init__(
        self,
        store,
        resolver: ProfileResolver,
        settings: Optional[IngestionSettings] = None,
        state: Optional[TTLStateStore] = None,
    ):
        self.store = store
        self.resolver = resolver
        self.settings = settings or ingestion_settings
        self.timeout = timedelta(seconds=self.settings.PENDING_NAME_TIMEOUT_SECONDS)
        self.state: TTLStateStore[PendingNameState] = state or TTLStateStore(
            name="pending_name", default_ttl=self.timeout
        )
        self.logger = logging.getLogger(__name__)

    def _fail_document(self, document_id: str, reason: FailureReason):
        self.store.update_document(
            document_id, status=DocumentStatus.ERROR, error_message=reason.value
        )
        self.logger.info(f"Pending document {document_id} failed: {reason.value}")

    def _live_entry(self, account_id: str, now: datetime):
        """
        Returns (state, expired). An expired state is discarded and its
        document failed before returning.
        """
        entry = self.state.peek(account_id)
        if entry is None:
            return None, False
        if entry.is_expired(now):
            self.state.pop(account_id)
            self._fail_document(entry.value.document_id, FailureReason.TIMEOUT)
            return entry.value, True
        return entry.value, False

    def current(self, account_id: str, now: datetime) -> Optional[PendingNameState]:
        pending, expired = self._live_entry(account_id, now)
        return None if expired else pending

    def begin(
        self,
        account_id: str,
        document_id: str,
        parsed: ParseResult,
        remaining: Optional[int],
        now: datetime,
    ) -> PendingNameState:
        previous, expired = self._live_entry(account_id, now)
        if previous is not None and not expired and previous.document_id != document_id:
            self.state.pop(account_id)
            self._fail_document(previous.document_id, FailureReason.SUPERSEDED)

        pending = PendingNameState(
            document_id=document_id,
            account_id=account_id,
            parsed=parsed,
            remaining=remaining,
            stage=PendingStage.SELECT_PROFILE,
            created_at=now,
        )
        self.state.set(account_id, pending, now)
        self.logger.info(f"Document {document_id} awaiting profile selection")
        return pending

    def select(self, account_id: str, choice: str, now: datetime) -> Transition:
        pending, expired = self._live_entry(account_id, now)
        if pending is None:
            return Transition(TransitionKind.NONE)
        if expired:
            return Transition(TransitionKind.EXPIRED, state=pending)
        if pending.stage != PendingStage.SELECT_PROFILE:
            return Transition(TransitionKind.INVALID, state=pending)

        if choice == NEW_PROFILE_CHOICE:
            pending.stage = PendingStage.ENTER_NAME
            self.state.touch(account_id, now)
            return Transition(TransitionKind.AWAIT_NAME, state=pending)

        profile = self.store.get_profile(choice)
        if profile is None or profile.account_id != account_id:
            self.logger.warning(f"Profile {choice} is not selectable for account {account_id}")
            return Transition(TransitionKind.INVALID, state=pending)

        return self._resolve(account_id, pending, profile)

    def submit_name(self, account_id: str, text: str, now: datetime) -> Transition:
        pending, expired = self._live_entry(account_id, now)
        if pending is None:
            return Transition(TransitionKind.NONE)
        if expired:
            return Transition(TransitionKind.EXPIRED, state=pending)
        if pending.stage != PendingStage.ENTER_NAME:
            return Transition(TransitionKind.INVALID, state=pending)

        name = (text or "").strip()
        if len(name) < self.settings.MIN_NAME_LENGTH or not name_key(name):
            return Transition(TransitionKind.REJECTED, state=pending)

        result = pending.parsed.result
        profile = self.resolver.resolve(
            account_id, name, date_of_birth=result.patient_dob, sex=result.patient_sex
        )
        return self._resolve(account_id, pending, profile)

    def _resolve(self, account_id: str, pending: PendingNameState, profile: Profile) -> Transition:
        self.state.pop(account_id)
        pending.stage = PendingStage.RESOLVED
        self.logger.info(f"Document {pending.document_id} resolved to profile {profile.id}")
        return Transition(TransitionKind.RESOLVED, state=pending, profile=profile)

    def expire_stale(self, now: datetime) -> List[PendingNameState]:
        """Fail every pending document whose state has timed out."""
        expired = []
        for _account_id, pending in self.state.purge_expired(now):
            self._fail_document(pending.document_id, FailureReason.TIMEOUT)
            expired.append(pending)
        return expired
