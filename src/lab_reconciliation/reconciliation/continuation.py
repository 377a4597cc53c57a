# ============================================================================
# src/lab_reconciliation/reconciliation/continuation.py
# ============================================================================
"""
Continuation Detector

Decides whether a freshly parsed upload is another page of the account's
most recent report.

Per account there are two implicit states:
- idle: no last-upload entry, or it expired
- awaiting continuation: a last-upload entry younger than the window

A page continues the previous report when
  (patient name absent OR same name key as before)
  AND (lab name prefix equal OR document type equal OR test date equal)
and the previous report was resolved to a profile. Every accepted page
refreshes the entry, so a batch of pages keeps the window open as long as
each page arrives within the window of the one before it.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional
import logging

from ..config.ingestion_config import IngestionSettings, ingestion_settings
from ..core.state_store import TTLStateStore
from ..matching.name_key import same_person
from ..parsing.schemas import ParsedLabResult


@dataclass
class LastUploadState:
    document_id: str
    profile_id: Optional[str]
    patient_name: Optional[str]
    lab_name: Optional[str]
    test_date: Optional[str]
    document_type: Optional[str]


@dataclass(frozen=True)
class ContinuationMatch:
    target_document_id: str
    profile_id: str
    test_date: Optional[str]


class ContinuationDetector:

    def __init__(
        self,
        settings: Optional[IngestionSettings] = None,
        state: Optional[TTLStateStore] = None,
    ):
        self.settings = settings or ingestion_settings
        self.window = timedelta(seconds=self.settings.CONTINUATION_WINDOW_SECONDS)
        self.state: TTLStateStore[LastUploadState] = state or TTLStateStore(
            name="last_upload", default_ttl=self.window
        )
        self.logger = logging.getLogger(__name__)

    def remember(self, account_id: str, last: LastUploadState, now: datetime):
        """Record the account's most recent original document."""
        self.state.set(account_id, last, now)

    def last_upload(self, account_id: str, now: datetime) -> Optional[LastUploadState]:
        """Live last-upload state, None once the window has passed."""
        return self.state.get(account_id, now)

    def forget(self, account_id: str):
        self.state.pop(account_id)

    def _same_lab(self, a: Optional[str], b: Optional[str]) -> bool:
        if not a or not b:
            return False
        n = self.settings.LAB_NAME_PREFIX_LENGTH
        return a.lower()[:n] == b.lower()[:n]

    def matches(self, parsed: ParsedLabResult, last: LastUploadState) -> bool:
        """Name rule and context rule, without the window check."""
        name_ok = not parsed.patient_name or same_person(parsed.patient_name, last.patient_name)
        if not name_ok:
            return False

        same_type = bool(parsed.document_type and parsed.document_type == last.document_type)
        same_date = bool(parsed.test_date and parsed.test_date == last.test_date)
        return self._same_lab(parsed.lab_name, last.lab_name) or same_type or same_date

    def detect(self, account_id: str, parsed: ParsedLabResult, now: datetime) -> Optional[ContinuationMatch]:
        last = self.last_upload(account_id, now)
        if last is None or last.profile_id is None:
            return None

        if not self.matches(parsed, last):
            return None

        # Slide the window for further pages
        self.state.touch(account_id, now)
        self.logger.info(
            f"Continuation page for account {account_id}: attaching to document {last.document_id}"
        )
        return ContinuationMatch(
            target_document_id=last.document_id,
            profile_id=last.profile_id,
            test_date=last.test_date,
        )
