# ============================================================================
# src/lab_reconciliation/core/orchestrator.py
# ============================================================================
"""
Ingestion Orchestrator

Main entry point for uploaded lab reports.

Flow per upload (short-circuits on every rejection):
1. Parse the document (external parsing service)
2. No readings -> fail "no_readings"
3. Duplicate of a completed report -> fail "duplicate"
4. Continuation page of the previous report? Originals re-check the quota
5. No usable patient name and not a continuation -> ask the user (pending-name)
6. Resolve the profile
7. Mark the document done (continuation pages point at their target)
8. Match, convert and persist every reading
9. Charge one upload for original documents
10. Summary for the presentation layer

Uploads of one account are processed one at a time; different accounts
run concurrently. Unexpected failures mark the document "error" with the
exception message. Readings written before such a failure are kept.
"""

import asyncio
import inspect
import uuid
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Optional, Set, Union
import logging

from ..config.ingestion_config import IngestionSettings, ingestion_settings
from ..constants.enums import (
    CONTINUATION_SENTINEL_NAME,
    DocumentSource,
    DocumentStatus,
    FailureReason,
)
from ..matching.biomarker_matcher import BiomarkerMatcher
from ..matching.name_key import name_key, same_person
from ..matching.profile_resolver import ProfileResolver
from ..parsing.base import BaseLabParser, ParseResult
from ..parsing.schemas import ParsedLabResult
from ..reconciliation.continuation import ContinuationDetector, ContinuationMatch, LastUploadState
from ..reconciliation.pending_name import PendingNameMachine, Transition, TransitionKind
from ..reconciliation.quota import QuotaPolicy
from ..reconciliation.unit_converter import rescale_bounds, to_canonical
from ..storage.object_storage import LocalObjectStorage
from ..utils.exceptions import QuotaExceededError, StoreError
from ..utils.logging import LogAdapter, log_performance
from .keyed_lock import KeyedLock
from .models import Account, Document, ExternalUser, Profile, Reading
from .outcomes import IngestionOutcome, OutcomeKind, ProfileOption
from .summary import compose_summary, flagged_examples

logger = logging.getLogger(__name__)

OutcomeCallback = Callable[[IngestionOutcome], Union[None, Awaitable[None]]]

RETRY_HINT = "Please try sending the document again, or in another format (photo/PDF)."


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class IngestionOrchestrator:
    """
    Sequences parsing, reconciliation and persistence for uploads.

    Collaborators are injected so tests can swap the parser, the clock and
    the random sources. Everything not passed in is built from the store.
    """

    def __init__(
        self,
        store,
        parser: BaseLabParser,
        object_storage: LocalObjectStorage,
        matcher: Optional[BiomarkerMatcher] = None,
        resolver: Optional[ProfileResolver] = None,
        continuation: Optional[ContinuationDetector] = None,
        pending: Optional[PendingNameMachine] = None,
        quota: Optional[QuotaPolicy] = None,
        settings: Optional[IngestionSettings] = None,
        clock: Optional[Callable[[], datetime]] = None,
        on_outcome: Optional[OutcomeCallback] = None,
    ):
        self.store = store
        self.parser = parser
        self.object_storage = object_storage
        self.settings = settings or ingestion_settings
        self.clock = clock or _utcnow
        self.on_outcome = on_outcome

        self.matcher = matcher or BiomarkerMatcher(store=store, settings=self.settings)
        self.resolver = resolver or ProfileResolver(store, settings=self.settings, clock=self.clock)
        self.continuation = continuation or ContinuationDetector(settings=self.settings)
        self.pending = pending or PendingNameMachine(store, self.resolver, settings=self.settings)
        self.quota = quota or QuotaPolicy(store)

        self._locks = KeyedLock()
        self._tasks: Set[asyncio.Task] = set()
        self.logger = logging.getLogger(__name__)

        self.logger.info(f"Ingestion orchestrator initialized (parser: {parser.provider_name})")

    # ========================================================================
    # UPLOAD ENTRY POINT
    # ========================================================================

    async def submit_upload(
        self,
        external_user: ExternalUser,
        data: bytes,
        mime_type: str,
        file_name: str,
        source: DocumentSource = DocumentSource.TELEGRAM,
    ) -> IngestionOutcome:
        """
        Accept an upload and process it in the background.

        Returns immediately with ACCEPTED (or QUOTA_EXCEEDED, in which case
        nothing is stored). The processing outcome goes to on_outcome.
        """
        now = self.clock()
        account = self._account_for(external_user)

        try:
            allowance = self.quota.ensure_upload_allowed(account, now)
        except QuotaExceededError as e:
            self.logger.info(f"Upload rejected: {e} (plan {e.plan})")
            return IngestionOutcome(
                kind=OutcomeKind.QUOTA_EXCEEDED,
                account_id=account.id,
                remaining_uploads=0,
            )

        document_id = str(uuid.uuid4())
        path = self.object_storage.object_path(account.id, file_name, int(now.timestamp() * 1000), document_id)
        self.object_storage.upload(path, data)

        document = Document(
            id=document_id,
            account_id=account.id,
            storage_path=path,
            file_type=mime_type,
            source=source,
            file_size=len(data),
            status=DocumentStatus.PENDING,
            created_at=now,
        )
        self.store.insert_document(document)
        self.store.update_document(document.id, status=DocumentStatus.PROCESSING)
        self.logger.info(f"Document {document.id} accepted for account {account.id} ({mime_type}, {len(data)} bytes)")

        task = asyncio.create_task(
            self.process_document(account, document.id, data, mime_type, allowance.remaining)
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

        return IngestionOutcome(
            kind=OutcomeKind.ACCEPTED,
            account_id=account.id,
            document_id=document.id,
            remaining_uploads=allowance.remaining,
        )

    async def drain(self):
        """Wait for every background processing task to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    # ========================================================================
    # MAIN PROCESSING PIPELINE
    # ========================================================================

    @log_performance(logger, "Document processing")
    async def process_document(
        self,
        account: Account,
        document_id: str,
        data: bytes,
        mime_type: str,
        remaining: Optional[int],
    ) -> IngestionOutcome:
        async with self._locks.hold(account.id):
            try:
                outcome = await self._process(account, document_id, data, mime_type, remaining)
            except Exception as e:
                log = LogAdapter(self.logger, {"account_id": account.id, "document_id": document_id})
                log.exception(f"Processing failed for document {document_id}")
                outcome = self._error_outcome(account.id, document_id, e)

        await self._emit(outcome)
        return outcome

    async def _process(
        self,
        account: Account,
        document_id: str,
        data: bytes,
        mime_type: str,
        remaining: Optional[int],
    ) -> IngestionOutcome:
        # ================================================================
        # STEP 1: Parse
        # ================================================================
        self.logger.info(f"Step 1: Parsing document {document_id}")
        parsed = await self.parser.parse(data, mime_type, account.locale)
        result = parsed.result
        now = self.clock()

        # ================================================================
        # STEP 2: Nothing extracted
        # ================================================================
        if not result.readings:
            return self._reject(account.id, document_id, FailureReason.NO_READINGS)

        # ================================================================
        # STEP 3: Duplicate
        # ================================================================
        if self._is_duplicate(account.id, document_id, result):
            return self._reject(account.id, document_id, FailureReason.DUPLICATE)

        # ================================================================
        # STEP 4: Continuation page
        # ================================================================
        previous = self.continuation.last_upload(account.id, now)
        fallback_date = previous.test_date if previous else None
        match = self.continuation.detect(account.id, result, now)

        if match is None:
            try:
                remaining = self._remaining_uploads(account, now)
            except QuotaExceededError as e:
                return self._reject_over_quota(account.id, document_id, e)

        # ================================================================
        # STEP 5: Unknown patient -> ask
        # ================================================================
        if match is None and not name_key(result.patient_name):
            return self._prompt_profile(account, document_id, parsed, remaining, now)

        # ================================================================
        # STEP 6: Profile
        # ================================================================
        if match is not None:
            profile_id, profile_name = match.profile_id, None
        else:
            profile = self.resolver.resolve(
                account.id,
                result.patient_name,
                date_of_birth=result.patient_dob,
                sex=result.patient_sex,
            )
            profile_id, profile_name = profile.id, profile.full_name

        return self._complete(
            account, document_id, parsed, profile_id, profile_name,
            match, remaining, fallback_date, now,
        )

    def _complete(
        self,
        account: Account,
        document_id: str,
        parsed: ParseResult,
        profile_id: str,
        profile_name: Optional[str],
        match: Optional[ContinuationMatch],
        remaining: Optional[int],
        fallback_date: Optional[str],
        now: datetime,
        override_name: Optional[str] = None,
    ) -> IngestionOutcome:
        """Steps 7 to 10, shared with documents resolved through the pending-name prompt."""
        result = parsed.result

        # ================================================================
        # STEP 7: Document done
        # ================================================================
        if match is not None:
            target_id = match.target_document_id
            fallback_date = match.test_date or fallback_date
            self.store.update_document(
                document_id,
                status=DocumentStatus.DONE,
                profile_id=profile_id,
                parsed_name=CONTINUATION_SENTINEL_NAME,
                continuation_of=target_id,
                ai_model=parsed.model,
                ai_tokens_in=parsed.tokens_in,
                ai_tokens_out=parsed.tokens_out,
                processing_time_ms=parsed.processing_time_ms,
            )
            self.logger.info(f"Step 7: Document {document_id} filed as continuation of {target_id}")
        else:
            target_id = document_id
            patient_name = override_name or result.patient_name or profile_name
            self.store.update_document(
                document_id,
                status=DocumentStatus.DONE,
                profile_id=profile_id,
                parsed_name=patient_name,
                parsed_date=result.test_date,
                parsed_dob=result.patient_dob,
                parsed_sex=result.patient_sex,
                document_type=result.document_type,
                lab_name=result.lab_name,
                language=result.language,
                is_partial=result.partial_result,
                parsed_json=result.model_dump(mode="json"),
                ai_model=parsed.model,
                ai_tokens_in=parsed.tokens_in,
                ai_tokens_out=parsed.tokens_out,
                processing_time_ms=parsed.processing_time_ms,
            )
            self.continuation.remember(
                account.id,
                LastUploadState(
                    document_id=document_id,
                    profile_id=profile_id,
                    patient_name=patient_name,
                    lab_name=result.lab_name,
                    test_date=result.test_date,
                    document_type=result.document_type,
                ),
                now,
            )
            self.logger.info(f"Step 7: Document {document_id} done for profile {profile_id}")

        # ================================================================
        # STEP 8: Readings
        # ================================================================
        saved = self._save_readings(result, target_id, profile_id, fallback_date, now)
        self.logger.info(f"Step 8: Saved {saved} readings to document {target_id}")

        # ================================================================
        # STEP 9: Quota (original documents only)
        # ================================================================
        remaining_after = remaining
        if match is None:
            self.quota.increment_upload_count(account)
            if remaining is not None:
                remaining_after = max(0, remaining - 1)

        # ================================================================
        # STEP 10: Summary
        # ================================================================
        is_continuation = match is not None
        examples = flagged_examples(result, self.settings.MAX_FLAGGED_EXAMPLES)
        return IngestionOutcome(
            kind=OutcomeKind.SUCCESS,
            account_id=account.id,
            document_id=target_id,
            profile_id=profile_id,
            summary=compose_summary(
                result,
                is_continuation=is_continuation,
                remaining=remaining_after,
                max_examples=self.settings.MAX_FLAGGED_EXAMPLES,
                patient_name=override_name,
            ),
            reading_count=len(result.readings),
            flagged_count=len(result.flagged_readings),
            flagged_examples=examples,
            remaining_uploads=remaining_after,
            is_continuation=is_continuation,
        )

    def _save_readings(
        self,
        result: ParsedLabResult,
        document_id: str,
        profile_id: str,
        fallback_date: Optional[str],
        now: datetime,
    ) -> int:
        tested_at = result.test_date or fallback_date or now.date().isoformat()

        readings: List[Reading] = []
        for parsed_reading in result.readings:
            ref = self.matcher.match(parsed_reading.name)
            value = parsed_reading.numeric_value
            unit = parsed_reading.unit
            ref_min, ref_max = parsed_reading.ref_min, parsed_reading.ref_max

            if ref is not None and ref.unit_default and value is not None and unit:
                converted = to_canonical(value, unit, ref.unit_default, ref.canonical_name)
                if converted.converted:
                    value, unit = converted.value, converted.unit
                    # Same factor on the bounds keeps the flag valid
                    ref_min, ref_max = rescale_bounds(ref_min, ref_max, converted.factor)

            is_qualitative = not parsed_reading.value_numeric
            readings.append(Reading(
                document_id=document_id,
                profile_id=profile_id,
                original_name=parsed_reading.name,
                tested_at=tested_at,
                flag=parsed_reading.flag,
                biomarker_id=ref.id if ref else None,
                value=value,
                value_text=str(parsed_reading.value) if is_qualitative and parsed_reading.value is not None else None,
                is_qualitative=is_qualitative,
                unit=unit,
                ref_min=ref_min,
                ref_max=ref_max,
            ))

        return self.store.insert_readings(readings)

    # ========================================================================
    # REJECTIONS
    # ========================================================================

    def _is_duplicate(self, account_id: str, document_id: str, result: ParsedLabResult) -> bool:
        if not result.patient_name or not result.test_date:
            return False
        completed = self.store.find_completed_documents(
            account_id, result.test_date, result.document_type, exclude_id=document_id
        )
        return any(same_person(doc.parsed_name, result.patient_name) for doc in completed)

    def _reject(self, account_id: str, document_id: str, reason: FailureReason) -> IngestionOutcome:
        self.store.update_document(document_id, status=DocumentStatus.ERROR, error_message=reason.value)
        self.logger.info(f"Document {document_id} rejected: {reason.value}")
        return IngestionOutcome(
            kind=OutcomeKind.REJECTED,
            account_id=account_id,
            document_id=document_id,
            failure_reason=reason.value,
        )

    def _remaining_uploads(self, account: Account, now: datetime) -> Optional[int]:
        """
        Quota allowance re-read under the account lock, so uploads accepted
        together cannot all spend the last slot. Raises QuotaExceededError.
        """
        current = self.store.get_account(account.id) or account
        allowance = self.quota.ensure_upload_allowed(current, now)
        account.monthly_uploads = current.monthly_uploads
        account.monthly_uploads_reset_at = current.monthly_uploads_reset_at
        return allowance.remaining

    def _reject_over_quota(self, account_id: str, document_id: str, error: QuotaExceededError) -> IngestionOutcome:
        reason = FailureReason.QUOTA_EXCEEDED.value
        self.store.update_document(document_id, status=DocumentStatus.ERROR, error_message=reason)
        self.logger.info(f"Document {document_id} rejected: {error}")
        return IngestionOutcome(
            kind=OutcomeKind.QUOTA_EXCEEDED,
            account_id=account_id,
            document_id=document_id,
            failure_reason=reason,
            remaining_uploads=0,
        )

    def _error_outcome(self, account_id: str, document_id: str, error: Exception) -> IngestionOutcome:
        message = str(error) or type(error).__name__
        try:
            self.store.update_document(document_id, status=DocumentStatus.ERROR, error_message=message)
        except StoreError as store_error:
            self.logger.error(f"Could not mark document {document_id} as failed: {store_error}")
        return IngestionOutcome(
            kind=OutcomeKind.ERROR,
            account_id=account_id,
            document_id=document_id,
            failure_reason=message,
            summary=f"Processing failed: {message}\n{RETRY_HINT}",
        )

    # ========================================================================
    # PENDING-NAME PROMPTS
    # ========================================================================

    def _profile_prompt(self, account: Account, document_id: str) -> IngestionOutcome:
        profiles = self.store.list_profiles(account.id)
        return IngestionOutcome(
            kind=OutcomeKind.PROMPT_PROFILE,
            account_id=account.id,
            document_id=document_id,
            profile_options=[ProfileOption.from_profile(p) for p in profiles],
            can_add_profile=self.quota.can_add_profile(account, len(profiles)),
        )

    def _prompt_profile(
        self,
        account: Account,
        document_id: str,
        parsed: ParseResult,
        remaining: Optional[int],
        now: datetime,
    ) -> IngestionOutcome:
        self.pending.begin(account.id, document_id, parsed, remaining, now)
        self.logger.info(f"Step 5: No patient name on document {document_id}, asking the user")
        return self._profile_prompt(account, document_id)

    async def select_profile(self, external_user: ExternalUser, choice: str) -> IngestionOutcome:
        """Answer to the profile prompt: a profile id or NEW_PROFILE_CHOICE."""
        account = self._account_for(external_user)
        async with self._locks.hold(account.id):
            now = self.clock()
            transition = self.pending.select(account.id, choice, now)
            return self._after_transition(account, transition, now)

    async def submit_name(self, external_user: ExternalUser, text: str) -> IngestionOutcome:
        """Free-text patient name after "new" was chosen."""
        account = self._account_for(external_user)
        async with self._locks.hold(account.id):
            now = self.clock()
            transition = self.pending.submit_name(account.id, text, now)
            return self._after_transition(account, transition, now)

    def _after_transition(self, account: Account, transition: Transition, now: datetime) -> IngestionOutcome:
        state = transition.state
        document_id = state.document_id if state else None

        if transition.kind == TransitionKind.NONE:
            return IngestionOutcome(kind=OutcomeKind.IGNORED, account_id=account.id)

        if transition.kind == TransitionKind.EXPIRED:
            return self._expired_outcome(account.id, document_id)

        if transition.kind == TransitionKind.AWAIT_NAME:
            return IngestionOutcome(kind=OutcomeKind.PROMPT_NAME, account_id=account.id, document_id=document_id)

        if transition.kind == TransitionKind.REJECTED:
            return IngestionOutcome(
                kind=OutcomeKind.NAME_REJECTED,
                account_id=account.id,
                document_id=document_id,
                failure_reason=f"name needs at least {self.settings.MIN_NAME_LENGTH} characters, not only punctuation",
            )

        if transition.kind == TransitionKind.INVALID:
            return IngestionOutcome(kind=OutcomeKind.IGNORED, account_id=account.id, document_id=document_id)

        profile: Profile = transition.profile
        previous = self.continuation.last_upload(account.id, now)
        try:
            remaining = self._remaining_uploads(account, now)
            return self._complete(
                account, state.document_id, state.parsed, profile.id, profile.full_name,
                None, remaining, previous.test_date if previous else None, now,
                override_name=profile.full_name,
            )
        except QuotaExceededError as e:
            return self._reject_over_quota(account.id, state.document_id, e)
        except Exception as e:
            self.logger.exception(f"Completing pending document {state.document_id} failed")
            return self._error_outcome(account.id, state.document_id, e)

    def _expired_outcome(self, account_id: str, document_id: Optional[str]) -> IngestionOutcome:
        return IngestionOutcome(
            kind=OutcomeKind.EXPIRED,
            account_id=account_id,
            document_id=document_id,
            failure_reason=FailureReason.TIMEOUT.value,
            summary=f"The question about this document timed out. {RETRY_HINT}",
        )

    async def expire_pending(self) -> List[IngestionOutcome]:
        """Fail every timed-out pending-name document and report each one."""
        outcomes = [
            self._expired_outcome(state.account_id, state.document_id)
            for state in self.pending.expire_stale(self.clock())
        ]
        for outcome in outcomes:
            await self._emit(outcome)
        return outcomes

    # ========================================================================
    # HELPERS
    # ========================================================================

    def refresh_catalog(self) -> int:
        """Reload the biomarker catalog snapshot; returns its size."""
        return len(self.matcher.refresh())

    def _account_for(self, external_user: ExternalUser) -> Account:
        return self.store.get_or_create_account(
            external_user.external_id,
            username=external_user.username,
            display_name=external_user.display_name,
            locale=external_user.locale,
        )

    async def _emit(self, outcome: IngestionOutcome):
        if self.on_outcome is None:
            return
        try:
            delivered = self.on_outcome(outcome)
            if inspect.isawaitable(delivered):
                await delivered
        except Exception:
            self.logger.exception(f"Outcome callback failed for document {outcome.document_id}")


def create_orchestrator(
    parser: Optional[BaseLabParser] = None,
    on_outcome: Optional[OutcomeCallback] = None,
) -> IngestionOrchestrator:
    """
    Orchestrator wired from the global settings: SQLite store (catalog
    seeded on first use), local object storage and the configured parser.
    """
    from ..config.base_config import base_settings
    from ..parsing.client import create_parser
    from ..storage.sqlite_store import SQLiteStore

    base_settings.create_directories()
    store = SQLiteStore(base_settings.DATABASE_PATH)
    if not store.load_biomarkers():
        store.seed_catalog(base_settings.get_catalog_seed_path())

    return IngestionOrchestrator(
        store=store,
        parser=parser or create_parser(),
        object_storage=LocalObjectStorage(settings=base_settings),
        on_outcome=on_outcome,
    )
