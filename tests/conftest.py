# ============================================================================
# FILE: tests/conftest.py
# ============================================================================
"""
Pytest configuration and shared fixtures for testing.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import pytest

from lab_reconciliation.config.ingestion_config import IngestionSettings
from lab_reconciliation.constants.enums import DocumentStatus
from lab_reconciliation.core.models import Biomarker, Document
from lab_reconciliation.core.orchestrator import IngestionOrchestrator
from lab_reconciliation.parsing.base import BaseLabParser, ParseResult
from lab_reconciliation.parsing.schemas import ParsedLabResult
from lab_reconciliation.storage.object_storage import LocalObjectStorage
from lab_reconciliation.storage.sqlite_store import SQLiteStore


class FakeClock:
    """Controllable clock; call it to read the time."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FakeParser(BaseLabParser):
    """
    Returns queued ParsedLabResults (or raises queued exceptions) in order.

    Args:
        delay: Seconds to sleep inside parse(), to overlap concurrent uploads
    """

    def __init__(self, results: Optional[list] = None, delay: float = 0.0, name: str = "fake"):
        super().__init__()
        self.queue = list(results or [])
        self.delay = delay
        self.name = name
        self.calls = []
        self.active = 0
        self.max_active = 0

    @property
    def provider_name(self) -> str:
        return self.name

    def add(self, item):
        self.queue.append(item)

    async def parse(self, data: bytes, mime_type: str, locale: str = "en") -> ParseResult:
        self.calls.append((data, mime_type, locale))
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            item = self.queue.pop(0)
            if isinstance(item, Exception):
                raise item
            return ParseResult(result=item, model=f"{self.name}-model", tokens_in=100, tokens_out=50, processing_time_ms=10)
        finally:
            self.active -= 1


def make_result(readings: Optional[List[dict]] = None, **fields) -> ParsedLabResult:
    """ParsedLabResult with one normal hemoglobin reading unless readings are given."""
    if readings is None:
        readings = [
            {"name": "Hemoglobin", "value": 14.1, "unit": "g/dL", "ref_min": 12, "ref_max": 16, "flag": "normal"}
        ]
    payload = {"language": "en", "document_type": "blood", **fields, "readings": readings}
    return ParsedLabResult.model_validate(payload)


def make_document(store: SQLiteStore, account_id: str, clock: FakeClock) -> Document:
    document = Document(
        id=f"doc-{clock().timestamp()}-{account_id}",
        account_id=account_id,
        storage_path=f"{account_id}/page.jpg",
        file_type="image/jpeg",
        status=DocumentStatus.PROCESSING,
        created_at=clock(),
    )
    return store.insert_document(document)


SMALL_CATALOG = [
    Biomarker(
        id="bm-hemoglobin", canonical_name="hemoglobin", display_name_en="Hemoglobin",
        display_name_local="Гемоглобин", aliases=["hgb", "hb", "haemoglobin"],
        category="blood", unit_default="g/dL", sort_order=10,
    ),
    Biomarker(
        id="bm-wbc", canonical_name="wbc", display_name_en="White blood cells",
        display_name_local="Лейкоциты", aliases=["leukociti", "leukocytes"],
        category="blood", unit_default="10^9/L", sort_order=20,
    ),
    Biomarker(
        id="bm-glucose", canonical_name="glucose", display_name_en="Glucose",
        display_name_local="Глюкоза", aliases=["glukoza", "glu", "blood sugar"],
        category="biochemistry", unit_default="mmol/L", sort_order=30,
    ),
    Biomarker(
        id="bm-cholesterol", canonical_name="cholesterol_total", display_name_en="Total cholesterol",
        display_name_local="Холестерин общий", aliases=["cholesterol", "holesterol"],
        category="biochemistry", unit_default="mmol/L", sort_order=40,
    ),
    Biomarker(
        id="bm-iron", canonical_name="iron", display_name_en="Iron",
        display_name_local="Железо", aliases=["gvožđe", "fe", "serum iron"],
        category="biochemistry", unit_default="umol/L", sort_order=50,
    ),
]


@pytest.fixture
def clock():
    """Clock frozen at 2026-03-10 09:00 UTC until advanced"""
    return FakeClock(datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def settings():
    return IngestionSettings()


@pytest.fixture
def store(tmp_path, clock):
    """SQLite store in a temp directory, seeded with a small catalog"""
    db = SQLiteStore(tmp_path / "test.db", clock=clock)
    db.upsert_biomarkers(SMALL_CATALOG)
    return db


@pytest.fixture
def account(store):
    return store.get_or_create_account("100", username="anna")


@pytest.fixture
def object_storage(tmp_path):
    return LocalObjectStorage(
        root=tmp_path / "documents",
        signing_secret="test-secret",
        public_base_url="https://files.example.test",
    )


@pytest.fixture
def fake_parser():
    return FakeParser()


@pytest.fixture
def outcomes():
    """Outcomes delivered through the orchestrator callback"""
    return []


@pytest.fixture
def orchestrator(store, fake_parser, object_storage, clock, settings, outcomes):
    return IngestionOrchestrator(
        store=store,
        parser=fake_parser,
        object_storage=object_storage,
        settings=settings,
        clock=clock,
        on_outcome=outcomes.append,
    )
