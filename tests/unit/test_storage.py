# ============================================================================
# tests/unit/test_storage.py
# ============================================================================
"""
Tests for the SQLite store and the write-once object storage
"""

import pytest

from lab_reconciliation.config.base_config import BaseSettingsConfig
from lab_reconciliation.constants.enums import DocumentStatus, ReadingFlag
from lab_reconciliation.core.models import Profile, Reading
from lab_reconciliation.storage.object_storage import safe_file_name
from lab_reconciliation.storage.sqlite_store import SQLiteStore
from lab_reconciliation.utils.exceptions import (
    ObjectExistsError,
    ObjectStorageError,
    RecordNotFoundError,
    StoreError,
)

from conftest import make_document


def _profile(store, account_id, profile_id, name, key, primary=False):
    return store.insert_profile(Profile(
        id=profile_id, account_id=account_id, full_name=name,
        normalized_name=key, avatar_color="#6366f1", is_primary=primary,
    ))


class TestAccounts:
    """Test account records"""

    def test_get_or_create_is_idempotent(self, store):
        """Test get_or_create returns the same account"""
        first = store.get_or_create_account("42", username="anna", locale="sr")
        again = store.get_or_create_account("42")

        assert again.id == first.id
        assert again.locale == "sr"
        assert again.plan == "free"
        assert again.monthly_uploads == 0

    def test_default_locale(self, store):
        """Test default locale for new accounts"""
        assert store.get_or_create_account("43").locale == "ru"

    def test_username_refreshed(self, store):
        """Test username is refreshed on access"""
        store.get_or_create_account("42", username="anna")
        updated = store.get_or_create_account("42", username="anna_k")

        assert updated.username == "anna_k"
        assert store.get_account(updated.id).username == "anna_k"

    def test_increment_is_persistent(self, store, account):
        """Test monthly counter increments are stored"""
        assert store.increment_monthly_uploads(account.id) == 1
        assert store.increment_monthly_uploads(account.id) == 2
        assert store.get_account(account.id).monthly_uploads == 2

    def test_increment_unknown_account(self, store):
        """Test increment on a missing account raises"""
        with pytest.raises(RecordNotFoundError):
            store.increment_monthly_uploads("missing")

    def test_update_unknown_column(self, store, account):
        """Test update with an unknown column raises"""
        with pytest.raises(StoreError):
            store.update_account(account.id, favourite_colour="blue")


class TestProfiles:
    """Test profile records"""

    def test_primary_listed_first(self, store, account):
        """Test primary profile listed first"""
        _profile(store, account.id, "p1", "Ivan Petrov", "ivan petrov")
        _profile(store, account.id, "p2", "Ana Petrova", "ana petrova", primary=True)
        _profile(store, account.id, "p3", "Olga Petrova", "olga petrova")

        assert [p.id for p in store.list_profiles(account.id)] == ["p2", "p1", "p3"]

    def test_round_trip(self, store, account):
        """Test profile fields survive storage"""
        _profile(store, account.id, "p1", "Ivan Petrov", "ivan petrov", primary=True)

        profile = store.get_profile("p1")
        assert profile.is_primary is True
        assert profile.created_at is not None

    def test_rename_updates_name_key(self, store, account):
        """Test rename recomputes the name key"""
        _profile(store, account.id, "p1", "Ivan Petrov", "ivan petrov")

        renamed = store.rename_profile("p1", "petrov  ivan sergeevich")

        assert renamed.full_name == "Petrov Ivan Sergeevich"
        assert renamed.normalized_name == "ivan petrov sergeevich"

    def test_rename_missing_profile(self, store):
        """Test rename of a missing profile raises"""
        with pytest.raises(RecordNotFoundError):
            store.rename_profile("missing", "Name")

    def test_delete_keeps_documents(self, store, account, clock):
        """Test deleting a profile keeps its documents"""
        _profile(store, account.id, "p1", "Ivan Petrov", "ivan petrov")
        document = make_document(store, account.id, clock)
        store.update_document(document.id, profile_id="p1")
        store.insert_readings([
            Reading(document_id=document.id, profile_id="p1", original_name="Hb", tested_at="2026-03-10", value=14.0)
        ])

        assert store.delete_profile("p1")

        assert store.get_profile("p1") is None
        assert store.list_readings(document.id) == []
        assert store.get_document(document.id).profile_id is None
        assert not store.delete_profile("p1")


class TestDocuments:
    """Test document records"""

    def test_round_trip(self, store, account, clock):
        """Test document fields survive storage"""
        document = make_document(store, account.id, clock)
        store.update_document(
            document.id,
            status=DocumentStatus.DONE,
            parsed_json={"readings": [], "patient_name": "Ана"},
            is_partial=True,
        )

        stored = store.get_document(document.id)
        assert stored.status == DocumentStatus.DONE
        assert stored.parsed_json == {"readings": [], "patient_name": "Ана"}
        assert stored.is_partial is True
        assert stored.created_at == clock()

    def test_update_missing_document(self, store):
        """Test update of a missing document raises"""
        with pytest.raises(RecordNotFoundError):
            store.update_document("missing", status=DocumentStatus.ERROR)

    def test_find_completed_documents(self, store, account, clock):
        """Test completed documents found by date and type"""
        done = make_document(store, account.id, clock)
        store.update_document(done.id, status=DocumentStatus.DONE, parsed_date="2026-03-09", document_type="blood")

        clock.advance(seconds=1)
        other_type = make_document(store, account.id, clock)
        store.update_document(other_type.id, status=DocumentStatus.DONE, parsed_date="2026-03-09", document_type="urine")

        clock.advance(seconds=1)
        failed = make_document(store, account.id, clock)
        store.update_document(failed.id, status=DocumentStatus.ERROR, parsed_date="2026-03-09", document_type="blood")

        clock.advance(seconds=1)
        page = make_document(store, account.id, clock)
        store.update_document(
            page.id, status=DocumentStatus.DONE, parsed_date="2026-03-09",
            document_type="blood", continuation_of=done.id,
        )

        found = store.find_completed_documents(account.id, "2026-03-09", "blood")
        assert [d.id for d in found] == [done.id]
        assert store.find_completed_documents(account.id, "2026-03-09", "blood", exclude_id=done.id) == []

    def test_find_completed_matches_missing_type(self, store, account, clock):
        """Test missing document type matches only missing type"""
        document = make_document(store, account.id, clock)
        store.update_document(document.id, status=DocumentStatus.DONE, parsed_date="2026-03-09")

        assert len(store.find_completed_documents(account.id, "2026-03-09", None)) == 1
        assert store.find_completed_documents(account.id, "2026-03-09", "blood") == []


class TestReadings:
    """Test reading records"""

    def test_insert_assigns_ids_and_keeps_order(self, store, account, clock):
        """Test batch insert assigns ids in order"""
        document = make_document(store, account.id, clock)
        readings = [
            Reading(document_id=document.id, profile_id="p1", original_name="Hb", tested_at="2026-03-10",
                    value=14.0, unit="g/dL", flag=ReadingFlag.NORMAL),
            Reading(document_id=document.id, profile_id="p1", original_name="HBsAg", tested_at="2026-03-10",
                    value_text="negative", is_qualitative=True),
        ]

        assert store.insert_readings(readings) == 2

        stored = store.list_readings(document.id)
        assert [r.original_name for r in stored] == ["Hb", "HBsAg"]
        assert all(r.id for r in stored)
        assert stored[1].is_qualitative is True
        assert stored[1].value is None

    def test_insert_nothing(self, store):
        """Test empty batch inserts nothing"""
        assert store.insert_readings([]) == 0


class TestCatalog:
    """Test biomarker catalog storage"""

    def test_load_in_sort_order(self, store):
        """Test catalog loads in sort order"""
        names = [b.canonical_name for b in store.load_biomarkers()]
        assert names == ["hemoglobin", "wbc", "glucose", "cholesterol_total", "iron"]

    def test_aliases_round_trip(self, store):
        """Test aliases and local names survive storage"""
        hemoglobin = store.load_biomarkers()[0]
        assert hemoglobin.aliases == ["hgb", "hb", "haemoglobin"]
        assert hemoglobin.display_name_local == "Гемоглобин"

    def test_upsert_replaces(self, store):
        """Test upsert replaces existing entries"""
        hemoglobin = store.load_biomarkers()[0]
        hemoglobin.unit_default = "g/L"

        store.upsert_biomarkers([hemoglobin])

        assert len(store.load_biomarkers()) == 5
        assert store.load_biomarkers()[0].unit_default == "g/L"

    def test_seed_catalog_from_knowledge_file(self, tmp_path, clock):
        """Test catalog seeded from the bundled knowledge file"""
        seeded = SQLiteStore(tmp_path / "seed.db", clock=clock)
        path = BaseSettingsConfig().get_catalog_seed_path()

        count = seeded.seed_catalog(path)

        catalog = seeded.load_biomarkers()
        assert count == len(catalog) > 0
        hemoglobin = next(b for b in catalog if b.canonical_name == "hemoglobin")
        assert hemoglobin.display_name_local == "Гемоглобин"
        assert "hgb" in hemoglobin.aliases


class TestObjectStorage:
    """Test local object storage"""

    def test_upload_and_read(self, object_storage):
        """Test upload then read back"""
        path = object_storage.object_path("acc", "scan.jpg", 1700000000000, "3f2a9c1e-0000-4000-8000-000000000000")

        object_storage.upload(path, b"bytes")

        assert path == "acc/1700000000000_3f2a9c1e_scan.jpg"
        assert object_storage.exists(path)
        assert object_storage.read(path) == b"bytes"

    def test_same_name_and_time_get_distinct_paths(self, object_storage):
        """Test document id keeps same-name paths apart"""
        first = object_storage.object_path("acc", "photo.jpg", 1700000000000, "aaaaaaaa-1111")
        second = object_storage.object_path("acc", "photo.jpg", 1700000000000, "bbbbbbbb-2222")

        object_storage.upload(first, b"1")
        object_storage.upload(second, b"2")

        assert first != second
        assert object_storage.read(first) == b"1"
        assert object_storage.read(second) == b"2"

    def test_write_once(self, object_storage):
        """Test objects are never overwritten"""
        object_storage.upload("acc/1_a.jpg", b"first")

        with pytest.raises(ObjectExistsError):
            object_storage.upload("acc/1_a.jpg", b"second")
        assert object_storage.read("acc/1_a.jpg") == b"first"

    def test_read_missing(self, object_storage):
        """Test reading a missing object raises"""
        with pytest.raises(ObjectStorageError):
            object_storage.read("acc/missing.jpg")

    @pytest.mark.parametrize("path", ["../outside.jpg", "acc/../../outside.jpg"])
    def test_path_cannot_escape_root(self, object_storage, path):
        """Test paths outside the root are refused"""
        with pytest.raises(ObjectStorageError):
            object_storage.upload(path, b"x")

    @pytest.mark.parametrize("raw,expected", [
        ("scan.jpg", "scan.jpg"),
        ("../../etc/passwd", "passwd"),
        ("анализ крови.pdf", "pdf"),
        ("my report (1).pdf", "my_report_1_.pdf"),
        ("", "document"),
    ])
    def test_safe_file_name(self, raw, expected):
        """Test file names are made path safe"""
        assert safe_file_name(raw) == expected

    def test_signed_url_verifies(self, object_storage):
        """Test signed URL verifies before expiry"""
        url = object_storage.signed_url("acc/1_a.jpg", expires_in=300, now=1000)

        assert url.startswith("https://files.example.test/acc/1_a.jpg?expires=1300&signature=")
        signature = url.rsplit("=", 1)[1]
        assert object_storage.verify_signature("acc/1_a.jpg", 1300, signature, now=1200)

    def test_signature_bound_to_path(self, object_storage):
        """Test signature does not verify another path"""
        url = object_storage.signed_url("acc/1_a.jpg", expires_in=300, now=1000)
        signature = url.rsplit("=", 1)[1]

        assert not object_storage.verify_signature("acc/2_b.jpg", 1300, signature, now=1200)

    def test_expired_signature(self, object_storage):
        """Test expired signature is refused"""
        url = object_storage.signed_url("acc/1_a.jpg", expires_in=300, now=1000)
        signature = url.rsplit("=", 1)[1]

        assert not object_storage.verify_signature("acc/1_a.jpg", 1300, signature, now=1301)
