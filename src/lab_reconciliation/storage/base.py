# ============================================================================
# src/lab_reconciliation/storage/base.py
# ============================================================================
"""
Persistent store interface used by the reconciliation core.

Implementations raise StoreError subclasses on failure. Lookups of a single
row return None when it does not exist; updates of a missing row raise
RecordNotFoundError.
"""

from abc import ABC, abstractmethod
from typing import Any, List, Optional

from ..core.models import Account, Biomarker, Document, Profile, Reading


class BaseStore(ABC):

    # Accounts
    @abstractmethod
    def get_or_create_account(
        self,
        external_id: str,
        username: Optional[str] = None,
        display_name: Optional[str] = None,
        locale: Optional[str] = None,
    ) -> Account:
        pass

    @abstractmethod
    def get_account(self, account_id: str) -> Optional[Account]:
        pass

    @abstractmethod
    def update_account(self, account_id: str, **fields: Any) -> None:
        pass

    @abstractmethod
    def increment_monthly_uploads(self, account_id: str) -> int:
        """Atomically add one upload; returns the new count."""
        pass

    # Profiles
    @abstractmethod
    def list_profiles(self, account_id: str) -> List[Profile]:
        """Primary profile first, then by creation time."""
        pass

    @abstractmethod
    def get_profile(self, profile_id: str) -> Optional[Profile]:
        pass

    @abstractmethod
    def insert_profile(self, profile: Profile) -> Profile:
        pass

    @abstractmethod
    def rename_profile(self, profile_id: str, full_name: str) -> Profile:
        pass

    @abstractmethod
    def delete_profile(self, profile_id: str) -> bool:
        pass

    # Documents
    @abstractmethod
    def insert_document(self, document: Document) -> Document:
        pass

    @abstractmethod
    def get_document(self, document_id: str) -> Optional[Document]:
        pass

    @abstractmethod
    def update_document(self, document_id: str, **fields: Any) -> None:
        pass

    @abstractmethod
    def find_completed_documents(
        self,
        account_id: str,
        test_date: str,
        document_type: Optional[str],
        exclude_id: Optional[str] = None,
    ) -> List[Document]:
        """Done documents of the account with this parsed date and type."""
        pass

    # Readings
    @abstractmethod
    def insert_readings(self, readings: List[Reading]) -> int:
        pass

    @abstractmethod
    def list_readings(self, document_id: str) -> List[Reading]:
        pass

    # Catalog
    @abstractmethod
    def load_biomarkers(self) -> List[Biomarker]:
        """Catalog in sort order."""
        pass

    @abstractmethod
    def upsert_biomarkers(self, biomarkers: List[Biomarker]) -> int:
        pass
