# ============================================================================
# src/lab_reconciliation/utils/exceptions.py
# ============================================================================
"""
Custom exceptions for the lab reconciliation engine.
"""


class LabReconciliationError(Exception):
    """Base exception for all reconciliation errors."""
    pass


class ParsingError(LabReconciliationError):
    """The document parsing service failed or returned unusable output."""
    pass


class ProviderError(ParsingError):
    """A single parsing provider failed."""
    def __init__(self, message: str, provider: str):
        super().__init__(message)
        self.provider = provider


class ProviderNotConfiguredError(ProviderError):
    """Provider is missing credentials."""
    pass


class StoreError(LabReconciliationError):
    """Error talking to the persistent store."""
    pass


class RecordNotFoundError(StoreError):
    """Requested row does not exist."""
    def __init__(self, message: str, table: str, record_id: str):
        super().__init__(message)
        self.table = table
        self.record_id = record_id


class ObjectStorageError(LabReconciliationError):
    """Error reading or writing document bytes."""
    pass


class ObjectExistsError(ObjectStorageError):
    """Object storage is write-once; the path is already taken."""
    pass


class ConfigurationError(LabReconciliationError):
    """Invalid configuration."""
    pass


class QuotaExceededError(LabReconciliationError):
    """Account has no uploads left this month."""
    def __init__(self, message: str, plan: str):
        super().__init__(message)
        self.plan = plan


class InvalidNameError(LabReconciliationError):
    """Patient name has nothing left to compare once normalized."""
    pass
