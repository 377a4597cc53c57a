# ============================================================================
# src/lab_reconciliation/utils/__init__.py
# ============================================================================
"""
Utility modules for the reconciliation engine.
"""

from .exceptions import (
    LabReconciliationError,
    ParsingError,
    ProviderError,
    ProviderNotConfiguredError,
    StoreError,
    RecordNotFoundError,
    ObjectStorageError,
    ObjectExistsError,
    ConfigurationError,
    QuotaExceededError,
    InvalidNameError,
)

from .logging import (
    setup_logging,
    get_logger,
    LogAdapter,
    log_performance,
)

from .text_normalizer import (
    transliterate,
    collapse_whitespace,
    title_case_name,
)

__all__ = [
    # Exceptions
    'LabReconciliationError',
    'ParsingError',
    'ProviderError',
    'ProviderNotConfiguredError',
    'StoreError',
    'RecordNotFoundError',
    'ObjectStorageError',
    'ObjectExistsError',
    'ConfigurationError',
    'QuotaExceededError',
    'InvalidNameError',
    # Logging
    'setup_logging',
    'get_logger',
    'LogAdapter',
    'log_performance',
    # Text
    'transliterate',
    'collapse_whitespace',
    'title_case_name',
]
