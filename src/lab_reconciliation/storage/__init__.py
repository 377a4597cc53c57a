# src/lab_reconciliation/storage/__init__.py

from .base import BaseStore
from .sqlite_store import SQLiteStore
from .object_storage import LocalObjectStorage, safe_file_name

__all__ = [
    "BaseStore",
    "SQLiteStore",
    "LocalObjectStorage",
    "safe_file_name",
]
