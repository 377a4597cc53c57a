# ============================================================================
# src/lab_reconciliation/core/__init__.py
# ============================================================================
"""
Core record types and process-local state primitives.

The orchestrator is imported from lab_reconciliation.core.orchestrator
(or the package root); it depends on every other subpackage.
"""

from .models import Account, Biomarker, BiomarkerRef, Document, ExternalUser, Profile, Reading
from .state_store import StateEntry, TTLStateStore
from .keyed_lock import KeyedLock
from .outcomes import IngestionOutcome, OutcomeKind, ProfileOption
