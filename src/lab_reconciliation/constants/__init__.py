# ============================================================================
# src/lab_reconciliation/constants/__init__.py
# ============================================================================
"""
Convenient imports for all constants
"""

from .enums import (
    DocumentStatus,
    FailureReason,
    ReadingFlag,
    DocumentType,
    DocumentSource,
    PendingStage,
    CONTINUATION_SENTINEL_NAME,
    NEW_PROFILE_CHOICE,
)
from .plans import PLAN_LIMITS, PlanLimits, get_plan_limits
from .transliteration import CYRILLIC_TO_LATIN, LATIN_SPECIAL_FOLDS
from .unit_conversions import GENERIC_CONVERSIONS, BIOMARKER_CONVERSIONS, UNIT_ALIASES
