# src/lab_reconciliation/reconciliation/__init__.py

from .unit_converter import ConvertedValue, normalize_unit, find_factor, to_canonical, rescale_bounds
from .continuation import ContinuationDetector, ContinuationMatch, LastUploadState
from .pending_name import PendingNameMachine, PendingNameState, Transition, TransitionKind
from .quota import QuotaPolicy, UploadAllowance, next_monthly_reset

__all__ = [
    "ConvertedValue",
    "normalize_unit",
    "find_factor",
    "to_canonical",
    "rescale_bounds",
    "ContinuationDetector",
    "ContinuationMatch",
    "LastUploadState",
    "PendingNameMachine",
    "PendingNameState",
    "Transition",
    "TransitionKind",
    "QuotaPolicy",
    "UploadAllowance",
    "next_monthly_reset",
]
