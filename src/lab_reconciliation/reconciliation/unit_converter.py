# ============================================================================
# src/lab_reconciliation/reconciliation/unit_converter.py
# ============================================================================
"""
Unit Conversion

Converts a reading into its biomarker's canonical unit.

- Units are compared in normalized form ("µmol/L", "мкмоль/л" and
  "umol/l" are the same unit).
- Biomarker-specific factors win over generic ones (mmol/L -> mg/dL
  depends on molar mass).
- No known path is a normal outcome: value and unit come back unchanged.

When a conversion happens the caller rescales reference bounds with the
exact factor returned here (rescale_bounds), so flags computed against
those bounds stay valid.
"""

import re
from dataclasses import dataclass
from typing import Optional, Tuple

from ..constants.unit_conversions import (
    BIOMARKER_CONVERSIONS,
    GENERIC_CONVERSIONS,
    UNIT_ALIASES,
)

_WHITESPACE_RE = re.compile(r'\s+')

DECIMAL_PLACES = 4


@dataclass(frozen=True)
class ConvertedValue:
    value: float
    unit: Optional[str]
    factor: float = 1.0
    converted: bool = False


def normalize_unit(unit: Optional[str]) -> str:
    """
    Examples:
        "µmol/L"   -> "umol/l"
        "мкмоль/л" -> "umol/l"
        "10^9/L"   -> "x10^9/l"
        "K/uL"     -> "x10^9/l"
    """
    if not unit:
        return ""
    text = unit.strip().lower()
    text = text.replace('µ', 'u').replace('μ', 'u').replace('×', 'x')
    text = _WHITESPACE_RE.sub('', text)
    return UNIT_ALIASES.get(text, text)


def _lookup(table: dict, from_unit: str, to_unit: str) -> Optional[float]:
    # Each pair is stored once; the reverse direction is the exact inverse
    direct = table.get(from_unit, {})
    if to_unit in direct:
        return float(direct[to_unit])
    reverse = table.get(to_unit, {})
    if from_unit in reverse:
        return 1.0 / float(reverse[from_unit])
    return None


def find_factor(from_unit: str, to_unit: str, biomarker_key: Optional[str] = None) -> Optional[float]:
    """Multiplicative factor between two normalized units, or None."""
    if biomarker_key:
        specific = _lookup(BIOMARKER_CONVERSIONS.get(biomarker_key, {}), from_unit, to_unit)
        if specific is not None:
            return specific
    return _lookup(GENERIC_CONVERSIONS, from_unit, to_unit)


def to_canonical(
    value: float,
    from_unit: Optional[str],
    canonical_unit: Optional[str],
    biomarker_key: Optional[str] = None,
) -> ConvertedValue:
    """
    Convert value from from_unit into canonical_unit.

    Returns the input unchanged (factor 1.0) when the units already agree
    or no conversion path is known. Never raises.
    """
    source = normalize_unit(from_unit)
    target = normalize_unit(canonical_unit)

    if not source or not target or source == target:
        return ConvertedValue(value=value, unit=from_unit)

    factor = find_factor(source, target, biomarker_key)
    if factor is None:
        return ConvertedValue(value=value, unit=from_unit)

    return ConvertedValue(
        value=round(value * factor, DECIMAL_PLACES),
        unit=canonical_unit,
        factor=factor,
        converted=True,
    )


def rescale_bounds(
    ref_min: Optional[float],
    ref_max: Optional[float],
    factor: float,
) -> Tuple[Optional[float], Optional[float]]:
    """Apply a conversion factor to reference bounds, leaving missing bounds missing."""
    if factor == 1.0:
        return ref_min, ref_max
    new_min = round(ref_min * factor, DECIMAL_PLACES) if ref_min is not None else None
    new_max = round(ref_max * factor, DECIMAL_PLACES) if ref_max is not None else None
    return new_min, new_max
