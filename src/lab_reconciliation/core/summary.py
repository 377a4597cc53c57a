# ============================================================================
# src/lab_reconciliation/core/summary.py
# ============================================================================
"""
Plain-text upload summary.
"""

from typing import List, Optional

from ..constants.enums import ReadingFlag
from ..parsing.schemas import ParsedLabResult, ParsedReading

_FLAG_MARKERS = {
    ReadingFlag.HIGH: "↑",
    ReadingFlag.LOW: "↓",
}


def _format_value(value) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def flagged_example(reading: ParsedReading) -> str:
    """'↑ Glucose: 7.1 mmol/L' style line for one out-of-range reading."""
    marker = _FLAG_MARKERS.get(reading.flag, "!")
    unit = f" {reading.unit}" if reading.unit else ""
    return f"{marker} {reading.name}: {_format_value(reading.value)}{unit}"


def flagged_examples(result: ParsedLabResult, limit: int) -> List[str]:
    return [flagged_example(r) for r in result.flagged_readings[:limit]]


def compose_summary(
    result: ParsedLabResult,
    is_continuation: bool,
    remaining: Optional[int],
    max_examples: int = 10,
    patient_name: Optional[str] = None,
) -> str:
    """
    Summary shown after a document completes.

    Args:
        result: Parsed document
        is_continuation: Page was attached to the previous report
        remaining: Uploads left after this one (None = unlimited)
        max_examples: Cap on listed out-of-range readings
        patient_name: Resolved name when the document carried none
    """
    reading_count = len(result.readings)
    flagged = result.flagged_readings
    lines = []

    if is_continuation:
        lines.append("Continuation page added to the previous report.")
        lines.append(f"Readings added: {reading_count}")
    else:
        lines.append("Lab report processed.")
        name = patient_name or result.patient_name
        if name:
            lines.append(f"Patient: {name}")
        if result.test_date:
            lines.append(f"Date: {result.test_date}")
        if result.lab_name:
            lines.append(f"Lab: {result.lab_name}")
        lines.append(f"Readings found: {reading_count}")

    if flagged:
        lines.append(f"Out of range: {len(flagged)}")
        lines.extend(flagged_examples(result, max_examples))
    elif not is_continuation:
        lines.append("All readings within range.")

    if not is_continuation:
        left = "unlimited" if remaining is None else str(remaining)
        lines.append(f"Uploads left this month: {left}")

    return "\n".join(lines)
