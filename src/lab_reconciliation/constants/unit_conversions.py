# ============================================================================
# src/lab_reconciliation/constants/unit_conversions.py
# ============================================================================
"""
Unit Conversion Tables
- Convert lab units between different measurement systems

Layout of knowledge/unit_conversions.json:
    "generic":    {source_unit: {target_unit: factor}}, one direction per pair
    "biomarkers": {canonical_name: {source_unit: {target_unit: factor}}}
    "aliases":    {spelling: normalized_unit}

All unit keys are already normalized (see reconciliation.unit_converter).
"""

import json
from pathlib import Path

# Path: constants/ -> lab_reconciliation/ -> knowledge/
_knowledge_dir = Path(__file__).parent.parent / "knowledge"

with open(_knowledge_dir / "unit_conversions.json", encoding="utf-8") as f:
    _table = json.load(f)

GENERIC_CONVERSIONS = _table["generic"]
BIOMARKER_CONVERSIONS = _table["biomarkers"]
UNIT_ALIASES = _table["aliases"]
