# ============================================================================
# tests/unit/test_unit_converter.py
# ============================================================================
"""
Tests for unit normalization and canonical conversion
"""

import pytest

from lab_reconciliation.constants.unit_conversions import BIOMARKER_CONVERSIONS, GENERIC_CONVERSIONS
from lab_reconciliation.reconciliation.unit_converter import (
    find_factor,
    normalize_unit,
    rescale_bounds,
    to_canonical,
)


class TestNormalizeUnit:
    """Test unit spelling normalization"""

    @pytest.mark.parametrize("raw,expected", [
        ("g/L", "g/l"),
        (" g / dL ", "g/dl"),
        ("µmol/L", "umol/l"),
        ("μmol/l", "umol/l"),
        ("мкмоль/л", "umol/l"),
        ("ммоль/л", "mmol/l"),
        ("г/л", "g/l"),
        ("10^9/L", "x10^9/l"),
        ("10*9/l", "x10^9/l"),
        ("×10^9/L", "x10^9/l"),
        ("K/uL", "x10^9/l"),
        ("IU/L", "u/l"),
        ("Ед/л", "u/l"),
    ])
    def test_spellings(self, raw, expected):
        """Test unit spellings map to one normalized form"""
        assert normalize_unit(raw) == expected

    def test_empty(self):
        """Test missing unit normalizes to empty string"""
        assert normalize_unit(None) == ""
        assert normalize_unit("") == ""


class TestToCanonical:
    """Test conversion into the canonical unit"""

    def test_hemoglobin_g_per_l_to_g_per_dl(self):
        """Test hemoglobin g/L to g/dL with reference bounds"""
        result = to_canonical(7.2, "g/L", "g/dL", "hemoglobin")
        assert result.converted
        assert result.value == pytest.approx(0.72)
        assert result.unit == "g/dL"
        assert result.factor == pytest.approx(0.1)

        ref_min, ref_max = rescale_bounds(12, 16, result.factor)
        assert ref_min == pytest.approx(1.2)
        assert ref_max == pytest.approx(1.6)

    def test_biomarker_specific_factor(self):
        """Test biomarker-specific factor is used"""
        result = to_canonical(5.5, "mmol/L", "mg/dL", "glucose")
        assert result.value == pytest.approx(99.088)
        assert result.factor == pytest.approx(18.016)

    def test_specific_factor_requires_biomarker(self):
        """Test molar conversions need the biomarker"""
        result = to_canonical(5.5, "mmol/L", "mg/dL")
        assert not result.converted
        assert result.value == 5.5
        assert result.unit == "mmol/L"

    def test_same_unit_unchanged(self):
        """Test same unit in another spelling is unchanged"""
        result = to_canonical(5.1, "ммоль/л", "mmol/L", "glucose")
        assert not result.converted
        assert result.value == 5.1
        assert result.factor == 1.0

    def test_no_path_returns_input(self):
        """Test unknown conversion returns the input"""
        result = to_canonical(3.3, "furlongs", "mmol/L", "glucose")
        assert not result.converted
        assert result.value == 3.3
        assert result.unit == "furlongs"

    def test_missing_units_return_input(self):
        """Test missing units return the input"""
        assert to_canonical(1.0, None, "g/dL").value == 1.0
        assert to_canonical(1.0, "g/L", None).unit == "g/L"

    def test_rounded_to_four_places(self):
        """Test converted value rounded to 4 decimal places"""
        result = to_canonical(1.23456, "mmol/L", "mg/dL", "cholesterol_total")
        assert result.value == round(1.23456 * 38.67, 4)

    @pytest.mark.parametrize("value,unit,canonical,biomarker", [
        (7.2, "g/L", "g/dL", "hemoglobin"),
        (5.5, "mmol/L", "mg/dL", "glucose"),
        (1.0, "mg/dL", "µmol/L", "creatinine"),
    ])
    def test_round_trip(self, value, unit, canonical, biomarker):
        """Test converting to the canonical unit and back gives the original value"""
        forward = to_canonical(value, unit, canonical, biomarker)
        back = to_canonical(forward.value, canonical, unit, biomarker)
        assert back.value == pytest.approx(value, abs=1e-4)


def _table_pairs():
    pairs = []
    for source, targets in GENERIC_CONVERSIONS.items():
        pairs.extend((None, source, target) for target in targets)
    for biomarker, table in BIOMARKER_CONVERSIONS.items():
        for source, targets in table.items():
            pairs.extend((biomarker, source, target) for target in targets)
    return pairs


@pytest.mark.parametrize("biomarker,source,target", _table_pairs())
def test_every_table_pair_round_trips(biomarker, source, target):
    """Test forward and reverse factors of every table pair are exact inverses"""
    forward = find_factor(source, target, biomarker)
    back = find_factor(target, source, biomarker)
    assert forward is not None and back is not None
    assert forward * back == pytest.approx(1.0, abs=1e-12)
    for value in (0.05, 1.0, 80.0, 1234.5678):
        assert round(value * forward * back, 4) == pytest.approx(value, abs=1e-4)


def test_reverse_factor_is_inverse_of_stored_one():
    """Test reverse factor derived from the stored direction"""
    assert find_factor("umol/l", "mg/dl", "creatinine") == pytest.approx(1 / 88.4)
    assert find_factor("mg/dl", "mmol/l", "glucose") == pytest.approx(1 / 18.016)
    assert find_factor("g/dl", "g/l") == pytest.approx(10.0)


def test_find_factor_prefers_biomarker_table():
    """Test biomarker table wins over generic factors"""
    assert find_factor("mmol/l", "mg/dl", "glucose") == pytest.approx(18.016)
    assert find_factor("mmol/l", "mg/dl", "cholesterol_total") == pytest.approx(38.67)
    assert find_factor("g/l", "g/dl") == pytest.approx(0.1)
    assert find_factor("g/l", "furlongs") is None


def test_rescale_bounds_keeps_missing_bounds():
    """Test rescaling keeps missing bounds missing"""
    assert rescale_bounds(None, 16, 0.1) == (None, pytest.approx(1.6))
    assert rescale_bounds(None, None, 0.1) == (None, None)
    assert rescale_bounds(12, 16, 1.0) == (12, 16)
