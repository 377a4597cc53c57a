# ============================================================================
# src/lab_reconciliation/parsing/schemas.py
# ============================================================================
"""
Structured result returned by the document parsing service.

Models are lenient on input (LLM output): blank strings become None,
decimal commas are accepted, unknown flags become "needs_review".
"""

from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..constants.enums import ReadingFlag


def _to_float(value) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).strip().replace(',', '.')
    if not text:
        return None
    try:
        return float(text)
    except ValueError:
        return None


def _blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value.strip() if isinstance(value, str) else value


class ParsedReading(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    value: Union[float, str, None] = None
    value_numeric: bool = True
    unit: Optional[str] = None
    ref_min: Optional[float] = None
    ref_max: Optional[float] = None
    flag: ReadingFlag = ReadingFlag.NORMAL

    @field_validator("unit", mode="before")
    @classmethod
    def _blank_unit(cls, v):
        return _blank_to_none(v)

    @field_validator("ref_min", "ref_max", mode="before")
    @classmethod
    def _parse_bound(cls, v):
        return _to_float(v)

    @field_validator("flag", mode="before")
    @classmethod
    def _coerce_flag(cls, v):
        if v is None or (isinstance(v, str) and not v.strip()):
            return ReadingFlag.NORMAL
        text = str(v).strip().lower()
        try:
            return ReadingFlag(text)
        except ValueError:
            return ReadingFlag.NEEDS_REVIEW

    @model_validator(mode="after")
    def _settle_value_kind(self):
        # "7,2" reported as numeric -> 7.2; unparseable "numeric" -> qualitative
        if self.value_numeric:
            number = _to_float(self.value)
            if number is None:
                self.value_numeric = False
            else:
                self.value = number
        elif self.value is not None and not isinstance(self.value, str):
            self.value = str(self.value)
        return self

    @property
    def numeric_value(self) -> Optional[float]:
        return self.value if self.value_numeric else None

    @property
    def is_out_of_range(self) -> bool:
        return self.flag != ReadingFlag.NORMAL


class ParsedLabResult(BaseModel):
    model_config = ConfigDict(extra="ignore")

    patient_name: Optional[str] = None
    test_date: Optional[str] = None
    lab_name: Optional[str] = None
    language: Optional[str] = None
    document_type: Optional[str] = None
    patient_dob: Optional[str] = None
    patient_sex: Optional[str] = None
    partial_result: bool = False
    readings: List[ParsedReading] = Field(default_factory=list)
    notes: List[str] = Field(default_factory=list)

    @field_validator(
        "patient_name", "test_date", "lab_name", "language", "patient_dob",
        mode="before",
    )
    @classmethod
    def _blank_strings(cls, v):
        return _blank_to_none(v)

    @field_validator("document_type", mode="before")
    @classmethod
    def _normalize_type(cls, v):
        v = _blank_to_none(v)
        return v.lower() if isinstance(v, str) else v

    @field_validator("patient_sex", mode="before")
    @classmethod
    def _normalize_sex(cls, v):
        v = _blank_to_none(v)
        if not isinstance(v, str):
            return None
        v = v.lower()
        return v if v in ("male", "female") else None

    @field_validator("readings", "notes", mode="before")
    @classmethod
    def _none_to_list(cls, v):
        return [] if v is None else v

    @property
    def flagged_readings(self) -> List[ParsedReading]:
        return [r for r in self.readings if r.is_out_of_range]
