# ============================================================================
# src/lab_reconciliation/core/models.py
# ============================================================================
"""
Persistent record types
- ExternalUser: sender identity from the messaging platform
- Account: messaging-platform user, plan and monthly upload counter
- Profile: family member under an account
- Document: one uploaded artifact and everything parsed from it
- Reading: one biomarker measurement
- Biomarker: static catalog entry
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..constants.enums import DocumentStatus, DocumentSource, ReadingFlag


@dataclass(frozen=True)
class ExternalUser:
    """Sender identity as reported by the messaging platform."""
    external_id: str
    username: Optional[str] = None
    display_name: Optional[str] = None
    locale: Optional[str] = None


@dataclass
class Account:
    id: str
    external_id: str
    username: Optional[str] = None
    display_name: Optional[str] = None
    locale: str = "ru"
    plan: str = "free"
    plan_expires_at: Optional[datetime] = None
    monthly_uploads: int = 0
    monthly_uploads_reset_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


@dataclass
class Profile:
    id: str
    account_id: str
    full_name: str
    normalized_name: str            # name key, see matching.name_key
    avatar_color: str
    is_primary: bool = False
    date_of_birth: Optional[str] = None
    sex: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass
class Document:
    id: str
    account_id: str
    storage_path: str
    file_type: str
    status: DocumentStatus = DocumentStatus.PENDING
    source: DocumentSource = DocumentSource.TELEGRAM
    file_size: Optional[int] = None
    profile_id: Optional[str] = None
    error_message: Optional[str] = None

    # Parsed metadata
    parsed_name: Optional[str] = None
    parsed_date: Optional[str] = None
    parsed_dob: Optional[str] = None
    parsed_sex: Optional[str] = None
    document_type: Optional[str] = None
    lab_name: Optional[str] = None
    language: Optional[str] = None
    is_partial: bool = False
    parsed_json: Optional[Dict[str, Any]] = None

    # AI provenance
    ai_model: Optional[str] = None
    ai_tokens_in: int = 0
    ai_tokens_out: int = 0
    processing_time_ms: Optional[int] = None

    # Set on continuation pages: the document their readings were filed under
    continuation_of: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass
class Reading:
    document_id: str
    profile_id: str
    original_name: str
    tested_at: str
    flag: ReadingFlag = ReadingFlag.NORMAL
    biomarker_id: Optional[str] = None
    value: Optional[float] = None
    value_text: Optional[str] = None
    is_qualitative: bool = False
    unit: Optional[str] = None
    ref_min: Optional[float] = None
    ref_max: Optional[float] = None
    id: Optional[str] = None


@dataclass
class Biomarker:
    id: str
    canonical_name: str
    display_name_en: str
    display_name_local: Optional[str] = None
    aliases: List[str] = field(default_factory=list)
    category: str = "other"
    unit_default: Optional[str] = None
    ref_range_male_min: Optional[float] = None
    ref_range_male_max: Optional[float] = None
    ref_range_female_min: Optional[float] = None
    ref_range_female_max: Optional[float] = None
    sort_order: int = 0


@dataclass(frozen=True)
class BiomarkerRef:
    """What the matcher hands back: enough to file and convert a reading."""
    id: str
    canonical_name: str
    unit_default: Optional[str] = None
