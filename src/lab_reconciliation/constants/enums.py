# ============================================================================
# src/lab_reconciliation/constants/enums.py
# ============================================================================
"""
Ingestion Enums
- Document lifecycle status and failure reasons
- Reading flags
- Document types reported by the parsing service
- Pending-name stages
"""

from enum import Enum


class DocumentStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    DONE = "done"
    ERROR = "error"


class FailureReason(str, Enum):
    NO_READINGS = "no_readings"   # parsing succeeded, zero readings
    DUPLICATE = "duplicate"       # same account + name + date + type already done
    TIMEOUT = "timeout"           # pending-name not answered in time
    SUPERSEDED = "superseded"     # newer pending-name upload replaced this one
    QUOTA_EXCEEDED = "quota_exceeded"  # limit reached while the upload was queued


class ReadingFlag(str, Enum):
    NORMAL = "normal"
    LOW = "low"
    HIGH = "high"
    CRITICAL = "critical"
    NEEDS_REVIEW = "needs_review"
    ABNORMAL = "abnormal"


class DocumentType(str, Enum):
    BLOOD = "blood"
    BIOCHEMISTRY = "biochemistry"
    HORMONE = "hormone"
    MICROBIOLOGY = "microbiology"
    URINE = "urine"
    OTHER = "other"


class DocumentSource(str, Enum):
    TELEGRAM = "telegram"
    WEB = "web"
    API = "api"


class PendingStage(str, Enum):
    SELECT_PROFILE = "select_profile"
    ENTER_NAME = "enter_name"
    RESOLVED = "resolved"


# Parsed name stored on continuation page documents
CONTINUATION_SENTINEL_NAME = "Additional page"

# Choice value meaning "add a new person" in the profile prompt
NEW_PROFILE_CHOICE = "new"
