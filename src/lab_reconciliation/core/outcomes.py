# ============================================================================
# src/lab_reconciliation/core/outcomes.py
# ============================================================================
"""
Structured outcomes handed to the presentation layer.

One outcome per upload step the user should hear about. Rendering
(chat message, dashboard card, localization) is not done here.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from ..core.models import Profile


class OutcomeKind(str, Enum):
    ACCEPTED = "accepted"               # upload stored, processing in background
    PROMPT_PROFILE = "prompt_profile"   # no patient name: pick a profile or "new"
    PROMPT_NAME = "prompt_name"         # "new" chosen: type the patient's name
    NAME_REJECTED = "name_rejected"     # typed name too short
    SUCCESS = "success"                 # readings saved
    REJECTED = "rejected"               # no_readings / duplicate
    ERROR = "error"                     # unexpected failure
    EXPIRED = "expired"                 # pending-name prompt timed out
    QUOTA_EXCEEDED = "quota_exceeded"   # no uploads left this month
    IGNORED = "ignored"                 # input with nothing pending


@dataclass(frozen=True)
class ProfileOption:
    id: str
    full_name: str
    avatar_color: str
    is_primary: bool = False

    @classmethod
    def from_profile(cls, profile: Profile) -> "ProfileOption":
        return cls(
            id=profile.id,
            full_name=profile.full_name,
            avatar_color=profile.avatar_color,
            is_primary=profile.is_primary,
        )


@dataclass
class IngestionOutcome:
    kind: OutcomeKind
    account_id: Optional[str] = None
    document_id: Optional[str] = None
    profile_id: Optional[str] = None
    summary: Optional[str] = None
    reading_count: int = 0
    flagged_count: int = 0
    flagged_examples: List[str] = field(default_factory=list)
    profile_options: List[ProfileOption] = field(default_factory=list)
    can_add_profile: bool = True
    failure_reason: Optional[str] = None
    remaining_uploads: Optional[int] = None     # None = unlimited
    is_continuation: bool = False

    @property
    def is_terminal(self) -> bool:
        """True once the document reached done or error."""
        return self.kind in (
            OutcomeKind.SUCCESS, OutcomeKind.REJECTED, OutcomeKind.ERROR, OutcomeKind.EXPIRED
        )
