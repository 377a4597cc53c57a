# ============================================================================
# src/lab_reconciliation/config/ingestion_config.py
# ============================================================================
"""
Ingestion Thresholds
- Continuation and pending-name windows
- Fuzzy matching distance thresholds
- Summary limits
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class IngestionSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    CONTINUATION_WINDOW_SECONDS: float = Field(
        default=120.0,
        gt=0,
        description="A page arriving within this window of the previous page may continue it. Slides with every page."
    )
    PENDING_NAME_TIMEOUT_SECONDS: float = Field(
        default=600.0,
        gt=0,
        description="Unanswered patient-name prompts expire after this long and fail the document."
    )
    FUZZY_DISTANCE_RATIO: float = Field(
        default=0.2,
        ge=0.0, le=1.0,
        description="Edit distance allowed per character of the candidate string"
    )
    FUZZY_MIN_DISTANCE: int = Field(
        default=2,
        ge=0,
        description="Edit distance always allowed regardless of length"
    )
    MIN_FUZZY_LABEL_LENGTH: int = Field(
        default=4,
        ge=1,
        description="Biomarker labels shorter than this are matched exactly only"
    )
    MIN_NAME_LENGTH: int = Field(
        default=2,
        ge=1,
        description="Shortest patient name accepted from free-text input"
    )
    LAB_NAME_PREFIX_LENGTH: int = Field(
        default=6,
        ge=1,
        description="Characters of the lab name compared when detecting continuation pages"
    )
    MAX_FLAGGED_EXAMPLES: int = Field(
        default=10,
        ge=0,
        description="Out-of-range readings listed in the upload summary"
    )
    SIGNED_URL_TTL_SECONDS: int = Field(
        default=300,
        gt=0,
        description="Lifetime of signed document URLs handed to the presentation layer"
    )

    def fuzzy_threshold(self, length: int) -> int:
        """max(FUZZY_MIN_DISTANCE, floor(length * FUZZY_DISTANCE_RATIO))"""
        return max(self.FUZZY_MIN_DISTANCE, int(length * self.FUZZY_DISTANCE_RATIO))


ingestion_settings = IngestionSettings()
