# ============================================================================
# src/lab_reconciliation/config/parser_config.py
# ============================================================================
"""
Document Parsing Service Settings
- Provider selection (claude | openai | both)
- Credentials and model ids
- Request limits
"""

from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ParserSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    AI_PROVIDER: Literal["claude", "openai", "both"] = Field(
        default="claude",
        description="'both' picks a provider at random per upload and falls back to the other on failure"
    )

    ANTHROPIC_API_KEY: Optional[str] = Field(default=None)
    ANTHROPIC_BASE_URL: str = Field(default="https://api.anthropic.com")
    ANTHROPIC_MODEL: str = Field(default="claude-sonnet-4-5")
    ANTHROPIC_API_VERSION: str = Field(default="2023-06-01")

    OPENAI_API_KEY: Optional[str] = Field(default=None)
    OPENAI_BASE_URL: str = Field(default="https://api.openai.com/v1")
    OPENAI_MODEL: str = Field(default="gpt-4o")

    MAX_TOKENS: int = Field(
        default=4096,
        gt=0,
        description="Completion budget for one document"
    )
    REQUEST_TIMEOUT_SECONDS: float = Field(
        default=120.0,
        gt=0,
        description="Total timeout for one parsing request"
    )


parser_settings = ParserSettings()
