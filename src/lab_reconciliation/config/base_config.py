# ============================================================================
# src/lab_reconciliation/config/base_config.py
# ============================================================================
"""
Base Configuration
- Project root
- Knowledge base directory (catalog seed, unit tables)
- SQLite store path
- Object storage directory and URL signing
"""

from pathlib import Path
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseSettingsConfig(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Root project directory
    PROJECT_ROOT: Path = Field(
        default_factory=lambda: Path(__file__).parent.parent.parent.parent,
        description="Root directory of the project"
    )

    # Knowledge bases
    KNOWLEDGE_DIR: Path = Field(
        default_factory=lambda: Path(__file__).parent.parent / "knowledge",
        description="Biomarker catalog seed and unit conversion tables"
    )

    # Persistent store
    DATABASE_PATH: Path = Field(
        default=Path("data/lab_reconciliation.db"),
        description="SQLite database for accounts, profiles, documents, readings"
    )

    # Original document bytes
    STORAGE_DIR: Path = Field(
        default=Path("data/documents"),
        description="Write-once object storage root for uploaded documents"
    )
    STORAGE_SIGNING_SECRET: str = Field(
        default="change-me",
        description="HMAC secret for short-lived signed document URLs"
    )
    PUBLIC_BASE_URL: str = Field(
        default="http://localhost:8000/files",
        description="Base URL the presentation layer serves signed files from"
    )

    def create_directories(self):
        """Create all necessary directories if they don't exist"""
        dirs = [
            self.STORAGE_DIR,
            self.DATABASE_PATH.parent,
        ]
        for directory in dirs:
            directory.mkdir(parents=True, exist_ok=True)

    def get_catalog_seed_path(self) -> Path:
        """Biomarker catalog seed file"""
        return self.KNOWLEDGE_DIR / "biomarkers.json"


# Global instance
base_settings = BaseSettingsConfig()
