# ============================================================================
# src/lab_reconciliation/config/__init__.py
# ============================================================================
"""
Convenient imports for all settings
"""

from .base_config import base_settings, BaseSettingsConfig
from .ingestion_config import ingestion_settings, IngestionSettings
from .parser_config import parser_settings, ParserSettings
from .logging_config import logging_settings, LoggingSettings
