# ============================================================================
# src/lab_reconciliation/parsing/client.py
# ============================================================================
"""
Factory for the configured document parsing provider.

Usage:
    from lab_reconciliation.parsing import create_parser

    parser = create_parser()
    parsed = await parser.parse(data, "image/jpeg", locale="ru")
"""

import logging
from typing import Callable, Optional

from ..config.parser_config import ParserSettings, parser_settings
from ..utils.exceptions import ConfigurationError
from .anthropic_client import AnthropicLabParser
from .base import BaseLabParser
from .fallback import RandomOrderLabParser
from .openai_client import OpenAILabParser

logger = logging.getLogger(__name__)


def create_parser(
    settings: Optional[ParserSettings] = None,
    chooser: Optional[Callable[[], bool]] = None,
) -> BaseLabParser:
    """
    Build the parser for AI_PROVIDER.

    - claude: Claude only
    - openai: GPT-4o only
    - both: random provider per document, the other one as fallback
    """
    settings = settings or parser_settings
    provider = settings.AI_PROVIDER

    if provider == "claude":
        parser = AnthropicLabParser(settings)
    elif provider == "openai":
        parser = OpenAILabParser(settings)
    elif provider == "both":
        parser = RandomOrderLabParser(
            AnthropicLabParser(settings), OpenAILabParser(settings), chooser=chooser
        )
    else:
        raise ConfigurationError(f"Unknown AI_PROVIDER: {provider}")

    logger.info(f"Document parser: {parser.provider_name}")
    return parser
