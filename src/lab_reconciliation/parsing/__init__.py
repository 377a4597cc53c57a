"""
Document parsing service clients.
"""

from .schemas import ParsedLabResult, ParsedReading
from .base import BaseLabParser, ParseResult
from .prompts import build_parse_prompt
from .anthropic_client import AnthropicLabParser
from .openai_client import OpenAILabParser
from .fallback import FallbackLabParser, RandomOrderLabParser
from .client import create_parser

__all__ = [
    "ParsedLabResult",
    "ParsedReading",
    "BaseLabParser",
    "ParseResult",
    "build_parse_prompt",
    "AnthropicLabParser",
    "OpenAILabParser",
    "FallbackLabParser",
    "RandomOrderLabParser",
    "create_parser",
]
