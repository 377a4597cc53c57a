# ============================================================================
# src/lab_reconciliation/parsing/base.py
# ============================================================================
"""
Base Lab Parser Interface

Every document parsing provider implements `parse()` and returns a
ParseResult: the validated ParsedLabResult plus AI provenance (model id,
token counts, latency) that is stored on the Document for audit.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional
import json
import logging

from json_repair import repair_json
from pydantic import ValidationError

from ..utils.exceptions import ProviderError
from .schemas import ParsedLabResult


@dataclass
class ParseResult:
    result: ParsedLabResult
    model: str
    tokens_in: int = 0
    tokens_out: int = 0
    processing_time_ms: int = 0


class BaseLabParser(ABC):
    """
    Abstract base class for document parsing providers.

    Subclasses implement:
    - provider_name: short identifier used in logs and errors
    - parse(): bytes + mime type + locale hint -> ParseResult
    """

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)

    @property
    @abstractmethod
    def provider_name(self) -> str:
        pass

    @abstractmethod
    async def parse(self, data: bytes, mime_type: str, locale: str = "en") -> ParseResult:
        """
        Parse one lab report.

        Raises:
            ParsingError: provider failed or returned nothing usable
        """
        pass

    async def close(self):
        """Release provider resources (HTTP sessions). No-op by default."""
        pass

    def extract_json(self, response_text: str) -> Optional[Dict[str, Any]]:
        """
        Extract the JSON object from model output.

        Models wrap JSON in markdown fences or prose, and sometimes emit
        trailing commas or single quotes. json_repair handles the latter.
        """
        if not response_text or not response_text.strip():
            self.logger.warning("Empty response text, no JSON to extract")
            return None

        text = response_text.strip()
        if text.startswith("```"):
            text = text.strip("`")
            if text.lower().startswith("json"):
                text = text[4:]
            text = text.strip()

        try:
            parsed = json.loads(text)
            if isinstance(parsed, dict):
                return parsed
        except json.JSONDecodeError:
            pass

        start, end = text.find('{'), text.rfind('}')
        if start != -1 and end > start:
            text = text[start:end + 1]

        repaired = repair_json(text, return_objects=True)
        if isinstance(repaired, dict):
            self.logger.debug("json_repair fixed model output")
            return repaired

        self.logger.warning(f"Could not parse JSON from response: {response_text[:200]}...")
        return None

    def build_result(self, response_text: str) -> ParsedLabResult:
        """Validate model output into a ParsedLabResult."""
        payload = self.extract_json(response_text)
        if payload is None:
            raise ProviderError(f"{self.provider_name} returned no JSON object", self.provider_name)
        try:
            return ParsedLabResult.model_validate(payload)
        except ValidationError as e:
            raise ProviderError(
                f"{self.provider_name} returned an invalid lab result: {e.error_count()} errors",
                self.provider_name,
            ) from e
