# ============================================================================
# src/lab_reconciliation/parsing/anthropic_client.py
# ============================================================================
"""
Claude Vision Parser

Calls the Anthropic Messages API over plain HTTP (aiohttp). Images go in
as base64 image blocks; PDFs are sent natively as document blocks.
"""

import asyncio
import base64
import time
from typing import Any, Dict, Optional

import aiohttp

from ..config.parser_config import ParserSettings, parser_settings
from ..utils.exceptions import ProviderError, ProviderNotConfiguredError
from .base import BaseLabParser, ParseResult
from .prompts import build_parse_prompt

PDF_MIME_TYPE = "application/pdf"


class AnthropicLabParser(BaseLabParser):

    def __init__(self, settings: Optional[ParserSettings] = None):
        super().__init__()
        self.settings = settings or parser_settings
        self.model = self.settings.ANTHROPIC_MODEL
        self._session: Optional[aiohttp.ClientSession] = None
        self._session_loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def provider_name(self) -> str:
        return "claude"

    def is_configured(self) -> bool:
        return bool(self.settings.ANTHROPIC_API_KEY)

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session for the current event loop."""
        loop = asyncio.get_running_loop()
        if self._session is None or self._session.closed or self._session_loop is not loop:
            timeout = aiohttp.ClientTimeout(total=self.settings.REQUEST_TIMEOUT_SECONDS)
            self._session = aiohttp.ClientSession(timeout=timeout)
            self._session_loop = loop
        return self._session

    async def close(self):
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None
        self._session_loop = None

    def build_payload(self, data: bytes, mime_type: str, prompt: str) -> Dict[str, Any]:
        encoded = base64.b64encode(data).decode("utf-8")
        block_type = "document" if mime_type == PDF_MIME_TYPE else "image"
        content_block = {
            "type": block_type,
            "source": {"type": "base64", "media_type": mime_type, "data": encoded},
        }
        return {
            "model": self.model,
            "max_tokens": self.settings.MAX_TOKENS,
            "messages": [
                {
                    "role": "user",
                    "content": [content_block, {"type": "text", "text": prompt}],
                }
            ],
        }

    async def parse(self, data: bytes, mime_type: str, locale: str = "en") -> ParseResult:
        if not self.is_configured():
            raise ProviderNotConfiguredError("ANTHROPIC_API_KEY is not set", self.provider_name)

        payload = self.build_payload(data, mime_type, build_parse_prompt(locale))
        headers = {
            "x-api-key": self.settings.ANTHROPIC_API_KEY,
            "anthropic-version": self.settings.ANTHROPIC_API_VERSION,
            "content-type": "application/json",
        }
        url = f"{self.settings.ANTHROPIC_BASE_URL.rstrip('/')}/v1/messages"

        start = time.perf_counter()
        session = await self._get_session()
        try:
            async with session.post(url, json=payload, headers=headers) as response:
                if response.status != 200:
                    body = await response.text()
                    raise ProviderError(
                        f"Anthropic API returned {response.status}: {body[:300]}", self.provider_name
                    )
                body = await response.json()
        except aiohttp.ClientError as e:
            raise ProviderError(f"Anthropic request failed: {e}", self.provider_name) from e

        text = next(
            (block.get("text", "") for block in body.get("content", []) if block.get("type") == "text"),
            None,
        )
        if not text:
            raise ProviderError("No text response from Claude", self.provider_name)

        result = self.build_result(text)
        usage = body.get("usage") or {}
        elapsed_ms = int((time.perf_counter() - start) * 1000)

        self.logger.info(f"Claude parsed document in {elapsed_ms}ms: {len(result.readings)} readings")
        return ParseResult(
            result=result,
            model=self.model,
            tokens_in=usage.get("input_tokens", 0),
            tokens_out=usage.get("output_tokens", 0),
            processing_time_ms=elapsed_ms,
        )
