# ============================================================================
# src/lab_reconciliation/parsing/openai_client.py
# ============================================================================
"""
GPT-4o Vision Parser

Calls the OpenAI Chat Completions API over plain HTTP (aiohttp) in JSON
mode. Images go in as data URLs. GPT-4o does not take PDFs as images, so
PDF text is extracted with pdfplumber and sent as text; scanned PDFs with
no text layer are rejected with a request to send a photo instead.
"""

import asyncio
import base64
import io
import time
from typing import Any, Dict, List, Optional

import aiohttp
import pdfplumber

from ..config.parser_config import ParserSettings, parser_settings
from ..utils.exceptions import ParsingError, ProviderError, ProviderNotConfiguredError
from .base import BaseLabParser, ParseResult
from .prompts import build_parse_prompt

PDF_MIME_TYPE = "application/pdf"

# Below this many characters a PDF is treated as a scan without a text layer
MIN_PDF_TEXT_LENGTH = 30


def extract_pdf_text(data: bytes) -> str:
    """Concatenated text of every PDF page."""
    pages = []
    with pdfplumber.open(io.BytesIO(data)) as pdf:
        for page in pdf.pages:
            pages.append(page.extract_text() or "")
    return "\n\n".join(pages)


class OpenAILabParser(BaseLabParser):

    def __init__(self, settings: Optional[ParserSettings] = None):
        super().__init__()
        self.settings = settings or parser_settings
        self.model = self.settings.OPENAI_MODEL
        self._session: Optional[aiohttp.ClientSession] = None
        self._session_loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def provider_name(self) -> str:
        return "openai"

    def is_configured(self) -> bool:
        return bool(self.settings.OPENAI_API_KEY)

    async def _get_session(self) -> aiohttp.ClientSession:
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

    def build_content(self, data: bytes, mime_type: str, prompt: str) -> List[Dict[str, Any]]:
        if mime_type == PDF_MIME_TYPE:
            text = extract_pdf_text(data)
            if len(text.strip()) < MIN_PDF_TEXT_LENGTH:
                raise ParsingError(
                    "Could not extract text from the PDF (probably a scan). Please send a photo of the document."
                )
            return [{"type": "text", "text": f"Medical document text (PDF):\n\n{text}\n\n{prompt}"}]

        encoded = base64.b64encode(data).decode("utf-8")
        return [
            {"type": "image_url", "image_url": {"url": f"data:{mime_type};base64,{encoded}"}},
            {"type": "text", "text": prompt},
        ]

    async def parse(self, data: bytes, mime_type: str, locale: str = "en") -> ParseResult:
        if not self.is_configured():
            raise ProviderNotConfiguredError("OPENAI_API_KEY is not set", self.provider_name)

        # pdfplumber is synchronous; keep it off the event loop
        content = await asyncio.to_thread(self.build_content, data, mime_type, build_parse_prompt(locale))
        payload = {
            "model": self.model,
            "max_tokens": self.settings.MAX_TOKENS,
            "response_format": {"type": "json_object"},
            "messages": [{"role": "user", "content": content}],
        }
        headers = {"Authorization": f"Bearer {self.settings.OPENAI_API_KEY}"}
        url = f"{self.settings.OPENAI_BASE_URL.rstrip('/')}/chat/completions"

        start = time.perf_counter()
        session = await self._get_session()
        try:
            async with session.post(url, json=payload, headers=headers) as response:
                if response.status != 200:
                    body = await response.text()
                    raise ProviderError(
                        f"OpenAI API returned {response.status}: {body[:300]}", self.provider_name
                    )
                body = await response.json()
        except aiohttp.ClientError as e:
            raise ProviderError(f"OpenAI request failed: {e}", self.provider_name) from e

        choices = body.get("choices") or []
        text = choices[0].get("message", {}).get("content") if choices else None
        if not text:
            raise ProviderError("No response from OpenAI", self.provider_name)

        result = self.build_result(text)
        usage = body.get("usage") or {}
        elapsed_ms = int((time.perf_counter() - start) * 1000)

        self.logger.info(f"OpenAI parsed document in {elapsed_ms}ms: {len(result.readings)} readings")
        return ParseResult(
            result=result,
            model=self.model,
            tokens_in=usage.get("prompt_tokens", 0),
            tokens_out=usage.get("completion_tokens", 0),
            processing_time_ms=elapsed_ms,
        )
