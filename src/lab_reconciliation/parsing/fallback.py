# ============================================================================
# src/lab_reconciliation/parsing/fallback.py
# ============================================================================
"""
Provider composition

- FallbackLabParser: try the primary provider, on any failure try the
  secondary. The secondary's error propagates.
- RandomOrderLabParser: A/B split between two providers. The chooser
  decides which one goes first; the other becomes its fallback.
"""

import random
from typing import Callable, Optional

from .base import BaseLabParser, ParseResult


def coin_flip() -> bool:
    return random.random() > 0.5


class FallbackLabParser(BaseLabParser):

    def __init__(self, primary: BaseLabParser, secondary: BaseLabParser):
        super().__init__()
        self.primary = primary
        self.secondary = secondary

    @property
    def provider_name(self) -> str:
        return f"{self.primary.provider_name}+{self.secondary.provider_name}"

    async def parse(self, data: bytes, mime_type: str, locale: str = "en") -> ParseResult:
        try:
            return await self.primary.parse(data, mime_type, locale)
        except Exception as e:
            self.logger.warning(
                f"{self.primary.provider_name} failed ({type(e).__name__}: {e}), "
                f"falling back to {self.secondary.provider_name}"
            )
        return await self.secondary.parse(data, mime_type, locale)

    async def close(self):
        await self.primary.close()
        await self.secondary.close()


class RandomOrderLabParser(BaseLabParser):
    """
    Args:
        first: Provider used when chooser() returns True
        second: Provider used when chooser() returns False
        chooser: Zero-argument callable; defaults to a fair coin flip
    """

    def __init__(
        self,
        first: BaseLabParser,
        second: BaseLabParser,
        chooser: Optional[Callable[[], bool]] = None,
    ):
        super().__init__()
        self.first = first
        self.second = second
        self.chooser = chooser or coin_flip

    @property
    def provider_name(self) -> str:
        return f"{self.first.provider_name}|{self.second.provider_name}"

    def pick(self) -> FallbackLabParser:
        if self.chooser():
            return FallbackLabParser(self.first, self.second)
        return FallbackLabParser(self.second, self.first)

    async def parse(self, data: bytes, mime_type: str, locale: str = "en") -> ParseResult:
        chosen = self.pick()
        self.logger.info(f"A/B provider selection: using {chosen.primary.provider_name}")
        return await chosen.parse(data, mime_type, locale)

    async def close(self):
        await self.first.close()
        await self.second.close()
