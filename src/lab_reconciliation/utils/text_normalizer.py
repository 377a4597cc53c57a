# ============================================================================
# src/lab_reconciliation/utils/text_normalizer.py
# ============================================================================
"""
Text Normalization Utilities

Shared by name keys and biomarker matching:
- Cyrillic -> Latin transliteration (fixed character map)
- Latin diacritic folding (Serbian/German lab reports)
- Whitespace collapsing
"""

import re
import unicodedata

from ..constants.transliteration import CYRILLIC_TO_LATIN, LATIN_SPECIAL_FOLDS

_WHITESPACE_RE = re.compile(r'\s+')


def transliterate(text: str) -> str:
    """
    Transliterate Cyrillic characters to Latin and fold Latin diacritics.

    Case is preserved for single-letter replacements; callers lowercase
    afterwards anyway.

    Examples:
        "Краснова Евгения" -> "Krasnova Evgeniia"
        "Gvožđe" -> "Gvozdje"
    """
    if not text:
        return ""

    out = []
    for ch in text:
        lower = ch.lower()
        if lower in CYRILLIC_TO_LATIN:
            latin = CYRILLIC_TO_LATIN[lower]
            out.append(latin.capitalize() if ch != lower and latin else latin)
        elif lower in LATIN_SPECIAL_FOLDS:
            latin = LATIN_SPECIAL_FOLDS[lower]
            out.append(latin.capitalize() if ch != lower else latin)
        else:
            out.append(ch)

    # NFKD splits "č" into "c" + combining caron; drop the combining marks
    decomposed = unicodedata.normalize('NFKD', ''.join(out))
    return ''.join(c for c in decomposed if not unicodedata.combining(c))


def collapse_whitespace(text: str) -> str:
    """Collapse runs of whitespace into single spaces and strip."""
    if not text:
        return ""
    return _WHITESPACE_RE.sub(' ', text).strip()


def title_case_name(name: str) -> str:
    """
    Render a person name for display: each whitespace-delimited word
    capitalized, rest lowercased.

    Examples:
        "KRASNOVA evgeniia" -> "Krasnova Evgeniia"
    """
    return ' '.join(w[:1].upper() + w[1:].lower() for w in name.split())
