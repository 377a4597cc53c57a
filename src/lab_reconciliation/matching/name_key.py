# ============================================================================
# src/lab_reconciliation/matching/name_key.py
# ============================================================================
"""
Name Key Normalizer

Turns a free-text person name into a comparison key that is stable under:
- script (Cyrillic <-> Latin, via the fixed transliteration map)
- token order ("Krasnova Evgeniia" == "Evgeniia Krasnova")
- hyphen / underscore / whitespace variation
- case

Two names share a key iff their transliterated token multisets are equal.
Near misses ("Evgenija" vs "Evgeniia") are left to the fuzzy step of the
profile resolver.
"""

import re
from typing import Optional

from ..utils.text_normalizer import transliterate

_SEPARATORS_RE = re.compile(r'[-_]')


def name_key(name: Optional[str]) -> str:
    """
    Examples:
        "Краснова Евгения"   -> "evgeniia krasnova"
        "KRASNOVA  Evgeniia" -> "evgeniia krasnova"
        "Anna-Maria Petrović" -> "anna maria petrovic"
    """
    if not name:
        return ""

    text = transliterate(name).lower()
    text = _SEPARATORS_RE.sub(' ', text)
    tokens = text.split()
    return ' '.join(sorted(tokens))


def same_person(a: Optional[str], b: Optional[str]) -> bool:
    """True when both names are present and share a name key."""
    if not a or not b:
        return False
    key_a = name_key(a)
    return bool(key_a) and key_a == name_key(b)
