# ============================================================================
# src/lab_reconciliation/constants/transliteration.py
# ============================================================================
"""
Fixed Cyrillic -> Latin character map.

Russian letters follow the ICAO Doc 9303 table used in machine-readable
passports, so a name typed from a passport ("Krasnova Evgeniia") and the
same name printed by a Russian lab ("Краснова Евгения") produce the same
string. Serbian Cyrillic letters use the Serbian Latin alphabet
(diacritics folded).
"""

CYRILLIC_TO_LATIN = {
    # Russian
    "а": "a", "б": "b", "в": "v", "г": "g", "д": "d",
    "е": "e", "ё": "e", "ж": "zh", "з": "z", "и": "i",
    "й": "i", "к": "k", "л": "l", "м": "m", "н": "n",
    "о": "o", "п": "p", "р": "r", "с": "s", "т": "t",
    "у": "u", "ф": "f", "х": "kh", "ц": "ts", "ч": "ch",
    "ш": "sh", "щ": "shch", "ъ": "ie", "ы": "y", "ь": "",
    "э": "e", "ю": "iu", "я": "ia",
    # Ukrainian / Belarusian extras
    "є": "ie", "і": "i", "ї": "i", "ґ": "g", "ў": "u",
    # Serbian / Macedonian
    "ђ": "dj", "ј": "j", "љ": "lj", "њ": "nj", "ћ": "c",
    "џ": "dz", "ѓ": "gj", "ќ": "kj", "ѕ": "dz",
}

# Latin letters NFKD does not decompose into base + combining mark
LATIN_SPECIAL_FOLDS = {
    "đ": "dj",
    "ß": "ss",
    "æ": "ae",
    "ø": "o",
    "ł": "l",
    "ı": "i",
}
