# src/lab_reconciliation/matching/__init__.py

from .distance import levenshtein_distance
from .name_key import name_key, same_person
from .biomarker_matcher import BiomarkerMatcher, BiomarkerCatalog, normalize_label
from .profile_resolver import ProfileResolver, AVATAR_COLORS

__all__ = [
    "levenshtein_distance",
    "name_key",
    "same_person",
    "BiomarkerMatcher",
    "BiomarkerCatalog",
    "normalize_label",
    "ProfileResolver",
    "AVATAR_COLORS",
]
