# ============================================================================
# src/lab_reconciliation/matching/biomarker_matcher.py
# ============================================================================
"""
Biomarker Matcher

Resolves a free-text reading label ("Hemoglobin", "Гемоглобин", "Leukociti(10)")
to a canonical catalog entry.

Strategy (in order):
1. Exact match of the normalized label against canonical name, English
   display name, local display name and every alias. First hit in catalog
   order wins.
2. Fuzzy match (labels of 4+ characters only): Levenshtein distance against
   the same candidate strings. The globally closest candidate within
   max(2, floor(len * 0.2)) wins; ties keep the first one encountered.

No match is a normal outcome: the reading is stored without a biomarker.

The catalog is a snapshot. It is loaded explicitly and only changes when
refresh() is called, so tests control exactly what the matcher sees.
"""

import re
from typing import List, Optional, Tuple
import logging

from ..config.ingestion_config import IngestionSettings, ingestion_settings
from ..core.models import Biomarker, BiomarkerRef
from ..utils.text_normalizer import transliterate, collapse_whitespace
from .distance import levenshtein_distance

logger = logging.getLogger(__name__)

_PUNCTUATION_RE = re.compile(r'[()\[\]{},.:;*"\']')


def normalize_label(label: Optional[str]) -> str:
    """
    Normalize a biomarker label or catalog string for comparison.

    Examples:
        "Leukociti(10)"  -> "leukociti 10"
        "Гемоглобин"     -> "gemoglobin"
        "C-Reactive Protein" -> "c-reactive protein"
    """
    if not label:
        return ""
    text = transliterate(label).lower()
    text = _PUNCTUATION_RE.sub(' ', text)
    return collapse_whitespace(text)


class BiomarkerCatalog:
    """
    Immutable snapshot of the biomarker catalog with precomputed
    normalized candidate strings.
    """

    def __init__(self, biomarkers: List[Biomarker]):
        self.biomarkers = list(biomarkers)
        self._candidates: List[Tuple[BiomarkerRef, List[str]]] = []

        for bm in self.biomarkers:
            ref = BiomarkerRef(id=bm.id, canonical_name=bm.canonical_name, unit_default=bm.unit_default)
            raw = [bm.canonical_name, bm.display_name_en, bm.display_name_local, *bm.aliases]
            normalized = []
            for text in raw:
                value = normalize_label(text)
                if value and value not in normalized:
                    normalized.append(value)
            self._candidates.append((ref, normalized))

    @classmethod
    def load(cls, store) -> "BiomarkerCatalog":
        """Build a snapshot from the store's read-only catalog."""
        biomarkers = store.load_biomarkers()
        logger.info(f"Loaded biomarker catalog: {len(biomarkers)} entries")
        return cls(biomarkers)

    @property
    def candidates(self) -> List[Tuple[BiomarkerRef, List[str]]]:
        return self._candidates

    def __len__(self) -> int:
        return len(self.biomarkers)


class BiomarkerMatcher:

    def __init__(
        self,
        store=None,
        catalog: Optional[BiomarkerCatalog] = None,
        settings: Optional[IngestionSettings] = None,
    ):
        if catalog is None and store is None:
            raise ValueError("BiomarkerMatcher needs a store or a catalog snapshot")
        self.store = store
        self.settings = settings or ingestion_settings
        self.catalog = catalog if catalog is not None else BiomarkerCatalog.load(store)

    def refresh(self) -> BiomarkerCatalog:
        """Reload the catalog snapshot from the store."""
        if self.store is None:
            raise ValueError("Cannot refresh a catalog that was not loaded from a store")
        self.catalog = BiomarkerCatalog.load(self.store)
        return self.catalog

    def match(self, label: Optional[str]) -> Optional[BiomarkerRef]:
        normalized = normalize_label(label)
        if not normalized:
            return None

        # 1. Exact
        for ref, candidates in self.catalog.candidates:
            if normalized in candidates:
                return ref

        # 2. Fuzzy
        if len(normalized) < self.settings.MIN_FUZZY_LABEL_LENGTH:
            return None

        threshold = self.settings.fuzzy_threshold(len(normalized))
        best_ref: Optional[BiomarkerRef] = None
        best_distance = threshold + 1

        for ref, candidates in self.catalog.candidates:
            for candidate in candidates:
                # Distance is at least the length difference
                if abs(len(candidate) - len(normalized)) > threshold + 2:
                    continue
                distance = levenshtein_distance(normalized, candidate)
                if distance < best_distance:
                    best_distance = distance
                    best_ref = ref

        if best_ref is not None:
            logger.debug(
                f"Fuzzy biomarker match: '{label}' -> {best_ref.canonical_name} (distance {best_distance})"
            )
        return best_ref
