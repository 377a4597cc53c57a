# ============================================================================
# src/lab_reconciliation/matching/profile_resolver.py
# ============================================================================
"""
Profile Resolver

Find-or-create the family-member profile a lab report belongs to.

1. Exact: name key of the raw name equals an existing profile's key.
2. Fuzzy: smallest Levenshtein distance between keys, accepted when
   <= max(2, floor(len(candidate_key) * 0.2)). Ties keep the first profile.
3. Create: title-cased display name, random avatar color, primary iff the
   account has no profiles yet.

Matching never mutates existing profiles. Names whose key is empty
("--", "__") are refused with InvalidNameError.
"""

import random
import uuid
from datetime import datetime, timezone
from typing import Callable, List, Optional
import logging

from ..config.ingestion_config import IngestionSettings, ingestion_settings
from ..core.models import Profile
from ..utils.exceptions import InvalidNameError
from ..utils.text_normalizer import title_case_name
from .distance import levenshtein_distance
from .name_key import name_key

AVATAR_COLORS = [
    '#6366f1', '#10b981', '#f59e0b', '#ef4444',
    '#8b5cf6', '#06b6d4', '#ec4899', '#14b8a6',
]


class ProfileResolver:

    def __init__(
        self,
        store,
        settings: Optional[IngestionSettings] = None,
        rng: Optional[random.Random] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.settings = settings or ingestion_settings
        self.rng = rng or random.Random()
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.logger = logging.getLogger(__name__)

    def find(self, profiles: List[Profile], raw_name: str) -> Optional[Profile]:
        """Exact-then-fuzzy lookup among already loaded profiles."""
        key = name_key(raw_name)
        if not key:
            return None

        for profile in profiles:
            if profile.normalized_name == key:
                return profile

        threshold = self.settings.fuzzy_threshold(len(key))
        best: Optional[Profile] = None
        best_distance = threshold + 1
        for profile in profiles:
            if not profile.normalized_name:
                continue
            distance = levenshtein_distance(key, profile.normalized_name)
            if distance < best_distance:
                best, best_distance = profile, distance

        if best is not None:
            self.logger.info(
                f"Fuzzy profile match: '{raw_name}' -> '{best.full_name}' (distance {best_distance})"
            )
        return best

    def resolve(
        self,
        account_id: str,
        raw_name: str,
        date_of_birth: Optional[str] = None,
        sex: Optional[str] = None,
    ) -> Profile:
        key = name_key(raw_name)
        if not key:
            raise InvalidNameError(f"Name has no comparable characters: {raw_name!r}")

        profiles = self.store.list_profiles(account_id)

        existing = self.find(profiles, raw_name)
        if existing is not None:
            return existing

        profile = Profile(
            id=str(uuid.uuid4()),
            account_id=account_id,
            full_name=title_case_name(raw_name.strip()),
            normalized_name=key,
            avatar_color=self.rng.choice(AVATAR_COLORS),
            is_primary=len(profiles) == 0,
            date_of_birth=date_of_birth,
            sex=sex,
            created_at=self.clock(),
        )
        self.store.insert_profile(profile)
        self.logger.info(
            f"Created profile '{profile.full_name}' for account {account_id} (primary={profile.is_primary})"
        )
        return profile
