"""
Eligibility filtering for ProviderMatch.

Decides which specialties are admissible for a patient. An explicit
specialty (usually from the external recommendation service) is matched
directly; without one, age-based safety rules apply so that children are
never routed to adult-only practices.
"""

import logging
from typing import Dict, Optional

import pandas as pd

from ..normalize.specialties import (
    child_allowed_specialties,
    is_adult_excluded,
    matches_any,
)

logger = logging.getLogger(__name__)


class EligibilityFilter:
    """
    Filters the provider set down to admissible specialties.

    Rules, in order:
      - children (age below the threshold) only ever see the child
        allow-list, whether or not a target specialty is given
      - a target specialty admits providers whose specialty contains it or
        is contained by it
      - with no target specialty, adults and patients of unknown age see
        everything except pediatric-only practices
    """

    def __init__(self, config: Optional[Dict] = None):
        """
        Initialize eligibility filter with configuration.

        Args:
            config: The ``eligibility`` configuration section
        """
        config = config or {}
        self.config = config
        self.child_age_threshold = config.get("child_age_threshold", 18)

        logger.info(f"Initialized EligibilityFilter (child age threshold {self.child_age_threshold})")

    def is_child(self, age: Optional[int]) -> bool:
        return age is not None and age < self.child_age_threshold

    @staticmethod
    def specialty_matches_target(specialty: str, target: str) -> bool:
        """Case-insensitive containment in either direction."""
        specialty = (specialty or "").upper()
        target = (target or "").upper()
        if not specialty or not target:
            return False
        return target in specialty or specialty in target

    def is_admissible(self, specialty: str, target_specialty: Optional[str] = None,
                      age: Optional[int] = None, symptoms_text: str = "") -> bool:
        """
        Decide whether one provider specialty is admissible.

        Args:
            specialty: Provider's primary specialty
            target_specialty: Pre-resolved specialty, if any
            age: Patient age, if known
            symptoms_text: Free-text symptoms

        Returns:
            True if a provider with this specialty may be returned
        """
        target_specialty = (target_specialty or "").strip()

        if self.is_child(age):
            allowed = child_allowed_specialties(symptoms_text)
            if not matches_any(specialty, allowed):
                return False
            if target_specialty:
                return self.specialty_matches_target(specialty, target_specialty)
            return True

        if target_specialty:
            return self.specialty_matches_target(specialty, target_specialty)

        return not is_adult_excluded(specialty)

    def filter(self, providers_df: pd.DataFrame, target_specialty: Optional[str] = None,
               age: Optional[int] = None, symptoms_text: str = "") -> pd.DataFrame:
        """
        Return the admissible subset of providers.

        Args:
            providers_df: Registry DataFrame
            target_specialty: Pre-resolved specialty, if any
            age: Patient age, if known
            symptoms_text: Free-text symptoms, used only without a target

        Returns:
            Admissible rows in original order
        """
        if providers_df.empty:
            return providers_df

        # Rules depend only on the specialty label, so evaluate each label once.
        labels = providers_df["primary_specialty"].unique()
        admissible = {
            label for label in labels
            if self.is_admissible(label, target_specialty, age, symptoms_text)
        }
        result = providers_df[providers_df["primary_specialty"].isin(admissible)]

        logger.info(
            f"Eligibility filter kept {len(result)} of {len(providers_df)} providers "
            f"(specialty={target_specialty or '-'}, age={age if age is not None else '-'}, "
            f"{len(admissible)} admissible specialties)"
        )
        return result


def apply_eligibility_filter(providers_df: pd.DataFrame, config: Dict,
                             target_specialty: Optional[str] = None,
                             age: Optional[int] = None,
                             symptoms_text: str = "") -> pd.DataFrame:
    """
    Convenience function to filter providers by eligibility.

    Args:
        providers_df: Registry DataFrame
        config: Eligibility configuration
        target_specialty: Pre-resolved specialty, if any
        age: Patient age, if known
        symptoms_text: Free-text symptoms

    Returns:
        Admissible providers
    """
    return EligibilityFilter(config).filter(providers_df, target_specialty, age, symptoms_text)
