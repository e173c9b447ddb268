"""
Relevance scorer for ProviderMatch.

Assigns every provider that survived filtering a bounded match percentage
and the human-readable reasons behind it. Scoring is deterministic: the
same specialty, symptoms and age always produce the same score.
"""

import logging
from datetime import date
from typing import Dict, List, Optional, Tuple

import pandas as pd

from ..normalize.specialties import (
    Specialty,
    SYMPTOM_GROUPS,
    fired_symptom_groups,
    keyword_mentioned,
    matches_specialty,
    sub_specialty_label,
)

logger = logging.getLogger(__name__)

# Conditions shown for a symptom keyword, in display order.
CONDITION_KEYWORDS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("throat", ("Sore Throat", "Pharyngitis", "Tonsillitis")),
    ("ear", ("Ear Infections", "Otitis Media")),
    ("fever", ("Fever", "Infections")),
)

DEFAULT_CONDITIONS = ["General Medical Conditions"]


class RelevanceScorer:
    """
    Scores providers against a patient's symptoms and age.

    The score starts at a base value, gains bonuses for having a specialty,
    for each symptom group whose discipline matches the provider, and for
    pediatric or family practice when the patient is a child, then is
    clamped to ``[min_score, max_score]``.
    """

    def __init__(self, config: Optional[Dict] = None):
        """
        Initialize relevance scorer with configuration.

        Args:
            config: The ``scoring`` configuration section
        """
        self.config = dict(config or {})

        self.default_config = {
            "base_score": 85,
            "specialty_bonus": 5,
            "symptom_bonus": 10,
            "pediatrics_bonus": 5,
            "family_practice_bonus": 3,
            "min_score": 85,
            "max_score": 98,
            "child_age_threshold": 18,
            "trust_markers": ["Medicare Participating", "Accepts New Patients"],
        }

        for key, value in self.default_config.items():
            if key not in self.config:
                self.config[key] = value

        logger.info("Initialized RelevanceScorer")

    def is_child(self, age: Optional[int]) -> bool:
        return age is not None and age < self.config["child_age_threshold"]

    def calculate_score(self, specialty: str, symptoms_text: str = "",
                        age: Optional[int] = None) -> int:
        """
        Calculate the bounded match percentage.

        Args:
            specialty: Provider's primary specialty
            symptoms_text: Free-text symptoms
            age: Patient age, if known

        Returns:
            Integer score within ``[min_score, max_score]``
        """
        config = self.config
        score = config["base_score"]

        if specialty and specialty.strip():
            score += config["specialty_bonus"]

        score += config["symptom_bonus"] * len(fired_symptom_groups(specialty, symptoms_text))

        if self.is_child(age):
            if matches_specialty(specialty, Specialty.PEDIATRICS):
                score += config["pediatrics_bonus"]
            elif (matches_specialty(specialty, Specialty.FAMILY_PRACTICE)
                  or matches_specialty(specialty, Specialty.GENERAL_PRACTICE)):
                score += config["family_practice_bonus"]

        return int(max(config["min_score"], min(config["max_score"], score)))

    def scoring_reasons(self, specialty: str, symptoms_text: str = "",
                        age: Optional[int] = None) -> List[str]:
        """
        Build the ordered list of reasons behind a score.

        Args:
            specialty: Provider's primary specialty
            symptoms_text: Free-text symptoms
            age: Patient age, if known

        Returns:
            Specialty label, fired symptom groups, pediatric note, trust markers
        """
        reasons = []
        if specialty and specialty.strip():
            reasons.append(f"Specializes in {specialty}")

        reasons.extend(group.reason for group in fired_symptom_groups(specialty, symptoms_text))

        if self.is_child(age):
            reasons.append("Pediatric experience")

        reasons.extend(self.config["trust_markers"])
        return reasons

    def score(self, specialty: str, symptoms_text: str = "",
              age: Optional[int] = None) -> Tuple[int, List[str]]:
        return (
            self.calculate_score(specialty, symptoms_text, age),
            self.scoring_reasons(specialty, symptoms_text, age),
        )

    def score_dataframe(self, providers_df: pd.DataFrame, symptoms_text: str = "",
                        age: Optional[int] = None) -> pd.DataFrame:
        """
        Score all providers in a DataFrame.

        Args:
            providers_df: Deduplicated candidates
            symptoms_text: Free-text symptoms
            age: Patient age, if known

        Returns:
            Copy of the DataFrame with ``match_percentage`` and
            ``scoring_reasons`` columns
        """
        result_df = providers_df.copy()
        if result_df.empty:
            result_df["match_percentage"] = pd.Series(dtype="int64")
            result_df["scoring_reasons"] = pd.Series(dtype=object)
            return result_df

        # Scores depend only on the specialty label for a given request.
        by_specialty = {
            specialty: self.score(specialty, symptoms_text, age)
            for specialty in result_df["primary_specialty"].unique()
        }
        result_df["match_percentage"] = result_df["primary_specialty"].map(
            lambda specialty: by_specialty[specialty][0]
        ).astype("int64")
        result_df["scoring_reasons"] = result_df["primary_specialty"].map(
            lambda specialty: list(by_specialty[specialty][1])
        )

        logger.info(f"Scored {len(result_df)} providers; "
                    f"range {result_df['match_percentage'].min()}-{result_df['match_percentage'].max()}")
        return result_df

    def rank(self, scored_df: pd.DataFrame) -> pd.DataFrame:
        """Sort by score descending; registry order breaks ties."""
        return scored_df.sort_values("match_percentage", ascending=False, kind="mergesort")

    def sub_specialty_label(self, specialty: str, symptoms_text: str = "",
                            age: Optional[int] = None) -> str:
        """
        Derive the display sub-specialty for a provider.

        Args:
            specialty: Provider's primary specialty
            symptoms_text: Free-text symptoms
            age: Patient age, if known

        Returns:
            Display label
        """
        label = sub_specialty_label(specialty)
        if label:
            return label

        ent_group = next(group for group in SYMPTOM_GROUPS if group.name == "ent")
        if symptoms_text and ent_group.mentioned_in(symptoms_text):
            return "ENT (Ear, Nose, Throat)"
        if self.is_child(age):
            return "Pediatric Care"
        return specialty or "General Practice"

    @staticmethod
    def conditions_for(symptoms_text: str) -> List[str]:
        """Conditions treated that relate to the reported symptoms."""
        symptoms = (symptoms_text or "").lower()
        conditions = []
        for keyword, keyword_conditions in CONDITION_KEYWORDS:
            if keyword_mentioned(keyword, symptoms):
                conditions.extend(keyword_conditions)
        return conditions or list(DEFAULT_CONDITIONS)

    @staticmethod
    def experience_years(graduation_year: Optional[int],
                         current_year: Optional[int] = None) -> Optional[int]:
        if graduation_year is None or pd.isna(graduation_year):
            return None
        current_year = current_year or date.today().year
        return max(1, current_year - int(graduation_year))


def score_providers(providers_df: pd.DataFrame, config: Dict, symptoms_text: str = "",
                    age: Optional[int] = None) -> pd.DataFrame:
    """
    Convenience function to score and rank providers.

    Args:
        providers_df: Deduplicated candidates
        config: The ``scoring`` configuration section
        symptoms_text: Free-text symptoms
        age: Patient age, if known

    Returns:
        Scored providers sorted by match percentage
    """
    scorer = RelevanceScorer(config)
    return scorer.rank(scorer.score_dataframe(providers_df, symptoms_text, age))
