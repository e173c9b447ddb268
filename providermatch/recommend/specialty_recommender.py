"""
Specialty recommendation for ProviderMatch.

The search pipeline consumes a recommended specialty as a plain string.
``KeywordSpecialtyRecommender`` is the offline recommender: it counts
symptom keywords per specialty and picks the specialty with the most hits,
falling back to family medicine. Any other recommender (for example a call
to an external classification service) only needs the same ``recommend``
signature.
"""

import logging
import re
from dataclasses import asdict, dataclass, field
from typing import Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_SPECIALTY = "FAMILY MEDICINE"
DEFAULT_ALTERNATIVES = ["FAMILY MEDICINE", "INTERNAL MEDICINE"]

SPECIALTY_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    "CARDIOLOGY": ("chest pain", "heart", "palpitation", "arrhythmia", "hypertension", "blood pressure"),
    "NEUROLOGY": ("headache", "migraine", "seizure", "tremor", "dizziness", "brain", "neurological"),
    "GASTROENTEROLOGY": ("stomach", "abdominal", "nausea", "vomit", "diarrhea", "acid reflux", "ulcer", "ibd"),
    "ORTHOPEDIC SURGERY": ("bone", "fracture", "joint", "knee", "back", "shoulder", "sprain", "arthritis"),
    "DERMATOLOGY": ("skin", "rash", "acne", "eczema", "psoriasis", "mole", "wart"),
    "PULMONOLOGY": ("cough", "asthma", "breath", "respiratory", "lung", "pneumonia", "copd"),
    "RHEUMATOLOGY": ("joint", "arthritis", "autoimmune", "lupus", "rheumatoid"),
    "ENDOCRINOLOGY": ("diabetes", "thyroid", "hormone", "metabolic"),
    "UROLOGY": ("bladder", "kidney", "urinary", "prostate"),
    "PSYCHIATRY": ("depression", "anxiety", "mental", "stress", "bipolar"),
    "PEDIATRICS": ("child", "infant", "baby", "pediatric"),
    "EMERGENCY MEDICINE": ("emergency", "acute", "severe", "trauma", "urgent"),
}


@dataclass
class SpecialtyRecommendation:
    success: bool
    recommended_specialty: Optional[str]
    alternatives: List[str] = field(default_factory=list)
    confidence: float = 0.0
    rationale: str = ""

    def to_dict(self) -> Dict:
        return asdict(self)


class KeywordSpecialtyRecommender:
    """Recommends a specialty from symptom keywords, without any network call."""

    def __init__(self, keyword_map: Optional[Dict[str, Tuple[str, ...]]] = None):
        self.keyword_map = keyword_map or SPECIALTY_KEYWORDS
        self._patterns = {
            specialty: [re.compile(r"\b" + re.escape(keyword)) for keyword in keywords]
            for specialty, keywords in self.keyword_map.items()
        }

    def count_matches(self, symptoms_text: str) -> Dict[str, int]:
        symptoms = (symptoms_text or "").lower()
        return {
            specialty: sum(1 for pattern in patterns if pattern.search(symptoms))
            for specialty, patterns in self._patterns.items()
        }

    def recommend(self, symptoms: str, age: Optional[int] = None,
                  gender: Optional[str] = None) -> SpecialtyRecommendation:
        """
        Recommend a specialty for the given symptoms.

        Args:
            symptoms: Free-text symptoms
            age: Patient age (unused by keyword matching)
            gender: Patient gender (unused by keyword matching)

        Returns:
            Recommendation; ties go to the specialty listed first
        """
        recommended, best = DEFAULT_SPECIALTY, 0
        for specialty, count in self.count_matches(symptoms).items():
            if count > best:
                recommended, best = specialty, count

        confidence = min(0.8, 0.3 + 0.1 * best) if best else 0.3
        logger.info(f"Keyword recommendation: {recommended} ({best} keyword matches, "
                    f"confidence {confidence:.1f})")

        return SpecialtyRecommendation(
            success=True,
            recommended_specialty=recommended,
            alternatives=list(DEFAULT_ALTERNATIVES),
            confidence=round(confidence, 2),
            rationale="Fallback recommendation based on symptom keywords.",
        )


def resolve_recommended_specialty(recommender, symptoms: str, age: Optional[int] = None,
                                  gender: Optional[str] = None) -> Optional[str]:
    """
    Ask a recommender for a specialty, treating any failure as no specialty.

    Args:
        recommender: Object with a ``recommend(symptoms, age, gender)`` method
            returning a ``SpecialtyRecommendation`` or a plain string
        symptoms: Free-text symptoms
        age: Patient age
        gender: Patient gender

    Returns:
        Uppercased specialty, or None
    """
    if recommender is None or not (symptoms or "").strip():
        return None

    try:
        recommendation = recommender.recommend(symptoms, age=age, gender=gender)
    except Exception as e:
        logger.warning(f"Specialty recommendation failed, continuing without specialty: {e}")
        return None

    if isinstance(recommendation, SpecialtyRecommendation):
        specialty = recommendation.recommended_specialty if recommendation.success else None
    else:
        specialty = recommendation

    if not isinstance(specialty, str) or not specialty.strip():
        return None
    return specialty.strip().upper()
