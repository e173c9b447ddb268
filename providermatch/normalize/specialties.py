"""
Specialty lookup table for ProviderMatch.

Maps canonical specialty keys to the free-text aliases that appear in the
registry's ``primary_specialty`` column, and groups symptom keywords by the
discipline they point to. Eligibility filtering and relevance scoring both
read from these tables instead of carrying their own string checks.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Tuple


class Specialty(str, Enum):
    PEDIATRICS = "pediatrics"
    FAMILY_PRACTICE = "family_practice"
    GENERAL_PRACTICE = "general_practice"
    OTOLARYNGOLOGY = "otolaryngology"
    CARDIOLOGY = "cardiology"
    DERMATOLOGY = "dermatology"
    ORTHOPEDICS = "orthopedics"
    NEUROLOGY = "neurology"
    PSYCHIATRY = "psychiatry"
    PULMONOLOGY = "pulmonology"
    GASTROENTEROLOGY = "gastroenterology"
    ENDOCRINOLOGY = "endocrinology"
    ONCOLOGY = "oncology"
    UROLOGY = "urology"
    GYNECOLOGY = "gynecology"
    OPHTHALMOLOGY = "ophthalmology"


# Substring aliases, compared against the uppercased registry specialty.
SPECIALTY_ALIASES: Dict[Specialty, Tuple[str, ...]] = {
    Specialty.PEDIATRICS: ("PEDIATRICS",),
    Specialty.FAMILY_PRACTICE: ("FAMILY PRACTICE", "FAMILY MEDICINE"),
    Specialty.GENERAL_PRACTICE: ("GENERAL PRACTICE",),
    Specialty.OTOLARYNGOLOGY: ("OTOLARYNGOLOGY",),
    Specialty.CARDIOLOGY: ("CARDIOLOGY",),
    Specialty.DERMATOLOGY: ("DERMATOLOGY",),
    Specialty.ORTHOPEDICS: ("ORTHOPEDIC",),
    Specialty.NEUROLOGY: ("NEUROLOGY",),
    Specialty.PSYCHIATRY: ("PSYCHIATRY",),
    Specialty.PULMONOLOGY: ("PULMONOLOGY", "PULMONARY DISEASE"),
    Specialty.GASTROENTEROLOGY: ("GASTROENTEROLOGY",),
    Specialty.ENDOCRINOLOGY: ("ENDOCRINOLOGY",),
    Specialty.ONCOLOGY: ("ONCOLOGY",),
    Specialty.UROLOGY: ("UROLOGY",),
    Specialty.GYNECOLOGY: ("GYNECOLOGY",),
    Specialty.OPHTHALMOLOGY: ("OPHTHALMOLOGY",),
}

# Whole-word aliases; "ENT" as a substring would also hit GASTROENTEROLOGY.
SPECIALTY_WORD_ALIASES: Dict[Specialty, Tuple[str, ...]] = {
    Specialty.OTOLARYNGOLOGY: ("ENT",),
}

# Patients under the child age threshold may only see these.
CHILD_ALLOWED_SPECIALTIES: FrozenSet[Specialty] = frozenset({
    Specialty.PEDIATRICS,
    Specialty.FAMILY_PRACTICE,
})

# Pediatric-only labels never shown to adults (or patients of unknown age).
ADULT_EXCLUDED_LABELS: Tuple[str, ...] = ("PEDIATRICS", "PEDIATRICIAN")


@dataclass(frozen=True)
class SymptomGroup:
    """Symptom keywords that point at one discipline."""

    name: str
    keywords: Tuple[str, ...]
    specialty: Specialty
    reason: str

    def mentioned_in(self, symptoms_text: str) -> bool:
        """True when the symptom text contains any keyword."""
        return any(keyword_mentioned(keyword, symptoms_text) for keyword in self.keywords)


SYMPTOM_GROUPS: Tuple[SymptomGroup, ...] = (
    SymptomGroup("ent", ("throat", "ear", "nose"), Specialty.OTOLARYNGOLOGY,
                 "Expert in ear, nose and throat conditions"),
    SymptomGroup("cardiac", ("chest", "heart", "cardiac"), Specialty.CARDIOLOGY,
                 "Expert in heart conditions"),
    SymptomGroup("skin", ("skin", "rash", "dermatitis"), Specialty.DERMATOLOGY,
                 "Expert in skin conditions"),
    SymptomGroup("musculoskeletal", ("bone", "joint", "fracture", "orthopedic"), Specialty.ORTHOPEDICS,
                 "Expert in bone and joint conditions"),
    SymptomGroup("neurological", ("headache", "neurological", "seizure"), Specialty.NEUROLOGY,
                 "Expert in neurological conditions"),
    SymptomGroup("mental_health", ("mental", "depression", "anxiety"), Specialty.PSYCHIATRY,
                 "Expert in mental health"),
    SymptomGroup("respiratory", ("breathing", "lung", "respiratory"), Specialty.PULMONOLOGY,
                 "Expert in respiratory conditions"),
    SymptomGroup("digestive", ("stomach", "digestive", "gastro"), Specialty.GASTROENTEROLOGY,
                 "Expert in digestive conditions"),
)

# Pediatric symptom groups. Each resolves to the full child allow-list today.
CHILD_SYMPTOM_GROUPS: Dict[str, Tuple[Tuple[str, ...], FrozenSet[Specialty]]] = {
    "throat": (("throat",), CHILD_ALLOWED_SPECIALTIES),
    "ear_infection": (("ear", "infection"), CHILD_ALLOWED_SPECIALTIES),
    "fever": (("fever", "cold", "flu"), CHILD_ALLOWED_SPECIALTIES),
}

SUB_SPECIALTY_LABELS: Tuple[Tuple[Specialty, str], ...] = (
    (Specialty.CARDIOLOGY, "Cardiovascular Medicine"),
    (Specialty.DERMATOLOGY, "Skin & Dermatology"),
    (Specialty.ORTHOPEDICS, "Orthopedic Surgery"),
    (Specialty.PEDIATRICS, "Pediatric Care"),
    (Specialty.NEUROLOGY, "Neurological Disorders"),
    (Specialty.PSYCHIATRY, "Mental Health"),
    (Specialty.PULMONOLOGY, "Respiratory Medicine"),
    (Specialty.GASTROENTEROLOGY, "Digestive Health"),
    (Specialty.ENDOCRINOLOGY, "Hormone & Metabolic Disorders"),
    (Specialty.ONCOLOGY, "Cancer Care"),
    (Specialty.UROLOGY, "Urological Care"),
    (Specialty.GYNECOLOGY, "Women's Health"),
    (Specialty.OPHTHALMOLOGY, "Eye Care"),
    (Specialty.OTOLARYNGOLOGY, "ENT (Ear, Nose, Throat)"),
)

_PATTERN_CACHE: Dict[str, "re.Pattern"] = {}

# Words that contain a keyword without meaning it: "heart" and "hearing" are not ears.
KEYWORD_EXCLUDED_PREFIXES: Dict[str, Tuple[str, ...]] = {
    "ear": ("h",),
}


def _keyword_pattern(keyword: str) -> "re.Pattern":
    pattern = _PATTERN_CACHE.get(keyword)
    if pattern is None:
        lookbehind = "".join(f"(?<!{re.escape(prefix)})" for prefix in KEYWORD_EXCLUDED_PREFIXES.get(keyword, ()))
        pattern = re.compile(lookbehind + re.escape(keyword), re.IGNORECASE)
        _PATTERN_CACHE[keyword] = pattern
    return pattern


def keyword_mentioned(keyword: str, text: str) -> bool:
    """Substring match of a symptom keyword, minus the excluded look-alike words."""
    return bool(text) and _keyword_pattern(keyword).search(text) is not None


def _word_pattern(word: str) -> "re.Pattern":
    key = f"word:{word}"
    pattern = _PATTERN_CACHE.get(key)
    if pattern is None:
        pattern = re.compile(r"\b" + re.escape(word) + r"\b", re.IGNORECASE)
        _PATTERN_CACHE[key] = pattern
    return pattern


def matches_specialty(specialty_label: str, specialty: Specialty) -> bool:
    """
    Check whether a registry specialty label belongs to a canonical specialty.

    Args:
        specialty_label: Free-text specialty from the registry
        specialty: Canonical specialty key

    Returns:
        True if any alias of the specialty occurs in the label
    """
    label = (specialty_label or "").upper()
    if not label:
        return False
    if any(alias in label for alias in SPECIALTY_ALIASES.get(specialty, ())):
        return True
    return any(_word_pattern(word).search(label) for word in SPECIALTY_WORD_ALIASES.get(specialty, ()))


def matches_any(specialty_label: str, specialties) -> bool:
    return any(matches_specialty(specialty_label, s) for s in specialties)


def is_adult_excluded(specialty_label: str) -> bool:
    label = (specialty_label or "").upper()
    return any(excluded in label for excluded in ADULT_EXCLUDED_LABELS)


def child_allowed_specialties(symptoms_text: str = "") -> FrozenSet[Specialty]:
    """
    Resolve the specialties admissible for a child with the given symptoms.

    Every pediatric symptom group currently narrows to the same allow-list, so
    age dominates symptom; the groups are kept so per-symptom narrowing can be
    introduced in one place.

    Args:
        symptoms_text: Free-text symptoms

    Returns:
        Set of admissible canonical specialties
    """
    for keywords, allowed in CHILD_SYMPTOM_GROUPS.values():
        if any(keyword in (symptoms_text or "").lower() for keyword in keywords):
            return allowed
    return CHILD_ALLOWED_SPECIALTIES


def fired_symptom_groups(specialty_label: str, symptoms_text: str) -> List[SymptomGroup]:
    """Symptom groups mentioned in the text whose discipline matches the specialty."""
    if not symptoms_text:
        return []
    return [
        group for group in SYMPTOM_GROUPS
        if group.mentioned_in(symptoms_text) and matches_specialty(specialty_label, group.specialty)
    ]


def sub_specialty_label(specialty_label: str) -> Optional[str]:
    for specialty, label in SUB_SPECIALTY_LABELS:
        if matches_specialty(specialty_label, specialty):
            return label
    return None
