"""
Domain records for ProviderMatch.

``ProviderRecord`` rows are created once by the registry loader and never
modified. Everything else is built fresh per request.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

RESOLVED_EXTERNAL = "external"
RESOLVED_FALLBACK = "fallback"


@dataclass(frozen=True)
class ProviderRecord:
    """One normalized row of the provider registry."""

    national_id: str
    first_name: str
    last_name: str
    primary_specialty: str
    facility_name: str = ""
    middle_name: str = ""
    credentials: str = ""
    gender: str = ""
    graduation_year: Optional[int] = None
    address_line_1: str = ""
    address_is_synthesized: bool = False
    city: str = ""
    state: str = ""
    postal_code: str = ""
    phone: str = ""

    @property
    def unique_key(self) -> str:
        return build_unique_key(self.national_id, self.facility_name, self.city)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "ProviderRecord":
        """Build a record from a registry DataFrame row (as a dict)."""
        graduation_year = row.get("graduation_year")
        if graduation_year is not None:
            try:
                graduation_year = int(graduation_year)
            except (TypeError, ValueError):
                graduation_year = None

        return cls(
            national_id=str(row.get("national_id", "")),
            first_name=str(row.get("first_name", "")),
            last_name=str(row.get("last_name", "")),
            primary_specialty=str(row.get("primary_specialty", "")),
            facility_name=str(row.get("facility_name", "") or ""),
            middle_name=str(row.get("middle_name", "") or ""),
            credentials=str(row.get("credentials", "") or ""),
            gender=str(row.get("gender", "") or ""),
            graduation_year=graduation_year,
            address_line_1=str(row.get("address_line_1", "") or ""),
            address_is_synthesized=bool(row.get("address_is_synthesized", False)),
            city=str(row.get("city", "") or ""),
            state=str(row.get("state", "") or ""),
            postal_code=str(row.get("postal_code", "") or ""),
            phone=str(row.get("phone", "") or ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["unique_key"] = self.unique_key
        return data


def build_unique_key(national_id: str, facility_name: str, city: str) -> str:
    """Composite identity of a practitioner at a facility."""
    return f"{national_id}-{facility_name}-{city}"


@dataclass
class SearchCriteria:
    """Per-request search input."""

    location: str = ""
    specialty: Optional[str] = None
    symptoms_text: str = ""
    age: Optional[int] = None
    result_limit: int = 20

    def __post_init__(self):
        self.location = (self.location or "").strip()
        self.symptoms_text = (self.symptoms_text or "").strip()
        if self.specialty is not None:
            self.specialty = self.specialty.strip() or None
        if self.age is not None:
            self.age = int(self.age)
            if self.age < 0:
                raise ValueError(f"age must be non-negative, got {self.age}")
        self.result_limit = int(self.result_limit)
        if self.result_limit <= 0:
            raise ValueError(f"result_limit must be positive, got {self.result_limit}")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Coordinates:
    lat: float
    lng: float

    def to_dict(self) -> Dict[str, float]:
        return {"lat": self.lat, "lng": self.lng}


@dataclass(frozen=True)
class GeocodeEntry:
    """Cached geocoding outcome for one normalized address."""

    lat: float
    lng: float
    resolved_via: str

    @property
    def coordinates(self) -> Coordinates:
        return Coordinates(self.lat, self.lng)

    @property
    def is_fallback(self) -> bool:
        return self.resolved_via == RESOLVED_FALLBACK


@dataclass
class MatchedProvider:
    """A ranked, enriched search result."""

    provider: ProviderRecord
    match_percentage: int
    scoring_reasons: List[str] = field(default_factory=list)
    coordinates: Optional[Coordinates] = None
    resolved_via: Optional[str] = None
    sub_specialty_label: str = ""
    conditions: List[str] = field(default_factory=list)
    experience_years: Optional[int] = None

    @property
    def display_name(self) -> str:
        return f"Dr. {self.provider.first_name} {self.provider.last_name}"

    @property
    def full_address(self) -> str:
        p = self.provider
        return f"{p.address_line_1} {p.city}, {p.state} {p.postal_code}".strip()

    def to_dict(self) -> Dict[str, Any]:
        data = self.provider.to_dict()
        data.update({
            "display_name": self.display_name,
            "full_address": self.full_address,
            "match_percentage": self.match_percentage,
            "scoring_reasons": list(self.scoring_reasons),
            "coordinates": self.coordinates.to_dict() if self.coordinates else None,
            "resolved_via": self.resolved_via,
            "sub_specialty_label": self.sub_specialty_label,
            "conditions": list(self.conditions),
            "experience_years": self.experience_years,
        })
        return data


@dataclass
class SearchResult:
    """Outcome of one search. An empty ``matches`` list is a valid result."""

    matches: List[MatchedProvider]
    criteria: SearchCriteria
    total_candidates: int = 0
    message: str = ""
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def total_matches(self) -> int:
        return len(self.matches)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "matches": [m.to_dict() for m in self.matches],
            "totalMatches": self.total_matches,
            "totalCandidates": self.total_candidates,
            "timestamp": self.timestamp,
            "searchCriteria": self.criteria.to_dict(),
            "message": self.message,
        }
