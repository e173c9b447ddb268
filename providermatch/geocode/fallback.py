"""
Static coordinates used when the external geocoder cannot resolve an address.

Lookup order: exact "CITY, ST" metro entry, then the state's default city,
then the hard default (Fairfax, VA).
"""

import re
from typing import Dict

from ..models import Coordinates

CITY_COORDINATES: Dict[str, Coordinates] = {
    "FAIRFAX, VA": Coordinates(38.8462, -77.3064),
    "ARLINGTON, VA": Coordinates(38.8816, -77.0910),
    "ALEXANDRIA, VA": Coordinates(38.8048, -77.0469),
    "RICHMOND, VA": Coordinates(37.5407, -77.4360),
    "VIENNA, VA": Coordinates(38.9012, -77.2653),
    "FALLS CHURCH, VA": Coordinates(38.8823, -77.1711),
    "RESTON, VA": Coordinates(38.9586, -77.3570),
    "HERNDON, VA": Coordinates(38.9696, -77.3861),
    "MCLEAN, VA": Coordinates(38.9343, -77.1775),
    "ANNANDALE, VA": Coordinates(38.8304, -77.1964),
    "CHANTILLY, VA": Coordinates(38.8943, -77.4311),
    "SPRINGFIELD, VA": Coordinates(38.7893, -77.1872),
    "WOODBRIDGE, VA": Coordinates(38.6582, -77.2497),
    "MANASSAS, VA": Coordinates(38.7509, -77.4753),
    "LEESBURG, VA": Coordinates(39.1157, -77.5636),
    "FREDERICKSBURG, VA": Coordinates(38.3032, -77.4605),
    "NORFOLK, VA": Coordinates(36.8468, -76.2852),
    "VIRGINIA BEACH, VA": Coordinates(36.8529, -75.9780),
    "CHARLOTTESVILLE, VA": Coordinates(38.0293, -78.4767),
    "WASHINGTON, DC": Coordinates(38.9072, -77.0369),
    "LOS ANGELES, CA": Coordinates(34.0522, -118.2437),
    "SAN FRANCISCO, CA": Coordinates(37.7749, -122.4194),
    "NEW YORK, NY": Coordinates(40.7128, -74.0060),
    "CHICAGO, IL": Coordinates(41.8781, -87.6298),
    "HOUSTON, TX": Coordinates(29.7604, -95.3698),
    "MIAMI, FL": Coordinates(25.7617, -80.1918),
    "BOSTON, MA": Coordinates(42.3601, -71.0589),
}

STATE_DEFAULTS: Dict[str, Coordinates] = {
    "VA": Coordinates(38.8462, -77.3064),   # Fairfax
    "DC": Coordinates(38.9072, -77.0369),
    "MD": Coordinates(39.2904, -76.6122),   # Baltimore
    "CA": Coordinates(34.0522, -118.2437),  # Los Angeles
    "NY": Coordinates(40.7128, -74.0060),
    "TX": Coordinates(29.7604, -95.3698),   # Houston
    "FL": Coordinates(25.7617, -80.1918),   # Miami
    "IL": Coordinates(41.8781, -87.6298),   # Chicago
    "MA": Coordinates(42.3601, -71.0589),   # Boston
}

DEFAULT_COORDINATES = Coordinates(38.8462, -77.3064)


def fallback_key(city: str, state: str) -> str:
    city_part = re.sub(r"\s+", " ", (city or "").upper()).strip()
    return f"{city_part}, {(state or '').upper().strip()}"


def fallback_coordinates(city: str, state: str) -> Coordinates:
    """
    Resolve coordinates without calling out.

    Args:
        city: City name, any case
        state: Two-letter state code

    Returns:
        Metro, state default or hard default coordinates; never fails
    """
    metro = CITY_COORDINATES.get(fallback_key(city, state))
    if metro is not None:
        return metro
    return STATE_DEFAULTS.get((state or "").upper().strip(), DEFAULT_COORDINATES)
