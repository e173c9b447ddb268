"""
Location normalization for ProviderMatch.

Standardizes city, state, ZIP and phone values so registry rows, free-text
search locations and geocoding cache keys compare consistently.
"""

import logging
import re
from typing import Dict, Optional, Tuple

import pandas as pd
import phonenumbers
from phonenumbers import PhoneNumberFormat

logger = logging.getLogger(__name__)

STATE_ABBREVIATIONS = {
    "alabama": "AL", "alaska": "AK", "arizona": "AZ", "arkansas": "AR",
    "california": "CA", "colorado": "CO", "connecticut": "CT", "delaware": "DE",
    "florida": "FL", "georgia": "GA", "hawaii": "HI", "idaho": "ID",
    "illinois": "IL", "indiana": "IN", "iowa": "IA", "kansas": "KS",
    "kentucky": "KY", "louisiana": "LA", "maine": "ME", "maryland": "MD",
    "massachusetts": "MA", "michigan": "MI", "minnesota": "MN", "mississippi": "MS",
    "missouri": "MO", "montana": "MT", "nebraska": "NE", "nevada": "NV",
    "new hampshire": "NH", "new jersey": "NJ", "new mexico": "NM", "new york": "NY",
    "north carolina": "NC", "north dakota": "ND", "ohio": "OH", "oklahoma": "OK",
    "oregon": "OR", "pennsylvania": "PA", "rhode island": "RI", "south carolina": "SC",
    "south dakota": "SD", "tennessee": "TN", "texas": "TX", "utah": "UT",
    "vermont": "VT", "virginia": "VA", "washington": "WA", "west virginia": "WV",
    "wisconsin": "WI", "wyoming": "WY", "district of columbia": "DC"
}

STATE_CODES = frozenset(STATE_ABBREVIATIONS.values())


class LocationNormalizer:
    """
    Normalizes provider and query locations for consistent matching.

    City comparison keys are lowercase with whitespace collapsed and the
    common "St."/"Ft." abbreviations expanded.
    """

    def __init__(self, config: Optional[Dict] = None):
        """
        Initialize location normalizer with configuration.

        Args:
            config: The ``location`` configuration section
        """
        config = config or {}
        self.config = config
        self.zip_regex = config.get("zip_regex", r"\d{5}(-?\d{4})?")
        self.default_country = config.get("default_country_code", "US")

        self.zip_pattern = re.compile(self.zip_regex)
        self.whitespace_pattern = re.compile(r"\s+")
        self.abbreviation_patterns = [
            (re.compile(r"\bst\b\.?\s*", re.IGNORECASE), "saint "),
            (re.compile(r"\bft\b\.?\s*", re.IGNORECASE), "fort "),
        ]

        logger.debug("Initialized LocationNormalizer")

    def collapse_whitespace(self, value: str) -> str:
        if pd.isna(value) or not isinstance(value, str):
            return ""
        return self.whitespace_pattern.sub(" ", value).strip()

    def normalize_city(self, city: str) -> str:
        """
        Build the comparison key for a city name.

        Args:
            city: Raw city name from the registry or a search query

        Returns:
            Lowercase city with abbreviations expanded
        """
        city = self.collapse_whitespace(city).lower()
        if not city:
            return ""

        for pattern, replacement in self.abbreviation_patterns:
            city = pattern.sub(replacement, city)

        return self.whitespace_pattern.sub(" ", city).strip()

    def normalize_state(self, state: str) -> str:
        """
        Normalize state name/abbreviation.

        Full names map to their two-letter code; anything else longer than two
        characters is truncated to its first two.

        Args:
            state: Raw state name or abbreviation

        Returns:
            Uppercase state code, or "" when absent
        """
        state = self.collapse_whitespace(state)
        if not state:
            return ""

        mapped = STATE_ABBREVIATIONS.get(state.lower())
        if mapped:
            return mapped

        return state.upper()[:2]

    def normalize_zipcode(self, zipcode) -> str:
        """
        Normalize ZIP code to 5-digit format.

        Args:
            zipcode: Raw ZIP code (ZIP, ZIP+4 or 9-digit)

        Returns:
            Normalized 5-digit ZIP code
        """
        if pd.isna(zipcode):
            return ""
        zipcode = str(zipcode).strip()
        if zipcode.endswith(".0"):
            zipcode = zipcode[:-2]

        # Registry files drop leading zeros when ZIPs are read as numbers
        if zipcode.isdigit() and len(zipcode) in (4, 8):
            zipcode = zipcode.zfill(len(zipcode) + 1)

        match = self.zip_pattern.search(zipcode)
        if match:
            return match.group(0)[:5]

        return ""

    def normalize_phone(self, phone) -> str:
        """
        Format a phone number for display.

        Args:
            phone: Raw phone number

        Returns:
            National-format number, the stripped raw value if it cannot be
            parsed, or "" when absent
        """
        if pd.isna(phone):
            return ""
        phone = str(phone).strip()
        if phone.endswith(".0"):
            phone = phone[:-2]
        if not phone:
            return ""

        try:
            parsed = phonenumbers.parse(phone, self.default_country)
        except phonenumbers.NumberParseException as e:
            logger.debug(f"Failed to parse phone '{phone}': {e}")
            return phone

        if not phonenumbers.is_possible_number(parsed):
            return phone

        return phonenumbers.format_number(parsed, PhoneNumberFormat.NATIONAL)

    def parse_location_query(self, location: str) -> Tuple[str, str]:
        """
        Split a free-text search location into city and state parts.

        "Fairfax, VA" -> ("fairfax", "VA"), "Fairfax" -> ("fairfax", ""),
        "VA" -> ("", "VA").

        Args:
            location: Free-text location, optionally "City, ST"

        Returns:
            Tuple of (normalized city key, state code)
        """
        location = self.collapse_whitespace(location)
        if not location:
            return "", ""

        if "," in location:
            city_part, state_part = location.split(",", 1)
        else:
            city_part, state_part = location, ""
            # A lone two-letter state code is read as a state, so a two-letter
            # city name must be written with its state ("Oz, KS").
            if len(location) == 2 and location.upper() in STATE_CODES:
                city_part, state_part = "", location

        return self.normalize_city(city_part), self.normalize_state(state_part)

    def build_address_key(self, address_line: str, city: str, state: str, postal_code: str) -> str:
        """
        Build the normalized full-address string used as a geocoding cache key.

        Args:
            address_line: Street address
            city: City name
            state: State code
            postal_code: ZIP code

        Returns:
            Uppercase "ADDRESS, CITY, STATE ZIP" with whitespace collapsed
        """
        address = (
            f"{self.collapse_whitespace(address_line)}, {self.collapse_whitespace(city)}, "
            f"{self.collapse_whitespace(state)} {self.collapse_whitespace(str(postal_code or ''))}"
        )
        return self.collapse_whitespace(address).upper()
