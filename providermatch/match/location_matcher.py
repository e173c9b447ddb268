"""
Location matching for ProviderMatch.

Narrows candidates to providers whose city and state fit a free-text
location such as "Fairfax, VA", "st. louis, missouri" or "Fairfax".
"""

import logging
from typing import Dict, Optional

import pandas as pd

from ..normalize.location_normalizer import LocationNormalizer

logger = logging.getLogger(__name__)


class LocationMatcher:
    """
    Matches providers against a normalized search location.

    State must match exactly when given. Cities match when equal or when one
    contains the other (which covers prefixes), so "fair" finds "Fairfax"
    and "Fairfax Station" finds "Fairfax".
    """

    def __init__(self, normalizer: Optional[LocationNormalizer] = None):
        self.normalizer = normalizer or LocationNormalizer()

    @staticmethod
    def cities_match(provider_city: str, query_city: str) -> bool:
        if not query_city:
            return True
        if not provider_city:
            return False
        return (
            provider_city == query_city
            or query_city in provider_city
            or provider_city in query_city
        )

    def matches(self, provider_city: str, provider_state: str, location: str) -> bool:
        """
        Check a single provider location against a search location.

        Args:
            provider_city: Provider's city as stored in the registry
            provider_state: Provider's state code
            location: Free-text search location

        Returns:
            True if the provider satisfies the location
        """
        query_city, query_state = self.normalizer.parse_location_query(location)
        if query_state and (provider_state or "").upper() != query_state:
            return False
        return self.cities_match(self.normalizer.normalize_city(provider_city), query_city)

    def match(self, providers_df: pd.DataFrame, location: str) -> pd.DataFrame:
        """
        Filter providers by location.

        Args:
            providers_df: Candidate providers
            location: Free-text search location

        Returns:
            Matching providers in original order; may be empty
        """
        query_city, query_state = self.normalizer.parse_location_query(location)
        if providers_df.empty or not (query_city or query_state):
            return providers_df

        mask = pd.Series(True, index=providers_df.index)
        if query_state:
            mask &= providers_df["state"].str.upper() == query_state

        if query_city:
            if "city_key" in providers_df.columns:
                city_keys = providers_df["city_key"]
            else:
                city_keys = providers_df["city"].map(self.normalizer.normalize_city)
            mask &= city_keys.map(lambda city: self.cities_match(city, query_city))

        result = providers_df[mask]

        if result.empty:
            sample_locations = (providers_df["city"] + ", " + providers_df["state"]).drop_duplicates().head(10)
            logger.warning(f"No providers found for location '{location}' "
                           f"(city='{query_city}', state='{query_state}')")
            logger.debug(f"Sample candidate locations: {list(sample_locations)}")
        else:
            logger.info(f"Location filter kept {len(result)} of {len(providers_df)} providers "
                        f"(city='{query_city}', state='{query_state}')")

        return result


def match_provider_locations(providers_df: pd.DataFrame, location: str,
                             config: Optional[Dict] = None) -> pd.DataFrame:
    """
    Convenience function to filter providers by location.

    Args:
        providers_df: Candidate providers
        location: Free-text search location
        config: The ``location`` configuration section

    Returns:
        Matching providers
    """
    matcher = LocationMatcher(LocationNormalizer(config))
    return matcher.match(providers_df, location)
