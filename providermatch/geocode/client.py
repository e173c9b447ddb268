"""
Rate-limited external geocoding client for ProviderMatch.

Wraps geopy's Nominatim geocoder in geopy's ``RateLimiter`` so that every
caller sharing one client is serialized behind the provider's fair-use
interval. All failures surface as ``GeocodingUnavailable``.
"""

import logging
from functools import partial
from typing import Callable, Dict, Optional

from geopy.exc import GeopyError
from geopy.extra.rate_limiter import RateLimiter
from geopy.geocoders import Nominatim

from ..exceptions import GeocodingUnavailable
from ..models import Coordinates

logger = logging.getLogger(__name__)


class NominatimGeocoder:
    """
    Geocodes free-text addresses one at a time.

    The rate limiter is owned by the client, so sharing a single client
    across threads keeps the whole process under the minimum interval.
    """

    def __init__(self, config: Optional[Dict] = None,
                 geocode_func: Optional[Callable] = None):
        """
        Initialize geocoding client with configuration.

        Args:
            config: The ``geocoding`` configuration section
            geocode_func: Callable taking a query string and returning a geopy
                ``Location`` or None; defaults to Nominatim
        """
        config = config or {}
        self.config = config
        self.min_delay_seconds = float(config.get("min_delay_seconds", 1.1))
        self.timeout_seconds = float(config.get("timeout_seconds", 5.0))

        if geocode_func is None:
            geolocator = Nominatim(
                user_agent=config.get("user_agent", "providermatch/1.0"),
                timeout=self.timeout_seconds,
                domain=config.get("domain", "nominatim.openstreetmap.org"),
            )
            geocode_func = partial(
                geolocator.geocode,
                exactly_one=True,
                country_codes=config.get("country_codes") or None,
            )

        self._geocode = RateLimiter(
            geocode_func,
            min_delay_seconds=self.min_delay_seconds,
            max_retries=0,
            swallow_exceptions=False,
        )

        logger.info(f"Initialized NominatimGeocoder (min delay {self.min_delay_seconds}s, "
                    f"timeout {self.timeout_seconds}s)")

    def lookup(self, query: str) -> Coordinates:
        """
        Resolve one address.

        Args:
            query: Free-text address

        Returns:
            Coordinates of the best match

        Raises:
            GeocodingUnavailable: On error, timeout or an empty result
        """
        logger.debug(f"Geocoding: {query}")

        try:
            location = self._geocode(query)
        except GeopyError as e:
            raise GeocodingUnavailable(query, f"{type(e).__name__}: {e}") from e
        except Exception as e:
            logger.error(f"Unexpected geocoder failure for '{query}': {e}")
            raise GeocodingUnavailable(query, str(e)) from e

        if location is None:
            raise GeocodingUnavailable(query, "no results")

        return Coordinates(float(location.latitude), float(location.longitude))
