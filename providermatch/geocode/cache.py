"""
Geocoding cache for ProviderMatch.

Resolves provider addresses to coordinates. Each normalized address is
looked up externally at most once: results (including fallbacks) are kept
in a bounded LRU, and concurrent misses for the same address wait on the
single lookup already in flight.
"""

import logging
import threading
from collections import OrderedDict
from typing import Any, Dict, Optional

from ..exceptions import GeocodingUnavailable
from ..models import RESOLVED_EXTERNAL, RESOLVED_FALLBACK, GeocodeEntry
from ..normalize.location_normalizer import LocationNormalizer
from .client import NominatimGeocoder
from .fallback import fallback_coordinates

logger = logging.getLogger(__name__)

CACHE_MISS = object()


class BoundedCache:
    """Least-recently-used mapping with a fixed capacity."""

    def __init__(self, limit: int):
        self.limit = max(int(limit), 1)
        self.store: "OrderedDict[str, Any]" = OrderedDict()

    def get(self, key: str, default: Any = CACHE_MISS) -> Any:
        if key not in self.store:
            return default
        self.store.move_to_end(key)
        return self.store[key]

    def put(self, key: str, value: Any) -> None:
        if key in self.store:
            self.store.move_to_end(key)
        elif len(self.store) >= self.limit:
            evicted, _ = self.store.popitem(last=False)
            logger.debug(f"Evicted geocode entry: {evicted}")
        self.store[key] = value

    def __contains__(self, key: str) -> bool:
        return key in self.store

    def __len__(self) -> int:
        return len(self.store)

    def clear(self) -> None:
        self.store.clear()


class _Flight:
    """An external lookup in progress for one key."""

    def __init__(self):
        self.done = threading.Event()
        self.entry: Optional[GeocodeEntry] = None


class GeocodingCache:
    """
    Address to coordinate resolution with caching and fallback.

    ``resolve`` never raises: when the external client fails, the static
    fallback table answers and that answer is cached like any other.
    """

    def __init__(self, client: Optional[NominatimGeocoder] = None,
                 normalizer: Optional[LocationNormalizer] = None,
                 max_entries: int = 10000):
        """
        Initialize geocoding cache.

        Args:
            client: External geocoding client, shared by all callers
            normalizer: Normalizer used to build cache keys
            max_entries: LRU capacity
        """
        self.client = client or NominatimGeocoder()
        self.normalizer = normalizer or LocationNormalizer()
        self._cache = BoundedCache(max_entries)
        self._in_flight: Dict[str, _Flight] = {}
        self._lock = threading.Lock()

        self.stats_counters = {
            "hits": 0,
            "misses": 0,
            "coalesced": 0,
            "external_calls": 0,
            "fallbacks": 0,
        }

        logger.info(f"Initialized GeocodingCache (max {self._cache.limit} entries)")

    @classmethod
    def from_config(cls, config: Dict, normalizer: Optional[LocationNormalizer] = None,
                    geocode_func=None) -> "GeocodingCache":
        """
        Build a cache and its client from the ``geocoding`` config section.

        Args:
            config: Geocoding configuration
            normalizer: Normalizer used to build cache keys
            geocode_func: Optional replacement for the Nominatim call

        Returns:
            Configured GeocodingCache
        """
        client = NominatimGeocoder(config, geocode_func=geocode_func)
        return cls(client, normalizer, config.get("cache_max_entries", 10000))

    def resolve(self, address_line: str, city: str, state: str, postal_code: str) -> GeocodeEntry:
        """
        Resolve a provider address to coordinates.

        Args:
            address_line: Street address
            city: City name
            state: State code
            postal_code: ZIP code

        Returns:
            Cached, external or fallback entry
        """
        key = self.normalizer.build_address_key(address_line, city, state, postal_code)

        with self._lock:
            entry = self._cache.get(key)
            if entry is not CACHE_MISS:
                self.stats_counters["hits"] += 1
                return entry

            flight = self._in_flight.get(key)
            is_leader = flight is None
            if is_leader:
                flight = _Flight()
                self._in_flight[key] = flight
                self.stats_counters["misses"] += 1
            else:
                self.stats_counters["coalesced"] += 1

        if not is_leader:
            flight.done.wait()
            if flight.entry is not None:
                return flight.entry
            return self._fallback_entry(key, city, state)

        try:
            entry = self._lookup(key, city, state)
            with self._lock:
                self._cache.put(key, entry)
            flight.entry = entry
        finally:
            with self._lock:
                self._in_flight.pop(key, None)
            flight.done.set()

        return entry

    def _lookup(self, key: str, city: str, state: str) -> GeocodeEntry:
        with self._lock:
            self.stats_counters["external_calls"] += 1

        try:
            coordinates = self.client.lookup(key)
        except GeocodingUnavailable as e:
            logger.warning(f"Using fallback coordinates for {key}: {e.reason or e}")
            return self._fallback_entry(key, city, state)

        logger.info(f"Geocoded {key} -> [{coordinates.lat}, {coordinates.lng}]")
        return GeocodeEntry(coordinates.lat, coordinates.lng, RESOLVED_EXTERNAL)

    def _fallback_entry(self, key: str, city: str, state: str) -> GeocodeEntry:
        with self._lock:
            self.stats_counters["fallbacks"] += 1
        coordinates = fallback_coordinates(city, self.normalizer.normalize_state(state))
        logger.debug(f"Fallback for {key} -> [{coordinates.lat}, {coordinates.lng}]")
        return GeocodeEntry(coordinates.lat, coordinates.lng, RESOLVED_FALLBACK)

    def peek(self, address_line: str, city: str, state: str, postal_code: str) -> Optional[GeocodeEntry]:
        """Cached entry for an address without touching recency or counters."""
        key = self.normalizer.build_address_key(address_line, city, state, postal_code)
        with self._lock:
            return self._cache.store.get(key)

    def stats(self) -> Dict[str, int]:
        with self._lock:
            stats = dict(self.stats_counters)
            stats["size"] = len(self._cache)
            stats["in_flight"] = len(self._in_flight)
        return stats

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()
