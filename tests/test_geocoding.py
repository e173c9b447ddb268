"""
Unit tests for the geocoding subsystem.
"""

import pytest
import sys
import threading
import time
from pathlib import Path

from geopy.exc import GeocoderTimedOut
from geopy.location import Location

# Add project root to path
sys.path.append(str(Path(__file__).parent.parent))

from providermatch.exceptions import GeocodingUnavailable
from providermatch.geocode.cache import BoundedCache, CACHE_MISS, GeocodingCache
from providermatch.geocode.client import NominatimGeocoder
from providermatch.geocode.fallback import DEFAULT_COORDINATES, fallback_coordinates
from providermatch.models import Coordinates, RESOLVED_EXTERNAL, RESOLVED_FALLBACK

MAIN_ST_KEY = "123 MAIN ST, FAIRFAX, VA 22030"


class FakeGeocoder:
    """Stands in for Nominatim.geocode and records every query."""

    def __init__(self, results=None, error=None, delay=0.0):
        self.results = results or {}
        self.error = error
        self.delay = delay
        self.calls = []
        self.call_times = []
        self.lock = threading.Lock()

    def __call__(self, query):
        with self.lock:
            self.calls.append(query)
            self.call_times.append(time.monotonic())
        if self.delay:
            time.sleep(self.delay)
        if self.error:
            raise self.error
        point = self.results.get(query)
        if point is None:
            return None
        return Location(query, (point[0], point[1], 0.0), {})


def build_cache(fake, max_entries=100, min_delay=0.0):
    config = {"min_delay_seconds": min_delay, "cache_max_entries": max_entries}
    return GeocodingCache.from_config(config, geocode_func=fake)


class TestFallbackTable:
    """Test cases for fallback coordinates."""

    def test_metro_entry(self):
        """Test exact city and state lookup."""
        assert fallback_coordinates("Arlington", "VA") == Coordinates(38.8816, -77.0910)
        assert fallback_coordinates("  virginia   beach ", "va") == Coordinates(36.8529, -75.9780)

    def test_state_default(self):
        """Test the state default when the city is unknown."""
        assert fallback_coordinates("Rockville", "MD") == Coordinates(39.2904, -76.6122)

    def test_hard_default(self):
        """Test the final default."""
        assert fallback_coordinates("Nowhere", "ZZ") == DEFAULT_COORDINATES
        assert fallback_coordinates("", "") == Coordinates(38.8462, -77.3064)


class TestBoundedCache:
    """Test cases for the LRU store."""

    def test_eviction_order(self):
        """Test least recently used entries are evicted first."""
        cache = BoundedCache(2)
        cache.put("a", 1)
        cache.put("b", 2)
        assert cache.get("a") == 1
        cache.put("c", 3)

        assert cache.get("b") is CACHE_MISS
        assert cache.get("a") == 1
        assert cache.get("c") == 3
        assert len(cache) == 2


class TestNominatimGeocoder:
    """Test cases for the external client wrapper."""

    def test_lookup_success(self):
        """Test a result becomes coordinates."""
        client = NominatimGeocoder({"min_delay_seconds": 0}, geocode_func=FakeGeocoder({"q": (1.5, -2.5)}))
        assert client.lookup("q") == Coordinates(1.5, -2.5)

    def test_empty_result(self):
        """Test an empty result is unavailable."""
        client = NominatimGeocoder({"min_delay_seconds": 0}, geocode_func=FakeGeocoder())
        with pytest.raises(GeocodingUnavailable):
            client.lookup("q")

    def test_geocoder_error(self):
        """Test geopy errors are converted."""
        fake = FakeGeocoder(error=GeocoderTimedOut("timed out"))
        client = NominatimGeocoder({"min_delay_seconds": 0}, geocode_func=fake)

        with pytest.raises(GeocodingUnavailable) as exc_info:
            client.lookup("q")
        assert "GeocoderTimedOut" in exc_info.value.reason
        assert len(fake.calls) == 1

    def test_minimum_interval(self):
        """Test consecutive calls are spaced by the minimum delay."""
        fake = FakeGeocoder({"a": (1.0, 1.0), "b": (2.0, 2.0)})
        client = NominatimGeocoder({"min_delay_seconds": 0.2}, geocode_func=fake)

        client.lookup("a")
        client.lookup("b")

        assert fake.call_times[1] - fake.call_times[0] >= 0.18


class TestGeocodingCache:
    """Test cases for cached resolution."""

    def test_external_result_cached(self):
        """Test a second resolve makes no external call."""
        fake = FakeGeocoder({MAIN_ST_KEY: (38.85, -77.30)})
        cache = build_cache(fake)

        first = cache.resolve("123 Main St", "Fairfax", "VA", "22030")
        second = cache.resolve("123  main st", "fairfax", "va", "22030")

        assert first == second
        assert first.resolved_via == RESOLVED_EXTERNAL
        assert (first.lat, first.lng) == (38.85, -77.30)
        assert fake.calls == [MAIN_ST_KEY]

        stats = cache.stats()
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["external_calls"] == 1
        assert stats["size"] == 1

    def test_unknown_address_falls_back(self):
        """Test an unresolvable address gets the default and is cached."""
        fake = FakeGeocoder()
        cache = build_cache(fake)

        entry = cache.resolve("123 Unknown St", "Nowhere", "ZZ", "00000")
        again = cache.resolve("123 Unknown St", "Nowhere", "ZZ", "00000")

        assert entry.resolved_via == RESOLVED_FALLBACK
        assert entry.is_fallback
        assert entry.coordinates == DEFAULT_COORDINATES
        assert again == entry
        assert len(fake.calls) == 1
        assert cache.stats()["fallbacks"] == 1

    def test_error_uses_city_fallback(self):
        """Test a geocoder error resolves to the metro entry."""
        fake = FakeGeocoder(error=GeocoderTimedOut("timed out"))
        cache = build_cache(fake)

        entry = cache.resolve("1 Court House Rd", "Arlington", "VA", "22201")
        assert entry.coordinates == Coordinates(38.8816, -77.0910)
        assert entry.resolved_via == RESOLVED_FALLBACK

    def test_unexpected_error_never_raises(self):
        """Test resolve is total even when the client misbehaves."""
        fake = FakeGeocoder(error=RuntimeError("socket closed"))
        cache = build_cache(fake)

        entry = cache.resolve("1 Main St", "Rockville", "MD", "20850")
        assert entry.coordinates == Coordinates(39.2904, -76.6122)

    def test_concurrent_misses_single_flight(self):
        """Test concurrent resolves of one address issue one external call."""
        fake = FakeGeocoder({MAIN_ST_KEY: (38.85, -77.30)}, delay=0.2)
        cache = build_cache(fake)
        barrier = threading.Barrier(8)
        results = []
        results_lock = threading.Lock()

        def worker():
            barrier.wait()
            entry = cache.resolve("123 Main St", "Fairfax", "VA", "22030")
            with results_lock:
                results.append(entry)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=5)

        assert len(results) == 8
        assert len(set(results)) == 1
        assert fake.calls == [MAIN_ST_KEY]

        stats = cache.stats()
        assert stats["misses"] == 1
        assert stats["hits"] + stats["coalesced"] == 7
        assert stats["in_flight"] == 0

    def test_lru_eviction(self):
        """Test evicted addresses are looked up again."""
        fake = FakeGeocoder()
        cache = build_cache(fake, max_entries=2)

        cache.resolve("1 A St", "Fairfax", "VA", "22030")
        cache.resolve("2 B St", "Fairfax", "VA", "22030")
        cache.resolve("1 A St", "Fairfax", "VA", "22030")
        cache.resolve("3 C St", "Fairfax", "VA", "22030")
        cache.resolve("2 B St", "Fairfax", "VA", "22030")

        assert len(fake.calls) == 4
        assert cache.peek("1 A St", "Fairfax", "VA", "22030") is None
        assert cache.stats()["size"] == 2


if __name__ == "__main__":
    pytest.main([__file__])
