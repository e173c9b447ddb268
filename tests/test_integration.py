"""
Integration tests for the ProviderMatch search pipeline.
"""

import json
import pytest
import pandas as pd
import sys
import tempfile
from pathlib import Path

# Add project root to path
sys.path.append(str(Path(__file__).parent.parent))

from geopy.location import Location

from providermatch.exceptions import SourceUnavailable
from providermatch.geocode.cache import GeocodingCache
from providermatch.models import RESOLVED_EXTERNAL, RESOLVED_FALLBACK, SearchCriteria
from providermatch.pipeline.run_provider_match import (
    NO_MATCHES_MESSAGE,
    ProviderMatchService,
    main,
)
from providermatch.recommend.specialty_recommender import KeywordSpecialtyRecommender

HEART_CENTER_KEY = "3700 JOSEPH SIEWICK DR, FAIRFAX, VA 22033"
PEDIATRICS_KEY = "4000 LEGATO RD, FAIRFAX, VA 22033"


class FakeGeocoder:
    """Stands in for Nominatim.geocode and records every query."""

    def __init__(self, results):
        self.results = results
        self.calls = []

    def __call__(self, query):
        self.calls.append(query)
        point = self.results.get(query)
        if point is None:
            return None
        return Location(query, (point[0], point[1], 0.0), {})


COLUMNS = [
    "NPI", "Provider First Name", "Provider Last Name", "Provider Middle Name", "gndr",
    "Cred", "Grd_yr", "pri_spec", "Facility Name", "adr_ln_1", "Generated_Address",
    "Address_Generated", "City/Town", "State", "ZIP Code", "Telephone Number",
]

REGISTRY_ROWS = [
    ["1000000001", "Alice", "Heart", "", "F", "MD", "2000", "CARDIOLOGY", "Fairfax Heart Center",
     "3700 Joseph Siewick Dr", "", "", "Fairfax", "VA", "22033", "7035550001"],
    ["1000000001", "Alice", "Heart", "", "F", "MD", "2000", "CARDIOLOGY", "Fairfax Heart Center",
     "3700 Joseph Siewick Dr", "", "", "Fairfax", "VA", "22033", "7035550001"],
    ["1000000002", "Bob", "Kid", "", "M", "MD", "1995", "PEDIATRICS", "Fairfax Pediatrics",
     "4000 Legato Rd", "", "", "Fairfax", "VA", "22033", "7035550002"],
    ["1000000003", "Carol", "Family", "", "F", "DO", "2010", "FAMILY PRACTICE", "Fairfax Family Care",
     "10500 Main St", "", "", "Fairfax", "VA", "22030", "7035550003"],
    ["1000000004", "Dan", "Internist", "", "M", "MD", "1988", "INTERNAL MEDICINE", "Fairfax Internal",
     "3700 Joseph Siewick Dr", "", "", "Fairfax", "VA", "22033", "7035550004"],
    ["1000000005", "Eve", "Derm", "", "F", "MD", "2005", "DERMATOLOGY", "Arlington Skin",
     "1701 N George Mason Dr", "", "", "Arlington", "VA", "22205", "7035550005"],
    ["1000000006", "Frank", "Station", "", "M", "MD", "1999", "INTERVENTIONAL CARDIOLOGY",
     "Station Cardiology", "11000 Station Rd", "", "", "Fairfax Station", "VA", "22039", ""],
    ["", "Nora", "Noid", "", "F", "MD", "2001", "CARDIOLOGY", "Nowhere Clinic",
     "1 Main St", "", "", "Fairfax", "VA", "22030", ""],
    ["1000000007", "Gina", "South", "", "F", "MD", "2003", "CARDIOLOGY", "Richmond Heart",
     "1200 E Broad St", "", "", "Richmond", "VA", "23219", ""],
    ["1000000008", "Hank", "Generated", "", "M", "MD", "", "FAMILY MEDICINE", "Fairfax Family Medicine",
     "", "200 Generated Ave", "TRUE", "Fairfax", "VA", "22030", ""],
]


class TestProviderMatchService:
    """Integration tests for the complete search pipeline."""

    def setup_method(self):
        """Setup test fixtures."""
        self.temp_dir = tempfile.mkdtemp()

        self.registry_path = Path(self.temp_dir) / "registry.csv"
        pd.DataFrame(REGISTRY_ROWS, columns=COLUMNS).to_csv(self.registry_path, index=False)

        self.config = {
            "registry": {"source_path": str(self.registry_path)},
            "geocoding": {"min_delay_seconds": 0},
        }
        self.fake_geocoder = FakeGeocoder({
            HEART_CENTER_KEY: (38.8601, -77.3609),
            PEDIATRICS_KEY: (38.8572, -77.3707),
        })
        self.geocoding_cache = GeocodingCache.from_config(
            self.config["geocoding"], geocode_func=self.fake_geocoder
        )
        self.service = ProviderMatchService(config=self.config, geocoding_cache=self.geocoding_cache)

    def test_adult_cardiology_search(self):
        """Test an adult specialty search in one city."""
        criteria = SearchCriteria(location="Fairfax, VA", specialty="CARDIOLOGY",
                                  symptoms_text="chest pain", age=45)
        result = self.service.search(criteria)

        names = [m.display_name for m in result.matches]
        assert names == ["Dr. Alice Heart", "Dr. Frank Station"]
        for match in result.matches:
            assert "CARDIOLOGY" in match.provider.primary_specialty
            assert 85 <= match.match_percentage <= 98
            assert match.coordinates is not None
        assert result.matches[0].match_percentage == 98
        assert result.matches[0].scoring_reasons[:2] == ["Specializes in CARDIOLOGY", "Expert in heart conditions"]

    def test_child_sore_throat_search(self):
        """Test children only get pediatric or family practices."""
        criteria = SearchCriteria(location="Fairfax, VA", symptoms_text="sore throat", age=10)
        result = self.service.search(criteria)

        specialties = [m.provider.primary_specialty for m in result.matches]
        assert specialties == ["PEDIATRICS", "FAMILY PRACTICE", "FAMILY MEDICINE"]
        assert [m.match_percentage for m in result.matches] == [95, 93, 93]
        for match in result.matches:
            assert "Pediatric experience" in match.scoring_reasons
            assert match.conditions == ["Sore Throat", "Pharyngitis", "Tonsillitis"]
        assert result.matches[0].sub_specialty_label == "Pediatric Care"

    def test_child_never_gets_adult_specialty(self):
        """Test an explicit adult specialty yields nothing for a child."""
        criteria = SearchCriteria(location="Fairfax, VA", specialty="CARDIOLOGY", age=12)
        result = self.service.search(criteria)
        assert result.total_matches == 0

    def test_adults_never_get_pediatrics(self):
        """Test adults without a specialty skip pediatric practices."""
        result = self.service.search(SearchCriteria(location="VA", age=40))

        specialties = {m.provider.primary_specialty for m in result.matches}
        assert "PEDIATRICS" not in specialties
        assert result.total_matches == 7

    def test_empty_result(self):
        """Test an unknown location gives an explained empty result."""
        criteria = SearchCriteria(location="Nowhere, ZZ", specialty="CARDIOLOGY", age=45)
        result = self.service.search(criteria)

        assert result.matches == []
        assert result.total_matches == 0
        assert result.message == NO_MATCHES_MESSAGE
        assert result.criteria is criteria
        assert self.fake_geocoder.calls == []

    def test_duplicate_rows_collapse(self):
        """Test repeated registry rows appear once."""
        criteria = SearchCriteria(location="Fairfax, VA", specialty="CARDIOLOGY", age=45)
        result = self.service.search(criteria)

        keys = [m.provider.unique_key for m in result.matches]
        assert len(keys) == len(set(keys))
        assert keys.count("1000000001-Fairfax Heart Center-Fairfax") == 1

    def test_unknown_address_uses_fallback(self):
        """Test addresses the geocoder cannot resolve get fallback coordinates."""
        criteria = SearchCriteria(location="Fairfax Station, VA", specialty="CARDIOLOGY", age=45)
        result = self.service.search(criteria)

        by_name = {m.provider.first_name: m for m in result.matches}
        assert by_name["Alice"].resolved_via == RESOLVED_EXTERNAL
        assert by_name["Frank"].resolved_via == RESOLVED_FALLBACK
        assert by_name["Frank"].coordinates.to_dict() == {"lat": 38.8462, "lng": -77.3064}

    def test_shared_address_geocoded_once(self):
        """Test providers at one address share one lookup across searches."""
        self.service.search(SearchCriteria(location="Fairfax, VA", age=40))
        self.service.search(SearchCriteria(location="Fairfax, VA", age=40))

        assert self.fake_geocoder.calls.count(HEART_CENTER_KEY) == 1
        assert len(self.fake_geocoder.calls) == len(set(self.fake_geocoder.calls))

    def test_result_limit(self):
        """Test truncation keeps the highest scores."""
        result = self.service.search(SearchCriteria(location="VA", specialty="CARDIOLOGY",
                                                    symptoms_text="heart", age=50, result_limit=2))

        assert result.total_matches == 2
        assert result.total_candidates == 3
        assert [m.provider.first_name for m in result.matches] == ["Alice", "Frank"]

    def test_recommender_supplies_specialty(self):
        """Test a recommender fills in a missing specialty."""
        criteria = SearchCriteria(location="VA", symptoms_text="itchy skin rash", age=30)
        result = self.service.search(criteria, recommender=KeywordSpecialtyRecommender())

        assert [m.provider.primary_specialty for m in result.matches] == ["DERMATOLOGY"]

    def test_failing_recommender_is_ignored(self):
        """Test recommender failure behaves like no specialty."""
        class BrokenRecommender:
            def recommend(self, symptoms, age=None, gender=None):
                raise TimeoutError("no answer")

        criteria = SearchCriteria(location="Arlington, VA", symptoms_text="itchy skin rash", age=30)
        result = self.service.search(criteria, recommender=BrokenRecommender())
        assert result.total_matches == 1

    def test_enrichment(self):
        """Test display fields on matches."""
        criteria = SearchCriteria(location="Fairfax, VA", specialty="FAMILY MEDICINE", age=40)
        match = self.service.search(criteria).matches[0]

        assert match.provider.address_line_1 == "200 Generated Ave"
        assert match.provider.address_is_synthesized
        assert match.full_address == "200 Generated Ave Fairfax, VA 22030"
        assert match.experience_years is None

    def test_result_serialization(self):
        """Test caller-facing result keys."""
        criteria = SearchCriteria(location="Fairfax, VA", specialty="CARDIOLOGY", age=45)
        data = self.service.search(criteria).to_dict()

        assert {"matches", "totalMatches", "timestamp"} <= set(data)
        assert data["totalMatches"] == len(data["matches"])
        assert data["matches"][0]["coordinates"] == {"lat": 38.8601, "lng": -77.3609}
        json.dumps(data)

    def test_get_specialties(self):
        """Test distinct sorted specialties."""
        assert self.service.get_specialties() == [
            "CARDIOLOGY", "DERMATOLOGY", "FAMILY MEDICINE", "FAMILY PRACTICE",
            "INTERNAL MEDICINE", "INTERVENTIONAL CARDIOLOGY", "PEDIATRICS",
        ]

    def test_get_stats(self):
        """Test registry statistics."""
        stats = self.service.get_stats()

        assert stats["total_providers"] == 9
        assert stats["unique_providers"] == 8
        assert stats["states"] == ["VA"]
        assert stats["synthesized_addresses"] == 1
        assert "hits" in stats["geocoding"]

    def test_registry_loaded_once(self):
        """Test the registry is memoized by the service."""
        first = self.service.registry
        self.registry_path.unlink()
        assert self.service.registry is first

    def test_missing_registry(self):
        """Test an unreadable registry propagates."""
        service = ProviderMatchService(
            config={"registry": {"source_path": str(Path(self.temp_dir) / "missing.csv")}},
            geocoding_cache=self.geocoding_cache,
        )
        with pytest.raises(SourceUnavailable):
            service.search(SearchCriteria(location="Fairfax, VA"))

    def test_invalid_criteria(self):
        """Test invalid criteria are rejected."""
        with pytest.raises(ValueError):
            SearchCriteria(location="Fairfax, VA", age=-1)
        with pytest.raises(ValueError):
            SearchCriteria(location="Fairfax, VA", result_limit=0)

    def test_invalid_config(self):
        """Test invalid configuration is rejected."""
        with pytest.raises(ValueError):
            ProviderMatchService(config={"scoring": {"min_score": 99, "max_score": 98}})

    def test_cli_specialties(self, capsys):
        """Test the command-line specialty listing."""
        config_path = Path(self.temp_dir) / "provider_match.yaml"
        log_path = Path(self.temp_dir) / "logs" / "provider_match.log"
        config_path.write_text(f"logging:\n  file: \"{log_path}\"\n")

        main(["--config", str(config_path), "--source", str(self.registry_path), "specialties"])

        output = json.loads(capsys.readouterr().out)
        assert output["total"] == 7
        assert output["specialties"][0] == "CARDIOLOGY"

    def test_cli_missing_registry(self):
        """Test the command line exits non-zero for a missing registry."""
        config_path = Path(self.temp_dir) / "provider_match.yaml"
        log_path = Path(self.temp_dir) / "logs" / "provider_match.log"
        config_path.write_text(f"logging:\n  file: \"{log_path}\"\n")

        with pytest.raises(SystemExit) as exc_info:
            main(["--config", str(config_path), "--source", str(Path(self.temp_dir) / "missing.csv"),
                  "stats"])
        assert exc_info.value.code == 1

    def test_cli_zero_limit_rejected(self):
        """Test an explicit zero result limit is an invalid request."""
        config_path = Path(self.temp_dir) / "provider_match.yaml"
        log_path = Path(self.temp_dir) / "logs" / "provider_match.log"
        config_path.write_text(f"logging:\n  file: \"{log_path}\"\n")

        with pytest.raises(SystemExit) as exc_info:
            main(["--config", str(config_path), "--source", str(self.registry_path),
                  "search", "--location", "Fairfax, VA", "--limit", "0"])
        assert exc_info.value.code == 2

    def teardown_method(self):
        """Cleanup test fixtures."""
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)


if __name__ == "__main__":
    pytest.main([__file__])
