"""
Main pipeline orchestrator for ProviderMatch.

Answers provider searches by composing the registry loader, eligibility
filter, location matcher, deduplicator, relevance scorer and geocoding
cache: filter -> location-match -> dedupe -> score -> sort -> truncate ->
geocode each unique address.
"""

import argparse
import json
import logging
import sys
import threading
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd

from ..config import (
    DEFAULT_CONFIG_PATH,
    get_default_config,
    load_config,
    merge_configs,
    validate_config,
)
from ..exceptions import SourceUnavailable
from ..geocode.cache import GeocodingCache
from ..ingestion.registry_loader import RegistryLoader
from ..match.eligibility import EligibilityFilter
from ..match.location_matcher import LocationMatcher
from ..match.scorer import RelevanceScorer
from ..merge.deduplicator import Deduplicator
from ..models import GeocodeEntry, MatchedProvider, ProviderRecord, SearchCriteria, SearchResult
from ..normalize.location_normalizer import LocationNormalizer
from ..recommend.specialty_recommender import (
    KeywordSpecialtyRecommender,
    resolve_recommended_specialty,
)

logger = logging.getLogger(__name__)

NO_MATCHES_MESSAGE = "No appropriate specialists found for the given symptoms and age."


class ProviderMatchService:
    """
    Provider search service.

    The registry is loaded lazily on first use and memoized for the life of
    the service; construct a new service to pick up a new registry file.
    One geocoding cache (and therefore one rate limiter) is shared by every
    search the service runs.
    """

    def __init__(self, config_path: str = DEFAULT_CONFIG_PATH,
                 config: Optional[Dict] = None,
                 source_path: Optional[str] = None,
                 geocoding_cache: Optional[GeocodingCache] = None,
                 recommender=None):
        """
        Initialize service with configuration.

        Args:
            config_path: Path to configuration file, used when ``config`` is None
            config: Configuration overrides layered over the defaults
            source_path: Registry file, overriding ``registry.source_path``
            geocoding_cache: Pre-built geocoding cache (tests inject one
                backed by a fake geocoder)
            recommender: Default specialty recommender for searches without
                a specialty
        """
        if config is None:
            self.config = load_config(config_path)
        else:
            self.config = merge_configs(get_default_config(), config)

        if not validate_config(self.config):
            raise ValueError("Invalid ProviderMatch configuration")

        self.source_path = source_path or self.config["registry"]["source_path"]

        self.normalizer = LocationNormalizer(self.config.get("location"))
        self.loader = RegistryLoader(self.config["registry"], self.normalizer)
        self.eligibility = EligibilityFilter(self.config["eligibility"])
        self.location_matcher = LocationMatcher(self.normalizer)
        self.deduplicator = Deduplicator()

        scoring_config = dict(self.config["scoring"])
        scoring_config.setdefault("child_age_threshold", self.eligibility.child_age_threshold)
        self.scorer = RelevanceScorer(scoring_config)

        self.geocoding_cache = geocoding_cache or GeocodingCache.from_config(
            self.config["geocoding"], self.normalizer
        )
        self.recommender = recommender

        self._registry: Optional[pd.DataFrame] = None
        self._registry_lock = threading.Lock()

        logger.info("Initialized ProviderMatch service")

    @property
    def registry(self) -> pd.DataFrame:
        """
        The loaded registry, read from disk on first access.

        Raises:
            SourceUnavailable: If the registry file cannot be read
        """
        if self._registry is None:
            with self._registry_lock:
                if self._registry is None:
                    started = self._start_stage_timer("registry load")
                    self._registry = self.loader.load(self.source_path)
                    self._end_stage_timer("registry load", started)
        return self._registry

    def _start_stage_timer(self, stage_name: str) -> float:
        logger.debug(f"Starting stage: {stage_name}")
        return time.time()

    def _end_stage_timer(self, stage_name: str, started: float):
        logger.debug(f"Completed stage: {stage_name} in {time.time() - started:.3f} seconds")

    def resolve_specialty(self, criteria: SearchCriteria, recommender=None) -> Optional[str]:
        """
        Decide the target specialty for a search.

        Args:
            criteria: Search criteria
            recommender: Recommender overriding the service default

        Returns:
            Explicit specialty, else the recommender's answer, else None
        """
        if criteria.specialty:
            return criteria.specialty

        recommender = recommender or self.recommender
        specialty = resolve_recommended_specialty(recommender, criteria.symptoms_text, age=criteria.age)
        if specialty:
            logger.info(f"Using recommended specialty {specialty}")
        return specialty

    def find_candidates(self, criteria: SearchCriteria,
                        target_specialty: Optional[str] = None) -> pd.DataFrame:
        """
        Run the filtering and ranking stages.

        Args:
            criteria: Search criteria
            target_specialty: Resolved target specialty, if any

        Returns:
            All surviving providers, scored and sorted, before truncation
        """
        started = self._start_stage_timer("filter")
        candidates = self.eligibility.filter(
            self.registry, target_specialty, criteria.age, criteria.symptoms_text
        )
        if criteria.location:
            candidates = self.location_matcher.match(candidates, criteria.location)
        candidates = self.deduplicator.dedupe(candidates)
        self._end_stage_timer("filter", started)

        started = self._start_stage_timer("score")
        scored = self.scorer.score_dataframe(candidates, criteria.symptoms_text, criteria.age)
        ranked = self.scorer.rank(scored)
        self._end_stage_timer("score", started)

        return ranked

    def geocode_providers(self, providers_df: pd.DataFrame) -> Dict[str, GeocodeEntry]:
        """
        Resolve one coordinate per unique address, in ranking order.

        Args:
            providers_df: Truncated, ranked providers

        Returns:
            Mapping from ``unique_key`` to geocode entry
        """
        started = self._start_stage_timer("geocode")
        by_address: Dict[tuple, GeocodeEntry] = {}
        entries = {}

        for row in providers_df.itertuples(index=False):
            address = (row.address_line_1, row.city, row.state, row.postal_code)
            if address not in by_address:
                by_address[address] = self.geocoding_cache.resolve(*address)
            entries[row.unique_key] = by_address[address]

        self._end_stage_timer("geocode", started)
        logger.info(f"Resolved {len(by_address)} unique addresses for {len(entries)} providers")
        return entries

    def enrich(self, providers_df: pd.DataFrame, criteria: SearchCriteria,
               geocodes: Dict[str, GeocodeEntry]) -> List[MatchedProvider]:
        matches = []
        for row in providers_df.to_dict("records"):
            record = ProviderRecord.from_row(row)
            entry = geocodes.get(record.unique_key)
            matches.append(MatchedProvider(
                provider=record,
                match_percentage=int(row["match_percentage"]),
                scoring_reasons=list(row["scoring_reasons"]),
                coordinates=entry.coordinates if entry else None,
                resolved_via=entry.resolved_via if entry else None,
                sub_specialty_label=self.scorer.sub_specialty_label(
                    record.primary_specialty, criteria.symptoms_text, criteria.age
                ),
                conditions=self.scorer.conditions_for(criteria.symptoms_text),
                experience_years=self.scorer.experience_years(record.graduation_year),
            ))
        return matches

    def search(self, criteria: SearchCriteria, recommender=None) -> SearchResult:
        """
        Find, rank and geocode providers for a patient.

        Args:
            criteria: Search criteria
            recommender: Specialty recommender consulted when the criteria
                carry no specialty

        Returns:
            Search result; an empty match list is a valid outcome

        Raises:
            SourceUnavailable: If the registry cannot be read
        """
        search_start = time.time()
        logger.info(f"Search: location='{criteria.location}', specialty='{criteria.specialty or ''}', "
                    f"age={criteria.age}, limit={criteria.result_limit}")

        target_specialty = self.resolve_specialty(criteria, recommender)
        ranked = self.find_candidates(criteria, target_specialty)
        top = ranked.head(criteria.result_limit)

        geocodes = self.geocode_providers(top)
        matches = self.enrich(top, criteria, geocodes)

        result = SearchResult(
            matches=matches,
            criteria=criteria,
            total_candidates=len(ranked),
            message="" if matches else NO_MATCHES_MESSAGE,
        )

        logger.info(f"Search returned {result.total_matches} of {result.total_candidates} candidates "
                    f"in {time.time() - search_start:.2f} seconds")
        return result

    def get_specialties(self) -> List[str]:
        """Distinct provider specialties in the registry, sorted."""
        return sorted(self.registry["primary_specialty"].dropna().unique().tolist())

    def get_stats(self) -> Dict[str, Any]:
        """
        Summarize the loaded registry and geocoding cache.

        Returns:
            Statistics dictionary
        """
        registry = self.registry
        return {
            "source_path": self.source_path,
            "total_providers": len(registry),
            "unique_providers": int(registry["unique_key"].nunique()),
            "specialties": int(registry["primary_specialty"].nunique()),
            "states": sorted(s for s in registry["state"].unique().tolist() if s),
            "synthesized_addresses": int(registry["address_is_synthesized"].sum()),
            "geocoding": self.geocoding_cache.stats(),
        }


def search_providers(criteria: SearchCriteria, config_path: str = DEFAULT_CONFIG_PATH) -> SearchResult:
    """
    Convenience function to run a single search.

    Args:
        criteria: Search criteria
        config_path: Configuration file path

    Returns:
        Search result
    """
    service = ProviderMatchService(config_path)
    return service.search(criteria)


def setup_logging(log_level: str, log_file: str, log_format: str):
    Path(log_file).parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        level=getattr(logging, log_level),
        format=log_format,
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(log_file)
        ]
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="ProviderMatch provider search")
    parser.add_argument("--config", default=DEFAULT_CONFIG_PATH, help="Configuration file path")
    parser.add_argument("--source", help="Provider registry file (overrides configuration)")
    parser.add_argument("--log-level", default=None, choices=["DEBUG", "INFO", "WARNING", "ERROR"])

    subparsers = parser.add_subparsers(dest="command", required=True)

    search_parser = subparsers.add_parser("search", help="Search for providers")
    search_parser.add_argument("--location", default="", help='Location, e.g. "Fairfax, VA"')
    search_parser.add_argument("--specialty", help="Target specialty")
    search_parser.add_argument("--symptoms", default="", help="Free-text symptoms")
    search_parser.add_argument("--age", type=int, help="Patient age")
    search_parser.add_argument("--limit", type=int, help="Maximum number of results")
    search_parser.add_argument("--recommend", action="store_true",
                               help="Derive a specialty from symptoms when none is given")

    subparsers.add_parser("specialties", help="List registry specialties")
    subparsers.add_parser("stats", help="Show registry statistics")

    return parser


def main(argv: Optional[List[str]] = None):
    """Main entry point for ProviderMatch searches."""
    args = build_parser().parse_args(argv)

    config = load_config(args.config)
    logging_config = config.get("logging", {})
    setup_logging(
        args.log_level or logging_config.get("level", "INFO"),
        logging_config.get("file", "logs/provider_match.log"),
        logging_config.get("format", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"),
    )

    try:
        service = ProviderMatchService(config=config, source_path=args.source)

        if args.command == "search":
            criteria = SearchCriteria(
                location=args.location,
                specialty=args.specialty,
                symptoms_text=args.symptoms,
                age=args.age,
                result_limit=(args.limit if args.limit is not None
                              else config["search"]["default_result_limit"]),
            )
            recommender = KeywordSpecialtyRecommender() if args.recommend else None
            output = service.search(criteria, recommender=recommender).to_dict()
        elif args.command == "specialties":
            specialties = service.get_specialties()
            output = {"specialties": specialties, "total": len(specialties)}
        else:
            output = service.get_stats()

        print(json.dumps(output, indent=2, default=str))

    except SourceUnavailable as e:
        logger.error(f"Provider registry unavailable: {e}")
        sys.exit(1)
    except ValueError as e:
        logger.error(f"Invalid request: {e}")
        sys.exit(2)


if __name__ == "__main__":
    main()
