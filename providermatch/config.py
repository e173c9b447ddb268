"""
Configuration utilities for ProviderMatch.

Provides configuration loading, merging and validation for all pipeline
components.
"""

import copy
import logging
from pathlib import Path
from typing import Any, Dict

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config/provider_match.yaml"


def get_default_config() -> Dict[str, Any]:
    """
    Get default pipeline configuration.

    Returns:
        Default configuration dictionary
    """
    return {
        "registry": {
            "source_path": "data/cms-doctors-clinicians.csv",
            "columns": {
                "national_id": "NPI",
                "first_name": "Provider First Name",
                "last_name": "Provider Last Name",
                "middle_name": "Provider Middle Name",
                "gender": "gndr",
                "credentials": "Cred",
                "graduation_year": "Grd_yr",
                "primary_specialty": "pri_spec",
                "facility_name": "Facility Name",
                "address_line_1": "adr_ln_1",
                "generated_address": "Generated_Address",
                "address_generated": "Address_Generated",
                "city": "City/Town",
                "state": "State",
                "postal_code": "ZIP Code",
                "phone": "Telephone Number",
            },
            "required_fields": ["national_id", "first_name", "last_name", "primary_specialty"],
        },
        "eligibility": {
            "child_age_threshold": 18,
        },
        "location": {
            "zip_regex": "\\d{5}(-?\\d{4})?",
            "default_country_code": "US",
        },
        "scoring": {
            "base_score": 85,
            "specialty_bonus": 5,
            "symptom_bonus": 10,
            "pediatrics_bonus": 5,
            "family_practice_bonus": 3,
            "min_score": 85,
            "max_score": 98,
            "trust_markers": ["Medicare Participating", "Accepts New Patients"],
        },
        "geocoding": {
            "user_agent": "providermatch/1.0",
            "domain": "nominatim.openstreetmap.org",
            "min_delay_seconds": 1.1,
            "timeout_seconds": 5.0,
            "cache_max_entries": 10000,
            "country_codes": "us",
        },
        "search": {
            "default_result_limit": 20,
        },
        "logging": {
            "level": "INFO",
            "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            "file": "logs/provider_match.log",
        },
    }


def load_config(config_path: str = DEFAULT_CONFIG_PATH) -> Dict[str, Any]:
    """
    Load pipeline configuration from a YAML file, layered over the defaults.

    Args:
        config_path: Path to configuration file

    Returns:
        Configuration dictionary
    """
    defaults = get_default_config()
    config_file = Path(config_path)

    if not config_file.exists():
        logger.warning(f"Configuration file {config_path} not found, using defaults")
        return defaults

    try:
        with open(config_file, "r") as f:
            overrides = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.error(f"Failed to load configuration from {config_path}: {e}")
        return defaults

    config = merge_configs(defaults, overrides)
    logger.info(f"Loaded configuration from {config_path}")
    return config


def validate_config(config: Dict[str, Any]) -> bool:
    """
    Validate pipeline configuration.

    Args:
        config: Configuration dictionary

    Returns:
        True if configuration is valid, False otherwise
    """
    required_sections = ["registry", "eligibility", "scoring", "geocoding", "search"]

    for section in required_sections:
        if section not in config:
            logger.error(f"Missing required configuration section: {section}")
            return False

    if not isinstance(config["registry"].get("columns", {}), dict):
        logger.error("registry.columns must be a mapping")
        return False

    threshold = config["eligibility"].get("child_age_threshold", 18)
    if not isinstance(threshold, int) or threshold <= 0:
        logger.error("eligibility.child_age_threshold must be a positive integer")
        return False

    scoring = config["scoring"]
    min_score = scoring.get("min_score", 85)
    max_score = scoring.get("max_score", 98)
    if not isinstance(min_score, int) or not isinstance(max_score, int) or not 0 <= min_score <= max_score <= 100:
        logger.error("scoring.min_score and scoring.max_score must be integers with 0 <= min <= max <= 100")
        return False

    geocoding = config["geocoding"]
    for key in ("min_delay_seconds", "timeout_seconds"):
        value = geocoding.get(key, 0)
        if not isinstance(value, (int, float)) or value < 0:
            logger.error(f"geocoding.{key} must be a non-negative number")
            return False

    max_entries = geocoding.get("cache_max_entries", 1)
    if not isinstance(max_entries, int) or max_entries <= 0:
        logger.error("geocoding.cache_max_entries must be a positive integer")
        return False

    limit = config["search"].get("default_result_limit", 20)
    if not isinstance(limit, int) or limit <= 0:
        logger.error("search.default_result_limit must be a positive integer")
        return False

    logger.info("Configuration validation passed")
    return True


def merge_configs(base_config: Dict[str, Any], override_config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Merge two configuration dictionaries.

    Args:
        base_config: Base configuration
        override_config: Override configuration

    Returns:
        Merged configuration
    """
    merged = copy.deepcopy(base_config)

    for key, value in override_config.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = merge_configs(merged[key], value)
        else:
            merged[key] = value

    return merged
