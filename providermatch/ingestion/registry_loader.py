"""
Provider registry loader for ProviderMatch.

Reads the flat provider registry (CSV, Parquet or JSON-lines) into a
normalized DataFrame with one row per provider-at-facility. Rows missing a
required field are dropped; an unreadable source is fatal.
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pandas as pd

from ..exceptions import MalformedRow, SourceUnavailable
from ..models import ProviderRecord
from ..normalize.location_normalizer import LocationNormalizer

logger = logging.getLogger(__name__)

RECORD_COLUMNS = [
    "national_id", "first_name", "last_name", "middle_name", "gender",
    "credentials", "graduation_year", "primary_specialty", "facility_name",
    "address_line_1", "address_is_synthesized", "city", "state",
    "postal_code", "phone",
]

TRUTHY_FLAGS = {"true", "1", "yes", "y", "t"}

# Parquet and JSON sources stringify missing values
MISSING_MARKERS = ["nan", "None", "<NA>"]


def stringify_columns(df: pd.DataFrame) -> pd.DataFrame:
    """
    Cast a typed frame to strings the way a CSV read would produce them.

    Float columns holding only whole numbers (an id or year column with a
    null in it) go through nullable ``Int64`` first, so 1000000001.0 becomes
    "1000000001" rather than "1000000001.0".

    Args:
        df: DataFrame read from a typed source

    Returns:
        DataFrame of string columns
    """
    df = df.copy()
    for column in df.columns:
        series = df[column]
        if pd.api.types.is_float_dtype(series) and series.dropna().mod(1).eq(0).all():
            df[column] = series.astype("Int64")
    return df.astype(str)


class RegistryLoader:
    """
    Loads and normalizes the provider registry.

    The resulting frame carries the ``ProviderRecord`` fields plus the
    ``unique_key`` used for deduplication and a ``city_key`` used for
    location matching.
    """

    def __init__(self, config: Dict, normalizer: Optional[LocationNormalizer] = None):
        """
        Initialize registry loader with configuration.

        Args:
            config: The ``registry`` configuration section
            normalizer: Location normalizer shared with the matcher
        """
        self.config = config
        self.columns = config.get("columns", {})
        self.required_fields = config.get(
            "required_fields", ["national_id", "first_name", "last_name", "primary_specialty"]
        )
        self.normalizer = normalizer or LocationNormalizer()

        logger.info(f"Initialized RegistryLoader with {len(self.columns)} mapped columns")

    def read_source(self, source_path: str) -> pd.DataFrame:
        """
        Read the raw registry file.

        Args:
            source_path: Path to a .csv, .parquet or .json/.jsonl file

        Returns:
            Raw DataFrame with string columns

        Raises:
            SourceUnavailable: If the file is missing, unreadable or of an
                unsupported format
        """
        path = Path(source_path)
        if not path.is_file():
            raise SourceUnavailable(source_path, "file not found")

        suffix = path.suffix.lower()
        try:
            if suffix == ".csv":
                df = pd.read_csv(path, dtype=str, keep_default_na=False, encoding_errors="replace")
            elif suffix == ".parquet":
                df = stringify_columns(pd.read_parquet(path))
            elif suffix in (".json", ".jsonl"):
                df = stringify_columns(pd.read_json(path, lines=True, dtype=False))
            else:
                raise SourceUnavailable(source_path, f"unsupported file format '{suffix}'")
        except SourceUnavailable:
            raise
        except (OSError, ValueError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
            raise SourceUnavailable(source_path, str(e)) from e

        logger.info(f"Read {len(df)} raw rows from {source_path}")
        return df

    def map_columns(self, raw_df: pd.DataFrame, source_path: str = "") -> pd.DataFrame:
        """
        Rename source columns to record fields.

        Args:
            raw_df: Raw registry DataFrame
            source_path: Source path, for error reporting

        Returns:
            DataFrame keyed by record field names; optional columns absent
            from the source are filled with empty strings
        """
        missing = [
            self.columns.get(field, field) for field in self.required_fields
            if self.columns.get(field, field) not in raw_df.columns
        ]
        if missing:
            raise SourceUnavailable(source_path, f"missing required columns: {', '.join(missing)}")

        mapped = pd.DataFrame(index=raw_df.index)
        for field, source_column in self.columns.items():
            if source_column in raw_df.columns:
                mapped[field] = raw_df[source_column].fillna("").astype(str).str.strip().replace(MISSING_MARKERS, "")
            else:
                mapped[field] = ""

        for field in self.required_fields:
            if field not in mapped.columns:
                mapped[field] = raw_df[field].fillna("").astype(str).str.strip()

        return mapped

    def validate_rows(self, df: pd.DataFrame) -> Tuple[pd.DataFrame, List[MalformedRow]]:
        """
        Drop rows with a blank required field.

        Args:
            df: Column-mapped DataFrame

        Returns:
            Tuple of (valid rows, malformed row descriptions)
        """
        blank = pd.DataFrame({field: df[field] == "" for field in self.required_fields})
        invalid_mask = blank.any(axis=1)

        malformed = [
            MalformedRow(index, [field for field in self.required_fields if blank.at[index, field]])
            for index in df.index[invalid_mask]
        ]

        if malformed:
            logger.info(f"Dropped {len(malformed)} registry rows missing required fields")
            for row in malformed[:5]:
                logger.debug(str(row))

        return df[~invalid_mask], malformed

    def normalize_rows(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        Normalize registry fields and derive keys.

        Args:
            df: Validated DataFrame

        Returns:
            DataFrame with ``RECORD_COLUMNS`` plus ``unique_key`` and ``city_key``
        """
        result = pd.DataFrame(index=df.index)
        collapse = self.normalizer.collapse_whitespace

        for field in ("national_id", "first_name", "last_name", "middle_name",
                      "gender", "credentials", "facility_name", "city"):
            result[field] = df[field].map(collapse) if field in df.columns else ""

        result["primary_specialty"] = df["primary_specialty"].map(collapse).str.upper()
        result["graduation_year"] = pd.to_numeric(df.get("graduation_year"), errors="coerce").round().astype("Int64")

        original_address = df.get("address_line_1", pd.Series("", index=df.index)).map(collapse)
        generated_address = df.get("generated_address", pd.Series("", index=df.index)).map(collapse)
        generated_flag = df.get("address_generated", pd.Series("", index=df.index)).str.lower().isin(TRUTHY_FLAGS)

        use_generated = (original_address == "") & (generated_address != "")
        result["address_line_1"] = original_address.where(~use_generated, generated_address)
        result["address_is_synthesized"] = generated_flag | use_generated

        result["state"] = df["state"].map(self.normalizer.normalize_state)
        result["postal_code"] = df["postal_code"].map(self.normalizer.normalize_zipcode)
        result["phone"] = df["phone"].map(self.normalizer.normalize_phone)

        result["unique_key"] = result["national_id"] + "-" + result["facility_name"] + "-" + result["city"]
        result["city_key"] = result["city"].map(self.normalizer.normalize_city)

        return result[RECORD_COLUMNS + ["unique_key", "city_key"]].reset_index(drop=True)

    def load(self, source_path: Optional[str] = None) -> pd.DataFrame:
        """
        Load the provider registry.

        Args:
            source_path: Registry file; defaults to ``registry.source_path``

        Returns:
            Normalized registry DataFrame in source order

        Raises:
            SourceUnavailable: If the registry cannot be read
        """
        source_path = source_path or self.config.get("source_path", "")
        raw_df = self.read_source(source_path)
        mapped_df = self.map_columns(raw_df, source_path)
        valid_df, malformed = self.validate_rows(mapped_df)
        registry_df = self.normalize_rows(valid_df)

        logger.info(f"Loaded {len(registry_df)} providers from {source_path} "
                    f"({len(malformed)} malformed rows skipped)")
        return registry_df


def to_records(registry_df: pd.DataFrame) -> List[ProviderRecord]:
    """
    Convert registry rows to ``ProviderRecord`` objects.

    Args:
        registry_df: Normalized registry DataFrame

    Returns:
        List of records in DataFrame order
    """
    return [ProviderRecord.from_row(row) for row in registry_df.to_dict("records")]


def load_provider_registry(source_path: str, config: Dict) -> pd.DataFrame:
    """
    Convenience function to load a provider registry.

    Args:
        source_path: Registry file path
        config: The ``registry`` configuration section

    Returns:
        Normalized registry DataFrame
    """
    loader = RegistryLoader(config)
    return loader.load(source_path)
