"""
Provider deduplication for ProviderMatch.

Registry files repeat a practitioner once per listing at the same
facility. Rows sharing ``unique_key`` (national id + facility + city) are
interchangeable, so only the first is kept.
"""

import logging

import pandas as pd

logger = logging.getLogger(__name__)


class Deduplicator:
    """Collapses repeated provider-at-facility rows."""

    def __init__(self, key_column: str = "unique_key"):
        self.key_column = key_column

    def dedupe(self, providers_df: pd.DataFrame) -> pd.DataFrame:
        """
        Keep the first occurrence of each unique key.

        Args:
            providers_df: Filtered providers

        Returns:
            Providers with unique keys, original order preserved
        """
        if providers_df.empty:
            return providers_df

        duplicate_mask = providers_df[self.key_column].duplicated(keep="first")
        removed_count = int(duplicate_mask.sum())
        if removed_count:
            logger.info(f"Removed {removed_count} duplicate provider rows")

        return providers_df[~duplicate_mask]

    @staticmethod
    def get_duplicate_statistics(providers_df: pd.DataFrame, key_column: str = "unique_key") -> dict:
        total = len(providers_df)
        unique = int(providers_df[key_column].nunique()) if total else 0
        return {
            "total_rows": total,
            "unique_providers": unique,
            "duplicate_rows": total - unique,
        }
