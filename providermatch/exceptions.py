"""
Error taxonomy for ProviderMatch.

Only registry failures propagate out of a search. Row-level and geocoding
failures are recovered where they happen.
"""


class ProviderMatchError(Exception):
    """Base class for ProviderMatch errors."""


class SourceUnavailable(ProviderMatchError):
    """The provider registry file cannot be opened or parsed."""

    def __init__(self, source_path: str, reason: str = ""):
        self.source_path = source_path
        self.reason = reason
        message = f"Provider registry unavailable: {source_path}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class MalformedRow(ProviderMatchError):
    """A registry row is missing a required field."""

    def __init__(self, row_index, missing_fields):
        self.row_index = row_index
        self.missing_fields = list(missing_fields)
        super().__init__(f"Row {row_index} missing required fields: {', '.join(self.missing_fields)}")


class GeocodingUnavailable(ProviderMatchError):
    """The external geocoding call failed, timed out or returned nothing."""

    def __init__(self, query: str, reason: str = ""):
        self.query = query
        self.reason = reason
        super().__init__(f"Geocoding unavailable for '{query}': {reason}" if reason
                         else f"Geocoding unavailable for '{query}'")
