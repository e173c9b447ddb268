"""
ProviderMatch - Provider Matching & Geocoding Pipeline

Locates medical providers whose specialty and location fit a patient's
symptoms, age and desired location, ranks them by relevance and enriches
each result with a geographic coordinate.
"""

__version__ = "1.0.0"
__author__ = "ProviderMatch Team"
