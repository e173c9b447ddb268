"""
Geocoding modules for ProviderMatch.

Rate-limited external lookups, an address-keyed cache and a static
fallback table.
"""
