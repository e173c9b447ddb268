"""
Data ingestion modules for ProviderMatch.

Loads the flat provider registry into normalized in-memory records.
"""
