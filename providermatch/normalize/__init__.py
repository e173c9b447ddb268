"""
Data normalization modules for ProviderMatch.

Handles standardization of city, state, ZIP and phone fields and the
specialty lookup table used by filtering and scoring.
"""
