"""
Matching modules for ProviderMatch.

Eligibility filtering, location matching and relevance scoring.
"""
