"""
Record collapsing for ProviderMatch.
"""
