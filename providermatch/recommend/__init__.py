"""
Specialty recommendation collaborators for ProviderMatch.
"""
