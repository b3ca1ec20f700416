"""
suggest-harvest: Autocomplete keyword harvester.

Expands a seed phrase into a queue of candidate queries, runs them against
several autocomplete providers with bounded concurrency, and collects the
deduplicated, provenance-tagged suggestions.
"""

__version__ = "0.1.0"
