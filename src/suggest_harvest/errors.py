"""
Exceptions raised by suggest-harvest.
"""


class HarvestError(Exception):
    """Base error for the harvesting pipeline."""


class SeedValidationError(HarvestError, ValueError):
    """The seed phrase is empty after trimming; a run cannot start."""


class ConfigurationError(HarvestError):
    """A collaborator is missing required configuration (e.g. an API key)."""
