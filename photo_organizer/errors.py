"""
Exceptions raised by the organizer. Per-photo problems never raise; these are
for configuration and startup only.
"""


class OrganizerError(Exception):
    """Base class for photo organizer errors."""


class ConfigError(OrganizerError, ValueError):
    """Invalid grouping or scoring options."""


class ProviderUnavailableError(OrganizerError, ImportError):
    """A required model library (insightface, deepface, open_clip) is missing."""
