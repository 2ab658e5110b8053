# reanchor/core/exceptions.py

"""Custom exception hierarchy for the anchoring core.

Only malformed input, broken configuration and failed persistence are
exceptional. A strategy that finds nothing, an ambiguous match and a degraded
resolution are ordinary outcomes and are reported through the Resolution.
"""


class AnchoringError(Exception):
    """Base exception for all application-specific errors."""

    pass


class ConfigurationError(AnchoringError):
    """Raised when heuristics loading or validation fails."""

    pass


class AnchorValidationError(AnchoringError):
    """Raised when anchor input is malformed (e.g., missing descriptor fields)."""

    pass


class PersistenceError(AnchoringError):
    """Raised when the save callback reports failure or raises."""

    pass
