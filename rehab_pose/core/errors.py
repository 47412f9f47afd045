"""Error types shared across the posture pipeline."""
from __future__ import annotations


class ConfigurationError(ValueError):
    """Raised when a joint table or tolerance profile is invalid.

    Configuration is validated when it is loaded, so a bad profile fails at
    startup instead of surfacing while frames are being evaluated.
    """
