"""
Error types raised by the decision engine.

Only configuration problems surface as exceptions. Insufficient evidence is an
ordinary outcome and is returned as ``None`` / an empty list instead.
"""


class InvalidConfigurationError(ValueError):
    """Raised when a threshold or window is outside its valid range."""
    pass
