"""Exceptions raised by the relay bridge."""


class ConfigurationError(Exception):
    """Raised when a bridge configuration is missing fields or malformed."""

    def __init__(self, message: str = "Invalid configuration"):
        super().__init__(message)
        self.message = message
