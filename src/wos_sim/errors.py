class ConfigurationError(ValueError):
    """Raised when a solver or provider is built from invalid settings."""
