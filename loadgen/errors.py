class ConfigError(ValueError):
    """Invalid run configuration, raised before anything is dispatched."""
