"""Exceptions raised by busregistry."""


class RegistryError(Exception):
    """Base class for registry errors."""
    pass


class ConfigurationError(RegistryError):
    """Raised when a component is given an unusable setting."""
    pass
