"""Domain error types shared by the fusion, confirmation and approval packages."""


class FusionError(Exception):
    """Base error for fact fusion operations."""


class NotFoundError(FusionError):
    """Referenced record (or its target row) does not exist."""


class ConflictError(FusionError):
    """Operation not allowed in the record's current state."""


class ConfigurationError(FusionError):
    """Invalid wiring or configuration detected at startup."""
