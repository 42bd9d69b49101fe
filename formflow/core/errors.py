"""Exceptions shared across the service layer.

Expected outcomes (gate rejections, per-field validation errors) are returned
as values. Only the conditions below are raised.
"""


class FormNotFound(LookupError):
    """Raised when a form id does not resolve to a stored form."""


class ConfigurationError(ValueError):
    """Invalid field definitions (dangling or cyclic logic triggers, etc.)."""


class PersistenceFailure(RuntimeError):
    """The store was unavailable while reading or writing submission state."""
