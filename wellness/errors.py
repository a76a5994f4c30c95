"""Domain exceptions shared by the analytics route and the booking wizard."""

from __future__ import annotations


class InvalidRequest(ValueError):
    """Raised when an analytics request body is malformed or names an unknown type."""
    pass


class ValidationFailure(ValueError):
    """Raised when a wizard step's required fields do not validate.

    User-correctable; carries the group label shown to the user and the
    names of the offending fields (or seat ids).
    """

    def __init__(self, message: str, group: str = "", fields: list[str] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.group = group
        self.fields = list(fields or [])


class WizardStateError(RuntimeError):
    """Raised when a wizard operation is not allowed in the current step."""
    pass


class DependencyUnavailable(RuntimeError):
    """Raised when the datastore or email provider fails (network, HTTP error, outage)."""
    pass


class SchemaMismatch(DependencyUnavailable):
    """Raised when the datastore rejects a write because a column is missing."""

    def __init__(self, message: str, column: str = "") -> None:
        super().__init__(message)
        self.column = column
