"""Error taxonomy for the authorization engine.

``ValidationError`` and ``AuthorizationDenied`` are results reported to the
caller as-is. ``StoreUnavailable`` is transient and must never be read as a
deny. ``SchemaError`` is fatal at startup.
"""


class RebacError(Exception):
    """Base class for every error raised by the authorization engine."""

    default_message = "Authorization error."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(RebacError):
    """Malformed identifier, relation, role or operation parameters."""

    default_message = "Invalid authorization request."


class AuthorizationDenied(RebacError):
    """A well-formed request evaluated to deny."""

    default_message = "You do not have permission to perform this action on this resource."


class StoreUnavailable(RebacError):
    """The tuple store could not be reached or timed out. Safe to retry."""

    default_message = "Authorization store temporarily unavailable."


class TransactionFailed(StoreUnavailable):
    """A tuple batch failed part-way and was rolled back."""

    default_message = "Authorization store transaction failed and was rolled back."


class SchemaError(RebacError):
    """The authorization model is invalid and must not be served."""

    default_message = "Invalid authorization model."


__all__ = [
    "RebacError",
    "ValidationError",
    "AuthorizationDenied",
    "StoreUnavailable",
    "TransactionFailed",
    "SchemaError",
]
