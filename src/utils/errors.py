class CommerceError(Exception):
    """Base class for every error raised by the store and the services."""


class ValidationError(CommerceError):
    """
    Bad input shape, e.g. quantity < 1 or a missing required contact field.
    Raised before any write is attempted.
    """


class InvalidTransitionError(ValidationError):
    """A status change that the lifecycle graph does not allow."""

    def __init__(self, current: str, requested: str) -> None:
        super().__init__(f"cannot move from '{current}' to '{requested}'")
        self.current = current
        self.requested = requested


class AuthorizationError(CommerceError):
    """The actor lacks the privilege or super-admin status the operation needs."""


class ConflictError(CommerceError):
    """The write would duplicate something that must be unique."""


class NotFoundError(CommerceError):
    """A referenced product, order, quote or account does not exist."""


class BackendError(CommerceError):
    """The store or a remote procedure failed."""
