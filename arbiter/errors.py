"""Exceptions raised by the tournament engine and rendered by the web layer."""


class ArbiterError(Exception):
    """Base class for every error the service reports back to a caller."""

    status_code = 400
    reason = 'error'

    def __init__(self, message=None, reason=None):
        super().__init__(message or self.__class__.__doc__)
        if reason:
            self.reason = reason

    @property
    def message(self):
        return str(self)


class AuthorizationError(ArbiterError):
    """You are not allowed to perform this action."""

    status_code = 403
    reason = 'forbidden'


class PreconditionError(ArbiterError):
    """The tournament is not in a state that allows this action."""

    status_code = 409
    reason = 'precondition_failed'


class NotFoundError(ArbiterError):
    """Resource not found."""

    status_code = 404
    reason = 'not_found'


class TransportError(ArbiterError):
    """The tournament store is unavailable. Please retry."""

    status_code = 503
    reason = 'store_unavailable'


class ValidationError(ArbiterError):
    """Invalid request data."""

    status_code = 400
    reason = 'invalid_request'
