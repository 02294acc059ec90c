"""
Domain errors raised by services. Endpoints translate them to HTTP responses;
each carries a reason that is safe to show to the user.
"""


class ServiceError(Exception):
    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class NotFoundError(ServiceError):
    pass


class ForbiddenError(ServiceError):
    pass


class InvalidTransitionError(ServiceError):
    """The requested state change is not allowed from the current state."""


class ExchangeExpiredError(InvalidTransitionError):
    pass


class ExchangeCompletedError(InvalidTransitionError):
    pass


class ExchangeNotDueError(InvalidTransitionError):
    pass


class StaleMatchError(InvalidTransitionError):
    """One of the match's items was retired by another exchange or removed."""
