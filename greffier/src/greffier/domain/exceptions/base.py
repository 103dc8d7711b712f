"""
Base domain exceptions.
"""


class GreffierException(Exception):
    """Base exception for all Greffier domain errors."""

    def __init__(self, message: str, code: str | None = None):
        self.message = message
        self.code = code or self.__class__.__name__
        super().__init__(self.message)


class ResolutionFailedError(GreffierException):
    """Raised when no record ids can be resolved for a user."""

    def __init__(self, user_address: str, cause: BaseException | None = None):
        message = f"Unable to resolve escrow records for {user_address}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message, code="RESOLUTION_FAILED")
        self.user_address = user_address
        self.cause = cause
