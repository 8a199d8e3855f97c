"""Exceptions shared by the session guard, the quiz engine and the record store."""


class GrowthAcademyError(Exception):
    """Base class for application errors"""


class AuthError(GrowthAcademyError):
    """The identity provider rejected the credentials or rate-limited the account"""

    def __init__(self, message: str, rate_limited: bool = False):
        super().__init__(message)
        self.rate_limited = rate_limited


class StoreUnavailable(GrowthAcademyError):
    """Transient failure talking to the remote record store"""


class QuizValidationError(GrowthAcademyError):
    """A quiz definition cannot be used to start a quiz"""


class QuizStateError(GrowthAcademyError):
    """The requested quiz action is not enabled in the current state"""


class SubmissionFailed(GrowthAcademyError):
    """A quiz attempt could not be persisted; the answers are kept for retry"""
