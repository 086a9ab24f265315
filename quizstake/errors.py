"""
Domain errors raised by the quiz core. Routers don't catch these; main.py renders
them as {"detail": ...} with the status_code of the class.
"""
from fastapi import status


class QuizError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class NotFound(QuizError):
    """Task, course, attempt or user missing."""
    status_code = status.HTTP_404_NOT_FOUND


class Conflict(QuizError):
    """Duplicate session, superseded task, already-answered question."""
    status_code = status.HTTP_409_CONFLICT


class RetryConflict(Conflict):
    """Lost a race on a contested row. Nothing was written; the caller should retry."""


class InvalidState(QuizError):
    """Action not allowed from the attempt's current status."""


class InvalidAnswer(QuizError):
    """Question index out of range or option not offered."""


class InsufficientFunds(QuizError):
    pass


class UpstreamGenerationFailure(QuizError):
    """Question generator failed. Raised before any token is debited."""
    status_code = status.HTTP_502_BAD_GATEWAY
