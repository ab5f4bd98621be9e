# utils/errors.py - Domain errors raised by the queue and booking services
"""
Services raise these instead of HTTPException so the same rules can run from
routes, background jobs and tests. ``main.py`` maps them to JSON responses.
"""


class QueueError(Exception):
    status_code = 500

    def __init__(self, message: str, details=None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(QueueError):
    """Malformed input; nothing was written."""
    status_code = 400


class AuthorizationError(QueueError):
    """Actor does not own the resource."""
    status_code = 403


class NotFoundError(QueueError):
    """Id does not exist or is not in an operable status."""
    status_code = 404


class ConflictError(QueueError):
    """Retryable: slot taken, chair occupied, already queued."""
    status_code = 409


class DownstreamFailure(QueueError):
    """Notification delivery failed. Logged only, never returned to a caller."""
    status_code = 502
