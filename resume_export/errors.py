# resume_export/errors.py


class ApiError(Exception):
    """Error that maps onto an HTTP response."""

    status_code = 500

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class Unauthorized(ApiError):
    status_code = 401


class InvalidInput(ApiError):
    status_code = 400


class NotAccessible(ApiError):
    """Raised when a job, artifact or resume is not available to the caller.

    Subclasses exist only so the server can log why; the message and status
    are identical so callers can't tell a missing job from someone else's.
    """

    status_code = 404

    def __init__(self, message="Not found"):
        super().__init__(message)


class NotFound(NotAccessible):
    pass


class Forbidden(NotAccessible):
    pass


class InvalidTransition(ApiError):
    status_code = 500


class RenderFailure(Exception):
    pass


class RenderTimeout(RenderFailure):
    def __init__(self, message="render timeout"):
        super().__init__(message)


class JobFailed(Exception):
    def __init__(self, job_id, error):
        super().__init__(error)
        self.job_id = job_id
        self.error = error


class PollingTimeout(Exception):
    pass
