"""Error taxonomy for range analysis.

Every error surfaced to callers carries an HTTP-style status so the HTTP
route can map it onto a response and the CLI onto an exit code.
"""


class RangeAnalysisError(Exception):
    """Base error for a failed range analysis."""

    status = 500

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        if status is not None:
            self.status = status

    @property
    def is_client_error(self) -> bool:
        return 400 <= self.status < 500


class InvalidInputError(RangeAnalysisError):
    """Bad or missing dates, end <= start, unknown provider."""

    status = 400


class NotFoundError(RangeAnalysisError):
    """No tracked events and no commits in the requested range."""

    status = 404


class ConfigurationError(RangeAnalysisError):
    """A recognized provider is missing its credentials."""

    status = 500
