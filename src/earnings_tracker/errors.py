"""Error taxonomy shared by services, the HTTP API and the client."""


class EarningsTrackerError(Exception):
    """Base class for expected, user-facing failures."""

    code = "error"
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(EarningsTrackerError):
    """Malformed or missing identifiers, negative rates or targets."""

    code = "validation_error"
    status_code = 400


class NotFoundError(EarningsTrackerError):
    """Task, session or category absent or not owned by the caller."""

    code = "not_found"
    status_code = 404


class AuthorizationError(EarningsTrackerError):
    """Attempt to read or write another account's records."""

    code = "forbidden"
    status_code = 403


class ConflictError(EarningsTrackerError):
    """Ending an ended session, a lost single-writer race, or a bad transition."""

    code = "conflict"
    status_code = 409


ERRORS_BY_CODE: dict[str, type[EarningsTrackerError]] = {
    cls.code: cls
    for cls in (ValidationError, NotFoundError, AuthorizationError, ConflictError)
}
