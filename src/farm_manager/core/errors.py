"""Error taxonomy shared by the API service and the client library.

Every error carries an HTTP status code, a machine-readable ``code`` and a
stable, non-leaking message that is safe to return to callers verbatim.
"""


class FarmManagerError(Exception):
    """Base class for all domain errors.

    Args:
        detail: Human-readable message; defaults to the class message.
    """

    status_code: int = 500
    code: str = "internal_error"
    default_detail: str = "Internal server error"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class InvalidCredentialsError(FarmManagerError):
    """Login failed; never says whether the identifier or the password was wrong."""

    status_code = 401
    code = "invalid_credentials"
    default_detail = "Invalid credentials"


class AccountInactiveError(FarmManagerError):
    status_code = 403
    code = "account_inactive"
    default_detail = "Account is inactive"


class DuplicateEmailError(FarmManagerError):
    status_code = 409
    code = "duplicate_email"
    default_detail = "Email already exists"


class DuplicateUsernameError(FarmManagerError):
    status_code = 409
    code = "duplicate_username"
    default_detail = "Username already exists"


class UnauthorizedError(FarmManagerError):
    """Request lacks a usable credential."""

    status_code = 401
    code = "unauthorized"
    default_detail = "Unauthorized"


class TokenExpiredError(UnauthorizedError):
    code = "token_expired"
    default_detail = "Token has expired"


class TokenMalformedError(UnauthorizedError):
    code = "token_malformed"
    default_detail = "Invalid token"


class InvalidResetTokenError(FarmManagerError):
    status_code = 400
    code = "invalid_reset_token"
    default_detail = "Invalid or expired reset token"


class RecordNotFoundError(FarmManagerError):
    status_code = 404
    code = "not_found"
    default_detail = "Record not found"


class DuplicateRecordError(FarmManagerError):
    """A farm record collides with an existing one, e.g. a reused tag number."""

    status_code = 409
    code = "duplicate_record"
    default_detail = "Record already exists"


class InvalidRecordError(FarmManagerError):
    """A farm record breaks a domain rule, e.g. a parent bull that is not male."""

    status_code = 400
    code = "invalid_record"
    default_detail = "Invalid record"


class ServiceUnavailableError(FarmManagerError):
    """The credential store or the API itself is temporarily unreachable."""

    status_code = 503
    code = "service_unavailable"
    default_detail = "Service temporarily unavailable"


class ApiError(FarmManagerError):
    """Client-side error for a 4xx response other than 401.

    Args:
        status_code: HTTP status returned by the server.
        detail: The server's ``detail`` message.
        code: The server's error ``code``, when it sent one.
    """

    code = "api_error"
    default_detail = "Client error occurred"

    def __init__(self, status_code: int, detail: str | None = None, code: str | None = None) -> None:
        self.status_code = status_code
        if code:
            self.code = code
        super().__init__(detail)


ERRORS_BY_CODE: dict[str, type[FarmManagerError]] = {
    cls.code: cls
    for cls in (
        InvalidCredentialsError,
        AccountInactiveError,
        DuplicateEmailError,
        DuplicateUsernameError,
        UnauthorizedError,
        TokenExpiredError,
        TokenMalformedError,
        InvalidResetTokenError,
        RecordNotFoundError,
        DuplicateRecordError,
        InvalidRecordError,
        ServiceUnavailableError,
    )
}
