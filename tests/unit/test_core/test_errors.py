"""Tests for the shared error taxonomy."""

import pytest

from farm_manager.core.errors import (
    ERRORS_BY_CODE,
    AccountInactiveError,
    ApiError,
    DuplicateEmailError,
    DuplicateRecordError,
    DuplicateUsernameError,
    FarmManagerError,
    InvalidCredentialsError,
    InvalidRecordError,
    InvalidResetTokenError,
    RecordNotFoundError,
    ServiceUnavailableError,
    TokenExpiredError,
    TokenMalformedError,
    UnauthorizedError,
)


class TestErrorTaxonomy:
    """Status codes and default messages."""

    @pytest.mark.parametrize(
        ("error_cls", "status_code"),
        [
            (InvalidCredentialsError, 401),
            (AccountInactiveError, 403),
            (DuplicateEmailError, 409),
            (DuplicateUsernameError, 409),
            (UnauthorizedError, 401),
            (TokenExpiredError, 401),
            (TokenMalformedError, 401),
            (InvalidResetTokenError, 400),
            (RecordNotFoundError, 404),
            (DuplicateRecordError, 409),
            (InvalidRecordError, 400),
            (ServiceUnavailableError, 503),
        ],
    )
    def test_status_codes(self, error_cls: type[FarmManagerError], status_code: int) -> None:
        error = error_cls()
        assert error.status_code == status_code
        assert isinstance(error, FarmManagerError)

    def test_invalid_credentials_message_is_generic(self) -> None:
        assert InvalidCredentialsError().detail == "Invalid credentials"

    def test_detail_override(self) -> None:
        error = UnauthorizedError("Invalid refresh token")
        assert error.detail == "Invalid refresh token"
        assert str(error) == "Invalid refresh token"

    def test_token_errors_are_unauthorized(self) -> None:
        assert issubclass(TokenExpiredError, UnauthorizedError)
        assert issubclass(TokenMalformedError, UnauthorizedError)

    def test_errors_by_code_round_trip(self) -> None:
        for code, error_cls in ERRORS_BY_CODE.items():
            assert error_cls.code == code
        assert ERRORS_BY_CODE["token_expired"] is TokenExpiredError


class TestApiError:
    """Tests for the client-side ApiError."""

    def test_carries_status_and_detail(self) -> None:
        error = ApiError(422, "Invalid email")
        assert error.status_code == 422
        assert error.detail == "Invalid email"
        assert error.code == "api_error"

    def test_server_code_overrides_default(self) -> None:
        error = ApiError(409, "Email already exists", "duplicate_email")
        assert error.code == "duplicate_email"
        assert ApiError.code == "api_error"

    def test_default_detail(self) -> None:
        assert ApiError(400).detail == "Client error occurred"
