"""Typed application errors rendered by :func:`app.utils.response.handle_exception`.

Each error carries the HTTP status and a client-safe message. Internal detail
(exception chains, database messages) never reaches the response body.
"""
from fastapi import status


class AppError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal server error"

    def __init__(self, message: str | None = None, *, data: dict | None = None):
        self.message = message or self.default_message
        self.data = data
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "User not found"


class ConflictError(AppError):
    # Already-verified and duplicate-identity failures surface as plain 400s
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Already verified"


class OtpError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid or expired OTP"


class InvalidCodeError(OtpError):
    pass


class ExpiredCodeError(OtpError):
    pass


class InvalidCredentialsError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid credentials"


class RoleMismatchError(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "This account is not registered for the requested role"


class NotVerifiedError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Please verify your email and mobile before logging in."


class UnverifiedAccountError(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "User account is not verified"


class AuthenticationError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Authorization token missing or invalid format"


class ForbiddenError(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Access denied"


class InvalidMobileTokenError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid Firebase token"


class ExternalServiceError(AppError):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_message = "Upstream service unavailable"
