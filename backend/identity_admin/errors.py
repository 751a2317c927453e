"""Error taxonomy for the identity admin client.

Every public operation raises a subclass of IdentityAdminError. Failures
coming out of the Firebase Admin SDK are translated with
translate_firebase_error() so callers never have to import firebase_admin
to handle them.
"""
import logging

from google.auth import exceptions as google_auth_exceptions
from firebase_admin import exceptions as firebase_exceptions
from firebase_admin.auth import (
    CertificateFetchError,
    ExpiredIdTokenError,
    InvalidIdTokenError,
    RevokedIdTokenError,
    UserDisabledError as FirebaseUserDisabledError,
)

logger = logging.getLogger(__name__)


class IdentityAdminError(Exception):
    """Base class for all errors raised by this package."""

    http_status = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigError(IdentityAdminError):
    """Local configuration is missing or cannot be loaded."""


class InvalidArgumentError(IdentityAdminError):
    http_status = 400


class NotFoundError(IdentityAdminError):
    http_status = 404


class AlreadyExistsError(IdentityAdminError):
    http_status = 409


class VerificationError(IdentityAdminError):
    """An ID token was rejected.

    The reason attribute lets callers tell a session that merely needs a
    fresh login (expired) apart from one that must be refused outright.
    """

    http_status = 401
    reason = "invalid"


class TokenExpiredError(VerificationError):
    reason = "expired"


class TokenMalformedError(VerificationError):
    reason = "malformed"


class TokenRevokedError(VerificationError):
    reason = "revoked"


class UserDisabledError(VerificationError):
    reason = "user_disabled"


class ServiceUnavailableError(IdentityAdminError):
    http_status = 503


class RequestTimeoutError(IdentityAdminError):
    http_status = 504


class BackendError(IdentityAdminError):
    """Remote failure that does not fit any other category."""

    http_status = 502


def translate_firebase_error(exc: Exception) -> IdentityAdminError:
    """Map an exception raised by firebase_admin onto the local taxonomy.

    Returns the new exception; callers raise it ``from exc``.
    """
    message = str(exc) or type(exc).__name__

    if isinstance(exc, IdentityAdminError):
        return exc
    if isinstance(exc, (ValueError, TypeError)):
        return InvalidArgumentError(message)
    if isinstance(exc, google_auth_exceptions.DefaultCredentialsError):
        return ConfigError(f"Could not discover default credentials: {message}")
    if isinstance(exc, google_auth_exceptions.TransportError):
        return ServiceUnavailableError(f"Could not reach the auth server: {message}")
    if isinstance(exc, google_auth_exceptions.RefreshError):
        return BackendError(f"Credential was rejected by the auth server: {message}")
    if not isinstance(exc, firebase_exceptions.FirebaseError):
        return BackendError(f"Unexpected error from backend: {message}")

    if isinstance(exc, firebase_exceptions.InvalidArgumentError):
        translated = InvalidArgumentError(message)
    elif isinstance(exc, firebase_exceptions.NotFoundError):
        translated = NotFoundError(message)
    elif isinstance(exc, firebase_exceptions.AlreadyExistsError):
        translated = AlreadyExistsError(message)
    elif isinstance(exc, firebase_exceptions.DeadlineExceededError):
        translated = RequestTimeoutError(message)
    elif isinstance(
        exc, (firebase_exceptions.UnavailableError, firebase_exceptions.InternalError)
    ):
        translated = ServiceUnavailableError(message)
    else:
        translated = BackendError(message)

    logger.warning(
        "Backend call failed: %s (code=%s) -> %s",
        type(exc).__name__,
        getattr(exc, "code", None),
        type(translated).__name__,
    )
    return translated


def translate_verification_error(exc: Exception) -> IdentityAdminError:
    """Like translate_firebase_error, but aware of ID token failure kinds."""
    # Subclasses of InvalidIdTokenError come first.
    if isinstance(exc, ExpiredIdTokenError):
        return TokenExpiredError("ID token has expired")
    if isinstance(exc, RevokedIdTokenError):
        return TokenRevokedError("ID token has been revoked")
    if isinstance(exc, FirebaseUserDisabledError):
        return UserDisabledError("User account has been disabled")
    if isinstance(exc, InvalidIdTokenError):
        return TokenMalformedError(f"Invalid ID token: {exc}")
    if isinstance(exc, CertificateFetchError):
        return ServiceUnavailableError("Could not fetch public keys to verify ID token")
    if isinstance(exc, ValueError):
        return TokenMalformedError(f"Invalid ID token: {exc}")
    return translate_firebase_error(exc)
