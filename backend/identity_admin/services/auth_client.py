"""Typed façade over firebase_admin.auth.Client.

Every method validates its input locally, forwards one call to the SDK
and translates SDK failures into identity_admin.errors. The class keeps no
mutable state, so one instance can be shared between threads.
"""
import json
import logging
import re
from typing import Any, Callable, Dict, Mapping, Optional, TypeVar
from urllib.parse import urlparse

from firebase_admin import auth
from firebase_admin import exceptions as firebase_exceptions
from google.auth import exceptions as google_auth_exceptions

from identity_admin.errors import (
    InvalidArgumentError,
    TokenMalformedError,
    translate_firebase_error,
    translate_verification_error,
)
from identity_admin.models.token import RESERVED_CLAIMS, VerifiedToken
from identity_admin.models.user import UserPage, UserRecord, UserToCreate, UserToUpdate
from identity_admin.services.user_pager import DEFAULT_PAGE_SIZE, UserPager, validate_page_size

logger = logging.getLogger(__name__)

MAX_UID_LENGTH = 128
MIN_PASSWORD_LENGTH = 6
# Limit on the JSON-serialized custom claims stored on a user.
MAX_CLAIMS_PAYLOAD_SIZE = 1000

E164_PATTERN = re.compile(r"^\+[1-9]\d{1,14}$")
# Same rule the backend applies: one @-sign with something on both sides.
# Dotless and special-use domains such as localhost or corp.test are valid.
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+$")

# Fields an update may clear by setting them to None (or "").
CLEARABLE_FIELDS = frozenset(["display_name", "photo_url", "phone_number", "custom_claims"])

_SDK_ERRORS = (
    firebase_exceptions.FirebaseError,
    google_auth_exceptions.GoogleAuthError,
    ValueError,
    TypeError,
)

T = TypeVar("T")


def validate_uid(uid: Any) -> str:
    if not isinstance(uid, str) or not uid:
        raise InvalidArgumentError("uid must be a non-empty string")
    if len(uid) > MAX_UID_LENGTH:
        raise InvalidArgumentError(f"uid must not be longer than {MAX_UID_LENGTH} characters")
    return uid


def validate_email_address(email: Any) -> str:
    if not isinstance(email, str) or not email:
        raise InvalidArgumentError("email must be a non-empty string")
    if not EMAIL_PATTERN.match(email):
        raise InvalidArgumentError(f"Malformed email address {email!r}")
    return email


def validate_phone_number(phone_number: Any) -> str:
    if not isinstance(phone_number, str) or not E164_PATTERN.match(phone_number):
        raise InvalidArgumentError(
            f"phone_number must be an E.164 string such as +15555550100, got {phone_number!r}"
        )
    return phone_number


def validate_password(password: Any) -> str:
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise InvalidArgumentError(
            f"password must be a string of at least {MIN_PASSWORD_LENGTH} characters"
        )
    return password


def validate_photo_url(photo_url: Any) -> str:
    parsed = urlparse(photo_url) if isinstance(photo_url, str) else None
    if parsed is None or parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise InvalidArgumentError(f"photo_url must be an http(s) URL, got {photo_url!r}")
    return photo_url


def validate_display_name(display_name: Any) -> str:
    if not isinstance(display_name, str) or not display_name:
        raise InvalidArgumentError("display_name must be a non-empty string")
    return display_name


def validate_bool(name: str, value: Any) -> bool:
    if not isinstance(value, bool):
        raise InvalidArgumentError(f"{name} must be a boolean")
    return value


def validate_claims(claims: Any, max_payload_size: Optional[int] = None) -> Dict[str, Any]:
    """Check that claims are a JSON-serializable mapping free of reserved names."""
    if not isinstance(claims, Mapping):
        raise InvalidArgumentError("claims must be a mapping")
    reserved = sorted(key for key in claims if key in RESERVED_CLAIMS)
    if reserved:
        raise InvalidArgumentError(f"claims must not use reserved names: {', '.join(reserved)}")
    try:
        payload = json.dumps(dict(claims))
    except (TypeError, ValueError) as e:
        raise InvalidArgumentError(f"claims must be JSON-serializable: {e}") from e
    if max_payload_size is not None and len(payload) > max_payload_size:
        raise InvalidArgumentError(
            f"Serialized claims must not exceed {max_payload_size} characters"
        )
    return dict(claims)


_FIELD_VALIDATORS: Dict[str, Callable[[Any], Any]] = {
    "uid": validate_uid,
    "email": validate_email_address,
    "phone_number": validate_phone_number,
    "display_name": validate_display_name,
    "photo_url": validate_photo_url,
    "password": validate_password,
    "disabled": lambda value: validate_bool("disabled", value),
    "email_verified": lambda value: validate_bool("email_verified", value),
    "custom_claims": lambda value: validate_claims(value, MAX_CLAIMS_PAYLOAD_SIZE),
}


class AuthClient:
    def __init__(self, client: auth.Client, check_revoked: bool = False):
        self._client = client
        self._check_revoked = check_revoked

    def _call(self, operation: str, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        try:
            return func(*args, **kwargs)
        except _SDK_ERRORS as e:
            logger.debug("%s failed: %s", operation, type(e).__name__)
            raise translate_firebase_error(e) from e

    # Tokens

    def create_custom_token(self, uid: str, claims: Optional[Mapping[str, Any]] = None) -> str:
        """Mint a custom token that signs a client in as uid.

        The token is signed by the backend credential and never inspected
        locally. Extra claims end up in the ID tokens of that session.
        """
        validate_uid(uid)
        developer_claims = validate_claims(claims) if claims is not None else None
        token = self._call(
            "create_custom_token",
            self._client.create_custom_token,
            uid,
            developer_claims=developer_claims,
        )
        return token.decode("utf-8") if isinstance(token, (bytes, bytearray)) else str(token)

    def verify_id_token(self, id_token: str, check_revoked: Optional[bool] = None) -> VerifiedToken:
        """Verify an ID token and return its claims.

        Raises a VerificationError subclass (expired, malformed, revoked,
        user disabled) when the token is rejected. Anything that is not a
        three-segment JWT is rejected before contacting the backend.
        """
        if not isinstance(id_token, str) or not id_token:
            raise TokenMalformedError("ID token must be a non-empty string")
        if id_token.count(".") != 2:
            raise TokenMalformedError("ID token is not a JWT")

        if check_revoked is None:
            check_revoked = self._check_revoked
        try:
            decoded = self._client.verify_id_token(id_token, check_revoked=check_revoked)
        except _SDK_ERRORS as e:
            error = translate_verification_error(e)
            logger.info("ID token rejected: %s", type(error).__name__)
            raise error from e
        return VerifiedToken.from_decoded(decoded)

    # Lookups

    def get_user(self, uid: str) -> UserRecord:
        validate_uid(uid)
        record = self._call("get_user", self._client.get_user, uid)
        return UserRecord.from_firebase(record)

    def get_user_by_email(self, email: str) -> UserRecord:
        validate_email_address(email)
        record = self._call("get_user_by_email", self._client.get_user_by_email, email)
        return UserRecord.from_firebase(record)

    def get_user_by_phone_number(self, phone_number: str) -> UserRecord:
        validate_phone_number(phone_number)
        record = self._call(
            "get_user_by_phone_number", self._client.get_user_by_phone_number, phone_number
        )
        return UserRecord.from_firebase(record)

    # Mutations

    def create_user(self, user: UserToCreate) -> UserRecord:
        """Create a user from the explicitly set fields of user.

        Fields set to None are treated as omitted; there is nothing to clear
        on a record that does not exist yet.
        """
        kwargs = {
            name: _FIELD_VALIDATORS[name](value)
            for name, value in user.explicit_fields().items()
            if value is not None
        }
        record = self._call("create_user", self._client.create_user, **kwargs)
        logger.info("Created user %s", record.uid)
        return UserRecord.from_firebase(record)

    def update_user(self, uid: str, changes: UserToUpdate) -> UserRecord:
        """Apply the explicitly set fields of changes to an existing user.

        Fields that were never set are left untouched on the backend.
        """
        validate_uid(uid)
        fields = changes.explicit_fields()
        if not fields:
            raise InvalidArgumentError("update contains no fields")

        kwargs: Dict[str, Any] = {}
        for name, value in fields.items():
            if value is None or value == "":
                if name not in CLEARABLE_FIELDS:
                    raise InvalidArgumentError(f"{name} cannot be cleared")
                kwargs[name] = auth.DELETE_ATTRIBUTE
            else:
                kwargs[name] = _FIELD_VALIDATORS[name](value)

        record = self._call("update_user", self._client.update_user, uid, **kwargs)
        logger.info("Updated user %s (%s)", uid, ", ".join(sorted(kwargs)))
        return UserRecord.from_firebase(record)

    def delete_user(self, uid: str) -> None:
        """Delete a user.

        Deleting an unknown uid raises NotFoundError, including on a retry
        of a delete that already went through. Callers that want
        idempotence should treat NotFoundError as success.
        """
        validate_uid(uid)
        self._call("delete_user", self._client.delete_user, uid)
        logger.info("Deleted user %s", uid)

    def set_custom_user_claims(self, uid: str, claims: Optional[Mapping[str, Any]]) -> None:
        """Replace all custom claims of a user.

        This is a full replace, never a merge: passing None erases every
        existing claim, and passing a mapping drops any claim it does not
        contain.
        """
        validate_uid(uid)
        payload = (
            validate_claims(claims, MAX_CLAIMS_PAYLOAD_SIZE) if claims is not None else None
        )
        self._call("set_custom_user_claims", self._client.set_custom_user_claims, uid, payload)
        if payload is None:
            logger.info("Cleared custom claims of user %s", uid)
        else:
            logger.info("Set custom claims of user %s (%s)", uid, ", ".join(sorted(payload)))

    def revoke_refresh_tokens(self, uid: str) -> None:
        """Invalidate every session of a user.

        ID tokens already issued stay valid until they expire unless they
        are verified with check_revoked=True.
        """
        validate_uid(uid)
        self._call("revoke_refresh_tokens", self._client.revoke_refresh_tokens, uid)
        logger.info("Revoked refresh tokens of user %s", uid)

    # Listing

    def fetch_users_page(self, page_token: Optional[str], page_size: int) -> UserPage:
        """Single round trip of the user listing."""
        validate_page_size(page_size)
        page = self._call(
            "list_users",
            self._client.list_users,
            page_token=page_token or None,
            max_results=page_size,
        )
        return UserPage(
            users=tuple(UserRecord.from_firebase(record) for record in page.users),
            next_page_token=page.next_page_token or "",
        )

    def list_users(
        self, page_token: Optional[str] = None, page_size: int = DEFAULT_PAGE_SIZE
    ) -> UserPager:
        """Return a lazy pager over all users, starting at page_token."""
        return UserPager(self.fetch_users_page, page_token=page_token, page_size=page_size)
