from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


def _from_millis(value: Optional[int]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


class UserRecord(BaseModel):
    """A user account as stored by Firebase Authentication.

    Attributes:
        uid: Stable unique identifier, immutable once created
        email: Email address (unique across the project if present)
        phone_number: E.164 phone number (unique across the project if present)
        display_name: Display name
        photo_url: Profile photo URL
        disabled: Whether the account is disabled
        email_verified: Whether the email address has been verified
        custom_claims: Developer claims embedded in the user's ID tokens
        created_at: Account creation time
        last_sign_in_at: Last sign-in time
        tokens_valid_after: ID tokens issued before this time are revoked
    """

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "uid": "user123abc",
                "email": "user@example.com",
                "phone_number": "+15555550100",
                "display_name": "John Doe",
                "photo_url": "http://www.example.com/12345678/photo.png",
                "disabled": False,
                "email_verified": True,
                "custom_claims": {"admin": True},
            }
        },
    )

    uid: str = Field(..., min_length=1, description="Unique identifier for the user")
    email: Optional[str] = Field(None, description="User's email address")
    phone_number: Optional[str] = Field(None, description="User's phone number in E.164 format")
    display_name: Optional[str] = Field(None, description="User's display name")
    photo_url: Optional[str] = Field(None, description="User's photo URL")
    disabled: bool = Field(False, description="Whether the account is disabled")
    email_verified: bool = Field(False, description="Whether the email address has been verified")
    custom_claims: Dict[str, Any] = Field(default_factory=dict, description="Custom claims")
    created_at: Optional[datetime] = Field(None, description="Account creation time")
    last_sign_in_at: Optional[datetime] = Field(None, description="Last sign-in time")
    tokens_valid_after: Optional[datetime] = Field(
        None, description="Tokens issued before this time are considered revoked"
    )

    @classmethod
    def from_firebase(cls, record: Any) -> "UserRecord":
        """Build from a firebase_admin.auth.UserRecord (or ExportedUserRecord)."""
        metadata = getattr(record, "user_metadata", None)
        return cls(
            uid=record.uid,
            email=record.email,
            phone_number=record.phone_number,
            display_name=record.display_name,
            photo_url=record.photo_url,
            disabled=bool(record.disabled),
            email_verified=bool(record.email_verified),
            custom_claims=dict(record.custom_claims or {}),
            created_at=_from_millis(getattr(metadata, "creation_timestamp", None)),
            last_sign_in_at=_from_millis(getattr(metadata, "last_sign_in_timestamp", None)),
            tokens_valid_after=_from_millis(getattr(record, "tokens_valid_after_timestamp", None)),
        )


class _UserDelta(BaseModel):
    """Partial user record.

    Every field is optional and presence is tracked: a field that was never
    passed is absent and leaves the backend untouched, while a field passed
    explicitly (even as None) is part of the request.
    """

    model_config = ConfigDict(extra="forbid")

    def explicit_fields(self) -> Dict[str, Any]:
        """Fields that were explicitly set, including ones set to None."""
        return {name: getattr(self, name) for name in self.model_fields_set}


class UserToCreate(_UserDelta):
    """Attributes for a new user. Omitted fields get backend defaults."""

    uid: Optional[str] = Field(None, description="Assigned by the backend when omitted")
    email: Optional[str] = None
    phone_number: Optional[str] = None
    display_name: Optional[str] = None
    photo_url: Optional[str] = None
    password: Optional[str] = None
    disabled: Optional[bool] = None
    email_verified: Optional[bool] = None


class UserToUpdate(_UserDelta):
    """Changes to an existing user.

    display_name, photo_url, phone_number and custom_claims are cleared
    when set to None (or to "" for the string fields). email, password,
    disabled and email_verified cannot be cleared.
    """

    email: Optional[str] = None
    phone_number: Optional[str] = None
    display_name: Optional[str] = None
    photo_url: Optional[str] = None
    password: Optional[str] = None
    disabled: Optional[bool] = None
    email_verified: Optional[bool] = None
    custom_claims: Optional[Dict[str, Any]] = None


class UserPage(BaseModel):
    """One page of a user listing."""

    model_config = ConfigDict(frozen=True)

    users: Tuple[UserRecord, ...] = ()
    next_page_token: str = Field("", description="Empty when there are no further pages")

    @property
    def has_next_page(self) -> bool:
        return bool(self.next_page_token)
