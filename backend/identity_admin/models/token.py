from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

# Claims the backend reserves for itself; developer claims may not use them.
RESERVED_CLAIMS = frozenset([
    "acr", "amr", "at_hash", "aud", "auth_time", "azp", "cnf", "c_hash",
    "exp", "firebase", "iat", "iss", "jti", "nbf", "nonce", "sub",
])

# Standard keys of a decoded Firebase ID token that are not custom claims.
_STANDARD_ID_TOKEN_KEYS = RESERVED_CLAIMS | {
    "uid", "user_id", "email", "email_verified", "name", "picture", "phone_number",
}


def _from_seconds(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


class VerifiedToken(BaseModel):
    """Claims of an ID token that passed verification."""

    model_config = ConfigDict(frozen=True)

    uid: str = Field(..., min_length=1)
    issued_at: datetime
    expires_at: datetime
    auth_time: Optional[datetime] = None
    issuer: Optional[str] = None
    audience: Optional[str] = None
    email: Optional[str] = None
    email_verified: bool = False
    sign_in_provider: Optional[str] = None
    claims: Dict[str, Any] = Field(default_factory=dict, description="Custom claims only")

    @classmethod
    def from_decoded(cls, decoded: Mapping[str, Any]) -> "VerifiedToken":
        firebase_info = decoded.get("firebase") or {}
        return cls(
            uid=decoded.get("uid") or decoded["sub"],
            issued_at=_from_seconds(decoded["iat"]),
            expires_at=_from_seconds(decoded["exp"]),
            auth_time=_from_seconds(decoded.get("auth_time")),
            issuer=decoded.get("iss"),
            audience=decoded.get("aud"),
            email=decoded.get("email"),
            email_verified=bool(decoded.get("email_verified", False)),
            sign_in_provider=firebase_info.get("sign_in_provider"),
            claims={k: v for k, v in decoded.items() if k not in _STANDARD_ID_TOKEN_KEYS},
        )


class CustomTokenRequest(BaseModel):
    """Request model for minting a custom token."""
    uid: str = Field(..., description="User the token signs in as")
    claims: Optional[Dict[str, Any]] = Field(None, description="Developer claims to embed")


class CustomTokenResponse(BaseModel):
    """Response model for a minted custom token."""
    token: str = Field(..., description="Signed custom token")
