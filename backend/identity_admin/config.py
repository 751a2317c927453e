import os
from pathlib import Path
from typing import Any, Dict, Literal, Optional, Union

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

from identity_admin.errors import ConfigError

load_dotenv()

DEFAULT_HTTP_TIMEOUT = 30.0
DEFAULT_TOKEN_URI = "https://oauth2.googleapis.com/token"

CredentialKind = Literal["service_account", "refresh_token", "application_default"]


class CredentialSource(BaseModel):
    """Where the Admin SDK credential comes from.

    Use the constructors instead of building this directly:

        CredentialSource.service_account("path/to/serviceAccountKey.json")
        CredentialSource.refresh_token("path/to/refreshToken.json")
        CredentialSource.application_default()
    """

    model_config = ConfigDict(frozen=True)

    kind: CredentialKind
    path: Optional[str] = None
    info: Optional[Dict[str, Any]] = None

    @classmethod
    def service_account(cls, key: Union[str, Path, Dict[str, Any]]) -> "CredentialSource":
        if isinstance(key, dict):
            return cls(kind="service_account", info=dict(key))
        return cls(kind="service_account", path=str(key))

    @classmethod
    def refresh_token(cls, path: Union[str, Path]) -> "CredentialSource":
        return cls(kind="refresh_token", path=str(path))

    @classmethod
    def application_default(cls) -> "CredentialSource":
        return cls(kind="application_default")

    def describe(self) -> str:
        """Short description safe for logs (never includes key material)."""
        if self.path:
            return f"{self.kind}:{self.path}"
        if self.info:
            return f"{self.kind}:{self.info.get('client_email', '<inline>')}"
        return self.kind


class AppConfig(BaseModel):
    """Options applied to one initialized app."""

    model_config = ConfigDict(frozen=True)

    project_id: Optional[str] = Field(None, description="Overrides the project in the credential")
    storage_bucket: Optional[str] = Field(None, description="Default Cloud Storage bucket name")
    http_timeout: float = Field(
        DEFAULT_HTTP_TIMEOUT,
        gt=0,
        description="Timeout in seconds applied to every backend request",
    )
    check_revoked: bool = Field(
        False,
        description="Default for verify_id_token; checking costs one extra backend call",
    )

    def to_firebase_options(self) -> Dict[str, Any]:
        options: Dict[str, Any] = {"httpTimeout": self.http_timeout}
        if self.project_id:
            options["projectId"] = self.project_id
        if self.storage_bucket:
            options["storageBucket"] = self.storage_bucket
        return options


def _normalize_private_key(private_key_raw: str) -> str:
    """Undo the quoting and escaped newlines env files put around PEM keys."""
    private_key_raw = private_key_raw.strip()
    if (private_key_raw.startswith('"') and private_key_raw.endswith('"')) or \
       (private_key_raw.startswith("'") and private_key_raw.endswith("'")):
        private_key_raw = private_key_raw[1:-1]
    return private_key_raw.replace("\\n", "\n")


def credential_source_from_env() -> CredentialSource:
    """Resolve the credential source from FIREBASE_* environment variables.

    Inline service account variables win, then FIREBASE_CREDENTIALS (key
    file), then FIREBASE_REFRESH_TOKEN_FILE. With none of them set the
    application default credentials are used.
    """
    private_key_raw = os.getenv("FIREBASE_PRIVATE_KEY", "")
    private_key = _normalize_private_key(private_key_raw) if private_key_raw else ""

    service_account_info = {
        "type": "service_account",
        "project_id": os.getenv("FIREBASE_PROJECT_ID"),
        "private_key_id": os.getenv("FIREBASE_PRIVATE_KEY_ID"),
        "private_key": private_key,
        "client_email": os.getenv("FIREBASE_CLIENT_EMAIL"),
        "client_id": os.getenv("FIREBASE_CLIENT_ID"),
        "token_uri": os.getenv("FIREBASE_TOKEN_URI", DEFAULT_TOKEN_URI),
    }
    required_fields = ["project_id", "private_key", "client_email"]
    if all(service_account_info.get(field) for field in required_fields):
        return CredentialSource.service_account(service_account_info)

    service_account_path = os.getenv("FIREBASE_CREDENTIALS")
    if service_account_path:
        return CredentialSource.service_account(service_account_path)

    refresh_token_path = os.getenv("FIREBASE_REFRESH_TOKEN_FILE")
    if refresh_token_path:
        return CredentialSource.refresh_token(refresh_token_path)

    return CredentialSource.application_default()


def app_config_from_env() -> AppConfig:
    timeout_raw = os.getenv("FIREBASE_HTTP_TIMEOUT")
    try:
        http_timeout = float(timeout_raw) if timeout_raw else DEFAULT_HTTP_TIMEOUT
    except ValueError as e:
        raise ConfigError(f"FIREBASE_HTTP_TIMEOUT must be a number, got {timeout_raw!r}") from e
    if http_timeout <= 0:
        raise ConfigError(f"FIREBASE_HTTP_TIMEOUT must be positive, got {timeout_raw!r}")

    check_revoked = os.getenv("FIREBASE_CHECK_REVOKED", "false").strip().lower() in ("1", "true", "yes")

    return AppConfig(
        project_id=os.getenv("FIREBASE_PROJECT_ID") or None,
        storage_bucket=os.getenv("FIREBASE_STORAGE_BUCKET") or None,
        http_timeout=http_timeout,
        check_revoked=check_revoked,
    )


def admin_claim_name() -> str:
    """Custom claim that marks a caller as an administrator of the HTTP API."""
    return os.getenv("ADMIN_CLAIM", "admin")
