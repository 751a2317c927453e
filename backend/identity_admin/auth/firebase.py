import logging
import threading
import uuid
from typing import Optional

import firebase_admin
from firebase_admin import auth, credentials
from google.auth import exceptions as google_auth_exceptions

from identity_admin.config import (
    AppConfig,
    CredentialSource,
    app_config_from_env,
    credential_source_from_env,
)
from identity_admin.errors import ConfigError, ServiceUnavailableError
from identity_admin.services.auth_client import AuthClient
from identity_admin.services.storage_handle import StorageHandle

logger = logging.getLogger(__name__)

APP_NAME_PREFIX = "identity-admin"


def load_credential(source: CredentialSource) -> credentials.Base:
    """Turn a CredentialSource into a firebase_admin credential.

    Raises:
        ConfigError: if the key material cannot be read or parsed
    """
    try:
        if source.kind == "service_account":
            if source.info is not None:
                return credentials.Certificate(source.info)
            if not source.path:
                raise ConfigError("Service account source needs a key file path or key data")
            return credentials.Certificate(source.path)
        if source.kind == "refresh_token":
            if not source.path:
                raise ConfigError("Refresh token source needs a file path")
            return credentials.RefreshToken(source.path)
        return credentials.ApplicationDefault()
    except (OSError, ValueError, google_auth_exceptions.GoogleAuthError) as e:
        raise ConfigError(f"Error loading credentials from {source.describe()}: {e}") from e


class AppHandle:
    """One initialized Firebase app and the services derived from it.

    Handles are independent of each other: each one registers its own
    uniquely named firebase_admin.App, so several projects or credentials
    can be used side by side in one process without a default app.

    Example usage:
        with initialize(CredentialSource.service_account("key.json")) as handle:
            token = handle.auth_client().create_custom_token("some-uid")
    """

    def __init__(self, app: firebase_admin.App, config: AppConfig):
        self._app = app
        self._config = config
        self._lock = threading.Lock()
        self._auth_client: Optional[AuthClient] = None
        self._storage_handle: Optional[StorageHandle] = None
        self._closed = False

    @classmethod
    def from_env(cls, name: Optional[str] = None) -> "AppHandle":
        """Initialize from FIREBASE_* environment variables (and .env)."""
        return initialize(credential_source_from_env(), app_config_from_env(), name=name)

    @property
    def name(self) -> str:
        return self._app.name

    @property
    def project_id(self) -> Optional[str]:
        return self._app.project_id

    @property
    def config(self) -> AppConfig:
        return self._config

    @property
    def closed(self) -> bool:
        return self._closed

    def _ensure_open(self) -> None:
        if self._closed:
            raise ConfigError(f"App handle {self.name!r} has been closed")

    def auth_client(self) -> AuthClient:
        """Return the AuthClient of this app, constructing it on first use.

        Raises:
            ServiceUnavailableError: if the auth service cannot be set up,
                e.g. because no project ID could be determined
            ConfigError: if the handle is closed or ambient credentials
                cannot be discovered
        """
        with self._lock:
            self._ensure_open()
            if self._auth_client is None:
                try:
                    client = auth.Client(self._app)
                except google_auth_exceptions.DefaultCredentialsError as e:
                    raise ConfigError(f"Could not discover default credentials: {e}") from e
                except ValueError as e:
                    raise ServiceUnavailableError(f"Auth service unavailable: {e}") from e
                self._auth_client = AuthClient(client, check_revoked=self._config.check_revoked)
                logger.debug("Auth client created for app %s", self.name)
            return self._auth_client

    def storage_handle(self) -> StorageHandle:
        with self._lock:
            self._ensure_open()
            if self._storage_handle is None:
                self._storage_handle = StorageHandle(
                    self._app, default_bucket_name=self._config.storage_bucket
                )
            return self._storage_handle

    def close(self) -> None:
        """Delete the underlying app. Closing twice is a no-op."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._auth_client = None
            self._storage_handle = None
        firebase_admin.delete_app(self._app)
        logger.info("Closed Firebase app %s", self.name)

    def __enter__(self) -> "AppHandle":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def initialize(
    credential_source: CredentialSource,
    config: Optional[AppConfig] = None,
    name: Optional[str] = None,
) -> AppHandle:
    """Initialize a new, independent app.

    Args:
        credential_source: service account key, refresh token file or
            application default credentials
        config: project ID, default bucket and request timeout
        name: app name; a unique one is generated when omitted

    Raises:
        ConfigError: if the credentials cannot be loaded or the name is taken
    """
    config = config or AppConfig()
    credential = load_credential(credential_source)
    app_name = name or f"{APP_NAME_PREFIX}-{uuid.uuid4().hex}"

    try:
        app = firebase_admin.initialize_app(
            credential, options=config.to_firebase_options(), name=app_name
        )
    except ValueError as e:
        raise ConfigError(f"Error initializing app {app_name!r}: {e}") from e

    logger.info(
        "Initialized Firebase app %s (credential=%s, project=%s)",
        app_name,
        credential_source.describe(),
        config.project_id or "<from credential>",
    )
    return AppHandle(app, config)
