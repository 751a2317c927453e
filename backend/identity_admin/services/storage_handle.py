"""Bucket resolution against Cloud Storage for Firebase."""
import logging
from typing import Optional

import firebase_admin
from google.auth import exceptions as google_auth_exceptions
from google.cloud.storage import Bucket, Client

from identity_admin.errors import ConfigError, InvalidArgumentError

logger = logging.getLogger(__name__)


class StorageHandle:
    """Resolves bucket references for one initialized app.

    The storage client is built when the handle is created, so credential
    problems surface here rather than on the first bucket() call.
    Resolution itself is purely local: a bucket's existence is only checked
    by the first operation performed on it.

    Raises:
        ConfigError: if the storage client cannot be constructed
    """

    def __init__(self, app: firebase_admin.App, default_bucket_name: Optional[str] = None):
        self._default_bucket_name = default_bucket_name
        try:
            self._client = Client(
                credentials=app.credential.get_credential(), project=app.project_id
            )
        except (google_auth_exceptions.GoogleAuthError, OSError, ValueError) as e:
            raise ConfigError(f"Storage client could not be constructed: {e}") from e
        logger.debug("Storage client created for app %s", app.name)

    @property
    def default_bucket_name(self) -> Optional[str]:
        return self._default_bucket_name

    def default_bucket(self) -> Bucket:
        if not self._default_bucket_name:
            raise ConfigError(
                "No default storage bucket configured. Set storage_bucket in AppConfig "
                "or FIREBASE_STORAGE_BUCKET."
            )
        return self._resolve(self._default_bucket_name)

    def bucket(self, name: str) -> Bucket:
        if not isinstance(name, str) or not name.strip():
            raise InvalidArgumentError("Bucket name must be a non-empty string")
        return self._resolve(name)

    def _resolve(self, name: str) -> Bucket:
        try:
            return self._client.bucket(name)
        except ValueError as e:
            raise InvalidArgumentError(f"Invalid bucket name {name!r}: {e}") from e
