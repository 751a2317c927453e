import logging
import threading
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from identity_admin.auth.firebase import AppHandle
from identity_admin.config import admin_claim_name
from identity_admin.models.token import VerifiedToken
from identity_admin.services.auth_client import AuthClient
from identity_admin.services.storage_handle import StorageHandle

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)

_handle_lock = threading.Lock()
_handle: Optional[AppHandle] = None


def get_app_handle() -> AppHandle:
    """App handle of the HTTP service, initialized from the environment once."""
    global _handle
    with _handle_lock:
        if _handle is None or _handle.closed:
            _handle = AppHandle.from_env()
        return _handle


def close_app_handle() -> None:
    global _handle
    with _handle_lock:
        if _handle is not None:
            _handle.close()
            _handle = None


def get_auth_client(handle: AppHandle = Depends(get_app_handle)) -> AuthClient:
    return handle.auth_client()


def get_storage_handle(handle: AppHandle = Depends(get_app_handle)) -> StorageHandle:
    return handle.storage_handle()


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    auth_client: AuthClient = Depends(get_auth_client),
) -> VerifiedToken:
    """Extract and verify the ID token from the Authorization header.

    Verification failures propagate as VerificationError and are rendered
    as 401 responses by the application's error handler.

    Raises:
        HTTPException: 401 if no bearer token was sent
    """
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication token is required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return auth_client.verify_id_token(credentials.credentials)


def require_admin(current_user: VerifiedToken = Depends(get_current_user)) -> VerifiedToken:
    """Allow only callers whose token carries the admin custom claim."""
    claim = admin_claim_name()
    if current_user.claims.get(claim) is not True:
        logger.info("Rejected non-admin caller %s", current_user.uid)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Custom claim {claim!r} is required",
        )
    return current_user
