from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import BaseModel, Field

from identity_admin.auth.dependencies import get_auth_client, require_admin
from identity_admin.models.user import UserPage, UserRecord, UserToCreate, UserToUpdate
from identity_admin.services.auth_client import AuthClient
from identity_admin.services.user_pager import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE

router = APIRouter(
    prefix="/admin/users",
    tags=["users"],
    dependencies=[Depends(require_admin)],
)


class SetCustomClaimsRequest(BaseModel):
    """Request model for replacing a user's custom claims."""
    claims: Optional[Dict[str, Any]] = Field(
        ..., description="New claim set; null removes every existing claim"
    )


@router.get(
    "",
    response_model=UserPage,
    summary="List users",
    description="Returns one page of users. Pass next_page_token back as page_token to continue.",
)
def list_users(
    page_token: Optional[str] = Query(None, description="Token from a previous page"),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    auth_client: AuthClient = Depends(get_auth_client),
) -> UserPage:
    return auth_client.list_users(page_token=page_token).next_page(page_size)


@router.get(
    "/lookup",
    response_model=UserRecord,
    summary="Look up a user by email or phone number",
)
def lookup_user(
    email: Optional[str] = Query(None),
    phone_number: Optional[str] = Query(None),
    auth_client: AuthClient = Depends(get_auth_client),
) -> UserRecord:
    if (email is None) == (phone_number is None):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Exactly one of email or phone_number is required",
        )
    if email is not None:
        return auth_client.get_user_by_email(email)
    return auth_client.get_user_by_phone_number(phone_number)


@router.get("/{uid}", response_model=UserRecord, summary="Get a user")
def get_user(uid: str, auth_client: AuthClient = Depends(get_auth_client)) -> UserRecord:
    return auth_client.get_user(uid)


@router.post(
    "",
    response_model=UserRecord,
    status_code=status.HTTP_201_CREATED,
    summary="Create a user",
)
def create_user(
    user: UserToCreate,
    auth_client: AuthClient = Depends(get_auth_client),
) -> UserRecord:
    return auth_client.create_user(user)


@router.patch(
    "/{uid}",
    response_model=UserRecord,
    summary="Update a user",
    description=(
        "Only fields present in the body are changed. display_name, photo_url, "
        "phone_number and custom_claims are cleared when sent as null."
    ),
)
def update_user(
    uid: str,
    changes: UserToUpdate,
    auth_client: AuthClient = Depends(get_auth_client),
) -> UserRecord:
    return auth_client.update_user(uid, changes)


@router.delete("/{uid}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a user")
def delete_user(uid: str, auth_client: AuthClient = Depends(get_auth_client)) -> Response:
    auth_client.delete_user(uid)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put(
    "/{uid}/claims",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Replace custom claims",
    description="Replaces the whole claim set. Sending null erases all claims.",
)
def set_custom_claims(
    uid: str,
    request: SetCustomClaimsRequest,
    auth_client: AuthClient = Depends(get_auth_client),
) -> Response:
    auth_client.set_custom_user_claims(uid, request.claims)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{uid}/revoke-tokens",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Revoke refresh tokens",
)
def revoke_tokens(uid: str, auth_client: AuthClient = Depends(get_auth_client)) -> Response:
    auth_client.revoke_refresh_tokens(uid)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
