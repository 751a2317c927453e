from fastapi import APIRouter, Depends

from identity_admin.auth.dependencies import get_auth_client, get_current_user, require_admin
from identity_admin.models.token import CustomTokenRequest, CustomTokenResponse, VerifiedToken
from identity_admin.services.auth_client import AuthClient

router = APIRouter(
    prefix="/auth",
    tags=["authentication"],
)


@router.get(
    "/me",
    response_model=VerifiedToken,
    summary="Get current authenticated user",
    description="Returns the verified claims of the caller's ID token.",
    responses={
        401: {
            "description": "Unauthorized - Invalid, expired or revoked authentication token",
        },
    },
)
def get_current_user_info(
    current_user: VerifiedToken = Depends(get_current_user),
) -> VerifiedToken:
    """Get the verified token of the caller.

    Args:
        current_user: The verified ID token (injected via dependency)

    Returns:
        VerifiedToken: uid, issue/expiry times and custom claims
    """
    return current_user


@router.post(
    "/custom-token",
    response_model=CustomTokenResponse,
    summary="Mint a custom token",
    description="Mint a custom token a client can exchange for an ID token. Admin only.",
)
def mint_custom_token(
    request: CustomTokenRequest,
    _admin: VerifiedToken = Depends(require_admin),
    auth_client: AuthClient = Depends(get_auth_client),
) -> CustomTokenResponse:
    token = auth_client.create_custom_token(request.uid, request.claims)
    return CustomTokenResponse(token=token)
