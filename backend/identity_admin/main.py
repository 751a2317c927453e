import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

# Load environment variables from .env file
load_dotenv()

from identity_admin.api.auth import router as auth_router
from identity_admin.api.storage import router as storage_router
from identity_admin.api.users import router as users_router
from identity_admin.auth.dependencies import close_app_handle
from identity_admin.errors import IdentityAdminError, VerificationError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    yield
    close_app_handle()


app = FastAPI(
    title="Identity Admin API",
    description="Administrative API over Firebase Authentication and Cloud Storage",
    version="1.0.0",
    lifespan=lifespan,
)

# Register API routers
app.include_router(auth_router)
app.include_router(users_router)
app.include_router(storage_router)


@app.exception_handler(IdentityAdminError)
async def identity_admin_error_handler(request: Request, exc: IdentityAdminError):
    """Render library errors with the status code their class declares."""
    if exc.http_status >= 500:
        logger.error("%s %s failed: %s: %s", request.method, request.url.path, type(exc).__name__, exc)
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, VerificationError) else None
    content = {"detail": exc.message, "error": type(exc).__name__}
    if isinstance(exc, VerificationError):
        content["reason"] = exc.reason
    return JSONResponse(status_code=exc.http_status, content=content, headers=headers)


@app.get(
    "/health",
    tags=["health"],
    summary="Health check endpoint",
    description="Returns the health status of the API",
)
def health_check():
    """Basic health check endpoint to verify the API is running.

    Returns:
        dict: Health status information
    """
    return {
        "status": "healthy",
        "service": "Identity Admin API",
    }
