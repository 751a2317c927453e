from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from identity_admin.auth.dependencies import get_storage_handle, require_admin
from identity_admin.services.storage_handle import StorageHandle

router = APIRouter(
    prefix="/admin/storage",
    tags=["storage"],
    dependencies=[Depends(require_admin)],
)


class BucketResponse(BaseModel):
    """A resolved bucket reference. The bucket may not exist."""
    name: str = Field(..., description="Bucket name")
    path: str = Field(..., description="Resource path of the bucket")


@router.get(
    "/buckets/default",
    response_model=BucketResponse,
    summary="Resolve the default bucket",
    description="Returns 500 when no default bucket is configured.",
)
def get_default_bucket(storage: StorageHandle = Depends(get_storage_handle)) -> BucketResponse:
    bucket = storage.default_bucket()
    return BucketResponse(name=bucket.name, path=bucket.path)


@router.get("/buckets/{name}", response_model=BucketResponse, summary="Resolve a bucket by name")
def get_bucket(name: str, storage: StorageHandle = Depends(get_storage_handle)) -> BucketResponse:
    bucket = storage.bucket(name)
    return BucketResponse(name=bucket.name, path=bucket.path)
