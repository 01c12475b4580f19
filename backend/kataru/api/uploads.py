"""Input image uploads."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from kataru.api.deps import get_storage, http_error
from kataru.config import get_settings
from kataru.schemas.job import UploadCreate, UploadRead
from kataru.services.errors import InvalidInput, KataruError
from kataru.services.storage import LocalObjectStorage
from kataru.services.uploads import store_image_upload

router = APIRouter()


@router.post("", response_model=UploadRead, status_code=201)
async def upload_image(
    req: UploadCreate,
    storage: LocalObjectStorage = Depends(get_storage),
):
    """Store a portrait or product image and return its key and public URL."""
    settings = get_settings()
    buckets = {"avatars": settings.AVATAR_BUCKET, "products": settings.PRODUCT_BUCKET}
    try:
        bucket = buckets.get(req.bucket)
        if bucket is None:
            raise InvalidInput(f"Unknown bucket '{req.bucket}'. Use 'avatars' or 'products'.")
        key = await store_image_upload(
            storage, bucket, req.data_url, max_bytes=settings.MAX_UPLOAD_BYTES
        )
    except KataruError as e:
        raise http_error(e) from e
    return UploadRead(bucket=bucket, key=key, url=storage.public_url(bucket, key))
