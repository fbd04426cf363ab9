"""
Supabase Storage helpers for the pipeline.

Artifacts are written to one of four buckets:
  source-images     the customer's original front/back photos
  enhanced-images   studio-enhanced copies
  generated-angles  synthesized left/right views
  generated-videos  the final video

Keys are `{uuid}-{epoch_ms}-{tag}.{ext}`. Uploads never overwrite.
"""

import asyncio
import logging
import time
import uuid
from typing import Optional

from supabase import create_client, Client

from ..config import settings, UPLOAD_CACHE_CONTROL
from .errors import UploadFailure
from .models import ArtifactReference, Bucket

logger = logging.getLogger(__name__)


def generate_filename(tag: str, extension: str) -> str:
    """Collision-resistant object key; the uuid alone guarantees uniqueness."""
    timestamp = int(time.time() * 1000)
    return f"{uuid.uuid4()}-{timestamp}-{tag}.{extension}"


class ArtifactStore:
    """
    Upload/delete/public-URL operations against Supabase Storage.

    The Supabase client is created on first use so the app can start without
    storage credentials; a missing credential surfaces as an UploadFailure.
    """

    def __init__(self, client: Optional[Client] = None):
        self._client = client

    def _get_client(self) -> Client:
        if self._client is None:
            if not settings.SUPABASE_URL or not settings.SUPABASE_SERVICE_KEY:
                raise RuntimeError("SUPABASE_URL and SUPABASE_SERVICE_KEY must be set")
            self._client = create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_KEY)
        return self._client

    def public_url(self, bucket: Bucket, key: str) -> ArtifactReference:
        url = self._get_client().storage.from_(bucket.value).get_public_url(key)
        return ArtifactReference(url=url, bucket=bucket, key=key)

    def _upload_sync(self, data: bytes, bucket: Bucket, key: str, content_type: str) -> ArtifactReference:
        try:
            self._get_client().storage.from_(bucket.value).upload(
                path=key,
                file=data,
                file_options={
                    "content-type": content_type,
                    "cache-control": UPLOAD_CACHE_CONTROL,
                    "upsert": "false",
                },
            )
        except Exception as e:
            logger.error(f"Supabase upload failed for {bucket.value}/{key}: {e}")
            raise UploadFailure(bucket.value, key, str(e)) from e

        try:
            ref = self.public_url(bucket, key)
        except Exception as e:
            # The object is stored but unreferenced; remove it before failing.
            logger.error(f"Public URL lookup failed for {bucket.value}/{key}: {e}")
            self._delete_sync(ArtifactReference(url="", bucket=bucket, key=key))
            raise UploadFailure(bucket.value, key, f"public URL unavailable: {e}") from e

        logger.info(f"Uploaded {len(data)} bytes to {bucket.value}/{key}")
        return ref

    async def upload(self, data: bytes, bucket: Bucket, key: str, content_type: str) -> ArtifactReference:
        """Write `data` under `key`; raises UploadFailure if the backend rejects it."""
        return await asyncio.to_thread(self._upload_sync, data, bucket, key, content_type)

    def _delete_sync(self, ref: ArtifactReference) -> bool:
        try:
            self._get_client().storage.from_(ref.bucket.value).remove([ref.key])
        except Exception as e:
            logger.error(f"Cleanup failed for {ref.bucket.value}/{ref.key}: {e}")
            return False
        logger.info(f"Removed {ref.bucket.value}/{ref.key}")
        return True

    async def delete(self, ref: ArtifactReference) -> bool:
        """Best-effort removal. Returns False on failure instead of raising."""
        return await asyncio.to_thread(self._delete_sync, ref)
