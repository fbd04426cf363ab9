"""
Shared fixtures: in-memory stand-ins for storage and the AI providers.
"""

import pytest

from reelworker import metrics
from reelworker.pipeline.errors import UploadFailure
from reelworker.pipeline.models import ArtifactReference, ImageAsset, ImageRole, MediaType
from reelworker.pipeline.orchestrator import VideoGenerationService

JPEG_MAGIC = b"\xff\xd8\xff\xe0"
PNG_MAGIC = b"\x89PNG\r\n\x1a\n"


class FakeStore:
    """Records uploads/deletes; can be told to reject the Nth upload."""

    def __init__(self, fail_on_upload=None, failing_deletes=()):
        self.fail_on_upload = fail_on_upload
        self.failing_deletes = set(failing_deletes)
        self.uploads = []
        self.deleted = []
        self._upload_calls = 0

    async def upload(self, data, bucket, key, content_type):
        self._upload_calls += 1
        if self.fail_on_upload == self._upload_calls:
            raise UploadFailure(bucket.value, key, "The resource already exists")
        self.uploads.append({"data": data, "bucket": bucket, "key": key, "content_type": content_type})
        return ArtifactReference(
            url=f"https://storage.test/{bucket.value}/{key}", bucket=bucket, key=key
        )

    async def delete(self, ref):
        self.deleted.append(ref)
        if len(self.deleted) in self.failing_deletes:
            raise RuntimeError("storage unavailable")
        return True


class FakeEnhancer:
    def __init__(self, output=b"ENHANCED", error=None):
        self.output = output
        self.error = error
        self.calls = []

    async def enhance(self, data, media_type):
        self.calls.append((data, media_type))
        if self.error:
            raise self.error
        return self.output


class FakeAngles:
    def __init__(self, error=None):
        self.error = error
        self.calls = []

    async def synthesize(self, front, back):
        self.calls.append((front, back))
        if self.error:
            raise self.error
        return JPEG_MAGIC + b"left", JPEG_MAGIC + b"right"


class FakeVideo:
    def __init__(self, error=None):
        self.error = error
        self.calls = []

    async def synthesize_video(self, views):
        self.calls.append(views)
        if self.error:
            raise self.error
        return b"MP4-BYTES"


@pytest.fixture(autouse=True)
def _reset_metrics():
    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture
def front_asset():
    return ImageAsset(data=JPEG_MAGIC + b"f" * 2048, media_type=MediaType.JPEG, role=ImageRole.FRONT)


@pytest.fixture
def back_asset():
    return ImageAsset(data=PNG_MAGIC + b"b" * 3072, media_type=MediaType.PNG, role=ImageRole.BACK)


@pytest.fixture
def make_service():
    def _make(store=None, enhancer=None, angles=None, video=None):
        return VideoGenerationService(
            store=store or FakeStore(),
            enhancer=enhancer or FakeEnhancer(),
            angle_synthesizer=angles or FakeAngles(),
            video_synthesizer=video or FakeVideo(),
        )
    return _make


async def drain(channel):
    return [event async for event in channel]
