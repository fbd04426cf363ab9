"""
FastAPI routes for the garment video pipeline.

  POST /api/generate-video  multipart frontImage/backImage, streams progress as SSE
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile
from fastapi.responses import StreamingResponse

from ..config import MAX_UPLOAD_BYTES
from .models import ImageAsset, ImageRole, MediaType
from .orchestrator import VideoGenerationService
from .progress import sse_stream

logger = logging.getLogger(__name__)

pipeline_router = APIRouter(prefix="/api", tags=["pipeline"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def get_service(request: Request) -> VideoGenerationService:
    return request.app.state.service


async def _read_image(upload: Optional[UploadFile], role: ImageRole) -> Optional[ImageAsset]:
    """Reject oversized or non-JPEG/PNG parts before the stream opens."""
    if upload is None:
        return None

    media_type = MediaType.parse(upload.content_type)
    if media_type is None:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid file type for {role.value} image. Only JPG and PNG allowed.",
        )

    data = await upload.read(MAX_UPLOAD_BYTES + 1)
    if len(data) > MAX_UPLOAD_BYTES:
        raise HTTPException(
            status_code=413,
            detail=f"The {role.value} image exceeds the {MAX_UPLOAD_BYTES // (1024 * 1024)}MB limit",
        )

    return ImageAsset(data=data, media_type=media_type, role=role)


@pipeline_router.post("/generate-video")
async def generate_video(
    frontImage: Optional[UploadFile] = File(None),
    backImage: Optional[UploadFile] = File(None),
    service: VideoGenerationService = Depends(get_service),
):
    """Run the full pipeline and stream its progress events."""
    front = await _read_image(frontImage, ImageRole.FRONT)
    back = await _read_image(backImage, ImageRole.BACK)

    channel = service.start(front, back)
    logger.info(f"[{channel.run_id}] streaming progress")

    return StreamingResponse(
        sse_stream(channel),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
