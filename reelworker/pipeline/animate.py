"""
Step 4: Motion: turn the four garment views into a short turntable video.

Not fail-open: a provider error is wrapped in SynthesisFailure and fails the run.
"""

import logging
from dataclasses import dataclass
from typing import Protocol

from ..kie import KieClient
from .errors import SynthesisFailure
from .models import StoredImage

logger = logging.getLogger(__name__)

KLING_MODEL = "kling/v2-1-pro"

ANIMATION_PROMPT = (
    "Smooth 360 degree turntable of the model wearing this outfit, slow rotation "
    "through front, left, back and right views, consistent studio lighting, "
    "pure white background, fabric moving naturally."
)

PLACEHOLDER_VIDEO = b"mock-video-data"


@dataclass(frozen=True)
class ViewSet:
    front: StoredImage
    back: StoredImage
    left: StoredImage
    right: StoredImage

    def turntable(self) -> list[StoredImage]:
        return [self.front, self.left, self.back, self.right]


class VideoSynthesizer(Protocol):
    async def synthesize_video(self, views: ViewSet) -> bytes:
        ...


class KieVideoSynthesizer:
    """Kling image-to-video on Kie.ai, seeded with the four views in turntable order."""

    def __init__(self, client: KieClient, model: str = KLING_MODEL, duration: str = "5"):
        self.client = client
        self.model = model
        self.duration = duration

    async def synthesize_video(self, views: ViewSet) -> bytes:
        image_urls = [view.url for view in views.turntable()]
        outputs = await self.client.run(
            self.model,
            {
                "prompt": ANIMATION_PROMPT,
                "image_url": image_urls[0],
                "image_urls": image_urls,
                "duration": self.duration,
                "aspect_ratio": "9:16",
            },
        )
        return outputs[0]


class PlaceholderVideoSynthesizer:
    async def synthesize_video(self, views: ViewSet) -> bytes:
        return PLACEHOLDER_VIDEO


async def generate_video(synthesizer: VideoSynthesizer, views: ViewSet) -> bytes:
    try:
        video = await synthesizer.synthesize_video(views)
    except Exception as e:
        logger.error(f"Video synthesis failed: {e}")
        raise SynthesisFailure("video", str(e)) from e

    if not video:
        raise SynthesisFailure("video", "provider returned an empty video")
    logger.info(f"Video synthesized ({len(video)} bytes)")
    return video
