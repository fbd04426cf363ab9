"""
Step 3: Side angles: synthesize left/right views from the front/back images.

Not fail-open: a provider error is wrapped in SynthesisFailure and fails the run.
"""

import logging
from typing import Protocol

from ..kie import KieClient
from .errors import SynthesisFailure
from .models import ImageAsset, ImageRole, MediaType, StoredImage

logger = logging.getLogger(__name__)

SEEDREAM_MODEL = "bytedance/seedream-v4-edit"

SIDE_PROMPT = (
    "Using the front and back photos of this garment on the model, render the same "
    "outfit from the model's {side} side (90 degree profile). Keep fabric, color, fit "
    "and studio lighting identical, pure white background."
)


class AngleSynthesizer(Protocol):
    async def synthesize(self, front: StoredImage, back: StoredImage) -> tuple[bytes, bytes]:
        """Return (left, right) image bytes, or raise."""
        ...


class KieAngleSynthesizer:
    """Seedream 4.0 edit jobs on Kie.ai, one per side."""

    def __init__(self, client: KieClient, model: str = SEEDREAM_MODEL):
        self.client = client
        self.model = model

    async def _render_side(self, side: str, image_urls: list[str]) -> bytes:
        outputs = await self.client.run(
            self.model,
            {
                "prompt": SIDE_PROMPT.format(side=side),
                "image_urls": image_urls,
                "image_size": "portrait_4_3",
                "max_images": 1,
            },
        )
        return outputs[0]

    async def synthesize(self, front: StoredImage, back: StoredImage) -> tuple[bytes, bytes]:
        image_urls = [front.url, back.url]
        left = await self._render_side("left", image_urls)
        right = await self._render_side("right", image_urls)
        return left, right


class PlaceholderAngleSynthesizer:
    """Stand-in without a provider: the front doubles as left, the back as right."""

    async def synthesize(self, front: StoredImage, back: StoredImage) -> tuple[bytes, bytes]:
        return front.data, back.data


async def generate_side_angles(
    synthesizer: AngleSynthesizer,
    front: StoredImage,
    back: StoredImage,
) -> tuple[ImageAsset, ImageAsset]:
    try:
        left, right = await synthesizer.synthesize(front, back)
    except Exception as e:
        logger.error(f"Side angle synthesis failed: {e}")
        raise SynthesisFailure("angles", str(e)) from e

    if not left or not right:
        raise SynthesisFailure("angles", "provider returned an empty view")

    return (
        ImageAsset(data=left, media_type=MediaType.sniff(left, MediaType.JPEG), role=ImageRole.LEFT),
        ImageAsset(data=right, media_type=MediaType.sniff(right, MediaType.JPEG), role=ImageRole.RIGHT),
    )
