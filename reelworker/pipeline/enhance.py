"""
Step 2: Enhancement, studio-grade cleanup of the customer's photos.

This step fails open: a provider error, timeout or image-less response
yields a Fallback carrying the original bytes.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Protocol, Union

from .. import gemini
from .models import MediaType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Enhanced:
    data: bytes


@dataclass(frozen=True)
class Fallback:
    data: bytes
    reason: str


EnhancementResult = Union[Enhanced, Fallback]


class ImageEnhancer(Protocol):
    async def enhance(self, data: bytes, media_type: MediaType) -> Optional[bytes]:
        """Return enhanced bytes, None for "no image produced", or raise."""
        ...


class GeminiEnhancer:
    def __init__(self, api_key: str, transport=None):
        self.api_key = api_key
        self._transport = transport

    async def enhance(self, data: bytes, media_type: MediaType) -> Optional[bytes]:
        return await gemini.generate_enhanced_image(
            self.api_key, data, media_type.value, transport=self._transport
        )


class PassthroughEnhancer:
    """Used when no enhancement provider is configured."""

    async def enhance(self, data: bytes, media_type: MediaType) -> Optional[bytes]:
        raise RuntimeError("enhancement disabled")


async def enhance_image(
    enhancer: ImageEnhancer,
    data: bytes,
    role_label: str,
    media_type: MediaType,
) -> EnhancementResult:
    logger.info(f"Enhancing {role_label} image ({len(data)} bytes)")
    try:
        enhanced = await enhancer.enhance(data, media_type)
    except Exception as e:
        logger.warning(f"Enhancement failed for {role_label}, using original: {e}")
        return Fallback(data, str(e) or type(e).__name__)

    if not enhanced:
        logger.warning(f"No enhanced image returned for {role_label}, using original")
        return Fallback(data, "no image in response")

    logger.info(f"Enhanced {role_label} image ({len(enhanced)} bytes)")
    return Enhanced(enhanced)
