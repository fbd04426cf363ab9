"""
Gemini image enhancement ("Nano Banana") via the generateContent REST endpoint.

Turns a raw garment photo into a studio-grade catalog image. The response's
first inline image part is returned as raw bytes.
"""

import base64
import logging
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

API_BASE = "https://generativelanguage.googleapis.com/v1beta"
ENHANCE_MODEL = "gemini-2.5-flash-image"
REQUEST_TIMEOUT = 120  # seconds

ENHANCE_PROMPT = (
    "Transform this raw clothing image into a high-quality studio-grade fashion photo. "
    "Keep the clothing design, texture, and color accurate. Place the item on an "
    "appropriate model with natural body proportions and realistic fabric fit. Use "
    "professional studio lighting and a pure white background. The result should look "
    "like an authentic e-commerce catalog image: clean, sharp, and ready for product listing."
)


def _api_url(model: str) -> str:
    return f"{API_BASE}/models/{model}:generateContent"


def extract_first_image(result: dict) -> Optional[bytes]:
    """Decode the first inline image part of a generateContent response, if any."""
    candidates = result.get("candidates") or []
    if not candidates:
        return None

    parts = (candidates[0].get("content") or {}).get("parts") or []
    for part in parts:
        inline = part.get("inlineData") or part.get("inline_data")
        if inline and inline.get("data"):
            return base64.b64decode(inline["data"])
    return None


async def generate_enhanced_image(
    api_key: str,
    image_bytes: bytes,
    mime_type: str,
    prompt: str = ENHANCE_PROMPT,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Optional[bytes]:
    """
    Submit one image plus the instruction to Gemini.

    Returns the enhanced image bytes, or None when the response carries no
    image. HTTP and network errors propagate.
    """
    if not api_key:
        raise RuntimeError("GEMINI_API_KEY not set")

    body = {
        "contents": [
            {
                "parts": [
                    {"text": prompt},
                    {
                        "inlineData": {
                            "mimeType": mime_type,
                            "data": base64.b64encode(image_bytes).decode("utf-8"),
                        }
                    },
                ]
            }
        ],
        "generationConfig": {"responseModalities": ["TEXT", "IMAGE"]},
    }

    async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT, transport=transport) as client:
        response = await client.post(
            _api_url(ENHANCE_MODEL),
            params={"key": api_key},
            json=body,
        )
        response.raise_for_status()
        result = response.json()

    return extract_first_image(result)
