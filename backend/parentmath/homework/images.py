"""Photo intake: decode, validate and shrink worksheet photos before recognition."""

import base64
import binascii
import io
import logging

from PIL import Image, UnidentifiedImageError

from parentmath.exceptions import InvalidImage

logger = logging.getLogger(__name__)

MAX_IMAGE_BYTES = 10 * 1024 * 1024
# base64 of MAX_IMAGE_BYTES plus room for a "data:image/...;base64," prefix
MAX_PAYLOAD_CHARS = (MAX_IMAGE_BYTES + 2) // 3 * 4 + 64
# checked against the header size, before any pixels are decoded
MAX_PIXELS = 50_000_000
MAX_DIMENSION = 1024
JPEG_QUALITY = 80

MEDIA_TYPES = {
    "image/jpeg": "image/jpeg",
    "image/jpg": "image/jpeg",
    "image/png": "image/png",
    "image/webp": "image/webp",
}


def normalize_media_type(media_type: str | None) -> str:
    normalized = MEDIA_TYPES.get((media_type or "").strip().lower())
    if not normalized:
        raise InvalidImage()
    return normalized


def decode_image(payload: str) -> bytes:
    """Decode a base64 string or a data URL."""
    if payload.startswith("data:"):
        payload = payload.split(",", 1)[1] if "," in payload else ""
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        raise InvalidImage("Failed to read the image. Please try again.")
    if not data:
        raise InvalidImage("Please select an image first.")
    if len(data) > MAX_IMAGE_BYTES:
        raise InvalidImage("Image is too large. Please select an image under 10MB.")
    return data


def compress_image(data: bytes) -> tuple[bytes, str]:
    """Fit within MAX_DIMENSION x MAX_DIMENSION and re-encode as JPEG."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            original = img.size
            if original[0] * original[1] > MAX_PIXELS:
                raise InvalidImage("Image dimensions are too large. Please use a smaller photo.")
            img = img.convert("RGB")
            img.thumbnail((MAX_DIMENSION, MAX_DIMENSION))
            out = io.BytesIO()
            img.save(out, format="JPEG", quality=JPEG_QUALITY)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError):
        raise InvalidImage("Failed to process image. Please try again or type the problem instead.")

    compressed = out.getvalue()
    logger.info(f"Image {original[0]}x{original[1]} -> {img.size[0]}x{img.size[1]}, "
                f"{len(data)} -> {len(compressed)} bytes")
    return compressed, "image/jpeg"


def prepare_image(payload: str, media_type: str | None) -> tuple[bytes, str]:
    normalize_media_type(media_type)
    return compress_image(decode_image(payload))
