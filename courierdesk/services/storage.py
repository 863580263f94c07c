"""Proof-of-delivery images: downscale, push to Cloudinary, return the URL."""
import io
import logging
import uuid

import httpx
from PIL import Image, ImageOps, UnidentifiedImageError

from ..config import settings
from ..core.exceptions import UploadError, ValidationError

logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/webp"}
MAX_WIDTH = 720
MAX_HEIGHT = 540
JPEG_QUALITY = 70


def validate_image(content_type: str, size: int):
    if content_type not in ALLOWED_CONTENT_TYPES:
        raise ValidationError("Invalid file type")
    if size > settings.PROOF_MAX_BYTES:
        max_mb = settings.PROOF_MAX_BYTES / (1024 * 1024)
        raise ValidationError(f"File too large. Max {max_mb:g}MB")


def compress_image(data: bytes) -> bytes:
    """Fit inside 720x540 keeping the aspect ratio, re-encode as JPEG."""
    try:
        img = Image.open(io.BytesIO(data))
        img = ImageOps.exif_transpose(img).convert("RGB")
    except Image.DecompressionBombError as e:
        raise ValidationError("Image is too large", detail=str(e)) from e
    except (UnidentifiedImageError, OSError) as e:
        raise ValidationError("File is not a readable image", detail=str(e)) from e

    img.thumbnail((MAX_WIDTH, MAX_HEIGHT))
    out = io.BytesIO()
    img.save(out, format="JPEG", quality=JPEG_QUALITY)
    return out.getvalue()


class CloudinaryStorage:
    """Unsigned upload through an upload preset."""

    def __init__(
        self,
        upload_url: str = None,
        upload_preset: str = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport = None,
    ):
        self.upload_url = upload_url or settings.CLOUDINARY_UPLOAD_URL
        self.upload_preset = upload_preset or settings.CLOUDINARY_UPLOAD_PRESET
        self.timeout = timeout
        self.transport = transport

    async def upload(self, data: bytes, filename: str = None) -> str:
        filename = filename or f"{uuid.uuid4()}.jpg"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    self.upload_url,
                    data={"upload_preset": self.upload_preset},
                    files={"file": (filename, data, "image/jpeg")},
                )
                response.raise_for_status()
                body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Image upload failed: %s", e)
            raise UploadError("Image upload failed", detail=str(e)) from e

        url = body.get("secure_url")
        if not url:
            raise UploadError("Image upload returned no URL", detail=str(body.get("error")))
        return url


def get_proof_storage() -> CloudinaryStorage:
    return CloudinaryStorage()
