"""
Statement Image Handling

Decodes and checks the base64 image sent with a recognition request
before anything is sent to the vision model.

CRITICAL: We do NOT send arbitrary bytes upstream. The payload must
decode, fit the configured size limit, and be an image format the
model accepts. Anything else is rejected as invalid input.
"""

import base64
import binascii
from io import BytesIO
from typing import Optional

from PIL import Image, UnidentifiedImageError
from pydantic import BaseModel, Field

from cashbook.config import get_settings
from cashbook.errors import InvalidInputError


class StatementImage(BaseModel):
    """A decoded, format-checked statement image."""

    data: bytes
    format: str = Field(..., description="Lower-case PIL format name, e.g. 'png'")
    mime_type: str
    width: int
    height: int

    @property
    def size_bytes(self) -> int:
        return len(self.data)


def strip_data_url(image_base64: str) -> str:
    """Drop a ``data:<mime>;base64,`` prefix if present."""
    if image_base64.startswith("data:") and "," in image_base64:
        return image_base64.split(",", 1)[1]
    return image_base64


def encode_image(data: bytes) -> str:
    """Bytes to the bare base64 text the recognition endpoint expects."""
    return base64.b64encode(data).decode("ascii")


def decode_statement_image(
    image_base64: str,
    max_bytes: Optional[int] = None,
    formats: Optional[list[str]] = None,
) -> StatementImage:
    """
    Decode and validate a base64 statement image.

    Raises:
        InvalidInputError: empty payload, bad base64, too large, or not
            one of the supported formats.
    """
    app_settings = get_settings().app
    if max_bytes is None:
        max_bytes = app_settings.max_upload_size_bytes
    if formats is None:
        formats = app_settings.supported_formats_list

    payload = strip_data_url((image_base64 or "").strip())
    if not payload:
        raise InvalidInputError("Image data is required")

    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidInputError("Image data is not valid base64") from e

    if len(data) > max_bytes:
        raise InvalidInputError(
            f"Image is too large ({len(data) // 1024} KB, limit {max_bytes // 1024} KB)"
        )

    try:
        with Image.open(BytesIO(data)) as img:
            image_format = (img.format or "").lower()
            width, height = img.size
    except (UnidentifiedImageError, OSError) as e:
        raise InvalidInputError("Uploaded data is not a readable image") from e

    if image_format not in formats:
        raise InvalidInputError(
            f"Unsupported image format '{image_format}'; use one of: {', '.join(formats)}"
        )

    return StatementImage(
        data=data,
        format=image_format,
        mime_type=Image.MIME.get(image_format.upper(), f"image/{image_format}"),
        width=width,
        height=height,
    )
