"""Image utility functions for base64 payloads, data URLs and upload checks."""

import base64
import binascii
import io
from typing import Optional, Tuple, Iterable
from PIL import Image, UnidentifiedImageError

from src.core.errors import RequestValidationError
from src.core.models import ImageRef


class ImageFormat:
    """Supported image formats."""
    PNG = "PNG"
    JPEG = "JPEG"
    WEBP = "WEBP"


MIME_TYPES = {
    ImageFormat.PNG: "image/png",
    ImageFormat.JPEG: "image/jpeg",
    ImageFormat.WEBP: "image/webp",
}

EXTENSIONS = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/webp": "webp",
}

DEFAULT_MIME_TYPE = "image/jpeg"
MAX_UPLOAD_BYTES = 25 * 1024 * 1024
ALLOWED_UPLOAD_TYPES = ("image/jpeg", "image/png", "image/webp")


def strip_data_url(encoded: str) -> Tuple[Optional[str], str]:
    """Split a data URL into its MIME type and base64 body.

    Args:
        encoded: Either a bare base64 string or ``data:<mime>;base64,<data>``

    Returns:
        Tuple of (mime_type or None, base64 data)
    """
    if encoded.startswith("data:") and "," in encoded:
        header, data = encoded.split(",", 1)
        mime_type = header[len("data:"):].split(";", 1)[0] or None
        return mime_type, data
    return None, encoded


def to_data_url(encoded: str, mime_type: str = DEFAULT_MIME_TYPE) -> str:
    """Wrap a base64 payload in a data URL, leaving existing data URLs alone."""
    if encoded.startswith("data:"):
        return encoded
    return f"data:{mime_type};base64,{encoded}"


def detect_mime_type(raw: bytes) -> Optional[str]:
    """Detect the MIME type of image bytes.

    Returns:
        The MIME type if Pillow recognizes the image, None otherwise
    """
    try:
        with Image.open(io.BytesIO(raw)) as image:
            return MIME_TYPES.get(image.format, Image.MIME.get(image.format))
    except (UnidentifiedImageError, OSError):
        return None


def decode_base64_image(encoded: str, field: str = "image") -> bytes:
    """Decode a base64 image payload (bare or data URL).

    Raises:
        RequestValidationError: If the payload is empty or not valid base64
    """
    _, data = strip_data_url(encoded)
    data = "".join(data.split())
    if not data:
        raise RequestValidationError(
            f"{field} is empty", "INVALID_IMAGE", {field: "Image data is required"}
        )
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise RequestValidationError(
            f"{field} is not valid base64", "INVALID_IMAGE", {field: str(e)}
        ) from e


def decode_image_payload(encoded: str, name: str = "image") -> Tuple[str, bytes, str]:
    """Turn a base64 payload into a file tuple accepted by multipart uploads.

    Args:
        encoded: Bare base64 or data URL
        name: Base filename without extension

    Returns:
        Tuple of (filename, raw bytes, mime type)
    """
    declared_mime, _ = strip_data_url(encoded)
    raw = decode_base64_image(encoded, name)
    mime_type = detect_mime_type(raw) or declared_mime or "image/png"
    extension = EXTENSIONS.get(mime_type, "png")
    return f"{name}.{extension}", raw, mime_type


def validate_image_bytes(
    raw: bytes,
    max_size: int = MAX_UPLOAD_BYTES,
    allowed_types: Iterable[str] = ALLOWED_UPLOAD_TYPES
) -> str:
    """Validate an uploaded image.

    Args:
        raw: Image file bytes
        max_size: Maximum size in bytes
        allowed_types: Accepted MIME types

    Returns:
        The detected MIME type

    Raises:
        RequestValidationError: If the file is missing, too large, unreadable or of a disallowed type
    """
    if not raw:
        raise RequestValidationError("No image file provided", "FILE_MISSING")

    if len(raw) > max_size:
        raise RequestValidationError(
            f"File too large. Maximum size is {max_size // (1024 * 1024)}MB",
            "FILE_TOO_LARGE",
            {"size": len(raw)}
        )

    allowed = tuple(allowed_types)
    mime_type = detect_mime_type(raw)
    if mime_type is None or mime_type not in allowed:
        raise RequestValidationError(
            f"Invalid file type. Allowed types: {', '.join(allowed)}",
            "INVALID_FILE_TYPE",
            {"type": mime_type}
        )

    return mime_type


def encode_upload(
    raw: bytes,
    max_size: int = MAX_UPLOAD_BYTES,
    allowed_types: Iterable[str] = ALLOWED_UPLOAD_TYPES
) -> ImageRef:
    """Validate uploaded bytes and wrap them as an ImageRef data URL."""
    mime_type = validate_image_bytes(raw, max_size, allowed_types)
    encoded = base64.b64encode(raw).decode("ascii")
    return ImageRef(encoded_data=to_data_url(encoded, mime_type))
