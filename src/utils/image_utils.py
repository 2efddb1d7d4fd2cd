"""Image utility functions for base64 transport and format conversion."""

import base64
import binascii
import io
from typing import Tuple

from PIL import Image, UnidentifiedImageError


class ImageFormat:
    """Supported output formats."""
    PNG = "PNG"
    JPEG = "JPEG"
    WEBP = "WEBP"


MIME_TYPES = {
    ImageFormat.PNG: "image/png",
    ImageFormat.JPEG: "image/jpeg",
    ImageFormat.WEBP: "image/webp",
}


def decode_image_input(value: str, default_mime_type: str = "image/jpeg") -> Tuple[bytes, str]:
    """Decode an image sent as raw base64 or as a ``data:`` URL.

    Args:
        value: Base64 string, optionally prefixed ``data:<mime>;base64,``
        default_mime_type: MIME type to assume for raw base64

    Returns:
        Tuple of (image_bytes, mime_type)

    Raises:
        ValueError: If the value is not valid base64 or decodes to nothing
    """
    mime_type = default_mime_type or "image/jpeg"
    payload = value.strip()

    if payload.startswith("data:"):
        header, sep, payload = payload.partition(",")
        if not sep:
            raise ValueError("malformed data URL")
        declared = header[len("data:"):].split(";", 1)[0]
        if declared:
            mime_type = declared

    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"invalid base64 image data: {e}") from e

    if not data:
        raise ValueError("image data is empty")
    return data, mime_type


def to_data_url(image_bytes: bytes, mime_type: str) -> str:
    """Encode bytes as a ``data:`` URL."""
    return f"data:{mime_type};base64,{base64.b64encode(image_bytes).decode('utf-8')}"


def convert_image(image_bytes: bytes, format: str = ImageFormat.JPEG) -> Tuple[bytes, str]:
    """Re-encode an image in the requested format.

    Args:
        image_bytes: Image in any format Pillow can read
        format: Output format (PNG, JPEG, or WEBP)

    Returns:
        Tuple of (converted_bytes, mime_type)

    Raises:
        ValueError: If the bytes are not a readable image or the format is unknown
    """
    format = format.upper()
    if format not in MIME_TYPES:
        raise ValueError(f"Unsupported output format: {format}")

    try:
        image = Image.open(io.BytesIO(image_bytes))
        image.load()
    except (UnidentifiedImageError, OSError) as e:
        raise ValueError(f"not a readable image: {e}") from e

    output = io.BytesIO()

    if format == ImageFormat.JPEG:
        # JPEG doesn't support transparency; flatten onto white
        if image.mode in ('RGBA', 'LA', 'P'):
            if image.mode == 'P':
                image = image.convert('RGBA')
            rgb_image = Image.new('RGB', image.size, (255, 255, 255))
            rgb_image.paste(image, mask=image.split()[-1])
            image = rgb_image
        elif image.mode != 'RGB':
            image = image.convert('RGB')

        image.save(output, format="JPEG", quality=95)

    elif format == ImageFormat.WEBP:
        if image.mode not in ('RGB', 'RGBA'):
            image = image.convert('RGBA')
        image.save(output, format="WEBP", quality=95)

    else:
        image.save(output, format="PNG")

    return output.getvalue(), MIME_TYPES[format]
