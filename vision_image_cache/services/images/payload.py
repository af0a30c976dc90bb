"""
Image payload helpers.

Payloads are self-contained ``data:`` URIs. Raster bytes are sniffed and
validated with Pillow before encoding so a cached payload is always
decodable by the document builders.
"""

import base64
import binascii
from io import BytesIO
from typing import Tuple, Union
from urllib.parse import unquote_to_bytes

from PIL import Image, UnidentifiedImageError

from ...constants import DATA_URI_PREFIX
from ...domain.layout import LayoutRect, fit
from ...infrastructure.exceptions import ImageDecodeException

SVG_MIME = "image/svg+xml"


def is_inline_payload(value: str) -> bool:
    """True when ``value`` is already an inline ``data:`` URI."""
    return isinstance(value, str) and value.startswith(DATA_URI_PREFIX)


def _looks_like_svg(content: bytes) -> bool:
    head = content[:512].lstrip().lower()
    return head.startswith(b"<svg") or (head.startswith(b"<?xml") and b"<svg" in head)


def sniff_mime_type(content: bytes, source: str = "") -> str:
    """
    Detect the MIME type of image bytes.

    Raises:
        ImageDecodeException: if the bytes are not a recognised image
    """
    if _looks_like_svg(content):
        return SVG_MIME

    try:
        with Image.open(BytesIO(content)) as image:
            image.verify()
            image_format = image.format
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as e:
        raise ImageDecodeException(f"Not a decodable image: {e}", source=source) from e

    mime = Image.MIME.get(image_format or "")
    if not mime:
        raise ImageDecodeException(
            f"Unsupported image format: {image_format}", source=source
        )
    return mime


def encode_data_uri(content: bytes, content_type: str = "", source: str = "") -> str:
    """
    Encode image bytes as a base64 ``data:`` URI.

    The declared content type is trusted only when it agrees with the bytes;
    otherwise the sniffed type wins.
    """
    if not content:
        raise ImageDecodeException("Empty image content", source=source)

    mime = sniff_mime_type(content, source=source)
    declared = (content_type or "").split(";")[0].strip().lower()
    if declared == mime or (declared == "image/jpg" and mime == "image/jpeg"):
        mime = declared

    encoded = base64.b64encode(content).decode("ascii")
    return f"{DATA_URI_PREFIX}{mime};base64,{encoded}"


def decode_data_uri(payload: str) -> Tuple[str, bytes]:
    """
    Split a ``data:`` URI into its MIME type and raw bytes.

    Raises:
        ImageDecodeException: if the payload is not a valid data URI
    """
    if not is_inline_payload(payload) or "," not in payload:
        raise ImageDecodeException("Payload is not a data URI")

    header, data = payload[len(DATA_URI_PREFIX):].split(",", 1)
    parts = header.split(";")
    mime = parts[0] or "text/plain"

    if "base64" in parts[1:]:
        try:
            return mime, base64.b64decode(data, validate=False)
        except (binascii.Error, ValueError) as e:
            raise ImageDecodeException(f"Invalid base64 payload: {e}") from e

    return mime, unquote_to_bytes(data)


def rasterize_to_png(content: bytes, source: str = "") -> bytes:
    """Decode raster bytes with Pillow and re-encode them as PNG."""
    try:
        with Image.open(BytesIO(content)) as image:
            image.load()
            if image.mode not in ("RGB", "RGBA", "L", "LA", "P"):
                image = image.convert("RGBA")
            buffer = BytesIO()
            image.save(buffer, format="PNG")
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as e:
        raise ImageDecodeException(f"Cannot rasterize image: {e}", source=source) from e

    return buffer.getvalue()


def image_dimensions(payload: Union[str, bytes]) -> Tuple[int, int]:
    """Pixel ``(width, height)`` of a data URI or raw image bytes."""
    content = decode_data_uri(payload)[1] if isinstance(payload, str) else payload

    try:
        with Image.open(BytesIO(content)) as image:
            return image.size
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as e:
        raise ImageDecodeException(f"Cannot read image size: {e}") from e


def fit_payload(payload: Union[str, bytes], container: LayoutRect) -> LayoutRect:
    """Contain-fit a cached image inside ``container``."""
    width, height = image_dimensions(payload)
    return fit(width, height, container)
