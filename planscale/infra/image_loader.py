"""Plan image fetching.

Plans must already be raster images. PDFs are rejected with a clear message so
the caller can ask for a rasterized sheet.
"""

import io
import logging
from dataclasses import dataclass

import requests
from PIL import Image, UnidentifiedImageError

from planscale.constants import HTTP_CONNECT_TIMEOUT_SEC, HTTP_READ_TIMEOUT_SEC
from planscale.errors import ImageLoadFailure

logger = logging.getLogger(__name__)

_RASTER_SIGNATURES = (
    (b"\x89PNG\r\n\x1a\n", "png"),
    (b"\xff\xd8\xff", "jpeg"),
    (b"GIF87a", "gif"),
    (b"GIF89a", "gif"),
    (b"BM", "bmp"),
    (b"II*\x00", "tiff"),
    (b"MM\x00*", "tiff"),
)


@dataclass(frozen=True)
class PlanImage:
    url: str
    content: bytes
    width: int
    height: int
    format: str
    content_type: str | None = None


def sniff_raster_format(content: bytes) -> str | None:
    for signature, name in _RASTER_SIGNATURES:
        if content.startswith(signature):
            return name
    if content[:4] == b"RIFF" and content[8:12] == b"WEBP":
        return "webp"
    return None


def decode_plan_image(url: str, content: bytes, content_type: str | None = None) -> PlanImage:
    if not content:
        raise ImageLoadFailure(f"Plan image at {url} is empty.")
    if content.startswith(b"%PDF") or "application/pdf" in (content_type or ""):
        raise ImageLoadFailure("Plan is a PDF and needs rasterization before it can be measured.")
    kind = sniff_raster_format(content)
    if kind is None:
        raise ImageLoadFailure("Plan is not a supported raster image (PNG, JPEG, GIF, BMP, TIFF, WEBP).")
    try:
        with Image.open(io.BytesIO(content)) as image:
            width, height = image.size
    except (UnidentifiedImageError, OSError) as exc:
        raise ImageLoadFailure(f"Plan image could not be decoded: {exc}") from exc
    return PlanImage(
        url=url,
        content=content,
        width=int(width),
        height=int(height),
        format=kind,
        content_type=content_type,
    )


def load_plan_image(
    url: str,
    timeout=(HTTP_CONNECT_TIMEOUT_SEC, HTTP_READ_TIMEOUT_SEC),
) -> PlanImage:
    try:
        response = requests.get(url, allow_redirects=True, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as exc:
        logger.warning("Plan image download failed for %s: %s", url, exc)
        raise ImageLoadFailure(f"Download failed: {exc}") from exc

    content_type = (response.headers.get("Content-Type") or "").lower()
    return decode_plan_image(url, response.content or b"", content_type)


__all__ = ["PlanImage", "decode_plan_image", "load_plan_image", "sniff_raster_format"]
