"""
Image format detection, PNG normalization and logo/placeholder validation
"""

import io
import logging
from typing import Optional, Tuple

from PIL import Image, ImageOps, UnidentifiedImageError

from .models import ProcessedImage
from .rules import ImageRules, load_image_rules

logger = logging.getLogger(__name__)

SVG_PROBE_BYTES = 1024
GENERIC_CONTENT_TYPE = "application/octet-stream"

# DecompressionBombError: declared size over twice Image.MAX_IMAGE_PIXELS
DECODE_ERRORS = (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError)


def is_svg(buffer: bytes) -> bool:
    """Inspect the first KiB for an SVG document"""
    head = buffer[:SVG_PROBE_BYTES].decode("utf-8", errors="ignore").lstrip("\ufeff \t\r\n").lower()
    if "<svg" in head:
        return True
    return head.startswith("<?xml") and "svg" in head


def get_dimensions(buffer: bytes) -> Optional[Tuple[int, int]]:
    try:
        with Image.open(io.BytesIO(buffer)) as image:
            return image.width, image.height
    except DECODE_ERRORS:
        return None


class ImageProcessor:
    def __init__(self,
                 rules: Optional[ImageRules] = None,
                 min_dimension: int = 16,
                 min_area: int = 1024):
        self.rules = rules or load_image_rules()
        self.min_dimension = min_dimension
        self.min_area = min_area

    def process(self, buffer: bytes) -> ProcessedImage:
        """Normalize to PNG; SVG passes through untouched.

        Never raises: an undecodable buffer comes back as-is with a generic
        content type.
        """
        if is_svg(buffer):
            return ProcessedImage(buffer=buffer, is_svg=True, content_type="image/svg+xml")

        try:
            with Image.open(io.BytesIO(buffer)) as image:
                image = ImageOps.exif_transpose(image)
                return ProcessedImage(buffer=self._encode_png(image), is_svg=False, content_type="image/png")
        except DECODE_ERRORS as e:
            logger.debug(f"PNG conversion failed, trying RGBA re-encode: {e}")

        try:
            with Image.open(io.BytesIO(buffer)) as image:
                return ProcessedImage(buffer=self._encode_png(image.convert("RGBA")),
                                      is_svg=False, content_type="image/png")
        except DECODE_ERRORS as e:
            logger.warning(f"Could not process image ({len(buffer)} bytes), keeping original: {e}")
            return ProcessedImage(buffer=buffer, is_svg=False, content_type=GENERIC_CONTENT_TYPE)

    def _encode_png(self, image: Image.Image) -> bytes:
        if image.mode not in ("RGB", "RGBA", "L", "LA", "P", "1"):
            image = image.convert("RGBA")
        out = io.BytesIO()
        image.save(out, "PNG", optimize=True)
        return out.getvalue()

    def is_placeholder_url(self, url: Optional[str]) -> bool:
        return self.rules.is_placeholder_url(url)

    def validate(self, buffer: bytes, source_url: Optional[str] = None) -> bool:
        """Reject placeholder sources and images too small to be a real logo"""
        if self.is_placeholder_url(source_url):
            logger.debug(f"Rejected generic placeholder source: {source_url}")
            return False

        if is_svg(buffer):
            return True

        dimensions = get_dimensions(buffer)
        if dimensions is None:
            return False

        width, height = dimensions
        if width < self.min_dimension or height < self.min_dimension:
            return False
        return width * height >= self.min_area
