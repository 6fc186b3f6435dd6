"""Downscales images and rendered PDF pages into compact transport payloads.

Output is a JPEG whose longer edge never exceeds ``max_dimension``. Images are
never upscaled and keep their aspect ratio. For identical input bytes and
parameters the output bytes are identical.
"""

import base64
import io
from dataclasses import dataclass

import pymupdf
from PIL import Image, ImageOps, UnidentifiedImageError

from capture.imaging.exceptions import ImageNormalizationError


@dataclass(frozen=True)
class NormalizedImage:
    """Encoded image ready to be sent to the recognition service."""

    data: bytes
    mime_type: str
    width: int
    height: int

    def to_data_url(self) -> str:
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"


class ImageNormalizer:
    """Bounds image size so payloads stay under the service limit."""

    def __init__(
        self,
        *,
        max_dimension: int = 2000,
        quality: int = 85,
        render_scale: float = 1.5,
    ) -> None:
        if max_dimension < 1:
            raise ValueError("max_dimension must be positive")
        if not 1 <= quality <= 95:
            raise ValueError("quality must be between 1 and 95")
        self._max_dimension = max_dimension
        self._quality = quality
        self._render_scale = render_scale

    @property
    def max_dimension(self) -> int:
        return self._max_dimension

    def normalize(self, image_bytes: bytes) -> NormalizedImage:
        """Decode, downscale and re-encode an image file.

        Raises:
            ImageNormalizationError: if the bytes are not a decodable image.
        """
        try:
            with Image.open(io.BytesIO(image_bytes)) as image:
                image.load()
                return self.normalize_image(image)
        except (UnidentifiedImageError, OSError) as exc:
            raise ImageNormalizationError(f"Cannot decode image: {exc}") from exc

    def normalize_image(self, image: Image.Image) -> NormalizedImage:
        prepared = self._to_rgb(ImageOps.exif_transpose(image) or image)
        width, height = self._bounded_size(prepared.width, prepared.height)
        if (width, height) != prepared.size:
            prepared = prepared.resize((width, height), Image.Resampling.LANCZOS)

        buf = io.BytesIO()
        prepared.save(buf, format="JPEG", quality=self._quality, optimize=True)
        return NormalizedImage(
            data=buf.getvalue(),
            mime_type="image/jpeg",
            width=prepared.width,
            height=prepared.height,
        )

    def render_pdf_page(self, pdf_bytes: bytes, page_number: int) -> NormalizedImage:
        """Rasterize one 1-based PDF page and normalize the result.

        Raises:
            ImageNormalizationError: if the PDF or page cannot be rendered.
        """
        try:
            with pymupdf.open(stream=pdf_bytes, filetype="pdf") as doc:  # type: ignore[no-untyped-call]
                page = doc.load_page(page_number - 1)
                scale = self.page_scale(page.rect.width, page.rect.height)
                pixmap = page.get_pixmap(matrix=pymupdf.Matrix(scale, scale), alpha=False)
                image = Image.frombytes("RGB", (pixmap.width, pixmap.height), pixmap.samples)
        except Exception as exc:
            raise ImageNormalizationError(
                f"Cannot render page {page_number}: {exc}"
            ) from exc
        return self.normalize_image(image)

    def page_scale(self, page_width: float, page_height: float) -> float:
        """Render scale for a page: the fixed scale, reduced to fit ``max_dimension``."""
        longest = max(page_width, page_height)
        if longest <= 0:
            return self._render_scale
        return min(self._render_scale, self._max_dimension / longest)

    @staticmethod
    def convert_tiff(tiff_bytes: bytes) -> bytes:
        """Decode the first frame of a (possibly multi-page) TIFF into PNG bytes."""
        try:
            with Image.open(io.BytesIO(tiff_bytes)) as image:
                image.seek(0)
                frame = image.convert("RGB")
        except (UnidentifiedImageError, OSError, EOFError) as exc:
            raise ImageNormalizationError(f"Failed to decode TIFF image: {exc}") from exc
        buf = io.BytesIO()
        frame.save(buf, format="PNG")
        return buf.getvalue()

    def _bounded_size(self, width: int, height: int) -> tuple[int, int]:
        longest = max(width, height)
        if longest <= self._max_dimension:
            return width, height
        ratio = self._max_dimension / longest
        return (
            min(self._max_dimension, max(1, round(width * ratio))),
            min(self._max_dimension, max(1, round(height * ratio))),
        )

    @staticmethod
    def _to_rgb(image: Image.Image) -> Image.Image:
        if image.mode in ("RGBA", "LA") or (image.mode == "P" and "transparency" in image.info):
            rgba = image.convert("RGBA")
            background = Image.new("RGB", rgba.size, (255, 255, 255))
            background.paste(rgba, mask=rgba.getchannel("A"))
            return background
        if image.mode != "RGB":
            return image.convert("RGB")
        return image
