"""Raster fitting and encoding for wallpapers and print exports.

This module provides :class:`ImageRenderer`, which turns downloaded source
bytes into a JPEG of an exact target size, plus the small pure functions it
is built from.

Fit Modes
---------
``cover``
    Scale until both sides are covered, then crop the overflow.  The crop
    keeps the most detailed region: the lower-entropy edge is trimmed
    repeatedly until the target aspect ratio is reached.
``contain``
    Scale until the whole image fits, then centre it on a solid matte
    (black for wallpapers, white for prints).
``blur``
    Blur-fill: a Gaussian-blurred ``cover`` render fills the frame and the
    ``contain`` render is pasted over it.  No cropping, no letterbox bars.

Safety Limits
-------------
- Sources larger than ``limit_input_pixels`` are rejected with
  :class:`ImageTooLargeError` before any pixel data is decoded, both when
  rendering and when :class:`MetadataProbe` reads a streamed header.
- Requested sides are clamped (``clamp_int``) to the configured bounds, so
  a request for a 100000 px wallpaper yields a 4000 px one instead.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from io import BytesIO

from PIL import Image, ImageFilter, UnidentifiedImageError

from astrofit.core.config import AstrofitConfig

logger = logging.getLogger(__name__)

# Pillow's own bomb guard is lower than the cap we accept; the renderer
# and MetadataProbe enforce the configured limit explicitly.
Image.MAX_IMAGE_PIXELS = None

BLACK = (0, 0, 0)
WHITE = (255, 255, 255)

# Number of strips the overflow is split into by the entropy crop.
_ENTROPY_STEPS = 8

# Streamed bodies without a parseable header in this many bytes are rejected.
MAX_HEADER_BYTES = 16 * 1024 * 1024


class RenderError(Exception):
    """Base class for failures while decoding or rendering an image."""


class ImageDecodeError(RenderError):
    """The source bytes are not an image Pillow can read."""


class ImageTooLargeError(RenderError):
    """The source image exceeds the configured pixel limit."""


class FitMode(str, Enum):
    COVER = "cover"
    CONTAIN = "contain"
    BLUR = "blur"


def parse_wallpaper_mode(value: str | None) -> FitMode:
    """Parse a wallpaper mode; anything unknown means blur-fill."""
    try:
        return FitMode(value)
    except ValueError:
        return FitMode.BLUR


def parse_print_mode(value: str | None) -> FitMode:
    """Parse a print mode; only ``contain`` opts out of cropping."""
    return FitMode.CONTAIN if value == FitMode.CONTAIN.value else FitMode.COVER


def clamp_int(n: float, lo: int, hi: int) -> int:
    """Floor ``n`` and clamp it into ``[lo, hi]``."""
    return max(lo, min(hi, math.floor(n)))


@dataclass(frozen=True)
class ImageMeta:
    width: int
    height: int
    format: str | None

    def to_dict(self) -> dict:
        return {"width": self.width, "height": self.height, "format": self.format}


def _meta_from_image(img: Image.Image) -> ImageMeta:
    fmt = img.format.lower() if img.format else None
    return ImageMeta(width=img.width, height=img.height, format=fmt)


def probe_metadata(data: bytes) -> ImageMeta:
    """Read dimensions and format from image bytes without decoding pixels.

    Raises:
        ImageDecodeError: If the bytes are not a recognised image.
    """
    try:
        with Image.open(BytesIO(data)) as img:
            return _meta_from_image(img)
    except (UnidentifiedImageError, OSError) as exc:
        raise ImageDecodeError(str(exc)) from exc


class MetadataProbe:
    """Incremental header reader for streamed image bodies.

    Feed chunks as they arrive; :meth:`feed` returns the metadata as soon as
    ``Image.open`` can parse the buffered prefix, so the caller can stop
    downloading.  ``Image.open`` is lazy and never allocates the raster, and
    a parse is retried only after the buffer has doubled.

    Example::

        probe = MetadataProbe(max_pixels=config.limit_input_pixels)
        async for chunk in client.iter_bytes(url):
            meta = probe.feed(chunk)
            if meta:
                break
    """

    def __init__(
        self,
        max_pixels: int | None = None,
        max_header_bytes: int = MAX_HEADER_BYTES,
    ) -> None:
        self._buffer = bytearray()
        self._max_pixels = max_pixels
        self._max_header_bytes = max_header_bytes
        self._next_attempt = 0
        self._meta: ImageMeta | None = None

    def _try_open(self) -> ImageMeta | None:
        try:
            with Image.open(BytesIO(bytes(self._buffer))) as img:
                meta = _meta_from_image(img)
        except (OSError, EOFError, ValueError):
            return None
        # A cut-off TIFF directory can open with its size tags missing.
        if not meta.width or not meta.height:
            return None
        if self._max_pixels is not None and meta.width * meta.height > self._max_pixels:
            raise ImageTooLargeError(
                f"Source image too large ({meta.width}x{meta.height}, limit "
                f"{self._max_pixels} pixels)"
            )
        return meta

    def feed(self, chunk: bytes) -> ImageMeta | None:
        """Buffer ``chunk`` and return the metadata once the header is complete.

        Raises:
            ImageTooLargeError: If the header reports more than ``max_pixels``.
            ImageDecodeError: If no header was found within ``max_header_bytes``.
        """
        if self._meta is not None:
            return self._meta
        self._buffer += chunk
        at_cap = len(self._buffer) >= self._max_header_bytes
        if at_cap or len(self._buffer) >= self._next_attempt:
            self._meta = self._try_open()
            self._next_attempt = 2 * len(self._buffer)
        if self._meta is None and at_cap:
            raise ImageDecodeError(f"No image header in the first {len(self._buffer)} bytes")
        return self._meta

    def finish(self) -> ImageMeta:
        """Return the metadata once the stream has ended.

        Raises:
            ImageDecodeError: If the whole body did not yield a header.
        """
        if self._meta is None:
            self._meta = self._try_open()
        if self._meta is None:
            raise ImageDecodeError("Stream ended before an image header was found")
        return self._meta


def _histogram_entropy(img: Image.Image) -> float:
    """Shannon entropy (bits) of a greyscale image's histogram."""
    histogram = img.histogram()
    total = sum(histogram)
    if total == 0:
        return 0.0
    entropy = 0.0
    for count in histogram:
        if count:
            p = count / total
            entropy -= p * math.log2(p)
    return entropy


def entropy_window(img: Image.Image, width: int, height: int) -> tuple[int, int, int, int]:
    """Find the ``width`` x ``height`` crop box that keeps the busiest region.

    ``img`` must already be at least ``width`` x ``height``.  Along each axis
    with overflow, the edge strip with lower entropy is trimmed until the
    window fits.

    Returns:
        Crop box ``(left, top, right, bottom)``.
    """
    grey = img.convert("L")
    left, top, right, bottom = 0, 0, img.width, img.height

    excess = (right - left) - width
    step = max(1, math.ceil(excess / _ENTROPY_STEPS)) if excess > 0 else 0
    while excess > 0:
        cut = min(step, excess)
        head = _histogram_entropy(grey.crop((left, top, left + cut, bottom)))
        tail = _histogram_entropy(grey.crop((right - cut, top, right, bottom)))
        if head < tail:
            left += cut
        else:
            right -= cut
        excess -= cut

    excess = (bottom - top) - height
    step = max(1, math.ceil(excess / _ENTROPY_STEPS)) if excess > 0 else 0
    while excess > 0:
        cut = min(step, excess)
        head = _histogram_entropy(grey.crop((left, top, right, top + cut)))
        tail = _histogram_entropy(grey.crop((left, bottom - cut, right, bottom)))
        if head < tail:
            top += cut
        else:
            bottom -= cut
        excess -= cut

    return left, top, right, bottom


def cover(img: Image.Image, width: int, height: int, *, entropy: bool = True) -> Image.Image:
    """Scale to cover ``width`` x ``height`` and crop the overflow.

    Args:
        img: Source image.
        width: Target width.
        height: Target height.
        entropy: Crop by entropy when ``True``, otherwise around the centre.
    """
    scale = max(width / img.width, height / img.height)
    scaled_w = max(width, round(img.width * scale))
    scaled_h = max(height, round(img.height * scale))
    scaled = img.resize((scaled_w, scaled_h), Image.Resampling.LANCZOS)

    if entropy:
        box = entropy_window(scaled, width, height)
    else:
        left = (scaled_w - width) // 2
        top = (scaled_h - height) // 2
        box = (left, top, left + width, top + height)
    return scaled.crop(box)


def fit_inside(img: Image.Image, width: int, height: int) -> Image.Image:
    """Scale ``img`` to the largest size that fits inside the frame."""
    scale = min(width / img.width, height / img.height)
    size = (
        min(width, max(1, round(img.width * scale))),
        min(height, max(1, round(img.height * scale))),
    )
    return img.resize(size, Image.Resampling.LANCZOS)


def _paste_centered(canvas: Image.Image, fg: Image.Image) -> Image.Image:
    offset = ((canvas.width - fg.width) // 2, (canvas.height - fg.height) // 2)
    mask = fg if fg.mode == "RGBA" else None
    canvas.paste(fg, offset, mask)
    return canvas


def contain(
    img: Image.Image,
    width: int,
    height: int,
    background: tuple[int, int, int] = BLACK,
) -> Image.Image:
    """Letterbox ``img`` into ``width`` x ``height`` on a solid matte."""
    canvas = Image.new("RGB", (width, height), background)
    return _paste_centered(canvas, fit_inside(img, width, height))


def blur_fill(img: Image.Image, width: int, height: int, radius: float = 35.0) -> Image.Image:
    """Contain ``img`` over a blurred, cropped copy of itself."""
    background = cover(img, width, height, entropy=False).convert("RGB")
    if radius > 0:
        background = background.filter(ImageFilter.GaussianBlur(radius))
    return _paste_centered(background, fit_inside(img, width, height))


def _flatten(img: Image.Image, background: tuple[int, int, int]) -> Image.Image:
    """Drop transparency onto ``background`` so the result can be a JPEG."""
    if img.mode == "RGB":
        return img
    rgba = img.convert("RGBA")
    canvas = Image.new("RGB", rgba.size, background)
    canvas.paste(rgba, (0, 0), rgba)
    return canvas


def _encode_jpeg(img: Image.Image, quality: int, *, subsampling: int | None = None) -> bytes:
    buffer = BytesIO()
    options: dict = {"quality": quality}
    if subsampling is not None:
        options["subsampling"] = subsampling
    img.convert("RGB").save(buffer, format="JPEG", **options)
    return buffer.getvalue()


class ImageRenderer:
    """Renders wallpapers and print exports from source image bytes.

    Attributes:
        _config (AstrofitConfig):
            Application configuration - pixel limit, clamp bounds and blur
            radius.
    """

    def __init__(self, config: AstrofitConfig) -> None:
        self._config = config

    def _open(self, data: bytes) -> Image.Image:
        """Decode ``data`` into an RGB or RGBA image.

        Raises:
            ImageTooLargeError: If the source exceeds ``limit_input_pixels``.
            ImageDecodeError: If the bytes cannot be decoded.
        """
        try:
            img = Image.open(BytesIO(data))
        except (UnidentifiedImageError, OSError) as exc:
            raise ImageDecodeError(f"Unsupported image data: {exc}") from exc

        pixels = img.width * img.height
        if pixels > self._config.limit_input_pixels:
            img.close()
            raise ImageTooLargeError(
                f"Input image exceeds pixel limit ({img.width}x{img.height} > "
                f"{self._config.limit_input_pixels} pixels)"
            )

        try:
            img.load()
        except OSError as exc:
            raise ImageDecodeError(f"Corrupt image data: {exc}") from exc

        has_alpha = img.mode in ("RGBA", "LA", "PA") or "transparency" in img.info
        return img.convert("RGBA" if has_alpha else "RGB")

    def render_wallpaper(self, data: bytes, width: float, height: float, mode: FitMode) -> bytes:
        """Render a device wallpaper.

        Args:
            data: Source image bytes (JPEG, PNG or TIFF).
            width: Requested width; clamped to the wallpaper bounds.
            height: Requested height; clamped to the wallpaper bounds.
            mode: Fit mode.

        Returns:
            JPEG bytes (quality 90).
        """
        w = clamp_int(width, self._config.wallpaper_min_dim, self._config.wallpaper_max_dim)
        h = clamp_int(height, self._config.wallpaper_min_dim, self._config.wallpaper_max_dim)
        img = self._open(data)

        logger.info(
            "Rendering %dx%d wallpaper (mode=%s) from %dx%d source.",
            w,
            h,
            mode.value,
            img.width,
            img.height,
        )

        if mode == FitMode.COVER:
            out = _flatten(cover(img, w, h), BLACK)
        elif mode == FitMode.CONTAIN:
            out = contain(img, w, h, BLACK)
        else:
            out = blur_fill(img, w, h, self._config.blur_radius)

        return _encode_jpeg(out, 90)

    def render_print(self, data: bytes, width: float, height: float, mode: FitMode) -> bytes:
        """Render a print-ready export.

        ``contain`` adds a white matte; anything else crops (``cover``).
        Output is JPEG quality 95 with 4:4:4 chroma so fine detail and text
        in captions survive.
        """
        w = clamp_int(width, self._config.print_min_dim, self._config.print_max_dim)
        h = clamp_int(height, self._config.print_min_dim, self._config.print_max_dim)
        img = self._open(data)

        logger.info(
            "Rendering %dx%d print (mode=%s) from %dx%d source.",
            w,
            h,
            mode.value,
            img.width,
            img.height,
        )

        if mode == FitMode.CONTAIN:
            out = contain(img, w, h, WHITE)
        else:
            out = _flatten(cover(img, w, h), WHITE)

        return _encode_jpeg(out, 95, subsampling=0)
