"""Output size presets and print quality assessment.

Wallpaper presets are exact device resolutions.  Print sizes are physical
(inches) and turn into pixels only once a DPI and orientation are chosen.

The print quality assessment answers "how sharp will this source look at
this size?".  Prints are always rendered with ``contain`` (no crop), so the
limiting factor is the *smaller* scale needed to fit the source inside the
target.  Any upscale divides the nominal DPI::

    needed  = min(target_w / src_w, target_h / src_h)
    upscale = max(needed, 1)
    effective_dpi = round(dpi / upscale)
"""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass
from typing import Literal

Orientation = Literal["portrait", "landscape"]


@dataclass(frozen=True)
class WallpaperPreset:
    label: str
    width: int
    height: int

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class PrintSize:
    """A physical print size in inches (portrait orientation)."""

    label: str
    width_in: float
    height_in: float

    def to_dict(self) -> dict:
        return asdict(self)


WALLPAPER_PRESETS: tuple[WallpaperPreset, ...] = (
    WallpaperPreset("Phone (1080×1920)", 1080, 1920),
    WallpaperPreset("iPhone (1170×2532)", 1170, 2532),
    WallpaperPreset("Desktop (1920×1080)", 1920, 1080),
    WallpaperPreset("Desktop (2560×1440)", 2560, 1440),
    WallpaperPreset("Ultrawide (3440×1440)", 3440, 1440),
)

PRINT_SIZES: tuple[PrintSize, ...] = (
    PrintSize("8×10 in", 8, 10),
    PrintSize("11×14 in", 11, 14),
    PrintSize("12×18 in (Poster)", 12, 18),
    PrintSize("16×20 in", 16, 20),
    PrintSize("18×24 in", 18, 24),
    PrintSize("24×36 in (Large Poster)", 24, 36),
)

PRINT_DPIS: tuple[int, ...] = (200, 300)
DEFAULT_PRINT_SIZE_INDEX = 2
DEFAULT_PRINT_DPI = 300
PREVIEW_MAX_EDGE = 1600

# (minimum effective DPI, label), checked top to bottom.
QUALITY_THRESHOLDS: tuple[tuple[int, str], ...] = (
    (300, "Excellent"),
    (240, "Great"),
    (200, "Good"),
    (150, "Fair"),
)


def px(inches: float, dpi: int) -> int:
    return round(inches * dpi)


def megapixels(width: int, height: int) -> float:
    """Pixel count in megapixels, rounded to one decimal."""
    return round(width * height / 1_000_000, 1)


@dataclass(frozen=True)
class PrintTarget:
    width: int
    height: int
    width_in: float
    height_in: float


def print_target(size: PrintSize, dpi: int, orientation: Orientation = "portrait") -> PrintTarget:
    """Convert a physical size to pixels, swapping sides for landscape."""
    w, h = px(size.width_in, dpi), px(size.height_in, dpi)
    w_in, h_in = size.width_in, size.height_in
    if orientation == "landscape":
        w, h = h, w
        w_in, h_in = h_in, w_in
    return PrintTarget(width=w, height=h, width_in=w_in, height_in=h_in)


def preview_dims(width: int, height: int, max_edge: int = PREVIEW_MAX_EDGE) -> tuple[int, int]:
    """Shrink ``width`` x ``height`` so the long edge is at most ``max_edge``."""
    long_edge = max(width, height)
    scale = max_edge / long_edge if long_edge > max_edge else 1
    return round(width * scale), round(height * scale)


def quality_label(effective_dpi: int) -> str:
    for threshold, label in QUALITY_THRESHOLDS:
        if effective_dpi >= threshold:
            return label
    return "Low"


@dataclass(frozen=True)
class PrintQuality:
    """How a source image holds up at a given print target.

    Attributes:
        source_megapixels: Source size in megapixels.
        needed_scale: Scale factor that fits the source inside the target.
        upscale: ``needed_scale`` floored at 1 (downscaling costs nothing).
        effective_dpi: Nominal DPI divided by the upscale.
        label: Excellent / Great / Good / Fair / Low.
    """

    source_megapixels: float
    needed_scale: float
    upscale: float
    effective_dpi: int
    label: str

    def to_dict(self) -> dict:
        return asdict(self)


def assess_print_quality(
    src_width: int,
    src_height: int,
    target_width: int,
    target_height: int,
    dpi: int,
) -> PrintQuality:
    """Estimate print sharpness for a ``contain`` render.

    Raises:
        ValueError: If any dimension or the DPI is not positive.
    """
    if min(src_width, src_height, target_width, target_height, dpi) <= 0:
        raise ValueError("Dimensions and DPI must be positive")

    needed = min(target_width / src_width, target_height / src_height)
    upscale = max(needed, 1.0)
    effective = round(dpi / upscale)
    return PrintQuality(
        source_megapixels=megapixels(src_width, src_height),
        needed_scale=needed,
        upscale=upscale,
        effective_dpi=effective,
        label=quality_label(effective),
    )


def print_label(size_label: str, dpi: int, orientation: Orientation) -> str:
    """Build the filename label for a print download.

    Example:
        ``print_label("12×18 in (Poster)", 300, "portrait")`` returns
        ``"12×18inPoster_300dpi_portrait_nocrop"``.
    """
    compact = re.sub(r"\s+", "", size_label)
    compact = re.sub(r"[^\w×x-]", "", compact)
    return f"{compact}_{dpi}dpi_{orientation}_nocrop"
