"""
forensics.utils — Shared value types and image helpers for the forgery
worker.

Provides:

* **Value types** — ``Point``, ``Region`` and ``DetectionOutcome``, the
  contract between a detector and the annotator.
* **Decoding** — ``decode_base64``, ``load_image`` (format auto-detected by
  Pillow).
* **Encoding** — ``encode_png_b64`` (lossless), ``pil_jpeg_roundtrip``.
* **Drawing** — ``draw_hollow_rect``.

Nothing in this module performs network I/O.
"""

from __future__ import annotations

import base64
import binascii
import io
from dataclasses import dataclass, field
from typing import Tuple

import cv2
import numpy as np
from PIL import Image

# Opaque red in RGBA channel order.
HIGHLIGHT_RGBA: Tuple[int, int, int, int] = (255, 0, 0, 255)


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Point:
    """A pixel coordinate, ``x`` along columns and ``y`` along rows."""

    x: int
    y: int


@dataclass(frozen=True)
class Region:
    """An axis-aligned rectangle flagged by a detector.

    Both corners are inclusive.  ``start`` must not exceed ``end`` on
    either axis.
    """

    start: Point
    end: Point

    def __post_init__(self) -> None:
        if self.start.x < 0 or self.start.y < 0:
            raise ValueError(f"Region has negative coordinates: {self.describe()}")
        if self.start.x > self.end.x or self.start.y > self.end.y:
            raise ValueError(f"Region start exceeds end: {self.describe()}")

    @classmethod
    def from_bounds(cls, x0: int, y0: int, x1: int, y1: int) -> "Region":
        return cls(Point(int(x0), int(y0)), Point(int(x1), int(y1)))

    def describe(self) -> str:
        return (
            f"from ({self.start.x}, {self.start.y}) "
            f"to ({self.end.x}, {self.end.y})"
        )


@dataclass(frozen=True)
class DetectionOutcome:
    """Everything a detector reports about one image.

    Attributes
    ----------
    forged_regions : tuple of Region
        Areas flagged as directly manipulated.
    missing_grid_regions : tuple of Region
        Areas flagged by the secondary pass, where the expected
        compression grid is absent.
    is_cropped : bool
        Whether the image appears cropped from a larger original.
    """

    forged_regions: Tuple[Region, ...] = field(default_factory=tuple)
    missing_grid_regions: Tuple[Region, ...] = field(default_factory=tuple)
    is_cropped: bool = False

    def all_regions(self) -> Tuple[Region, ...]:
        """Forged regions first, then missing-grid regions, each in order."""
        return tuple(self.forged_regions) + tuple(self.missing_grid_regions)


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------

def decode_base64(encoded: str) -> bytes:
    """Decode standard, padded base64.

    Raises
    ------
    ValueError
        If *encoded* contains characters outside the base64 alphabet or
        has bad padding.
    """
    try:
        return base64.b64decode(encoded, validate=True)
    except (binascii.Error, TypeError) as exc:
        raise ValueError(f"invalid base64 payload: {exc}") from exc


def load_image(data: bytes) -> Image.Image:
    """Load raster bytes into a fully decoded PIL image.

    Raises
    ------
    ValueError
        If the bytes are not a format Pillow recognises, are truncated, or
        are corrupt inside the image data.
    """
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except Exception as exc:
        # plugins report corrupt chunks as SyntaxError, EOFError, struct.error...
        raise ValueError(f"failed to load image: {exc}") from exc
    return img


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------

def encode_png_b64(rgba: np.ndarray) -> str:
    """Encode an ``(H, W, 4)`` ``uint8`` array as base64 PNG text."""
    buf = io.BytesIO()
    Image.fromarray(np.ascontiguousarray(rgba, dtype=np.uint8)).save(buf, format="PNG")
    return base64.b64encode(buf.getvalue()).decode("ascii")


def pil_jpeg_roundtrip(rgb: np.ndarray, quality: int) -> np.ndarray:
    """Compress an RGB array to JPEG in memory and decode it back.

    Parameters
    ----------
    rgb : np.ndarray
        Image array of shape ``(H, W, 3)``, dtype ``uint8``.
    quality : int
        JPEG quality level (1-100).

    Returns
    -------
    np.ndarray
        Decoded image of shape ``(H, W, 3)``, dtype ``uint8``.
    """
    buf = io.BytesIO()
    Image.fromarray(rgb.astype(np.uint8)).save(buf, format="JPEG", quality=int(quality))
    buf.seek(0)
    return np.array(Image.open(buf).convert("RGB"), dtype=np.uint8)


# ---------------------------------------------------------------------------
# Drawing
# ---------------------------------------------------------------------------

def draw_hollow_rect(
    canvas: np.ndarray,
    region: Region,
    color: Tuple[int, int, int, int] = HIGHLIGHT_RGBA,
) -> None:
    """Draw a one-pixel rectangle outline in place.

    Every pixel on the top and bottom rows and on the left and right
    columns of *region* (corners inclusive) is set to *color*; interior
    pixels are left alone.

    Raises
    ------
    ValueError
        If the region does not lie entirely inside *canvas*.
    """
    h, w = canvas.shape[:2]
    if region.end.x >= w or region.end.y >= h:
        raise ValueError(
            f"Region {region.describe()} is outside the {w}x{h} image"
        )
    cv2.rectangle(
        canvas,
        (region.start.x, region.start.y),
        (region.end.x, region.end.y),
        color,
        thickness=1,
        lineType=cv2.LINE_8,
    )
