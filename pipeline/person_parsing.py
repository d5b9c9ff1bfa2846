from __future__ import annotations

import logging
import math
from enum import IntEnum
from typing import Tuple

import numpy as np

from .io_types import BandDescriptor, RasterImage

logger = logging.getLogger(__name__)

SEARCH_RADIUS = 20
FALLBACK_BODY_COLOR: Tuple[int, int, int] = (200, 190, 180)
ERASED_ALPHA = 80
ERASE_DARKEN = 0.9
TORSO_WIDTH_FRAC = 0.45


class PixelClass(IntEnum):
    NEUTRAL = 0
    SKIN = 1
    CLOTHING = 2


# The two rules below are written with bitwise operators so the same code
# works for plain ints and for int32 numpy arrays.
def _skin_rule(r, g, b):
    brightness = (r + g + b) / 3
    return (
        (brightness > 80)
        & (brightness < 240)
        & (r > 95)
        & (g > 40)
        & (b > 20)
        & (r > g)
        & (r > b)
        & (abs(r - g) > 10)
    )


def _clothing_rule(r, g, b):
    brightness = (r + g + b) / 3
    saturation = np.maximum(np.maximum(r, g), b) - np.minimum(np.minimum(r, g), b)
    light = (brightness > 150) & (saturation < 120)
    dark = brightness < 100
    medium = (brightness >= 100) & (brightness <= 150) & (saturation > 15)
    colorful = saturation > 30
    return light | dark | medium | colorful


def classify_pixel(r: int, g: int, b: int) -> PixelClass:
    r, g, b = int(r), int(g), int(b)
    if _skin_rule(r, g, b):
        return PixelClass.SKIN
    if _clothing_rule(r, g, b):
        return PixelClass.CLOTHING
    return PixelClass.NEUTRAL


def _split(rgb: np.ndarray) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    arr = np.asarray(rgb)[..., :3].astype(np.int32)
    return arr[..., 0], arr[..., 1], arr[..., 2]


def skin_mask(rgb: np.ndarray) -> np.ndarray:
    return np.asarray(_skin_rule(*_split(rgb)), dtype=bool)


def classify_pixels(rgb: np.ndarray) -> np.ndarray:
    """Vectorised :func:`classify_pixel`; returns an array of ``PixelClass`` codes."""
    r, g, b = _split(rgb)
    skin = np.asarray(_skin_rule(r, g, b), dtype=bool)
    clothing = np.asarray(_clothing_rule(r, g, b), dtype=bool) & ~skin
    out = np.full(r.shape, PixelClass.NEUTRAL, dtype=np.uint8)
    out[clothing] = PixelClass.CLOTHING
    out[skin] = PixelClass.SKIN
    return out


def estimate_body_color(image: RasterImage, x: int, y: int) -> Tuple[int, int, int]:
    """
    Average colour of the skin pixels within ``SEARCH_RADIUS`` of (x, y).
    Returns ``FALLBACK_BODY_COLOR`` when the neighbourhood holds no skin.
    """
    y0, y1 = max(0, y - SEARCH_RADIUS), min(image.height, y + SEARCH_RADIUS + 1)
    x0, x1 = max(0, x - SEARCH_RADIUS), min(image.width, x + SEARCH_RADIUS + 1)
    if y0 >= y1 or x0 >= x1:
        return FALLBACK_BODY_COLOR
    patch = image.pixels[y0:y1, x0:x1, :3].astype(np.int64)
    skin = skin_mask(patch)
    count = int(skin.sum())
    if count == 0:
        return FALLBACK_BODY_COLOR
    sums = patch[skin].sum(axis=0)
    r, g, b = (int(math.floor(s / count + 0.5)) for s in sums)
    return r, g, b


class _SkinWindow:
    """
    Per-column skin counts and colour sums over a band of rows, kept current
    while the eraser rewrites pixels. Rows enter the band unprocessed and leave
    it in their final state, so every window sum matches the live canvas.
    """

    def __init__(self, rgb: np.ndarray, skin: np.ndarray) -> None:
        self.rgb = rgb
        self.skin = skin
        self.width = rgb.shape[1]
        self.counts = np.zeros(self.width, dtype=np.int64)
        self.sums = np.zeros((self.width, 3), dtype=np.int64)
        self.lo = 0
        self.hi = 0

    def _add_row(self, y: int, sign: int) -> None:
        row_skin = self.skin[y]
        self.counts += sign * row_skin
        self.sums += sign * np.where(row_skin[:, None], self.rgb[y], 0)

    def slide_to(self, y: int) -> None:
        lo = max(0, y - SEARCH_RADIUS)
        hi = min(self.rgb.shape[0], y + SEARCH_RADIUS + 1)
        while self.hi < hi:
            self._add_row(self.hi, 1)
            self.hi += 1
        while self.lo < lo:
            self._add_row(self.lo, -1)
            self.lo += 1

    def mean_at(self, x: int) -> Tuple[int, int, int]:
        x0, x1 = max(0, x - SEARCH_RADIUS), min(self.width, x + SEARCH_RADIUS + 1)
        count = int(self.counts[x0:x1].sum())
        if count == 0:
            return FALLBACK_BODY_COLOR
        sums = self.sums[x0:x1].sum(axis=0)
        r, g, b = (int(math.floor(s / count + 0.5)) for s in sums)
        return r, g, b

    def replace(self, y: int, x: int, color: np.ndarray) -> None:
        if self.skin[y, x]:
            self.counts[x] -= 1
            self.sums[x] -= self.rgb[y, x]
        self.rgb[y, x] = color
        self.skin[y, x] = bool(_skin_rule(*(int(c) for c in color)))
        if self.skin[y, x]:
            self.counts[x] += 1
            self.sums[x] += color


def torso_region(width: int, height: int, band: BandDescriptor) -> np.ndarray:
    rows = np.arange(height)
    cols = np.arange(width)
    row_ok = (rows > band.head_end) & (rows < band.leg_start)
    col_ok = np.abs(cols - width / 2) < (width * TORSO_WIDTH_FRAC) / 2
    return row_ok[:, None] & col_ok[None, :]


def erase_clothing(canvas: RasterImage, band: BandDescriptor) -> None:
    """
    Paint over clothing pixels in the torso region with an estimated skin tone.

    Mutates ``canvas`` in place, scanning rows top to bottom and each row left
    to right. Every estimate reads the canvas as it stands at that point, so
    pixels already erased earlier in the scan feed later estimates. The result
    equals calling :func:`estimate_body_color` pixel by pixel in that order.
    """
    rgb = canvas.pixels[..., :3].astype(np.int64)
    # A pixel's own value is untouched until the scan reaches it, so targets
    # can be classified up front.
    target = torso_region(canvas.width, canvas.height, band) & (classify_pixels(rgb) == PixelClass.CLOTHING)
    ys, xs = np.nonzero(target)
    if ys.size == 0:
        return

    window = _SkinWindow(rgb, skin_mask(rgb))
    for y, x in zip(ys.tolist(), xs.tolist()):
        window.slide_to(y)
        color = np.rint(np.array(window.mean_at(x), dtype=np.float64) * ERASE_DARKEN)
        color = np.clip(color, 0, 255).astype(np.int64)
        window.replace(y, x, color)
        canvas.pixels[y, x, :3] = color.astype(np.uint8)
        canvas.pixels[y, x, 3] = ERASED_ALPHA
    logger.debug("erased %d clothing pixels", int(ys.size))
