from __future__ import annotations

import math
from typing import Sequence, Tuple

import numpy as np

from .io_types import BandDescriptor, RasterImage

WHITE = (255, 255, 255, 255)
BLACK = (0, 0, 0, 255)

ARM_WIDTH_FRAC = 0.15
EDGE_RAMP = 30
SIDE_RAMP = 25

# (stops, opacity removed at each stop)
TOP_STOPS = ((0.0, 0.3, 1.0), (1.0, 0.5, 0.0))
BOTTOM_STOPS = ((0.0, 0.7, 1.0), (0.0, 0.5, 1.0))
LEFT_STOPS = ((0.0, 0.5, 1.0), (1.0, 0.3, 0.0))
RIGHT_STOPS = ((0.0, 0.5, 1.0), (0.0, 0.3, 1.0))


def pixel_span(start: float, stop: float, limit: int) -> Tuple[int, int]:
    """Integer index range of the pixels whose centres fall in [start, stop)."""
    a = min(max(math.ceil(start - 0.5), 0), limit)
    b = min(max(math.ceil(stop - 0.5), 0), limit)
    return a, max(a, b)


def build_region_mask(canvas_w: int, canvas_h: int, band: BandDescriptor) -> RasterImage:
    """
    White keeps garment pixels, black discards them. Blanks the head band,
    both arm columns between arm_start and arm_end, and everything below
    leg_start. Edges are hard; see :func:`soften_edges`.
    """
    mask = RasterImage.blank(canvas_w, canvas_h, WHITE)

    def blank(x0: float, y0: float, x1: float, y1: float) -> None:
        r0, r1 = pixel_span(y0, y1, canvas_h)
        c0, c1 = pixel_span(x0, x1, canvas_w)
        mask.pixels[r0:r1, c0:c1] = BLACK

    arm_w = canvas_w * ARM_WIDTH_FRAC
    blank(0, 0, canvas_w, band.head_end)
    blank(0, band.arm_start, arm_w, band.arm_end)
    blank(canvas_w - arm_w, band.arm_start, canvas_w, band.arm_end)
    blank(0, band.leg_start, canvas_w, canvas_h)
    return mask


def apply_region_mask(layer: RasterImage, mask: RasterImage) -> None:
    if (layer.width, layer.height) != (mask.width, mask.height):
        raise ValueError("mask and layer sizes differ")
    keep = mask.pixels[..., 0].astype(np.float64) / 255.0
    alpha = layer.pixels[..., 3].astype(np.float64) * keep
    layer.pixels[..., 3] = np.clip(np.rint(alpha), 0, 255).astype(np.uint8)


def _ramp(index: np.ndarray, start: float, stop: float, stops: Sequence[Sequence[float]]) -> np.ndarray:
    # Linear gradient from start to stop sampled at pixel centres, clamped at both ends
    t = (index + 0.5 - start) / (stop - start)
    positions, values = stops
    return np.interp(t, positions, values)


def soften_edges(layer: RasterImage, canvas_w: int, canvas_h: int, band: BandDescriptor) -> None:
    """Feather the layer's alpha at the head, leg and arm boundaries (destination-out)."""
    alpha = layer.pixels[..., 3].astype(np.float64)

    top0, top1 = band.head_end - EDGE_RAMP, band.head_end + EDGE_RAMP * 0.5
    r0, r1 = pixel_span(top0, top1, canvas_h)
    if r1 > r0:
        ramp = _ramp(np.arange(r0, r1), top0, top1, TOP_STOPS)
        alpha[r0:r1, :] *= (1.0 - ramp)[:, None]

    bot0, bot1 = band.leg_start - EDGE_RAMP * 0.5, band.leg_start + EDGE_RAMP
    r0, r1 = pixel_span(bot0, bot1, canvas_h)
    if r1 > r0:
        ramp = _ramp(np.arange(r0, r1), bot0, bot1, BOTTOM_STOPS)
        alpha[r0:r1, :] *= (1.0 - ramp)[:, None]

    a0, a1 = pixel_span(band.arm_start, band.arm_end, canvas_h)
    if a1 > a0:
        c0, c1 = pixel_span(0, SIDE_RAMP, canvas_w)
        if c1 > c0:
            ramp = _ramp(np.arange(c0, c1), 0, SIDE_RAMP, LEFT_STOPS)
            alpha[a0:a1, c0:c1] *= (1.0 - ramp)[None, :]
        c0, c1 = pixel_span(canvas_w - SIDE_RAMP, canvas_w, canvas_w)
        if c1 > c0:
            ramp = _ramp(np.arange(c0, c1), canvas_w - SIDE_RAMP, canvas_w, RIGHT_STOPS)
            alpha[a0:a1, c0:c1] *= (1.0 - ramp)[None, :]

    layer.pixels[..., 3] = np.clip(np.rint(alpha), 0, 255).astype(np.uint8)
