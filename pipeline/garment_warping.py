from __future__ import annotations

from typing import Tuple, Union

from .io_types import BandDescriptor, GarmentCategory, GeometryDegenerateError, PlacementPlan

LONG_GARMENT_ASPECT = 1.3

# category -> (scale cap, offset_y, alpha, head_end, arm_start, arm_end, leg_start)
# Vertical values are fractions of the canvas height. The scale cap also
# bounds the drawn width to cap * canvas width.
_TABLE = {
    GarmentCategory.TOP: (0.48, 0.20, 0.95, 0.18, 0.22, 0.58, 0.63),
    GarmentCategory.DRESS: (0.52, 0.17, 0.98, 0.15, 0.19, 0.48, 0.82),
    GarmentCategory.BOTTOM: (0.45, 0.45, 0.88, 0.43, 0.45, 0.70, 0.85),
    GarmentCategory.OUTERWEAR: (0.58, 0.15, 0.88, 0.14, 0.18, 0.70, 0.72),
}

# Default category: fixed scale, picked by garment aspect ratio
_DEFAULT_LONG = (0.55, 0.15, 0.90, 0.14, 0.18, 0.50, 0.78)
_DEFAULT_SHORT = (0.50, 0.18, 0.90, 0.17, 0.20, 0.60, 0.65)


def plan_placement(
    category: Union[GarmentCategory, str, None],
    canvas_w: int,
    canvas_h: int,
    garment_w: int,
    garment_h: int,
) -> PlacementPlan:
    """
    Scale, offsets, opacity and body bands for drawing a garment of the given
    category onto a person canvas. Unknown categories use the default branch.
    """
    if canvas_w <= 0 or canvas_h <= 0:
        raise GeometryDegenerateError(f"person image has no area ({canvas_w}x{canvas_h})")
    if garment_w <= 0 or garment_h <= 0:
        raise GeometryDegenerateError(f"garment image has no area ({garment_w}x{garment_h})")

    cat = GarmentCategory.parse(category)
    if cat is GarmentCategory.DEFAULT:
        is_long = garment_h / garment_w > LONG_GARMENT_ASPECT
        scale, off_y, alpha, head, arm_s, arm_e, leg = _DEFAULT_LONG if is_long else _DEFAULT_SHORT
    else:
        cap, off_y, alpha, head, arm_s, arm_e, leg = _TABLE[cat]
        scale = min(cap, canvas_w * cap / garment_w)

    return PlacementPlan(
        scale=scale,
        offset_x=0.0,
        offset_y=canvas_h * off_y,
        alpha=alpha,
        band=BandDescriptor(
            head_end=canvas_h * head,
            arm_start=canvas_h * arm_s,
            arm_end=canvas_h * arm_e,
            leg_start=canvas_h * leg,
        ),
    )


def garment_rect(plan: PlacementPlan, canvas_w: int, garment_w: int, garment_h: int) -> Tuple[float, float, float, float]:
    width = garment_w * plan.scale
    height = garment_h * plan.scale
    x = (canvas_w - width) / 2 + plan.offset_x
    return x, plan.offset_y, width, height
