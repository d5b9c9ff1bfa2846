from __future__ import annotations

import logging
import math
from enum import Enum
from typing import Optional, Union

import numpy as np
from PIL import Image

from .garment_warping import garment_rect, plan_placement
from .io_types import (
    GarmentCategory,
    GeometryDegenerateError,
    ImageDecodeError,
    PlacementPlan,
    RasterImage,
)
from .matting import apply_region_mask, build_region_mask, pixel_span, soften_edges
from .person_parsing import erase_clothing

logger = logging.getLogger(__name__)

SHADOW_OFFSET = 5
SHADOW_OPACITY = 0.05

ImageInput = Union[bytes, bytearray, RasterImage]


class CompositorState(str, Enum):
    IDLE = "idle"
    IMAGES_LOADED = "images_loaded"
    TORSO_ERASED = "torso_erased"
    GARMENT_DRAWN = "garment_drawn"
    MASKED = "masked"
    SOFTENED = "softened"
    BLENDED = "blended"
    DONE = "done"


def _round(v: float) -> int:
    return int(math.floor(v + 0.5))


def _load(obj: ImageInput, what: str) -> RasterImage:
    if isinstance(obj, RasterImage):
        return obj
    if isinstance(obj, (bytes, bytearray, memoryview)):
        return RasterImage.decode(bytes(obj))
    raise ImageDecodeError(f"{what}: unsupported input type {type(obj).__name__}")


class Compositor:
    """
    Rule-based try-on used when no AI backend is available.
    - Erases the original clothing in the torso region of the person photo.
    - Draws the scaled garment on its own layer, masks off head/arms/legs and
      feathers the mask edges.
    - Blends the layer over the person and adds a faint drop shadow.
    Instances are single use; every call works on private buffers.
    """

    def __init__(self) -> None:
        self.state = CompositorState.IDLE
        self.plan: Optional[PlacementPlan] = None

    def _advance(self, state: CompositorState) -> None:
        self.state = state
        logger.debug("compositor state -> %s", state.value)

    def run(self, person: ImageInput, garment: ImageInput, category: Union[GarmentCategory, str, None]) -> RasterImage:
        if self.state is not CompositorState.IDLE:
            raise RuntimeError("Compositor instances are single use")

        person_img = _load(person, "person image")
        garment_img = _load(garment, "garment image")
        for name, im in (("person", person_img), ("garment", garment_img)):
            if im.width <= 0 or im.height <= 0:
                raise GeometryDegenerateError(f"{name} image has no area ({im.width}x{im.height})")
        self._advance(CompositorState.IMAGES_LOADED)

        canvas = person_img.copy()
        w, h = canvas.width, canvas.height
        plan = plan_placement(category, w, h, garment_img.width, garment_img.height)
        self.plan = plan
        # Erase before drawing: the garment layer goes on top of the cleaned torso
        erase_clothing(canvas, plan.band)
        self._advance(CompositorState.TORSO_ERASED)

        x, y, gw, gh = garment_rect(plan, w, garment_img.width, garment_img.height)
        layer = self._draw_garment(garment_img, w, h, x, y, gw, gh)
        self._advance(CompositorState.GARMENT_DRAWN)

        apply_region_mask(layer, build_region_mask(w, h, plan.band))
        self._advance(CompositorState.MASKED)

        soften_edges(layer, w, h, plan.band)
        self._advance(CompositorState.SOFTENED)

        out = self._blend(canvas, layer, plan.alpha)
        self._advance(CompositorState.BLENDED)

        out = self._shadow(out, x, y, gw, gh)
        self._advance(CompositorState.DONE)
        return out

    @staticmethod
    def _draw_garment(garment: RasterImage, w: int, h: int, x: float, y: float, gw: float, gh: float) -> RasterImage:
        size = (max(1, _round(gw)), max(1, _round(gh)))
        scaled = garment.to_pil().resize(size, Image.LANCZOS)
        layer = Image.new("RGBA", (w, h), (0, 0, 0, 0))
        # paste copies RGBA as-is, which equals drawing onto an empty layer; clips off-canvas parts
        layer.paste(scaled, (_round(x), _round(y)))
        return RasterImage.from_pil(layer)

    @staticmethod
    def _blend(canvas: RasterImage, layer: RasterImage, opacity: float) -> RasterImage:
        src = layer.pixels.copy()
        src[..., 3] = np.clip(np.rint(src[..., 3].astype(np.float64) * opacity), 0, 255).astype(np.uint8)
        blended = Image.alpha_composite(canvas.to_pil(), Image.fromarray(src))
        return RasterImage.from_pil(blended)

    @staticmethod
    def _shadow(image: RasterImage, x: float, y: float, gw: float, gh: float) -> RasterImage:
        shade = RasterImage.blank(image.width, image.height)
        r0, r1 = pixel_span(y + SHADOW_OFFSET, y + SHADOW_OFFSET + gh, image.height)
        c0, c1 = pixel_span(x + SHADOW_OFFSET, x + SHADOW_OFFSET + gw, image.width)
        if r1 <= r0 or c1 <= c0:
            return image
        shade.pixels[r0:r1, c0:c1] = (0, 0, 0, _round(255 * SHADOW_OPACITY))
        return RasterImage.from_pil(Image.alpha_composite(image.to_pil(), shade.to_pil()))


def composite(person: ImageInput, garment: ImageInput, category: Union[GarmentCategory, str, None] = None) -> RasterImage:
    return Compositor().run(person, garment, category)
