from __future__ import annotations

import os
import uuid
from typing import Optional

from pipeline.io_types import GarmentCategory, RasterImage
from pipeline.pipeline import composite
from .base import TryOnOutcome


class LocalTryOn:
    """Try-on with the rule-based compositor; always available."""

    name = "local"

    def __init__(self, out_dir: str) -> None:
        self.out_dir = out_dir

    def is_configured(self) -> bool:
        return True

    def render(
        self,
        person: bytes,
        garment: Optional[bytes],
        category: Optional[str] = None,
        top: Optional[bytes] = None,
        bottom: Optional[bytes] = None,
        mode: str = "separate",
    ) -> RasterImage:
        if mode == "separate" and top and bottom:
            # top first, bottom composited over the result
            dressed = composite(person, top, GarmentCategory.TOP)
            return composite(dressed, bottom, GarmentCategory.BOTTOM)
        if garment:
            return composite(person, garment, category)
        if top:
            return composite(person, top, GarmentCategory.TOP)
        if bottom:
            return composite(person, bottom, GarmentCategory.BOTTOM)
        raise ValueError("missing garment image")

    def try_on(
        self,
        person: bytes,
        garment: Optional[bytes],
        category: Optional[str] = None,
        top: Optional[bytes] = None,
        bottom: Optional[bytes] = None,
        mode: str = "separate",
    ) -> TryOnOutcome:
        image = self.render(person, garment, category, top=top, bottom=bottom, mode=mode)
        os.makedirs(self.out_dir, exist_ok=True)
        out_path = os.path.join(self.out_dir, f"tryon_{uuid.uuid4().hex}.png")
        with open(out_path, "wb") as f:
            f.write(image.encode("PNG"))
        return TryOnOutcome(status="completed", provider=self.name, result_path=out_path)
