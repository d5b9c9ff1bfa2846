from __future__ import annotations

import io
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import numpy as np
from PIL import Image, UnidentifiedImageError


class CompositingError(Exception):
    pass


class ImageDecodeError(CompositingError):
    pass


class GeometryDegenerateError(CompositingError):
    pass


class UnsupportedCategoryError(CompositingError):
    pass


@dataclass
class RasterImage:
    """Owned RGBA pixel buffer, shape (height, width, 4), dtype uint8."""

    pixels: np.ndarray

    def __post_init__(self) -> None:
        if self.pixels.ndim != 3 or self.pixels.shape[2] != 4:
            raise ValueError(f"expected HxWx4 pixels, got shape {self.pixels.shape}")
        if self.pixels.dtype != np.uint8:
            self.pixels = self.pixels.astype(np.uint8)

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @classmethod
    def blank(cls, width: int, height: int, color: tuple[int, int, int, int] = (0, 0, 0, 0)) -> "RasterImage":
        px = np.empty((height, width, 4), dtype=np.uint8)
        px[...] = color
        return cls(px)

    @classmethod
    def from_pil(cls, im: Image.Image) -> "RasterImage":
        return cls(np.array(im.convert("RGBA"), dtype=np.uint8))

    def to_pil(self) -> Image.Image:
        return Image.fromarray(self.pixels)

    def copy(self) -> "RasterImage":
        return RasterImage(self.pixels.copy())

    @classmethod
    def decode(cls, data: bytes) -> "RasterImage":
        if not data:
            raise ImageDecodeError("empty image data")
        try:
            with Image.open(io.BytesIO(data)) as im:
                im.load()
                return cls.from_pil(im)
        except (UnidentifiedImageError, OSError, ValueError) as e:
            raise ImageDecodeError(f"cannot decode image: {e}") from e

    def encode(self, fmt: str = "PNG") -> bytes:
        buf = io.BytesIO()
        im = self.to_pil()
        if fmt.upper() in ("JPEG", "JPG"):
            # JPEG has no alpha channel
            im = im.convert("RGB")
            im.save(buf, format="JPEG", quality=92)
        else:
            im.save(buf, format=fmt)
        return buf.getvalue()


@dataclass(frozen=True)
class BandDescriptor:
    head_end: float
    arm_start: float
    arm_end: float
    leg_start: float


@dataclass(frozen=True)
class PlacementPlan:
    scale: float
    offset_x: float
    offset_y: float
    alpha: float
    band: BandDescriptor


class GarmentCategory(str, Enum):
    TOP = "top"
    BOTTOM = "bottom"
    DRESS = "dress"
    OUTERWEAR = "outerwear"
    DEFAULT = "default"

    @classmethod
    def parse(cls, value: Optional[str], strict: bool = False) -> "GarmentCategory":
        if isinstance(value, GarmentCategory):
            return value
        # Names match exactly; "Dress" or " top " fall through to DEFAULT
        for member in cls:
            if member.value == value:
                return member
        if strict:
            raise UnsupportedCategoryError(f"unsupported garment category: {value!r}")
        return cls.DEFAULT
