# Test fixtures and configuration
import io
import os
import tempfile
from pathlib import Path

import numpy as np
import pytest
from PIL import Image

project_root = Path(__file__).parent.parent

# Point the app at throwaway storage before any backend module is imported
_tmp = tempfile.mkdtemp(prefix="wardrobe-tests-")
os.environ["WARDROBE_STORAGE"] = os.path.join(_tmp, "storage")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_tmp, 'storage', 'wardrobe.sqlite3')}"
os.environ["WARDROBE_CONFIG"] = str(project_root / "configs" / "wardrobe.yaml")
os.environ["RATE_LIMIT_ENABLED"] = "0"
os.environ["STORAGE_BACKEND"] = "local"
for _var in ("ALIYUN_BAILIAN_API_KEY", "TRYON_PROVIDER", "TRYON_FALLBACK", "S3_BUCKET"):
    os.environ.pop(_var, None)

SKIN = (220, 170, 140)
SHIRT = (30, 60, 200)
GARMENT = (200, 20, 20)


def _png(arr: np.ndarray) -> bytes:
    buf = io.BytesIO()
    Image.fromarray(arr).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def person_array():
    """400x600 opaque person photo: skin background with a blue shirt over the torso."""
    arr = np.zeros((600, 400, 4), dtype=np.uint8)
    arr[...] = SKIN + (255,)
    arr[150:350, 150:250] = SHIRT + (255,)
    return arr


@pytest.fixture
def person_png(person_array):
    return _png(person_array)


@pytest.fixture
def garment_png():
    """300x300 solid red garment."""
    arr = np.zeros((300, 300, 4), dtype=np.uint8)
    arr[...] = GARMENT + (255,)
    return _png(arr)


@pytest.fixture
def tall_garment_png():
    arr = np.zeros((240, 100, 4), dtype=np.uint8)
    arr[...] = (20, 120, 40, 255)
    return _png(arr)
