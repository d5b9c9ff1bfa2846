"""End-to-end tests for the local compositor."""

import numpy as np
import pytest

from pipeline.io_types import GeometryDegenerateError, ImageDecodeError, RasterImage
from pipeline.pipeline import Compositor, CompositorState, composite
from providers.local_stub import LocalTryOn


class TestComposite:

    def test_deterministic(self, person_png, garment_png):
        a = composite(person_png, garment_png, "top").encode("PNG")
        b = composite(person_png, garment_png, "top").encode("PNG")
        assert a == b

    @pytest.mark.parametrize("category", ["top", "bottom", "dress", "outerwear", "default", None, "hat"])
    def test_keeps_person_dimensions(self, person_png, garment_png, category):
        out = composite(person_png, garment_png, category)
        assert (out.width, out.height) == (400, 600)

    def test_runs_through_every_state(self, person_png, garment_png):
        comp = Compositor()
        assert comp.state is CompositorState.IDLE
        comp.run(person_png, garment_png, "top")
        assert comp.state is CompositorState.DONE
        assert comp.plan.band.head_end == pytest.approx(108)

    def test_compositor_is_single_use(self, person_png, garment_png):
        comp = Compositor()
        comp.run(person_png, garment_png, "top")
        with pytest.raises(RuntimeError):
            comp.run(person_png, garment_png, "top")

    def test_head_untouched_and_torso_dressed(self, person_array, person_png, garment_png):
        out = composite(person_png, garment_png, "top")
        assert tuple(out.pixels[10, 200]) == tuple(person_array[10, 200])
        r, g, b, _ = (int(v) for v in out.pixels[250, 200])
        assert r > g + 100 and r > b + 100

    def test_does_not_mutate_inputs(self, person_array, garment_png):
        person = RasterImage(person_array.copy())
        composite(person, garment_png, "top")
        assert np.array_equal(person.pixels, person_array)

    def test_png_round_trip_is_lossless(self, person_png, garment_png):
        out = composite(person_png, garment_png, "dress")
        back = RasterImage.decode(out.encode("PNG"))
        assert np.array_equal(back.pixels, out.pixels)


class TestCompositeErrors:

    def test_undecodable_person(self, garment_png):
        with pytest.raises(ImageDecodeError):
            composite(b"not an image", garment_png, "top")

    def test_empty_garment(self, person_png):
        with pytest.raises(ImageDecodeError):
            composite(person_png, b"", "top")

    def test_zero_area_garment(self, person_png):
        empty = RasterImage(np.zeros((0, 10, 4), dtype=np.uint8))
        with pytest.raises(GeometryDegenerateError):
            composite(person_png, empty, "top")


class TestLocalTryOn:

    def test_try_on_writes_png(self, tmp_path, person_png, garment_png):
        outcome = LocalTryOn(str(tmp_path)).try_on(person_png, garment_png, "top")
        assert outcome.status == "completed"
        assert outcome.provider == "local"
        with open(outcome.result_path, "rb") as f:
            img = RasterImage.decode(f.read())
        assert (img.width, img.height) == (400, 600)

    def test_separate_mode_layers_top_and_bottom(self, tmp_path, person_png, garment_png, tall_garment_png):
        provider = LocalTryOn(str(tmp_path))
        both = provider.render(person_png, None, top=garment_png, bottom=tall_garment_png, mode="separate")
        top_only = composite(person_png, garment_png, "top")
        assert (both.width, both.height) == (400, 600)
        assert not np.array_equal(both.pixels, top_only.pixels)

    def test_missing_garment(self, tmp_path, person_png):
        with pytest.raises(ValueError):
            LocalTryOn(str(tmp_path)).render(person_png, None)
