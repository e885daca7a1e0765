"""Tests for the tone curve."""

import numpy as np
import pytest

from effect_settings import EffectSettings
from tone import contrast_transform, soft_light, tone_map


class TestContrastTransform:
    @pytest.mark.parametrize("value,contrast,expected", [
        (200.0, 30.0, 219.0126),   # factor 73815/58395
        (128.0, 30.0, 128.0),
        (128.0, 250.0, 128.0),
        (77.0, 0.0, 77.0),         # factor is exactly 1 at contrast 0
        (0.0, 255.0, 0.0),
        (255.0, 255.0, 255.0),
        (10.0, -255.0, 128.0),     # factor 0 flattens to mid-gray
    ])
    def test_known_pairs(self, value, contrast, expected):
        assert float(contrast_transform(value, contrast)) == pytest.approx(expected, abs=1e-3)

    @pytest.mark.parametrize("contrast", [-100.0, 0.0, 30.0, 85.8, 120.0, 250.0])
    def test_monotonic(self, contrast):
        out = contrast_transform(np.linspace(0, 255, 256), contrast)
        assert np.all(np.diff(out) >= 0)
        assert out.min() >= 0 and out.max() <= 255


class TestSoftLight:
    @pytest.mark.parametrize("base", [0.0, 40.0, 128.0, 210.0, 255.0])
    def test_continuous_at_half(self, base):
        mid = float(soft_light(base, 127.5))
        assert mid == pytest.approx(base, abs=1e-9)
        below = float(soft_light(base, 127.5 - 1e-6))
        above = float(soft_light(base, 127.5 + 1e-6))
        assert below == pytest.approx(above, abs=1e-3)

    def test_white_stays_white(self):
        assert float(soft_light(255.0, 255.0)) == pytest.approx(255.0)
        assert float(soft_light(255.0, 300.0)) == pytest.approx(255.0)

    def test_clamped(self):
        out = soft_light(np.linspace(0, 255, 52), np.linspace(0, 400, 52))
        assert out.min() >= 0 and out.max() <= 255


def _fields(value, detail=0.5, sobel=0.4, shape=(3, 4)):
    return (
        np.full(shape, value, np.float32),
        np.full(shape, detail, np.float32),
        np.full(shape, sobel, np.float32),
    )


class TestToneMap:
    def test_flat_gray_with_defaults(self):
        # 128 → +2.4 luminosity → -19.2 detail → -34.72 contour → +0.8448 matte
        blurred, detail, sobel = _fields(128.0, detail=0.0, sobel=0.0)
        out = tone_map(blurred, detail, sobel, EffectSettings())
        assert np.allclose(out, 77.3248, atol=1e-3)

    def test_matte_lifts_shadows(self):
        blurred, detail, sobel = _fields(0.0)
        flat = EffectSettings(depth=0, luminosity=0)
        assert np.allclose(tone_map(blurred, detail, sobel, flat.with_overrides(matte=0)), 0.0)
        assert np.allclose(tone_map(blurred, detail, sobel, flat.with_overrides(matte=100)), 48.0)

    def test_sheen_goes_through_soft_light(self):
        blurred, detail, sobel = _fields(200.0)
        settings = EffectSettings(depth=0, luminosity=0, sheen=100, matte=0)
        v0 = float(contrast_transform(200.0, 30.0))
        expected = float(soft_light(v0, v0 + (v0 - 210.0) * 0.8))
        assert np.allclose(tone_map(blurred, detail, sobel, settings), expected, atol=1e-6)

    def test_below_highlight_knee_sheen_has_no_effect(self):
        blurred, detail, sobel = _fields(150.0)
        a = tone_map(blurred, detail, sobel, EffectSettings(sheen=0))
        b = tone_map(blurred, detail, sobel, EffectSettings(sheen=100))
        assert np.array_equal(a, b)

    def test_luminosity_bias(self):
        blurred, detail, sobel = _fields(128.0)
        base = EffectSettings(depth=0, matte=0)
        up = tone_map(blurred, detail, sobel, base.with_overrides(luminosity=50))
        down = tone_map(blurred, detail, sobel, base.with_overrides(luminosity=-50))
        assert np.allclose(up, 143.0)
        assert np.allclose(down, 113.0)

    def test_strong_edges_brighten(self):
        blurred, detail, _ = _fields(128.0)
        edges = np.array([[0.0, 0.4, 1.0]], np.float32)
        out = tone_map(blurred[:1, :3], detail[:1, :3], edges, EffectSettings(luminosity=0))
        assert out[0, 0] < out[0, 1] < out[0, 2]

    @pytest.mark.parametrize("settings", [
        EffectSettings(0, -50, 0, 0, 0, 0, 0, 0, 10, 0),
        EffectSettings(100, 50, 100, 100, 100, 100, 100, 60, 45, 100),
        EffectSettings(500, -900, 300, -20, 1e6, 250, -1, 99, 0, 1000),
    ])
    def test_output_in_range(self, settings):
        rng = np.random.default_rng(11)
        blurred = (rng.random((30, 30)) * 255).astype(np.float32)
        out = tone_map(blurred, rng.random((30, 30)), rng.random((30, 30)), settings)
        assert out.min() >= 0.0 and out.max() <= 255.0
