"""Shared fixtures for the plaster pipeline tests."""

import numpy as np
import pytest
from PIL import Image

from effect_settings import EffectSettings
from plaster import render_plaster_effect


def make_photo(width: int = 160, height: int = 200, seed: int = 7) -> Image.Image:
    """Deterministic 'photo': smooth gradients, a bright disc and some noise."""
    rng = np.random.default_rng(seed)
    yy, xx = np.mgrid[0:height, 0:width].astype(np.float32)
    r = 90 + 120 * xx / max(1, width - 1)
    g = 60 + 150 * yy / max(1, height - 1)
    disc = ((xx - width * 0.5) ** 2 + (yy - height * 0.4) ** 2) < (min(width, height) * 0.25) ** 2
    b = np.where(disc, 230.0, 80.0)
    arr = np.stack([r, g, b], axis=-1) + rng.normal(0, 6, size=(height, width, 3))
    return Image.fromarray(np.clip(arr, 0, 255).astype(np.uint8))


@pytest.fixture
def default_settings():
    return EffectSettings()


@pytest.fixture
def photo():
    return make_photo()


@pytest.fixture
def gray_source():
    return Image.new("RGB", (300, 400), (128, 128, 128))


@pytest.fixture(scope="session")
def default_frame():
    """Image data of the photo rendered with default settings."""
    return render_plaster_effect(make_photo(), EffectSettings()).get_image_data()
