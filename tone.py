# tone.py — plaster tone curve
from __future__ import annotations

import numpy as np

from effect_settings import EffectSettings, SETTING_RANGES, clamp

__all__ = ["contrast_transform", "soft_light", "tone_map"]

# Calibrated against the default look; keep literal.
CONTOUR_THRESHOLD = 0.4
HIGHLIGHT_KNEE = 210.0
SHADOW_KNEE = 80.0


def contrast_transform(value, contrast: float):
    """Brightness/contrast remap pivoting on mid-gray 128, clamped to [0, 255]."""
    factor = (259.0 * (contrast + 255.0)) / (255.0 * (259.0 - contrast))
    return np.clip(factor * (np.asarray(value, dtype=np.float64) - 128.0) + 128.0, 0.0, 255.0)


def soft_light(base, blend):
    """Soft-light of `blend` over `base`, both on the 0..255 scale.

    `blend` may exceed 255 (boosted highlights); the curve is evaluated as-is
    and the result clamped.
    """
    b = np.asarray(base, dtype=np.float64) / 255.0
    c = np.asarray(blend, dtype=np.float64) / 255.0
    low = 2.0 * b * c + b * b * (1.0 - 2.0 * c)
    high = 2.0 * b * (1.0 - c) + np.sqrt(np.maximum(b, 0.0)) * (2.0 * c - 1.0)
    return np.clip(np.where(c < 0.5, low, high) * 255.0, 0.0, 255.0)


def tone_map(
    blurred: np.ndarray,
    detail01: np.ndarray,
    sobel01: np.ndarray,
    settings: EffectSettings,
) -> np.ndarray:
    """Per-pixel plaster value in [0, 255] from the blurred base and the two
    normalized fields.

    Steps: contrast curve driven by depth, luminosity bias, micro-detail boost,
    contour boost, soft-light highlight compression above 210 and matte shadow
    lift below 80. Each step clamps.
    """
    depth = settings.strength("depth")
    sheen = settings.strength("sheen")
    matte = settings.strength("matte")
    detail_strength = settings.strength("micro_detail")
    lo, hi = SETTING_RANGES["luminosity"]
    shift = clamp(float(settings.luminosity), lo, hi) / 50.0 * 15.0

    v = contrast_transform(blurred, 30.0 + depth * 90.0)
    v = np.clip(v + shift, 0.0, 255.0)
    v = np.clip(v + (np.asarray(detail01, np.float64) - 0.5) * 80.0 * detail_strength, 0.0, 255.0)
    v = np.clip(v + (np.asarray(sobel01, np.float64) - CONTOUR_THRESHOLD) * 140.0 * depth, 0.0, 255.0)

    bright = v > HIGHLIGHT_KNEE
    if bright.any():
        boost = (v - HIGHLIGHT_KNEE) * 0.8 * sheen
        v = np.where(bright, soft_light(v, v + boost), v)

    dark = v < SHADOW_KNEE
    if dark.any():
        v = np.where(dark, np.clip(v + (SHADOW_KNEE - v) * 0.6 * matte, 0.0, 255.0), v)
    return v
