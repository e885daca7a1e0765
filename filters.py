# filters.py — scalar-field filters for the plaster pipeline
# -----------------------------------------------------------------------------
# Every field here is a 2D float32 array indexed [row, col]. Nothing in this
# module touches pixels directly; plaster.py turns pixel buffers into fields and
# back.
#
#   lum     = luminance(rgb)                        # 0..255
#   base    = gaussian_blur(lum, blur_radius(32))   # low-frequency base
#   detail  = normalize_field(detail_residual(lum, base))
#   contour = normalize_field(sobel_magnitude(base))
# -----------------------------------------------------------------------------

from __future__ import annotations

import math

import numpy as np

__all__ = [
    "luminance",
    "blur_radius",
    "gaussian_kernel",
    "gaussian_blur",
    "detail_residual",
    "normalize_field",
    "sobel_magnitude",
]

# Perceptual luma weights (BT.601)
LUMA_WEIGHTS = (0.299, 0.587, 0.114)

SOBEL_X = np.array([[-1, 0, 1], [-2, 0, 2], [-1, 0, 1]], np.float32)
SOBEL_Y = np.array([[-1, -2, -1], [0, 0, 0], [1, 2, 1]], np.float32)

# ============================ luminance ============================

def luminance(rgb: np.ndarray) -> np.ndarray:
    """HxWx3 (or HxWx4, alpha ignored) pixels → HxW brightness in [0, 255]."""
    arr = np.asarray(rgb, dtype=np.float32)
    wr, wg, wb = LUMA_WEIGHTS
    return (arr[..., 0] * wr + arr[..., 1] * wg + arr[..., 2] * wb).astype(np.float32)

# ============================ gaussian blur ============================

def blur_radius(smoothness: float) -> int:
    """Smoothness 0..100 → kernel radius 0..6 (halves round up)."""
    s = min(100.0, max(0.0, float(smoothness)))
    return int(math.floor(s / 18.0 + 0.5))


def gaussian_kernel(radius: int) -> np.ndarray:
    r = int(radius)
    offsets = np.arange(-r, r + 1, dtype=np.float64)
    weights = np.exp(-(offsets * offsets) / (2.0 * r * r))
    return (weights / weights.sum()).astype(np.float32)


def gaussian_blur(field: np.ndarray, radius: int) -> np.ndarray:
    """Separable gaussian blur, horizontal then vertical, replicating the border.

    Radius 0 returns `field` itself untouched.
    """
    r = int(radius)
    if r <= 0:
        return field
    kernel = gaussian_kernel(r)
    src = np.asarray(field, dtype=np.float32)
    h, w = src.shape

    fp = np.pad(src, ((0, 0), (r, r)), mode="edge")
    horiz = np.zeros((h, w), np.float32)
    for i, wt in enumerate(kernel):
        horiz += wt * fp[:, i:i + w]

    fp2 = np.pad(horiz, ((r, r), (0, 0)), mode="edge")
    vert = np.zeros((h, w), np.float32)
    for i, wt in enumerate(kernel):
        vert += wt * fp2[i:i + h, :]
    return vert

# ============================ detail / normalize ============================

def detail_residual(lum: np.ndarray, blurred: np.ndarray) -> np.ndarray:
    """High-pass residual; keeps its sign."""
    return (np.asarray(lum, np.float32) - np.asarray(blurred, np.float32)).astype(np.float32)


def normalize_field(field: np.ndarray) -> np.ndarray:
    """Linear rescale so min → 0 and max → 1. A constant field comes back all zero."""
    f = np.asarray(field, dtype=np.float64)
    lo = float(f.min())
    hi = float(f.max())
    span = (hi - lo) or 1.0
    return ((f - lo) / span).astype(np.float32)

# ============================ sobel ============================

def sobel_magnitude(field: np.ndarray) -> np.ndarray:
    """3x3 Sobel gradient magnitude. The one-pixel border stays zero."""
    f = np.asarray(field, dtype=np.float32)
    h, w = f.shape
    out = np.zeros((h, w), np.float32)
    if h < 3 or w < 3:
        return out

    gx = np.zeros((h - 2, w - 2), np.float32)
    gy = np.zeros((h - 2, w - 2), np.float32)
    for dy in range(3):
        for dx in range(3):
            sample = f[dy:dy + h - 2, dx:dx + w - 2]
            gx += SOBEL_X[dy, dx] * sample
            gy += SOBEL_Y[dy, dx] * sample
    out[1:-1, 1:-1] = np.sqrt(gx * gx + gy * gy)
    return out
