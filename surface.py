# surface.py — minimal 2D drawing surface over a numpy RGBA buffer
# -----------------------------------------------------------------------------
# The compositor only needs a handful of canvas-style primitives:
#   fill_rect(x, y, w, h, paint, blend)   gradient or flat fill, source-over/multiply
#   draw_image(img, box, dest)             resample a source region into the frame
#   get_image_data() / put_image_data()    8-bit RGBA round-trip for pixel work
#
# Internally colour is straight (non-premultiplied) 0..255 and alpha is 0..1,
# both float64. Fractional rectangle edges are anti-aliased by exact coverage;
# gradients are sampled at pixel centres and pad with their end stops.
# -----------------------------------------------------------------------------

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np
from PIL import Image

__all__ = [
    "Color",
    "ColorStop",
    "LinearGradient",
    "RadialGradient",
    "SolidColor",
    "Surface",
    "SOURCE_OVER",
    "MULTIPLY",
    "parse_color",
]

SOURCE_OVER = "source-over"
MULTIPLY = "multiply"
BLEND_MODES = (SOURCE_OVER, MULTIPLY)

Color = Tuple[float, float, float, float]   # r, g, b in 0..255, a in 0..1
ColorStop = Tuple[float, Color]


def parse_color(code: str, alpha: float = 1.0) -> Color:
    """'#rgb' / '#rrggbb' → Color."""
    s = code.strip().lstrip("#")
    if len(s) == 3:
        s = "".join([c * 2 for c in s])
    if len(s) != 6:
        raise ValueError(f"Bad hex colour: {code!r}")
    r = int(s[0:2], 16); g = int(s[2:4], 16); b = int(s[4:6], 16)
    return float(r), float(g), float(b), float(alpha)


def _interpolate_stops(t: np.ndarray, stops: Sequence[ColorStop]) -> np.ndarray:
    if not stops:
        raise ValueError("A gradient needs at least one colour stop")
    ordered = sorted(stops, key=lambda st: st[0])
    pos = np.array([min(1.0, max(0.0, float(p))) for p, _ in ordered], np.float64)
    cols = np.array([c for _, c in ordered], np.float64)
    out = np.empty(t.shape + (4,), np.float64)
    for ch in range(4):
        out[..., ch] = np.interp(t, pos, cols[:, ch])
    return out

# ============================ paints ============================

@dataclass(frozen=True)
class SolidColor:
    color: Color

    def sample(self, xs: np.ndarray, ys: np.ndarray) -> np.ndarray:
        shape = np.broadcast(xs, ys).shape
        return np.broadcast_to(np.array(self.color, np.float64), shape + (4,)).copy()


@dataclass(frozen=True)
class LinearGradient:
    """Gradient along the line (x0, y0) → (x1, y1)."""
    x0: float
    y0: float
    x1: float
    y1: float
    stops: Tuple[ColorStop, ...]

    def sample(self, xs: np.ndarray, ys: np.ndarray) -> np.ndarray:
        dx = self.x1 - self.x0
        dy = self.y1 - self.y0
        length2 = dx * dx + dy * dy
        shape = np.broadcast(xs, ys).shape
        if length2 == 0:
            # degenerate line paints nothing
            return np.zeros(shape + (4,), np.float64)
        t = ((xs - self.x0) * dx + (ys - self.y0) * dy) / length2
        return _interpolate_stops(np.broadcast_to(t, shape), self.stops)


@dataclass(frozen=True)
class RadialGradient:
    """Concentric radial gradient: stop 0 at radius r0, stop 1 at radius r1."""
    cx: float
    cy: float
    r0: float
    r1: float
    stops: Tuple[ColorStop, ...]

    def sample(self, xs: np.ndarray, ys: np.ndarray) -> np.ndarray:
        shape = np.broadcast(xs, ys).shape
        if self.r1 == self.r0:
            return np.zeros(shape + (4,), np.float64)
        dist = np.sqrt((xs - self.cx) ** 2 + (ys - self.cy) ** 2)
        t = (dist - self.r0) / (self.r1 - self.r0)
        return _interpolate_stops(np.broadcast_to(t, shape), self.stops)

# ============================ blending ============================

def _composite(dst: np.ndarray, src: np.ndarray, mode: str) -> np.ndarray:
    """Blend straight-alpha `src` onto straight-alpha `dst` (both HxWx4)."""
    cs, a_s = src[..., :3], src[..., 3:4]
    cb, a_b = dst[..., :3], dst[..., 3:4]
    if mode == MULTIPLY:
        # W3C compositing: mix the blend result by backdrop alpha, then source-over
        cs = (1.0 - a_b) * cs + a_b * (cs * cb / 255.0)
    a_o = a_s + a_b * (1.0 - a_s)
    premul = cs * a_s + cb * a_b * (1.0 - a_s)
    safe = np.where(a_o > 0, a_o, 1.0)
    out = np.empty_like(dst)
    out[..., :3] = np.where(a_o > 0, premul / safe, 0.0)
    out[..., 3:4] = a_o
    return out


def _coverage(start: float, end: float, n: int) -> Tuple[int, int, np.ndarray]:
    """Per-pixel coverage of [start, end) over pixel cells 0..n-1."""
    i0 = max(0, int(np.floor(start)))
    i1 = min(n, int(np.ceil(end)))
    if i1 <= i0:
        return i0, i0, np.zeros(0, np.float64)
    cells = np.arange(i0, i1, dtype=np.float64)
    cov = np.clip(np.minimum(cells + 1.0, end) - np.maximum(cells, start), 0.0, 1.0)
    return i0, i1, cov

# ============================ surface ============================

class Surface:
    """Writable RGBA frame with canvas-like drawing operations."""

    def __init__(self, width: int, height: int) -> None:
        if width <= 0 or height <= 0:
            raise ValueError(f"Surface size must be positive, got {width}x{height}")
        self.pixels = np.zeros((int(height), int(width), 4), np.float64)

    @property
    def width(self) -> int:
        return self.pixels.shape[1]

    @property
    def height(self) -> int:
        return self.pixels.shape[0]

    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height

    def clear(self) -> None:
        self.pixels[...] = 0.0

    def copy(self) -> "Surface":
        dup = Surface(self.width, self.height)
        dup.pixels[...] = self.pixels
        return dup

    def commit_from(self, other: "Surface") -> None:
        """Overwrite this surface with `other` in one step."""
        if other.size != self.size:
            raise ValueError(f"Surface size mismatch: {other.size} vs {self.size}")
        self.pixels[...] = other.pixels

    # --- drawing ---
    def fill_rect(self, x: float, y: float, w: float, h: float, paint, blend: str = SOURCE_OVER) -> None:
        if blend not in BLEND_MODES:
            raise ValueError(f"Unsupported blend mode '{blend}'. Available: {', '.join(BLEND_MODES)}")
        if w < 0:
            x, w = x + w, -w
        if h < 0:
            y, h = y + h, -h
        cx0, cx1, cov_x = _coverage(x, x + w, self.width)
        cy0, cy1, cov_y = _coverage(y, y + h, self.height)
        if cx1 <= cx0 or cy1 <= cy0:
            return
        xs = (np.arange(cx0, cx1, dtype=np.float64) + 0.5)[None, :]
        ys = (np.arange(cy0, cy1, dtype=np.float64) + 0.5)[:, None]
        src = paint.sample(xs, ys)
        src[..., 3] *= cov_y[:, None] * cov_x[None, :]
        region = self.pixels[cy0:cy1, cx0:cx1]
        self.pixels[cy0:cy1, cx0:cx1] = _composite(region, src, blend)

    def draw_image(
        self,
        image: Image.Image,
        box: Tuple[float, float, float, float],
        dest: Optional[Tuple[int, int, int, int]] = None,
    ) -> None:
        """Resample `box` (left, top, right, bottom) of `image` into `dest`
        (x, y, w, h; whole frame by default) with Lanczos, source-over."""
        dx, dy, dw, dh = dest if dest is not None else (0, 0, self.width, self.height)
        left, top, right, bottom = box
        box = (max(0.0, left), max(0.0, top), min(float(image.width), right), min(float(image.height), bottom))
        scaled = image.convert("RGBA").resize((int(dw), int(dh)), Image.Resampling.LANCZOS, box=box)
        src = np.asarray(scaled, dtype=np.float64).copy()
        src[..., 3] /= 255.0
        x0, y0 = max(0, int(dx)), max(0, int(dy))
        x1, y1 = min(self.width, int(dx) + int(dw)), min(self.height, int(dy) + int(dh))
        if x1 <= x0 or y1 <= y0:
            return
        src = src[y0 - int(dy):y1 - int(dy), x0 - int(dx):x1 - int(dx)]
        self.pixels[y0:y1, x0:x1] = _composite(self.pixels[y0:y1, x0:x1], src, SOURCE_OVER)

    # --- pixel access ---
    def get_image_data(self) -> np.ndarray:
        """HxWx4 uint8 snapshot (alpha scaled to 0..255)."""
        out = np.empty(self.pixels.shape, np.float64)
        out[..., :3] = self.pixels[..., :3]
        out[..., 3] = self.pixels[..., 3] * 255.0
        return np.clip(np.rint(out), 0, 255).astype(np.uint8)

    def put_image_data(self, data: np.ndarray) -> None:
        arr = np.asarray(data)
        if arr.shape != self.pixels.shape:
            raise ValueError(f"Image data shape {arr.shape} does not match surface {self.pixels.shape}")
        self.pixels[..., :3] = arr[..., :3]
        self.pixels[..., 3] = arr[..., 3] / 255.0

    def to_image(self) -> Image.Image:
        return Image.fromarray(self.get_image_data())
