# plaster.py — the plaster effect: crop, tone, composite
# -----------------------------------------------------------------------------
# One call renders one finished 900x1200 frame:
#
#   surface = render_plaster_effect(Image.open("bust.jpg"), EffectSettings())
#   png = encode_png(surface)
#
# Stages, in order:
#   1. background gradient (lifted by background_lift)
#   2. source cropped to 3:4 around the centre (macro_zoom) and resampled in
#   3. luminance → gaussian base → detail + sobel fields → tone_map → gray RGB
#   4. radial vignette (skipped at strength 0)
#   5. pedestal: gradient fill plus a multiplied side-light shadow
#   6. contact shadow along the bottom edge
#
# No state is kept between calls; the target surface is only written once the
# whole frame has rendered.
# -----------------------------------------------------------------------------

from __future__ import annotations

import base64
import io
import logging
from dataclasses import dataclass
from typing import Optional, Union

import numpy as np
from PIL import Image

from effect_settings import EffectSettings, SETTING_RANGES, clamp
from filters import (
    blur_radius,
    detail_residual,
    gaussian_blur,
    luminance,
    normalize_field,
    sobel_magnitude,
)
from surface import (
    MULTIPLY,
    SOURCE_OVER,
    LinearGradient,
    RadialGradient,
    Surface,
    parse_color,
)
from tone import tone_map

__all__ = [
    "OUTPUT_WIDTH",
    "OUTPUT_HEIGHT",
    "DEFAULT_DOWNLOAD_NAME",
    "CropRegion",
    "PedestalGeometry",
    "RenderError",
    "plan_crop",
    "pedestal_geometry",
    "render_plaster_effect",
    "encode_png",
    "extract_data_url",
]

log = logging.getLogger("plaster")

OUTPUT_WIDTH = 900
OUTPUT_HEIGHT = 1200
DEFAULT_DOWNLOAD_NAME = "plaster-bust-macro.png"

SourceLike = Union[Image.Image, np.ndarray]


class RenderError(RuntimeError):
    """The frame could not be produced. The target surface is left untouched."""

# ============================ geometry ============================

@dataclass(frozen=True)
class CropRegion:
    offset_x: float
    offset_y: float
    width: float
    height: float

    @property
    def box(self):
        """(left, top, right, bottom) for Pillow."""
        return (self.offset_x, self.offset_y, self.offset_x + self.width, self.offset_y + self.height)


def plan_crop(src_w: float, src_h: float, aspect: float, zoom: float) -> CropRegion:
    """Largest centred `aspect` (w/h) rectangle inside the source, shrunk by
    1 + zoom/100 (zoom clamped to 0..60)."""
    crop_w = float(src_w)
    crop_h = float(src_h)
    if src_w / src_h > aspect:
        crop_w = src_h * aspect
    else:
        crop_h = src_w / aspect

    lo, hi = SETTING_RANGES["macro_zoom"]
    factor = clamp(float(zoom), lo, hi) / 100.0 + 1.0
    crop_w /= factor
    crop_h /= factor
    return CropRegion((src_w - crop_w) / 2.0, (src_h - crop_h) / 2.0, crop_w, crop_h)


@dataclass(frozen=True)
class PedestalGeometry:
    x: float
    y: float
    width: float
    height: float

    @property
    def center_x(self) -> float:
        return self.x + self.width / 2.0


def pedestal_geometry(settings: EffectSettings, width: int = OUTPUT_WIDTH, height: int = OUTPUT_HEIGHT) -> PedestalGeometry:
    lo, hi = SETTING_RANGES["stand_height"]
    stand_h = height * (clamp(float(settings.stand_height), lo, hi) / 100.0)
    stand_w = width * (0.36 + 0.08 * settings.strength("depth"))
    return PedestalGeometry(width / 2.0 - stand_w / 2.0, height - stand_h, stand_w, stand_h)

# ============================ stages ============================

def _paint_background(surface: Surface, settings: EffectSettings) -> None:
    lift = settings.strength("background_lift")
    gradient = LinearGradient(0, 0, 0, surface.height, (
        (0.0, (250, 250, 247, 0.85 + lift * 0.1)),
        (1.0, (242, 242, 236, 0.9 + lift * 0.08)),
    ))
    surface.fill_rect(0, 0, surface.width, surface.height, gradient)


def _apply_plaster_tone(surface: Surface, settings: EffectSettings) -> None:
    data = surface.get_image_data()
    lum = luminance(data[..., :3])

    radius = blur_radius(settings.smoothness)
    smoothed = gaussian_blur(lum, radius)
    detail01 = normalize_field(detail_residual(lum, smoothed))
    sobel01 = normalize_field(sobel_magnitude(smoothed))
    log.debug("Tone: blur radius=%d", radius)

    value = tone_map(smoothed, detail01, sobel01, settings)
    gray = np.clip(np.rint(value), 0, 255).astype(np.uint8)
    data[..., 0] = gray
    data[..., 1] = gray
    data[..., 2] = gray
    surface.put_image_data(data)


def _paint_vignette(surface: Surface, settings: EffectSettings) -> None:
    strength = settings.strength("vignette")
    if strength <= 0:
        return
    w, h = surface.width, surface.height
    gradient = RadialGradient(w / 2.0, h * 0.55, w * 0.25, max(w, h) * 0.7, (
        (0.0, (255, 255, 255, 0.0)),
        (1.0, (210, 210, 205, 0.35 * strength)),
    ))
    surface.fill_rect(0, 0, w, h, gradient)


def _paint_pedestal(surface: Surface, settings: EffectSettings) -> None:
    g = pedestal_geometry(settings, surface.width, surface.height)
    fill = LinearGradient(g.x, g.y, g.x, g.y + g.height, (
        (0.0, parse_color("#ffffff")),
        (0.5, parse_color("#f3f3f1")),
        (1.0, parse_color("#e4e4df")),
    ))
    surface.fill_rect(g.x, g.y, g.width, g.height, fill, SOURCE_OVER)

    side_light = LinearGradient(g.x, g.y, g.x + g.width, g.y + g.height, (
        (0.0, (0, 0, 0, 0.12)),
        (0.25, (0, 0, 0, 0.05)),
        (0.75, (0, 0, 0, 0.02)),
        (1.0, (0, 0, 0, 0.14)),
    ))
    surface.fill_rect(g.x, g.y, g.width, g.height, side_light, MULTIPLY)


def _paint_contact_shadow(surface: Surface) -> None:
    w, h = surface.width, surface.height
    pad = h * 0.04
    gradient = LinearGradient(0, h - pad, 0, h, (
        (0.0, (0, 0, 0, 0.18)),
        (0.7, (0, 0, 0, 0.05)),
        (1.0, (0, 0, 0, 0.0)),
    ))
    surface.fill_rect(0, h - pad, w, pad, gradient)

# ============================ render ============================

def _as_image(source: SourceLike) -> Image.Image:
    if isinstance(source, Image.Image):
        img = source
    elif isinstance(source, np.ndarray):
        if source.ndim != 3 or source.shape[2] not in (3, 4):
            raise RenderError(f"Source array must be HxWx3 or HxWx4, got shape {source.shape}")
        if source.shape[0] == 0 or source.shape[1] == 0:
            raise RenderError(f"Source image is empty ({source.shape[1]}x{source.shape[0]})")
        img = Image.fromarray(np.ascontiguousarray(source, dtype=np.uint8))
    else:
        raise RenderError(f"Unsupported source type: {type(source).__name__}")
    if img.width <= 0 or img.height <= 0:
        raise RenderError(f"Source image is empty ({img.width}x{img.height})")
    return img.convert("RGBA")


def render_plaster_effect(
    source: SourceLike,
    settings: Optional[EffectSettings] = None,
    surface: Optional[Surface] = None,
) -> Surface:
    """Render the plaster frame for `source`.

    Args:
        source: Pillow image or uint8 HxWx3/HxWx4 array, any size.
        settings: knob snapshot; defaults to EffectSettings(). Out-of-range
            values are clamped.
        surface: optional 900x1200 target. Written only on success.

    Returns:
        The surface holding the finished frame (`surface` when given).

    Raises:
        RenderError: bad source or surface, or any failure inside the pipeline.
    """
    settings = settings or EffectSettings()
    if surface is not None and surface.size != (OUTPUT_WIDTH, OUTPUT_HEIGHT):
        raise RenderError(f"Target surface must be {OUTPUT_WIDTH}x{OUTPUT_HEIGHT}, got {surface.width}x{surface.height}")
    img = _as_image(source)

    try:
        crop = plan_crop(img.width, img.height, OUTPUT_WIDTH / OUTPUT_HEIGHT, settings.macro_zoom)
        log.debug("Crop %dx%d source → %.1fx%.1f at (%.1f, %.1f)",
                  img.width, img.height, crop.width, crop.height, crop.offset_x, crop.offset_y)

        frame = Surface(OUTPUT_WIDTH, OUTPUT_HEIGHT)
        _paint_background(frame, settings)
        frame.draw_image(img, crop.box)
        _apply_plaster_tone(frame, settings)
        _paint_vignette(frame, settings)
        _paint_pedestal(frame, settings)
        _paint_contact_shadow(frame)
    except Exception as e:
        raise RenderError("processing failed") from e

    if surface is None:
        return frame
    surface.commit_from(frame)
    return surface

# ============================ encoding ============================

def encode_png(surface: Surface) -> bytes:
    buf = io.BytesIO()
    surface.to_image().save(buf, format="PNG", optimize=True)
    return buf.getvalue()


def extract_data_url(surface: Surface) -> str:
    return "data:image/png;base64," + base64.b64encode(encode_png(surface)).decode("ascii")
