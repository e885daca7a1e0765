# effect_settings.py — the ten plaster knobs as one immutable value
# -----------------------------------------------------------------------------
# Every consumer clamps to SETTING_RANGES before use, so an EffectSettings may
# carry out-of-range values safely. Keys are accepted in snake_case or in the
# camelCase used by the slider page (microDetail, backgroundLift, ...).
#
#   s = EffectSettings.from_mapping({"depth": 80, "macroZoom": 30})
#   s = load_preset("soft.json").with_overrides(vignette=0)
# -----------------------------------------------------------------------------

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

__all__ = [
    "EffectSettings",
    "SettingsError",
    "SETTING_RANGES",
    "UI_RANGES",
    "clamp",
    "load_preset",
]


class SettingsError(ValueError):
    """Unknown setting name or a value that is not a number."""


# Ranges the pipeline clamps to (the contract of the core).
SETTING_RANGES: Dict[str, Tuple[float, float]] = {
    "depth": (0.0, 100.0),
    "luminosity": (-50.0, 50.0),
    "sheen": (0.0, 100.0),
    "matte": (0.0, 100.0),
    "smoothness": (0.0, 100.0),
    "micro_detail": (0.0, 100.0),
    "background_lift": (0.0, 100.0),
    "macro_zoom": (0.0, 60.0),
    "stand_height": (10.0, 45.0),
    "vignette": (0.0, 100.0),
}

# Slider ranges of the control surface. Cosmetic only, never enforced here.
UI_RANGES: Dict[str, Tuple[float, float]] = {
    **SETTING_RANGES,
    "macro_zoom": (0.0, 40.0),
    "stand_height": (10.0, 40.0),
    "vignette": (0.0, 60.0),
}

_CAMEL_ALIASES = {
    "microDetail": "micro_detail",
    "backgroundLift": "background_lift",
    "macroZoom": "macro_zoom",
    "standHeight": "stand_height",
}


def clamp(value: float, lo: float, hi: float) -> float:
    return min(hi, max(lo, value))


@dataclass(frozen=True)
class EffectSettings:
    """Snapshot of the plaster knobs. Defaults give the baseline look."""
    depth: float = 62            # contour intensity
    luminosity: float = 8        # brightness bias
    sheen: float = 68            # highlight boost
    matte: float = 40            # shadow lift
    smoothness: float = 32       # blur radius driver
    micro_detail: float = 48     # high-frequency boost
    background_lift: float = 72  # backdrop brightness
    macro_zoom: float = 18       # source crop zoom
    stand_height: float = 24     # pedestal height, percent of frame
    vignette: float = 36         # vignette strength

    def clamped(self) -> "EffectSettings":
        return replace(self, **{k: clamp(float(getattr(self, k)), lo, hi) for k, (lo, hi) in SETTING_RANGES.items()})

    def strength(self, name: str) -> float:
        """Clamped value of a 0..100 knob scaled to 0..1."""
        lo, hi = SETTING_RANGES[name]
        return clamp(float(getattr(self, name)), lo, hi) / 100.0

    def with_overrides(self, **changes: Any) -> "EffectSettings":
        return EffectSettings.from_mapping(changes, base=self)

    def to_dict(self, *, camel: bool = False) -> Dict[str, float]:
        data = asdict(self)
        if camel:
            back = {v: k for k, v in _CAMEL_ALIASES.items()}
            data = {back.get(k, k): v for k, v in data.items()}
        return data

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], base: Optional["EffectSettings"] = None) -> "EffectSettings":
        known = {f.name for f in fields(cls)}
        changes: Dict[str, float] = {}
        for raw_key, raw_val in data.items():
            key = _CAMEL_ALIASES.get(str(raw_key).strip(), str(raw_key).strip())
            if key not in known:
                raise SettingsError(f"Unknown setting '{raw_key}'. Available: {', '.join(sorted(known))}")
            # bool is an int subclass; a checkbox value here is always a mistake
            if isinstance(raw_val, bool):
                raise SettingsError(f"Setting '{raw_key}' must be numeric, got {raw_val!r}")
            try:
                changes[key] = float(raw_val)
            except (TypeError, ValueError) as e:
                raise SettingsError(f"Setting '{raw_key}' must be numeric, got {raw_val!r}") from e
        return replace(base or cls(), **changes)


def load_preset(path: str | Path, base: Optional[EffectSettings] = None) -> EffectSettings:
    """Read a JSON object of settings. Missing keys keep `base` (or the defaults)."""
    p = Path(path)
    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise SettingsError(f"Preset {p} is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise SettingsError(f"Preset {p} must contain a JSON object, got {type(data).__name__}")
    return EffectSettings.from_mapping(data, base=base)
