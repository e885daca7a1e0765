from __future__ import annotations

import argparse
import hashlib
import io
import json
import logging
import mimetypes
import os
import sys
import tempfile
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlparse, unquote

import requests
from PIL import Image, ImageOps

from effect_settings import EffectSettings, SETTING_RANGES, UI_RANGES, load_preset
from plaster import (
    DEFAULT_DOWNLOAD_NAME,
    OUTPUT_HEIGHT,
    OUTPUT_WIDTH,
    encode_png,
    render_plaster_effect,
)

try:
    from pillow_heif import register_heif_opener
    register_heif_opener()
except ImportError:
    pass

# =============== Logging ===============
log = logging.getLogger("plaster.cli")


def setup_logging(verbosity: int = 0) -> None:
    level = [logging.WARNING, logging.INFO, logging.DEBUG][min(verbosity, 2)]
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(message)s",
        datefmt="%H:%M:%S",
    )


# =============== Core: Fetcher & Loader ===============
class FileFetcher:
    """Fetch bytes from http(s) / file:// / local path with a tiny, safe cache."""

    def __init__(self, cache_dir: Optional[Path] = None, timeout: float = 20.0) -> None:
        self.timeout = timeout
        self.cache_dir = cache_dir or Path(tempfile.gettempdir()) / "plaster_cache"
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self._session = requests.Session()
        self._session.headers.update({"User-Agent": "plaster-studio/1.0 (+https://local)"})

    def fetch(self, src: str) -> Tuple[bytes, Optional[str]]:
        parsed = urlparse(src)
        scheme = (parsed.scheme or "").lower()
        if scheme in ("http", "https"):
            return self._fetch_http_cached(src)
        if scheme == "file":
            local_path = unquote(parsed.path)
            if os.name == "nt" and local_path.startswith("/"):
                local_path = local_path[1:]
            return self._fetch_local(local_path)
        # a bare Windows drive letter parses as a one-letter scheme
        if scheme == "" or len(scheme) == 1:
            return self._fetch_local(src)
        raise ValueError(f"Unsupported URL scheme: {scheme}")

    def _cache_key(self, url: str) -> Path:
        h = hashlib.sha256(url.encode("utf-8")).hexdigest()[:32]
        return self.cache_dir / f"{h}.bin"

    def _fetch_http_cached(self, url: str) -> Tuple[bytes, Optional[str]]:
        key = self._cache_key(url)
        if key.exists():
            try:
                raw = key.read_bytes()
                log.info("Cache hit: %s", key.name)
                return raw, mimetypes.guess_type(url)[0]
            except OSError as e:
                log.warning("Cache read failed for %s: %s", key.name, e)
        log.info("Fetching: %s", url)
        r = self._session.get(url, timeout=self.timeout)
        r.raise_for_status()
        raw = r.content
        try:
            key.write_bytes(raw)
        except OSError as e:
            log.warning("Cache write failed for %s: %s", key.name, e)
        return raw, r.headers.get("Content-Type")

    def _fetch_local(self, path_str: str) -> Tuple[bytes, Optional[str]]:
        p = Path(path_str)
        if not p.exists() or not p.is_file():
            raise FileNotFoundError(f"Input file not found: {p}")
        return p.read_bytes(), mimetypes.guess_type(p.name)[0]


class ImageLoader:
    """Decode bytes → Pillow image (RGB, or RGBA when the source has alpha)."""

    def load(self, raw: bytes, content_type: Optional[str], *, max_size: Optional[int] = None) -> Image.Image:
        if content_type and not content_type.lower().startswith("image/"):
            log.warning("Content-Type %s is not an image; trying to decode anyway", content_type)
        try:
            img = Image.open(io.BytesIO(raw))
            img.load()
        except Exception as e:
            raise ValueError(f"Failed to decode image: {e}") from e

        # camera JPEGs often carry their rotation in EXIF only
        img = ImageOps.exif_transpose(img)
        img = img.convert("RGBA") if img.mode in ("RGBA", "LA", "PA") else img.convert("RGB")

        if max_size:
            img.thumbnail((max_size, max_size), Image.Resampling.LANCZOS)
        return img


# =============== Small CLI helpers ===============
def _coerce(v: str) -> Any:
    try:
        return int(v)
    except ValueError:
        pass
    try:
        return float(v)
    except ValueError:
        low = v.lower()
        if low in ("true", "false"):
            return low == "true"
    return v


def _parse_kv_pairs(pairs: Optional[List[str]]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    if not pairs:
        return out
    for p in pairs:
        if "=" not in p:
            raise ValueError(f"Expected key=value, got '{p}'")
        k, v = p.split("=", 1)
        out[k.strip()] = _coerce(v.strip())
    return out


def _resolve_settings(preset: Optional[Path], extras: Optional[List[str]]) -> EffectSettings:
    """defaults → preset file → --extra pairs (last wins)."""
    settings = load_preset(preset) if preset else EffectSettings()
    return EffectSettings.from_mapping(_parse_kv_pairs(extras), base=settings)


def _load_source(url: str, max_size: Optional[int]) -> Image.Image:
    raw, ctype = FileFetcher().fetch(url)
    img = ImageLoader().load(raw, ctype, max_size=max_size)
    log.info("Loaded %s (%dx%d, %s)", url, img.width, img.height, img.mode)
    return img


# =============== CLI ===============
def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Photo → plaster bust still (900x1200 PNG)")
    p.add_argument("-v", "--verbose", action="count", default=0, help="Increase verbosity (-v, -vv).")

    sub = p.add_subparsers(dest="cmd", required=True)

    rp = sub.add_parser("run", help="Render one photo.")
    rp.add_argument("--url", required=True, help="HTTP(S) URL, file:// URL, or local path.")
    rp.add_argument("--out", type=Path, default=Path(DEFAULT_DOWNLOAD_NAME),
                    help=f"Output PNG (default: {DEFAULT_DOWNLOAD_NAME}).")
    rp.add_argument("--preset", type=Path, default=None, help="JSON file with settings.")
    rp.add_argument("--max-size", type=int, default=None, help="Downscale input longest side before processing.")
    rp.add_argument(
        "--extra",
        nargs="*",
        help="Setting overrides as k=v, e.g. depth=80 vignette=0 macroZoom=30.",
    )
    rp.set_defaults(func=cmd_run)

    dp = sub.add_parser("defaults", help="Print default settings and their ranges as JSON.")
    dp.set_defaults(func=cmd_defaults)

    bp = sub.add_parser("bench", help="Time repeated renders of one photo.")
    bp.add_argument("--url", required=True)
    bp.add_argument("--runs", type=int, default=3)
    bp.add_argument("--preset", type=Path, default=None)
    bp.add_argument("--extra", nargs="*")
    bp.set_defaults(func=cmd_bench)

    return p


# =============== Commands ===============
def cmd_run(args: argparse.Namespace) -> int:
    try:
        settings = _resolve_settings(args.preset, args.extra)
        log.info("Settings: %s", settings.to_dict())
        src_img = _load_source(args.url, args.max_size)

        surface = render_plaster_effect(src_img, settings)

        args.out.parent.mkdir(parents=True, exist_ok=True)
        args.out.write_bytes(encode_png(surface))
        log.info("Saved %s (%dx%d)", args.out, OUTPUT_WIDTH, OUTPUT_HEIGHT)
        return 0
    except Exception as e:
        log.exception("Failed: %s", e)
        return 1


def cmd_defaults(_args: argparse.Namespace) -> int:
    payload = {
        "defaults": EffectSettings().to_dict(),
        "ranges": {k: list(v) for k, v in SETTING_RANGES.items()},
        "ui_ranges": {k: list(v) for k, v in UI_RANGES.items()},
    }
    print(json.dumps(payload, indent=2))
    return 0


def cmd_bench(args: argparse.Namespace) -> int:
    try:
        settings = _resolve_settings(args.preset, args.extra)
        src_img = _load_source(args.url, None)

        times = []
        for _ in range(max(1, args.runs)):
            t0 = time.perf_counter()
            _ = render_plaster_effect(src_img, settings)
            times.append(time.perf_counter() - t0)
        avg = sum(times) / len(times)
        print(
            f"plaster: {len(times)} run(s) — avg {avg*1000:.2f} ms, "
            f"min {min(times)*1000:.2f} ms, max {max(times)*1000:.2f} ms"
        )
        return 0
    except Exception as e:
        log.exception("Bench failed: %s", e)
        return 1


# =============== Entry ===============
def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)
    return args.func(args)


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
