"""
Color Mapping Pipeline for CellCanvas.

Maps expression values to colors:
1. normalize t = (value - min) / (max - min), or 0.5 when min == max
2. clamp t to [0, 1]
3. contrast curve t' = t ** (1 / scale)
4. piecewise-linear interpolation over the palette's (position, r, g, b) stops

The stop tables are fixed reference data so that plots match earlier exports;
they are not re-derived from a colormap library.
"""

import math
import re
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

RGB = Tuple[int, int, int]
RGBA = Tuple[int, int, int, int]

PaletteStops = List[Tuple[float, int, int, int]]  # (position, r, g, b)

VIRIDIS_STOPS: PaletteStops = [
    (0.0, 68, 1, 84),
    (0.1, 72, 36, 117),
    (0.2, 65, 68, 135),
    (0.3, 53, 95, 141),
    (0.4, 42, 120, 142),
    (0.5, 33, 145, 140),
    (0.6, 34, 168, 132),
    (0.7, 68, 191, 112),
    (0.8, 122, 209, 81),
    (0.9, 189, 223, 38),
    (1.0, 253, 231, 37),
]

MAGMA_STOPS: PaletteStops = [
    (0.0, 0, 0, 4),
    (0.1, 28, 16, 68),
    (0.2, 79, 18, 123),
    (0.3, 129, 37, 129),
    (0.4, 181, 54, 122),
    (0.5, 229, 80, 100),
    (0.6, 251, 135, 97),
    (0.7, 254, 176, 120),
    (0.8, 254, 209, 154),
    (0.9, 254, 235, 195),
    (1.0, 252, 253, 191),
]

PLASMA_STOPS: PaletteStops = [
    (0.0, 13, 8, 135),
    (0.1, 75, 3, 161),
    (0.2, 125, 3, 168),
    (0.3, 168, 34, 150),
    (0.4, 203, 70, 121),
    (0.5, 229, 107, 93),
    (0.6, 248, 148, 65),
    (0.7, 253, 187, 45),
    (0.8, 245, 224, 32),
    (0.9, 225, 248, 56),
    (1.0, 240, 249, 33),
]

INFERNO_STOPS: PaletteStops = [
    (0.0, 0, 0, 4),
    (0.1, 22, 11, 57),
    (0.2, 66, 10, 104),
    (0.3, 106, 23, 110),
    (0.4, 147, 38, 103),
    (0.5, 188, 55, 84),
    (0.6, 221, 81, 58),
    (0.7, 243, 120, 25),
    (0.8, 252, 165, 10),
    (0.9, 246, 215, 70),
    (1.0, 252, 255, 164),
]

GRRD_STOPS: PaletteStops = [
    (0.0, 180, 180, 180),
    (0.25, 210, 210, 210),
    (0.5, 255, 255, 255),
    (0.75, 255, 140, 120),
    (1.0, 255, 75, 55),
]

BLUES_STOPS: PaletteStops = [
    (0.0, 247, 251, 255),
    (0.2, 198, 219, 239),
    (0.4, 158, 202, 225),
    (0.6, 107, 174, 214),
    (0.8, 49, 130, 189),
    (1.0, 8, 81, 156),
]

PALETTES: Dict[str, PaletteStops] = {
    "viridis": VIRIDIS_STOPS,
    "magma": MAGMA_STOPS,
    "plasma": PLASMA_STOPS,
    "inferno": INFERNO_STOPS,
    "grrd": GRRD_STOPS,
    "blues": BLUES_STOPS,
}

PALETTE_LABELS: Dict[str, str] = {
    "viridis": "Viridis",
    "magma": "Magma",
    "plasma": "Plasma",
    "inferno": "Inferno",
    "grrd": "Gray → Red",
    "blues": "Blues",
}

DEFAULT_COLOR: RGB = (100, 140, 200)


def get_palette(palette: str) -> PaletteStops:
    """Look up a palette by name."""
    try:
        return PALETTES[palette]
    except KeyError:
        raise ValueError(f"Unknown palette: {palette}") from None


def _round_half_up(values: np.ndarray) -> np.ndarray:
    return np.floor(values + 0.5).astype(int)


def interpolate_stops(stops: PaletteStops, t: float) -> RGB:
    """Interpolate a single position; outside [0, 1] clamps to the end stops."""
    r, g, b = interpolate_stops_array(stops, np.asarray([t], dtype=float))[0]
    return int(r), int(g), int(b)


def interpolate_stops_array(stops: PaletteStops, t: np.ndarray) -> np.ndarray:
    """Vectorized interpolation, returns an (n, 3) integer array."""
    table = np.asarray(stops, dtype=float)
    positions = table[:, 0]
    t = np.nan_to_num(np.asarray(t, dtype=float), nan=0.0)
    channels = [np.interp(t, positions, table[:, k]) for k in (1, 2, 3)]
    return _round_half_up(np.stack(channels, axis=-1))


def normalize_values(values: np.ndarray, vmin: float, vmax: float, scale: float = 1.0) -> np.ndarray:
    """Steps 1-3 of the pipeline over an array of values."""
    values = np.asarray(values, dtype=float)
    if vmax == vmin or not (math.isfinite(vmin) and math.isfinite(vmax)):
        t = np.full(values.shape, 0.5)
    else:
        t = (values - vmin) / (vmax - vmin)
    t = np.clip(np.nan_to_num(t, nan=0.0), 0.0, 1.0)
    if not scale or scale <= 0 or not math.isfinite(scale):
        scale = 1.0
    return np.power(t, 1.0 / scale)


def map_color(
    value: float,
    vmin: float,
    vmax: float,
    scale: float = 1.0,
    palette: str = "grrd",
) -> RGB:
    """
    Map an expression value to an RGB color.

    Args:
        value: Raw expression value
        vmin: Lower bound (or percentile-clipped min)
        vmax: Upper bound (or percentile-clipped max)
        scale: Power-scaling factor (>1 emphasizes high expression)
        palette: Palette name

    Returns:
        (r, g, b) tuple of ints in [0, 255]
    """
    t = normalize_values(np.asarray([value]), vmin, vmax, scale)
    r, g, b = interpolate_stops_array(get_palette(palette), t)[0]
    return int(r), int(g), int(b)


def map_colors(
    values: np.ndarray,
    vmin: float,
    vmax: float,
    scale: float = 1.0,
    palette: str = "grrd",
) -> np.ndarray:
    """Vectorized ``map_color``; returns an (n, 3) integer array."""
    t = normalize_values(values, vmin, vmax, scale)
    return interpolate_stops_array(get_palette(palette), t)


def compute_bounds(
    values: Sequence[float],
    use_percentile_clipping: bool = False,
    percentile_low: float = 5,
    percentile_high: float = 95,
) -> Tuple[float, float]:
    """
    Normalization bounds for a set of expression values.

    With percentile clipping and more than 10 values, the values are sorted
    and bounds are taken by nearest rank over indices 0..n-1, rounding the
    low rank up and the high rank down so both bounds are real observations
    inside the requested window. Otherwise the true min/max is used. An empty
    set yields (0, 1).
    """
    arr = np.asarray(values, dtype=float)
    arr = arr[np.isfinite(arr)]
    if arr.size == 0:
        return 0.0, 1.0

    if use_percentile_clipping and arr.size > 10:
        ordered = np.sort(arr)
        last = ordered.size - 1
        low_idx = int(math.ceil(round(percentile_low / 100 * last, 9)))
        high_idx = int(math.floor(round(percentile_high / 100 * last, 9)))
        low_idx = min(max(low_idx, 0), last)
        high_idx = min(max(high_idx, low_idx), last)
        return float(ordered[low_idx]), float(ordered[high_idx])

    return float(arr.min()), float(arr.max())


def get_palette_gradient_css(palette: str) -> str:
    """CSS linear-gradient string for a legend bar."""
    stops = ", ".join(
        f"rgb({r}, {g}, {b}) {pos * 100:g}%" for pos, r, g, b in get_palette(palette)
    )
    return f"linear-gradient(to right, {stops})"


# ==================== CSS color parsing ====================

_RGB_RE = re.compile(r"rgba?\(\s*(\d+)\s*,\s*(\d+)\s*,\s*(\d+)")
_HSL_RE = re.compile(r"hsl\(\s*(\d+(?:\.\d+)?)\s*,\s*(\d+(?:\.\d+)?)%\s*,\s*(\d+(?:\.\d+)?)%\s*\)")
_HEX_RE = re.compile(r"^#([0-9a-fA-F]{6}|[0-9a-fA-F]{3})$")


def _hue_to_rgb(p: float, q: float, t: float) -> float:
    if t < 0:
        t += 1
    if t > 1:
        t -= 1
    if t < 1 / 6:
        return p + (q - p) * 6 * t
    if t < 1 / 2:
        return q
    if t < 2 / 3:
        return p + (q - p) * (2 / 3 - t) * 6
    return p


def hsl_to_rgb(h: float, s: float, l: float) -> RGB:
    """Convert HSL (h in degrees, s and l in [0, 1]) to RGB."""
    h = (h % 360) / 360
    if s == 0:
        r = g = b = l
    else:
        q = l * (1 + s) if l < 0.5 else l + s - l * s
        p = 2 * l - q
        r = _hue_to_rgb(p, q, h + 1 / 3)
        g = _hue_to_rgb(p, q, h)
        b = _hue_to_rgb(p, q, h - 1 / 3)
    return int(math.floor(r * 255 + 0.5)), int(math.floor(g * 255 + 0.5)), int(math.floor(b * 255 + 0.5))


def parse_color(color: Optional[str]) -> RGB:
    """Parse ``rgb()``, ``hsl()`` or hex CSS colors; anything else is the default color."""
    if not color:
        return DEFAULT_COLOR
    color = color.strip()

    match = _RGB_RE.match(color)
    if match:
        return tuple(min(255, int(v)) for v in match.groups())

    match = _HSL_RE.match(color)
    if match:
        h, s, l = (float(v) for v in match.groups())
        return hsl_to_rgb(h, s / 100, l / 100)

    match = _HEX_RE.match(color)
    if match:
        digits = match.group(1)
        if len(digits) == 3:
            digits = "".join(ch * 2 for ch in digits)
        return int(digits[0:2], 16), int(digits[2:4], 16), int(digits[4:6], 16)

    return DEFAULT_COLOR


def parse_color_to_rgba(color: Optional[str], alpha: float = 1.0) -> RGBA:
    """Parse a CSS color and attach an 8-bit alpha."""
    r, g, b = parse_color(color)
    return r, g, b, int(math.floor(alpha * 255))


def rgba_css(rgba: RGBA) -> str:
    """Format an RGBA tuple as a CSS ``rgba()`` string."""
    r, g, b, a = rgba
    return f"rgba({r}, {g}, {b}, {a / 255:.3g})"
