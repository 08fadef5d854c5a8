"""
SVG export of a rendered Frame.

Usage:
    frame = render_frame(scene)
    svg_text = frame_to_svg(frame, scale=2.0)   # 2x "high-res" export
    write_svg(frame, "umap.svg")
"""

from pathlib import Path
from typing import List, Union
from xml.sax.saxutils import escape

from cellcanvas.render.palettes import rgba_css
from cellcanvas.render.scatter import (
    AxisText,
    Clear,
    Frame,
    GridLine,
    LabelBox,
    OverlayPolygon,
    OverlayRect,
    Points,
    SelectionRings,
)

FONT_FAMILY = "Inter, sans-serif"


def _num(value: float) -> str:
    return f"{value:.2f}".rstrip("0").rstrip(".")


def _dash(dash) -> str:
    return ",".join(str(d) for d in dash)


def _render_command(command) -> List[str]:
    if isinstance(command, Clear):
        return [f'<rect x="0" y="0" width="{command.width}" height="{command.height}" fill="{command.color}"/>']

    if isinstance(command, GridLine):
        return [
            f'<line x1="{_num(command.x1)}" y1="{_num(command.y1)}" x2="{_num(command.x2)}" '
            f'y2="{_num(command.y2)}" stroke="{command.color}" stroke-width="{_num(command.width)}"/>'
        ]

    if isinstance(command, SelectionRings):
        r = _num(command.radius)
        return [
            f'<circle cx="{_num(x)}" cy="{_num(y)}" r="{r}" fill="{command.color}"/>'
            for x, y in zip(command.xs, command.ys)
        ]

    if isinstance(command, Points):
        r = _num(command.radius)
        return [
            f'<circle cx="{_num(x)}" cy="{_num(y)}" r="{r}" fill="{rgba_css(tuple(int(v) for v in rgba))}"/>'
            for x, y, rgba in zip(command.xs, command.ys, command.colors)
        ]

    if isinstance(command, LabelBox):
        weight = ' font-weight="bold"' if command.bold else ""
        return [
            f'<rect x="{_num(command.x - command.width / 2)}" y="{_num(command.y - command.height / 2)}" '
            f'width="{_num(command.width)}" height="{_num(command.height)}" rx="{_num(command.radius)}" '
            f'fill="{command.fill}" stroke="{command.stroke}" stroke-width="{_num(command.stroke_width)}"/>',
            f'<text x="{_num(command.x)}" y="{_num(command.y)}" font-family="{FONT_FAMILY}" '
            f'font-size="{command.font_size}"{weight} fill="{command.text_color}" '
            f'text-anchor="middle" dominant-baseline="central">{escape(command.text)}</text>',
        ]

    if isinstance(command, OverlayPolygon):
        points = " ".join(f"{_num(x)},{_num(y)}" for x, y in command.points)
        return [
            f'<polygon points="{points}" fill="{command.fill}" stroke="{command.stroke}" '
            f'stroke-width="{_num(command.width)}" stroke-dasharray="{_dash(command.dash)}"/>'
        ]

    if isinstance(command, OverlayRect):
        return [
            f'<rect x="{_num(command.x)}" y="{_num(command.y)}" width="{_num(command.width)}" '
            f'height="{_num(command.height)}" fill="{command.fill}" stroke="{command.stroke}" '
            f'stroke-width="{_num(command.line_width)}" stroke-dasharray="{_dash(command.dash)}"/>'
        ]

    if isinstance(command, AxisText):
        transform = ""
        if command.rotation:
            transform = f' transform="rotate({_num(command.rotation)} {_num(command.x)} {_num(command.y)})"'
        return [
            f'<text x="{_num(command.x)}" y="{_num(command.y)}" font-family="{FONT_FAMILY}" '
            f'font-size="{command.font_size}" fill="{command.color}" text-anchor="middle"{transform}>'
            f"{escape(command.text)}</text>"
        ]

    return []


def frame_to_svg(frame: Frame, scale: float = 1.0) -> str:
    """
    Serialize a frame to a standalone SVG document.

    Args:
        frame: Frame from ``render_frame``
        scale: Output size multiplier; the viewBox stays in canvas pixels

    Returns:
        SVG document text
    """
    if scale <= 0:
        raise ValueError("Export scale must be positive")

    out_w = _num(frame.width * scale)
    out_h = _num(frame.height * scale)
    lines = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        f'<svg xmlns="http://www.w3.org/2000/svg" width="{out_w}" height="{out_h}" '
        f'viewBox="0 0 {frame.width} {frame.height}">',
    ]
    for command in frame.commands:
        lines.extend("  " + line for line in _render_command(command))
    lines.append("</svg>")
    return "\n".join(lines) + "\n"


def write_svg(frame: Frame, path: Union[str, Path], scale: float = 1.0) -> Path:
    """Write ``frame`` as SVG to ``path``."""
    path = Path(path)
    path.write_text(frame_to_svg(frame, scale), encoding="utf-8")
    return path
