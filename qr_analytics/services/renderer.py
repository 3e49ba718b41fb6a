"""
renderer.py — Stage 3 of the heatmap engine: HeatmapData → image bytes.

Draws a heatmap on a fixed 800×400 canvas:

  geographic  light-gray background, one circle per country
              (radius ∝ intensity, clamped to 3–20 px) + legend "Scans"
  temporal    white background, near-square grid of cells packed by index
              (NOT the data-point x/y) + legend "Activity"
  device      white background, circles clamped to 10–50 px, name under each
  anything    else (e.g. "combined"): circles clamped to 5–25 px, no legend

Colors come from a matplotlib colormap (viridis unless a scheme is named)
normalised over [minValue, maxValue]. The legend bar samples the same
colormap once per pixel row.

Drawing goes through the small Canvas interface so the same layout code
emits PNG (Pillow) or SVG (a matplotlib Figure saved with savefig):

    fill_rect · fill_circle · draw_text · color_bar · to_bytes

Rendering is CPU-bound and synchronous; HeatmapService runs it in a worker
thread via asyncio.to_thread().
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from io import BytesIO
from typing import Callable

import matplotlib
import numpy as np
from matplotlib import colormaps, patches
from matplotlib.colors import Normalize, to_hex as mpl_to_hex
from matplotlib.figure import Figure
from PIL import Image, ImageDraw, ImageFont

from qr_analytics.core.errors import ValidationError
from qr_analytics.models.heatmap import COLOR_SCHEMES, HeatmapData
from qr_analytics.services.projector import CANVAS_HEIGHT, CANVAS_WIDTH

# Keep SVG labels as <text> elements instead of glyph outlines
matplotlib.rcParams["svg.fonttype"] = "none"

RGB = tuple[int, int, int]

_WHITE: RGB      = (255, 255, 255)
_LIGHT_GRAY: RGB = (240, 240, 240)
_BLACK: RGB      = (0, 0, 0)

_FONT_SIZE = 12
_DPI = 100

# Legend placement (top-right, vertical bar)
_LEGEND_X      = 650
_LEGEND_Y      = 50
_LEGEND_WIDTH  = 20
_LEGEND_HEIGHT = 200

# Scheme names accepted by the API → matplotlib colormap names
_CMAP_NAMES = {
    "viridis": "viridis",
    "plasma":  "plasma",
    "inferno": "inferno",
    "magma":   "magma",
    "cool":    "cool",
    "warm":    "autumn",
}


# ── Color scale ───────────────────────────────────────────────────────────────

class ColorScale:
    """Sequential, perceptually ordered value → RGB mapping over [min, max]."""

    def __init__(self, min_value: float, max_value: float, scheme: str = "viridis"):
        if scheme not in _CMAP_NAMES:
            raise ValidationError(
                f"Unknown color scheme '{scheme}'",
                details={"allowed": list(COLOR_SCHEMES)},
            )
        self.min_value = min_value
        self.max_value = max_value
        self.cmap = colormaps[_CMAP_NAMES[scheme]]
        # vmin == vmax (single-bucket or empty heatmap) maps everything to 0.
        self.norm = Normalize(vmin=min_value, vmax=max_value, clip=True)

    def __call__(self, value: float) -> RGB:
        r, g, b, _ = self.cmap(float(self.norm(value)))
        return round(r * 255), round(g * 255), round(b * 255)

    def ramp(self, steps: int) -> list[float]:
        """`steps` evenly spaced values from max down to min."""
        if steps <= 1:
            return [self.max_value] * steps
        span = self.max_value - self.min_value
        return [self.max_value - span * i / (steps - 1) for i in range(steps)]


def to_hex(color: RGB) -> str:
    return mpl_to_hex([c / 255 for c in color])


def _format_number(value: float) -> str:
    return f"{value:.2f}".rstrip("0").rstrip(".")


# ── Canvas backends ───────────────────────────────────────────────────────────

class Canvas(ABC):
    """Minimal 2D drawing surface. Text y is the top of the text box."""

    media_type: str

    def __init__(self, width: int, height: int, background: RGB):
        self.width = width
        self.height = height
        self.background = background

    @abstractmethod
    def fill_rect(self, x: float, y: float, w: float, h: float, color: RGB) -> None: ...

    @abstractmethod
    def fill_circle(self, cx: float, cy: float, radius: float, color: RGB) -> None: ...

    @abstractmethod
    def draw_text(self, x: float, y: float, text: str, color: RGB = _BLACK, align: str = "left") -> None: ...

    @abstractmethod
    def color_bar(self, x: float, y: float, w: float, h: float, scale: ColorScale) -> None:
        """Fill a box with the scale's colormap, max at the top, min at the bottom."""

    @abstractmethod
    def to_bytes(self) -> bytes: ...


class RasterCanvas(Canvas):
    media_type = "image/png"

    def __init__(self, width: int, height: int, background: RGB):
        super().__init__(width, height, background)
        self._image = Image.new("RGB", (width, height), background)
        self._draw = ImageDraw.Draw(self._image)
        self._font = ImageFont.load_default(size=_FONT_SIZE)

    def fill_rect(self, x, y, w, h, color):
        if w <= 0 or h <= 0:
            return
        self._draw.rectangle((x, y, x + w - 1, y + h - 1), fill=color)

    def fill_circle(self, cx, cy, radius, color):
        self._draw.ellipse((cx - radius, cy - radius, cx + radius, cy + radius), fill=color)

    def draw_text(self, x, y, text, color=_BLACK, align="left"):
        if align == "center":
            x -= self._draw.textlength(text, font=self._font) / 2
        self._draw.text((x, y), text, fill=color, font=self._font)

    def color_bar(self, x, y, w, h, scale):
        # One colormap sample per pixel row
        for row, value in enumerate(scale.ramp(int(h))):
            self._draw.line([(x, y + row), (x + w - 1, y + row)], fill=scale(value))

    def to_bytes(self) -> bytes:
        buffer = BytesIO()
        self._image.save(buffer, format="PNG")
        return buffer.getvalue()


class FigureCanvas(Canvas):
    """
    SVG output through a matplotlib Figure.

    One axes spans the whole figure with data units equal to pixels and the
    y axis pointing down, so layouts use the same coordinates as the raster
    canvas. Figure is used directly rather than pyplot: rendering runs in
    worker threads and pyplot's global figure state is not thread-safe.
    """

    media_type = "image/svg+xml"

    def __init__(self, width: int, height: int, background: RGB):
        super().__init__(width, height, background)
        self._figure = Figure(figsize=(width / _DPI, height / _DPI), dpi=_DPI, facecolor=to_hex(background))
        self._ax = self._figure.add_axes((0, 0, 1, 1))
        self._ax.set_xlim(0, width)
        self._ax.set_ylim(height, 0)
        self._ax.set_axis_off()

    def fill_rect(self, x, y, w, h, color):
        if w <= 0 or h <= 0:
            return
        self._ax.add_patch(patches.Rectangle((x, y), w, h, facecolor=to_hex(color), linewidth=0))

    def fill_circle(self, cx, cy, radius, color):
        self._ax.add_patch(patches.Circle((cx, cy), radius, facecolor=to_hex(color), linewidth=0))

    def draw_text(self, x, y, text, color=_BLACK, align="left"):
        self._ax.text(
            x, y, text,
            color=to_hex(color),
            fontsize=_FONT_SIZE * 72 / _DPI,
            ha="center" if align == "center" else "left",
            va="top",
            parse_math=False,
        )

    def color_bar(self, x, y, w, h, scale):
        values = np.asarray(scale.ramp(int(h)), dtype=float).reshape(-1, 1)
        # extent is (left, right, bottom, top); row 0 (the max) lands at y
        self._ax.imshow(
            values,
            cmap=scale.cmap,
            norm=scale.norm,
            extent=(x, x + w, y + h, y),
            origin="upper",
            aspect="auto",
            interpolation="nearest",
        )

    def to_bytes(self) -> bytes:
        buffer = BytesIO()
        self._figure.savefig(buffer, format="svg", metadata={"Date": None})
        return buffer.getvalue()


_CANVASES: dict[str, type[Canvas]] = {
    "png": RasterCanvas,
    "svg": FigureCanvas,
}


def create_canvas(fmt: str, background: RGB) -> Canvas:
    canvas_cls = _CANVASES.get(fmt)
    if canvas_cls is None:
        raise ValidationError(
            f"Unsupported image format '{fmt}'",
            details={"allowed": list(_CANVASES)},
        )
    return canvas_cls(CANVAS_WIDTH, CANVAS_HEIGHT, background)


# ── Layouts ───────────────────────────────────────────────────────────────────

def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def draw_legend(canvas: Canvas, scale: ColorScale, label: str) -> None:
    """Vertical colormap bar, max at the top, min at the bottom, title above."""
    lo, hi = scale.min_value, scale.max_value
    canvas.color_bar(_LEGEND_X, _LEGEND_Y, _LEGEND_WIDTH, _LEGEND_HEIGHT, scale)

    label_x = _LEGEND_X + _LEGEND_WIDTH + 5
    canvas.draw_text(label_x, _LEGEND_Y, _format_number(hi))
    canvas.draw_text(label_x, _LEGEND_Y + _LEGEND_HEIGHT - _FONT_SIZE, _format_number(lo))
    canvas.draw_text(_LEGEND_X, _LEGEND_Y - _FONT_SIZE - 8, label)


def render_geographic(canvas: Canvas, heatmap: HeatmapData, scale: ColorScale) -> None:
    for point in heatmap.data_points:
        radius = _clamp(point.intensity * 20, 3, 20)
        canvas.fill_circle(point.x, point.y, radius, scale(point.value))
    draw_legend(canvas, scale, "Scans")


def render_temporal(canvas: Canvas, heatmap: HeatmapData, scale: ColorScale) -> None:
    count = len(heatmap.data_points)
    if count:
        side = math.sqrt(count)
        cell_w = canvas.width / side
        cell_h = canvas.height / side
        for index, point in enumerate(heatmap.data_points):
            row, col = divmod(index, side)
            canvas.fill_rect(col * cell_w, row * cell_h, cell_w - 1, cell_h - 1, scale(point.value))
    draw_legend(canvas, scale, "Activity")


def render_device(canvas: Canvas, heatmap: HeatmapData, scale: ColorScale) -> None:
    for point in heatmap.data_points:
        radius = _clamp(point.intensity * 50, 10, 50)
        canvas.fill_circle(point.x, point.y, radius, scale(point.value))
        name = point.metadata.get("name")
        if name:
            canvas.draw_text(point.x, point.y + radius + 4, str(name), align="center")


def render_generic(canvas: Canvas, heatmap: HeatmapData, scale: ColorScale) -> None:
    for point in heatmap.data_points:
        radius = _clamp(point.intensity * 25, 5, 25)
        canvas.fill_circle(point.x, point.y, radius, scale(point.value))


Renderer = Callable[[Canvas, HeatmapData, ColorScale], None]

_RENDERERS: dict[str, tuple[Renderer, RGB]] = {
    "geographic": (render_geographic, _LIGHT_GRAY),
    "temporal":   (render_temporal,   _WHITE),
    "device":     (render_device,     _WHITE),
}


def media_type_for(fmt: str) -> str:
    return _CANVASES[fmt].media_type


def render_heatmap_image(heatmap: HeatmapData, fmt: str = "png", color_scheme: str = "viridis") -> bytes:
    """Render any heatmap kind; unknown kinds use the generic circle layout."""
    render, background = _RENDERERS.get(heatmap.type, (render_generic, _WHITE))
    scale = ColorScale(heatmap.min_value, heatmap.max_value, color_scheme)
    canvas = create_canvas(fmt, background)
    render(canvas, heatmap, scale)
    return canvas.to_bytes()
