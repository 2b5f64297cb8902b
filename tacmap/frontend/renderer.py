"""Projection and Pillow rendering of overlay draw requests.

``Viewport`` is a simple equirectangular projection around a center point,
good enough for the few-kilometre extents an operator annotates. It owns
pan/zoom state and converts between canvas pixels and (lat, lon).

``OverlayRenderer`` draws a list of ``DrawRequest`` records onto an RGBA
image: a graticule background, translucent area fills composited on a
separate layer, dashed outlines, markers with their glyphs, and labels.
The app renders at a supersampled size and downsamples, the same way for
the live canvas and for PNG export.
"""

from __future__ import annotations

import math

from PIL import Image, ImageColor, ImageDraw

from .. import config
from ..engine.geometry import circle_ring
from ..engine.overlay import DrawRequest
from ..engine.types import LatLon

METERS_PER_DEGREE = 111195.0

MAP_BG = "#1b2a1f"  # dark olive
GRID_COLOR = "#2c4032"
LABEL_COLOR = "#f3f4f6"
LABEL_SHADOW = "#000000"
MARKER_OUTLINE = "#111111"
MARKER_RADIUS_PX = 9
ANCHOR_RADIUS_PX = 6
VERTEX_RADIUS_PX = 4

# Graticule spacing candidates, in degrees
_GRID_STEPS = (0.0001, 0.0002, 0.0005, 0.001, 0.002, 0.005, 0.01, 0.02, 0.05,
               0.1, 0.2, 0.5, 1.0, 2.0, 5.0, 10.0)


class Viewport:
    """Equirectangular view: center, scale and pixel size."""

    def __init__(
        self,
        width,
        height,
        center: LatLon = config.DEFAULT_CENTER,
        meters_per_pixel=config.DEFAULT_METERS_PER_PIXEL,
        ref_lat=None,
    ):
        self.width = width
        self.height = height
        self.center = center
        self.meters_per_pixel = meters_per_pixel
        # Longitude scale is fixed at construction so pan and zoom stay exact
        self.ref_lat = center[0] if ref_lat is None else ref_lat

    def _lon_scale(self):
        return max(math.cos(math.radians(self.ref_lat)), 1e-6)

    def to_px(self, point: LatLon) -> tuple[float, float]:
        """(lat, lon) -> canvas pixels (top-left origin)."""
        lat, lon = point
        c_lat, c_lon = self.center
        x = (lon - c_lon) * self._lon_scale() * METERS_PER_DEGREE / self.meters_per_pixel
        y = (c_lat - lat) * METERS_PER_DEGREE / self.meters_per_pixel
        return self.width / 2 + x, self.height / 2 + y

    def to_latlon(self, x, y) -> LatLon:
        """Canvas pixels -> (lat, lon), inverse of ``to_px``."""
        c_lat, c_lon = self.center
        dx = (x - self.width / 2) * self.meters_per_pixel / METERS_PER_DEGREE
        dy = (y - self.height / 2) * self.meters_per_pixel / METERS_PER_DEGREE
        return c_lat - dy, c_lon + dx / self._lon_scale()

    def km_per_pixel(self):
        return self.meters_per_pixel / 1000.0

    def resize(self, width, height):
        self.width = width
        self.height = height

    def pan(self, dx_px, dy_px):
        """Move the view so content shifts by (dx, dy) pixels."""
        lat, lon = self.to_latlon(self.width / 2 - dx_px, self.height / 2 - dy_px)
        self.center = (max(-85.0, min(85.0, lat)), (lon + 180.0) % 360.0 - 180.0)

    def zoom(self, factor, around_px=None):
        """Scale by factor (>1 zooms in), keeping around_px fixed on screen."""
        new_mpp = self.meters_per_pixel / factor
        new_mpp = max(config.MIN_METERS_PER_PIXEL, min(config.MAX_METERS_PER_PIXEL, new_mpp))
        if around_px is None:
            self.meters_per_pixel = new_mpp
            return
        fixed = self.to_latlon(*around_px)
        self.meters_per_pixel = new_mpp
        fx, fy = self.to_px(fixed)
        self.pan(around_px[0] - fx, around_px[1] - fy)

    def scaled(self, factor) -> Viewport:
        """Same view at factor times the pixel size (for supersampling)."""
        return Viewport(
            self.width * factor,
            self.height * factor,
            self.center,
            self.meters_per_pixel / factor,
            ref_lat=self.ref_lat,
        )


def _rgba(color, opacity=1.0):
    r, g, b = ImageColor.getrgb(color)[:3]
    return r, g, b, max(0, min(255, round(255 * opacity)))


def _draw_text(draw, pos, text, fill, valign):
    """Draw text horizontally centered on pos; valign is "middle" or "bottom"."""
    left, top, right, bottom = draw.textbbox((0, 0), text)
    x, y = pos
    y -= (bottom - top) / 2 if valign == "middle" else (bottom - top)
    draw.text((x - (right - left) / 2 - left, y - top), text, fill=fill)


def _grid_step(viewport):
    span = viewport.height * viewport.meters_per_pixel / METERS_PER_DEGREE
    for step in _GRID_STEPS:
        if span / step <= 8:
            return step
    return _GRID_STEPS[-1]


class OverlayRenderer:
    """Renders draw requests to a Pillow image."""

    def __init__(self, viewport: Viewport, line_scale=1):
        self.viewport = viewport
        self.line_scale = line_scale

    def _lw(self, base_width):
        """Scale a pixel width by the supersample factor."""
        return max(1, round(base_width * self.line_scale))

    def _px(self, points):
        return [self.viewport.to_px(p) for p in points]

    def render(self, requests: list[DrawRequest]) -> Image.Image:
        w = int(self.viewport.width)
        h = int(self.viewport.height)

        # 1. Background and graticule
        img = Image.new("RGBA", (w, h), MAP_BG)
        self._draw_grid(ImageDraw.Draw(img), w, h)

        # 2. Fills on their own layer so opacity blends with the map
        fills = Image.new("RGBA", (w, h), (0, 0, 0, 0))
        fill_draw = ImageDraw.Draw(fills)
        for req in requests:
            if req.fill_opacity <= 0:
                continue
            poly = self._shape_outline(req)
            if len(poly) >= 3:
                fill_draw.polygon(poly, fill=_rgba(req.color, req.fill_opacity))
        img = Image.alpha_composite(img, fills)

        # 3. Outlines, markers and labels in request order
        layer = Image.new("RGBA", (w, h), (0, 0, 0, 0))
        draw = ImageDraw.Draw(layer)
        for req in requests:
            if req.geometry in ("polygon", "circle", "polyline"):
                self._draw_outline(draw, req)
            elif req.geometry == "marker":
                self._draw_marker(draw, req)
            elif req.geometry == "vertex":
                self._draw_vertex(draw, req)
        img = Image.alpha_composite(img, layer)
        return img

    def _draw_grid(self, draw, w, h):
        vp = self.viewport
        step = _grid_step(vp)
        top_lat, left_lon = vp.to_latlon(0, 0)
        bottom_lat, right_lon = vp.to_latlon(w, h)
        glw = self._lw(1)

        lon = math.floor(left_lon / step) * step
        while lon <= right_lon:
            x, _ = vp.to_px((top_lat, lon))
            draw.line([(x, 0), (x, h - 1)], fill=GRID_COLOR, width=glw)
            lon += step
        lat = math.floor(bottom_lat / step) * step
        while lat <= top_lat:
            _, y = vp.to_px((lat, left_lon))
            draw.line([(0, y), (w - 1, y)], fill=GRID_COLOR, width=glw)
            lat += step

    def _shape_outline(self, req):
        """Closed pixel ring for fillable shapes; [] for anything else."""
        if req.geometry == "circle":
            ring = circle_ring(req.coordinates[0], req.radius_m)
            return self._px(ring)
        if req.geometry == "polygon":
            return self._px(req.coordinates)
        return []

    def _draw_outline(self, draw, req):
        color = _rgba(req.color, req.opacity)
        width = self._lw(2)
        if req.geometry == "polyline":
            pts = self._px(req.coordinates)
        else:
            pts = self._shape_outline(req)
            if pts:
                pts = pts + [pts[0]]
        if len(pts) < 2:
            return
        if req.dash is None:
            draw.line(pts, fill=color, width=width)
        else:
            self._draw_dashed_path(draw, pts, req.dash, color, width)
        if req.label:
            if req.geometry == "polyline":
                a, b = pts[len(pts) // 2 - 1], pts[len(pts) // 2]
                pos = ((a[0] + b[0]) / 2, (a[1] + b[1]) / 2)
            else:
                xs = [p[0] for p in pts]
                ys = [p[1] for p in pts]
                pos = (sum(xs) / len(xs), min(ys))
            self._draw_label(draw, pos, req.label)

    def _draw_dashed_path(self, draw, pts, dash, fill, width):
        """Draw a polyline with an (on, off) dash pattern in pixels."""
        on, off = (d * self.line_scale for d in dash)
        period = on + off
        phase = 0.0
        for (x0, y0), (x1, y1) in zip(pts, pts[1:]):
            seg = math.hypot(x1 - x0, y1 - y0)
            if seg == 0:
                continue
            ux, uy = (x1 - x0) / seg, (y1 - y0) / seg
            pos = 0.0
            while pos < seg:
                in_period = phase % period
                if in_period < on:
                    run = min(on - in_period, seg - pos)
                    draw.line(
                        [(x0 + ux * pos, y0 + uy * pos),
                         (x0 + ux * (pos + run), y0 + uy * (pos + run))],
                        fill=fill,
                        width=width,
                    )
                else:
                    run = min(period - in_period, seg - pos)
                pos += run
                phase += run

    def _draw_marker(self, draw, req):
        x, y = self.viewport.to_px(req.coordinates[0])
        base = ANCHOR_RADIUS_PX if req.marker_style == "anchor" else MARKER_RADIUS_PX
        r = base * self.line_scale
        bbox = [x - r, y - r, x + r, y + r]
        fill = _rgba(req.color, req.opacity)
        outline = _rgba(MARKER_OUTLINE, req.opacity)
        if req.marker_style == "round":
            draw.ellipse(bbox, fill=fill, outline=outline, width=self._lw(2))
        elif req.marker_style == "anchor":
            diamond = [(x, y - r), (x + r, y), (x, y + r), (x - r, y)]
            draw.polygon(diamond, fill=fill, outline=outline)
        else:
            draw.rectangle(bbox, fill=fill, outline=outline, width=self._lw(2))
        if req.glyph:
            _draw_text(draw, (x, y), req.glyph, _rgba("#ffffff", req.opacity), "middle")
        if req.label:
            self._draw_label(draw, (x, y - r - 2 * self.line_scale), req.label)

    def _draw_vertex(self, draw, req):
        x, y = self.viewport.to_px(req.coordinates[0])
        r = VERTEX_RADIUS_PX * self.line_scale
        draw.ellipse([x - r, y - r, x + r, y + r], fill=_rgba(req.color))

    def _draw_label(self, draw, pos, text):
        x, y = pos
        s = self.line_scale
        _draw_text(draw, (x + s, y + s), text, LABEL_SHADOW, "bottom")
        _draw_text(draw, (x, y), text, LABEL_COLOR, "bottom")


def render_overlay(viewport: Viewport, requests, supersample=2) -> Image.Image:
    """Render at supersample x resolution, then downsample with LANCZOS."""
    big = OverlayRenderer(viewport.scaled(supersample), line_scale=supersample)
    img = big.render(requests)
    return img.resize(
        (int(viewport.width), int(viewport.height)), Image.Resampling.LANCZOS
    )
