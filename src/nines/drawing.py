"""
Stroke model behind the pannable, zoomable drawing surface.

Strokes are stored in world coordinates; ``render`` produces an immutable
``RasterBuffer`` snapshot of the current view for the recogniser.
"""

from __future__ import annotations

from typing import List, Optional, Tuple

from PIL import Image, ImageDraw

from .raster import RasterBuffer

Point = Tuple[float, float]

MIN_ZOOM = 0.5
MAX_ZOOM = 2.0
ZOOM_STEP = 0.05
STROKE_WIDTH = 4
PEN_COLOR = (0, 0, 0, 255)
BACKGROUND_COLOR = (255, 255, 255, 255)


class Drawing:
    def __init__(self, stroke_width: int = STROKE_WIDTH) -> None:
        self.stroke_width = stroke_width
        self.zoom = 1.0
        self.pan: Point = (0.0, 0.0)
        self.strokes: List[List[Point]] = []
        self._current: Optional[List[Point]] = None

    @property
    def drawing(self) -> bool:
        return self._current is not None

    def screen_to_world(self, x: float, y: float) -> Point:
        return ((x - self.pan[0]) / self.zoom, (y - self.pan[1]) / self.zoom)

    def world_to_screen(self, x: float, y: float) -> Point:
        return (x * self.zoom + self.pan[0], y * self.zoom + self.pan[1])

    def begin_stroke(self, x: float, y: float) -> None:
        self._current = [self.screen_to_world(x, y)]

    def extend_stroke(self, x: float, y: float) -> Optional[Tuple[Point, Point]]:
        """Add a point; returns the new screen-space segment to paint, if any."""
        if self._current is None:
            return None
        previous = self._current[-1]
        self._current.append(self.screen_to_world(x, y))
        return self.world_to_screen(*previous), (float(x), float(y))

    def end_stroke(self) -> None:
        if self._current is not None:
            self.strokes.append(self._current)
        self._current = None

    def pan_by(self, dx: float, dy: float) -> None:
        self.pan = (self.pan[0] + dx, self.pan[1] + dy)

    def zoom_at(self, x: float, y: float, direction: int) -> None:
        """Step the zoom in (direction > 0) or out, keeping the point under the cursor fixed."""
        world_x, world_y = self.screen_to_world(x, y)
        delta = ZOOM_STEP if direction > 0 else -ZOOM_STEP
        self.zoom = min(max(round(self.zoom + delta, 4), MIN_ZOOM), MAX_ZOOM)
        self.pan = (x - world_x * self.zoom, y - world_y * self.zoom)

    def clear(self) -> None:
        self.strokes = []
        self._current = None

    def render(self, width: int, height: int) -> RasterBuffer:
        """Snapshot of the current view as an RGBA buffer."""
        image = Image.new("RGBA", (width, height), BACKGROUND_COLOR)
        draw = ImageDraw.Draw(image)
        line_width = max(1, int(round(self.stroke_width * self.zoom)))
        radius = line_width / 2.0
        for stroke in self.strokes:
            # Single-point strokes are not painted.
            if len(stroke) < 2:
                continue
            points = [self.world_to_screen(px, py) for px, py in stroke]
            draw.line(points, fill=PEN_COLOR, width=line_width, joint="curve")
            for sx, sy in (points[0], points[-1]):
                draw.ellipse((sx - radius, sy - radius, sx + radius, sy + radius), fill=PEN_COLOR)
        return RasterBuffer.from_image(image)
