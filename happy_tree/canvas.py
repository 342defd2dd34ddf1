"""
Raster drawing surface on Pillow.

new_canvas(w, h)                                  transparent RGBA canvas
draw_wedge(canvas, ring, ring_width, rgb, s, e)   opaque annular sector
composite_over(dst, src)                          alpha-over, in place on dst
persist(canvas, path, background)                 flatten over a solid colour and save

Angles are fractions of a turn, measured clockwise from 3 o'clock in image
coordinates (y grows downwards). Pillow draws without anti-aliasing, so the
same wedges always give the same pixels.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Tuple, Union

from PIL import Image, ImageDraw

from .errors import RenderError

RGB = Tuple[int, int, int]


def unpack_rgb(color: int) -> RGB:
    return ((color >> 16) & 0xFF, (color >> 8) & 0xFF, color & 0xFF)


class Canvas:
    def __init__(self, image: Image.Image) -> None:
        self.image = image
        self._draw: Optional[ImageDraw.ImageDraw] = None

    @property
    def size(self) -> Tuple[int, int]:
        return self.image.size

    @property
    def draw(self) -> ImageDraw.ImageDraw:
        if self._draw is None:
            self._draw = ImageDraw.Draw(self.image)
        return self._draw

    # ImageDraw handles do not pickle; process workers ship the image only
    def __getstate__(self):
        return {"image": self.image}

    def __setstate__(self, state) -> None:
        self.image = state["image"]
        self._draw = None


def new_canvas(width: int, height: int) -> Canvas:
    return Canvas(Image.new("RGBA", (int(width), int(height)), (0, 0, 0, 0)))


def draw_wedge(
    canvas: Canvas,
    ring: int,
    ring_width: float,
    rgb: Union[RGB, int],
    start: float,
    end: float,
) -> bool:
    """Draw one annular sector. Returns False when the span is empty."""
    if end <= start:
        return False
    if isinstance(rgb, int):
        rgb = unpack_rgb(rgb)

    w, h = canvas.size
    cx, cy = w / 2.0, h / 2.0
    outer = (ring + 1) * ring_width
    thickness = max(1, int(round(ring_width)))
    bbox = [cx - outer, cy - outer, cx + outer, cy + outer]
    fill = (rgb[0], rgb[1], rgb[2], 255)

    if end - start >= 1.0:
        canvas.draw.arc(bbox, 0, 360, fill=fill, width=thickness)
    else:
        canvas.draw.arc(bbox, start * 360.0, end * 360.0, fill=fill, width=thickness)
    return True


def composite_over(dst: Canvas, src: Canvas) -> None:
    if dst.size != src.size:
        raise RenderError(f"cannot composite a {src.size} canvas onto a {dst.size} canvas")
    dst.image.alpha_composite(src.image)


def persist(canvas: Canvas, path: Union[str, Path], background: int = 0xFFFFFF) -> str:
    path = Path(path)
    back = Image.new("RGBA", canvas.size, unpack_rgb(background) + (255,))
    back.alpha_composite(canvas.image)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        back.convert("RGB").save(path)
    except (OSError, ValueError) as e:
        raise RenderError(f"writing image '{path}' failed: {e}", path=str(path)) from e
    return str(path)
