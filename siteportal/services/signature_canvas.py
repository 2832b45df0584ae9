"""Freehand signature capture on a fixed-resolution raster surface.

Pointer events arrive in viewport (CSS pixel) coordinates while the drawing
buffer has its own pixel size; every point goes through ``to_canvas_point``
before it is drawn.
"""
from __future__ import annotations

import base64
import binascii
import io
import logging
from dataclasses import dataclass
from typing import Iterable, Sequence

from PIL import Image, ImageDraw

from siteportal.config import settings

logger = logging.getLogger(__name__)

PNG_DATA_URI_PREFIX = "data:image/png;base64,"
IMAGE_DATA_URI_PREFIX = "data:image"

Point = tuple[float, float]


@dataclass(frozen=True)
class CanvasRect:
    """On-screen bounding rectangle of the canvas element."""

    left: float
    top: float
    width: float
    height: float


def to_canvas_point(
    client_x: float,
    client_y: float,
    rect: CanvasRect,
    canvas_width: int,
    canvas_height: int,
) -> Point:
    """Map viewport coordinates into the canvas buffer's coordinate space."""
    if rect.width <= 0 or rect.height <= 0:
        return (0.0, 0.0)
    scale_x = canvas_width / rect.width
    scale_y = canvas_height / rect.height
    return ((client_x - rect.left) * scale_x, (client_y - rect.top) * scale_y)


class SignatureCanvas:
    STROKE_WIDTH = 2
    STROKE_COLOR = (0, 0, 0)
    BACKGROUND = (255, 255, 255)

    def __init__(self, width: int | None = None, height: int | None = None) -> None:
        self.width = int(width or settings.signature_canvas_width)
        self.height = int(height or settings.signature_canvas_height)
        self._image = Image.new("RGB", (self.width, self.height), self.BACKGROUND)
        self._draw = ImageDraw.Draw(self._image)
        self._last_point: Point | None = None
        self.has_content = False

    def to_canvas_point(
        self, client_x: float, client_y: float, rect: CanvasRect
    ) -> Point:
        return to_canvas_point(client_x, client_y, rect, self.width, self.height)

    def start_stroke(self, point: Point) -> None:
        self._last_point = (float(point[0]), float(point[1]))

    def extend_stroke(self, point: Point) -> None:
        if self._last_point is None:
            return
        end = (float(point[0]), float(point[1]))
        self._draw.line(
            [self._last_point, end], fill=self.STROKE_COLOR, width=self.STROKE_WIDTH
        )
        self._round_cap(self._last_point)
        self._round_cap(end)
        self._last_point = end
        self.has_content = True

    def end_stroke(self) -> None:
        self._last_point = None

    def clear(self) -> None:
        self._draw.rectangle(
            [0, 0, self.width - 1, self.height - 1], fill=self.BACKGROUND
        )
        self._last_point = None
        self.has_content = False

    def to_png(self) -> bytes:
        buf = io.BytesIO()
        self._image.save(buf, format="PNG")
        return buf.getvalue()

    def export(self) -> str:
        """PNG data URI of the surface (blank white if nothing was drawn)."""
        return PNG_DATA_URI_PREFIX + base64.b64encode(self.to_png()).decode("ascii")

    def _round_cap(self, point: Point) -> None:
        radius = self.STROKE_WIDTH / 2
        x, y = point
        self._draw.ellipse(
            [x - radius, y - radius, x + radius, y + radius], fill=self.STROKE_COLOR
        )

    @classmethod
    def from_strokes(
        cls,
        strokes: Iterable[Sequence[Point]],
        rect: CanvasRect | None = None,
        width: int | None = None,
        height: int | None = None,
    ) -> "SignatureCanvas":
        """Replay recorded pointer strokes onto a fresh canvas.

        Points are viewport coordinates when ``rect`` is given, otherwise
        canvas coordinates.
        """
        canvas = cls(width, height)
        for stroke in strokes:
            points = list(stroke)
            if not points:
                continue
            if rect is not None:
                points = [canvas.to_canvas_point(x, y, rect) for x, y in points]
            canvas.start_stroke(points[0])
            for point in points[1:]:
                canvas.extend_stroke(point)
            canvas.end_stroke()
        return canvas


def is_image_data_uri(value: str | None) -> bool:
    return isinstance(value, str) and value.startswith(IMAGE_DATA_URI_PREFIX)


def decode_data_uri(value: str) -> bytes:
    if not is_image_data_uri(value):
        raise ValueError("Not an image data URI")
    header, sep, payload = value.partition(",")
    if not sep or ";base64" not in header:
        raise ValueError("Image data URI is not base64 encoded")
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError(f"Invalid base64 payload: {exc}") from exc


class SignatureTooLarge(ValueError):
    """Signature image dimensions exceed ``signature_max_dimension``."""


def load_signature_image(value: str, max_dimension: int | None = None) -> Image.Image:
    """Decode a stored signature into a Pillow image or raise ``ValueError``.

    The header is checked against ``max_dimension`` before any pixel data is
    decoded; oversize images raise ``SignatureTooLarge``.
    """
    max_dimension = max_dimension or settings.signature_max_dimension
    raw = decode_data_uri(value)
    try:
        image = Image.open(io.BytesIO(raw))
    except Image.DecompressionBombError as exc:
        raise SignatureTooLarge(str(exc)) from exc
    except OSError as exc:
        raise ValueError(f"Undecodable signature image: {exc}") from exc
    width, height = image.size
    if width > max_dimension or height > max_dimension:
        raise SignatureTooLarge(
            f"Image size {width}x{height} exceeds {max_dimension}px"
        )
    try:
        image.load()
    except OSError as exc:
        raise ValueError(f"Undecodable signature image: {exc}") from exc
    return image


def image_has_ink(image: Image.Image) -> bool:
    """True when the image has any non-white pixel once composited on white."""
    if image.mode in ("RGBA", "LA") or (
        image.mode == "P" and "transparency" in image.info
    ):
        rgba = image.convert("RGBA")
        background = Image.new("RGBA", rgba.size, (255, 255, 255, 255))
        image = Image.alpha_composite(background, rgba)
    low, _high = image.convert("L").getextrema()
    return low < 255
