# media/canvas.py
from __future__ import annotations
import base64, io

import numpy as np
from PIL import Image

from common.errors import CanvasUnavailableError, FrameCaptureError

DEFAULT_QUALITY = 0.8


class Canvas:
    """
    Off-screen RGB surface sized to a video's native resolution.
    draw() paints a decoded frame; encode() returns a self-contained JPEG.
    """

    def __init__(self, width: int, height: int):
        try:
            self._image = Image.new("RGB", (int(width), int(height)))
        except (ValueError, MemoryError) as e:
            raise CanvasUnavailableError(f"Canvas {width}x{height} not available: {e}") from e

    @property
    def size(self) -> tuple[int, int]:
        return self._image.size

    def draw(self, frame: np.ndarray) -> None:
        if 0 in self._image.size:
            raise FrameCaptureError("degenerate 0-area canvas")
        try:
            img = Image.fromarray(np.ascontiguousarray(frame, dtype=np.uint8))
        except (TypeError, ValueError) as e:
            raise FrameCaptureError(f"cannot draw frame of shape {getattr(frame, 'shape', None)}: {e}") from e
        if img.mode != "RGB":
            img = img.convert("RGB")
        if img.size != self._image.size:
            img = img.resize(self._image.size, Image.BILINEAR)
        self._image.paste(img, (0, 0))

    def encode(self, quality: float = DEFAULT_QUALITY, fmt: str = "JPEG") -> bytes:
        """quality is 0..1 like a canvas encoder; mapped to Pillow's 1..95 scale."""
        q = max(1, min(95, int(round(quality * 100))))
        buf = io.BytesIO()
        try:
            self._image.save(buf, format=fmt, quality=q)
        except (OSError, ValueError, SystemError) as e:
            raise FrameCaptureError(f"encode failed for {self.size[0]}x{self.size[1]} canvas: {e}") from e
        return buf.getvalue()


def to_data_url(data: bytes, mime_type: str = "image/jpeg") -> str:
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"
