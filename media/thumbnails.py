# media/thumbnails.py
from __future__ import annotations
import io
from typing import Optional

from PIL import Image, ImageDraw

from common.errors import DecodeError, LoadError
from common.logging import get_logger
from common.schemas import BoundingBox, VideoMetadata
from media.canvas import Canvas, DEFAULT_QUALITY
from media.decoder import MediaDecoder, OpenCVDecoder, VideoInput
from media.face_crop import DEFAULT_CONTAINER_PX, project_face_crop

log = get_logger("thumbnails")

THUMBNAIL_AT_S = 1.0


async def generate_thumbnail(
    video: VideoInput,
    *,
    decoder: Optional[MediaDecoder] = None,
    at_seconds: float = THUMBNAIL_AT_S,
    quality: float = DEFAULT_QUALITY,
) -> bytes:
    """
    Single JPEG still taken at the 1s mark (short clips land on their last frame).
    Failures are terminal: LoadError for decode problems, CanvasUnavailableError
    when no surface can be created.
    """
    decoder = decoder or OpenCVDecoder()
    try:
        source = await decoder.open(video)
    except DecodeError as e:
        raise LoadError(f"Failed to load video for thumbnail generation: {e}") from e

    try:
        meta = source.metadata
        canvas = Canvas(meta.width, meta.height)
        try:
            await source.seek(at_seconds)
            canvas.draw(await source.read_frame())
            data = canvas.encode(quality)
        except Exception as e:
            log.error(f"[thumbnail] {video}: {e}")
            raise LoadError(f"Thumbnail capture failed for {video}: {e}") from e
    finally:
        await source.close()

    log.info(f"[thumbnail] {video} at={at_seconds:g}s bytes={len(data)}")
    return data


async def extract_video_metadata(video: VideoInput, *, decoder: Optional[MediaDecoder] = None) -> VideoMetadata:
    decoder = decoder or OpenCVDecoder()
    source = await decoder.open(video)
    try:
        meta = source.metadata
    finally:
        await source.close()
    log.info(f"[metadata] {video} duration={meta.duration:g}s size={meta.width}x{meta.height} fps={meta.frame_rate:g}")
    return meta


def render_face_thumbnail(
    image_bytes: bytes,
    bounding_box: Optional[BoundingBox] = None,
    container_size: int = DEFAULT_CONTAINER_PX,
) -> bytes:
    """
    Rasterize the projected face crop into a circular PNG of container_size px.

    Mirrors how the gallery positions the photo: laid out at container width
    with proportional height, then scaled and translated from the top-left.
    """
    t = project_face_crop(bounding_box, container_size)
    with Image.open(io.BytesIO(image_bytes)) as src:
        img = src.convert("RGB")

    base_w = container_size
    base_h = max(1, round(img.height * container_size / max(1, img.width)))
    scaled = img.resize((max(1, round(base_w * t.scale)), max(1, round(base_h * t.scale))), Image.LANCZOS)

    layer = Image.new("RGBA", (container_size, container_size), (0, 0, 0, 0))
    layer.paste(scaled, (round(t.translate_x), round(t.translate_y)))

    mask = Image.new("L", (container_size, container_size), 0)
    ImageDraw.Draw(mask).ellipse((0, 0, container_size - 1, container_size - 1), fill=255)
    out = Image.new("RGBA", (container_size, container_size), (0, 0, 0, 0))
    out.paste(layer, (0, 0), mask)

    buf = io.BytesIO()
    out.save(buf, format="PNG")
    return buf.getvalue()
