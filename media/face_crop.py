# media/face_crop.py
from __future__ import annotations
from typing import Iterable, List, Optional, Tuple

from common.schemas import BoundingBox, CropTransform, FaceRecord

DEFAULT_CONTAINER_PX = 96
# Below 1.2 the face is not isolated; above 2.0 the crop risks cutting it off.
FACE_SCALE_MIN = 1.2
FACE_SCALE_MAX = 2.0


def project_face_crop(
    bounding_box: Optional[BoundingBox] = None,
    container_size: float = DEFAULT_CONTAINER_PX,
    *,
    scale_bounds: Tuple[float, float] = (FACE_SCALE_MIN, FACE_SCALE_MAX),
) -> CropTransform:
    """
    Transform that centers a face inside a square (circular) viewport.

    The image is laid out at container width with its transform origin at the
    top-left corner; the result reads as `translate(tx, ty) scale(s)`. With no
    bounding box the image is left centered and unscaled.
    """
    if bounding_box is None:
        cx, cy = 0.5, 0.5
        scale = 1.0
    else:
        cx, cy = bounding_box.center
        side = min(bounding_box.width, bounding_box.height)
        raw = 1.0 / side if side > 0 else float("inf")
        lo, hi = scale_bounds
        scale = max(lo, min(raw, hi))

    tx = 0.5 * container_size - cx * container_size * scale
    ty = 0.5 * container_size - cy * container_size * scale
    return CropTransform(scale=scale, translate_x=tx, translate_y=ty, container_size=container_size)


def face_gallery(
    records: Iterable[FaceRecord],
    container_size: float = DEFAULT_CONTAINER_PX,
    scale_bounds: Tuple[float, float] = (FACE_SCALE_MIN, FACE_SCALE_MAX),
) -> List[Tuple[FaceRecord, CropTransform]]:
    return [(rec, project_face_crop(rec.bounding_box, container_size, scale_bounds=scale_bounds))
            for rec in records]
