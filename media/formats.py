# media/formats.py
from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from common.errors import InvalidVideoFileError

MAX_VIDEO_BYTES = 500 * 1024 * 1024  # 500MB

PHOTO_EXTENSIONS = (".jpg", ".jpeg", ".png")


@dataclass(frozen=True)
class VideoFormat:
    name: str
    extension: str
    mime_type: str
    max_size: int = MAX_VIDEO_BYTES


SUPPORTED_VIDEO_FORMATS: List[VideoFormat] = [
    VideoFormat("MP4", ".mp4", "video/mp4"),
    VideoFormat("MOV", ".mov", "video/quicktime"),
    VideoFormat("AVI", ".avi", "video/x-msvideo"),
    VideoFormat("MKV", ".mkv", "video/x-matroska"),
    VideoFormat("WebM", ".webm", "video/webm"),
]

VIDEO_EXTENSIONS = tuple(f.extension for f in SUPPORTED_VIDEO_FORMATS)


def is_photo_key(key: str) -> bool:
    return key.lower().endswith(PHOTO_EXTENSIONS)


def is_video_key(key: str) -> bool:
    return key.lower().endswith(VIDEO_EXTENSIONS)


def get_video_format(name: str, mime_type: Optional[str] = None) -> Optional[VideoFormat]:
    lower = name.lower()
    for fmt in SUPPORTED_VIDEO_FORMATS:
        if mime_type == fmt.mime_type or lower.endswith(fmt.extension):
            return fmt
    return None


def format_file_size(num_bytes: int) -> str:
    if num_bytes <= 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    value, i = float(num_bytes), 0
    while value >= 1024 and i < len(units) - 1:
        value /= 1024
        i += 1
    return f"{round(value, 2):g} {units[i]}"


def validate_video_file(path: Path, mime_type: Optional[str] = None) -> VideoFormat:
    """Return the matching format or raise InvalidVideoFileError."""
    fmt = get_video_format(path.name, mime_type)
    if fmt is None:
        raise InvalidVideoFileError("Unsupported video format. Please use MP4, MOV, AVI, MKV, or WebM.")
    size = path.stat().st_size
    if size > fmt.max_size:
        raise InvalidVideoFileError(
            f"Video file too large. Maximum size is {format_file_size(fmt.max_size)}. "
            f"Current size: {format_file_size(size)}"
        )
    return fmt
