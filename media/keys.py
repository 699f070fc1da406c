# media/keys.py
"""Object-store key layout for event media."""
from __future__ import annotations

EVENTS_ROOT = "events/shared"
THUMBNAIL_NAME = "thumbnail.jpg"
FRAMES_DIR = "frames"


def event_images_prefix(event_id: str) -> str:
    return f"{EVENTS_ROOT}/{event_id}/images"


def event_videos_prefix(event_id: str) -> str:
    return f"{EVENTS_ROOT}/{event_id}/videos"


def video_folder(event_id: str, video_id: str) -> str:
    return f"{event_videos_prefix(event_id)}/{video_id}"


def video_key(event_id: str, video_id: str, video_name: str) -> str:
    return f"{video_folder(event_id, video_id)}/{video_name}"


def thumbnail_key(event_id: str, video_id: str) -> str:
    return f"{video_folder(event_id, video_id)}/{THUMBNAIL_NAME}"


def frame_key(event_id: str, video_id: str, frame_number: int) -> str:
    return f"{video_folder(event_id, video_id)}/{FRAMES_DIR}/frame_{frame_number}.jpg"
