# media/lister.py
"""
Listing and deduplication of event media.

Object-store listings can repeat keys across calls (eventual consistency,
retried uploads). Exact-key dedup is authoritative; the filename pass only
reports near-duplicates so distinct assets sharing a base name survive.
"""
from __future__ import annotations
import re
from typing import Dict, Iterable, List

from common.errors import ListError
from common.logging import get_logger
from common.schemas import MediaAsset, MediaKind, ObjectEntry, VideoAsset
from media.formats import is_photo_key, is_video_key
from media.keys import FRAMES_DIR, THUMBNAIL_NAME
from media.store import ObjectStore

log = get_logger("lister")

_PHOTO_EXT_RE = re.compile(r"\.(jpg|jpeg|png)$", re.IGNORECASE)


def bare_filename(key: str) -> str:
    """Last path segment without its photo extension; the full key when there is none."""
    name = key.rsplit("/", 1)[-1]
    if not name:
        return key
    return _PHOTO_EXT_RE.sub("", name)


def dedupe_assets(assets: Iterable[MediaAsset]) -> List[MediaAsset]:
    by_key: Dict[str, MediaAsset] = {}
    by_name: Dict[str, str] = {}
    for asset in assets:
        key = asset.remote_key
        if key in by_key:
            log.debug(f"[dedup] duplicate key dropped: {key}")
            continue
        by_key[key] = asset

        name = bare_filename(key)
        first = by_name.setdefault(name, key)
        if first != key:
            log.info(f"[dedup] duplicate filename {name!r}: original={first} duplicate={key}")
    return list(by_key.values())


class MediaLister:
    def __init__(self, store: ObjectStore):
        self.store = store

    async def _list(self, prefix: str) -> List[ObjectEntry]:
        try:
            return await self.store.list_objects(prefix)
        except ListError:
            raise
        except Exception as e:
            raise ListError(prefix, e) from e

    async def list_media(self, prefix: str) -> List[MediaAsset]:
        """Deduplicated photos under prefix, in listing order."""
        entries = await self._list(prefix)
        seen = set()
        photos: List[MediaAsset] = []
        for entry in entries:
            key = entry.key
            if not key or key in seen:
                continue
            seen.add(key)
            if not is_photo_key(key):
                continue
            photos.append(MediaAsset(remote_key=key, url=self.store.url_for(key), kind=MediaKind.PHOTO))

        out = dedupe_assets(photos)
        log.info(f"[list] prefix={prefix} listed={len(entries)} photos={len(out)}")
        return out

    async def list_videos(self, prefix: str) -> List[VideoAsset]:
        """
        One VideoAsset per <prefix>/<video_id>/ folder holding a video file.
        thumbnail.jpg and frames/*.jpg in the same folder are attached to it.
        """
        entries = await self._list(prefix)
        base = prefix.rstrip("/") + "/"
        groups: Dict[str, dict] = {}
        for entry in entries:
            key = entry.key
            if not key.startswith(base):
                continue
            parts = key[len(base):].split("/")
            if len(parts) < 2 or not parts[0]:
                log.debug(f"[videos] skipping key outside a video folder: {key}")
                continue
            video_id, filename = parts[0], parts[-1]
            g = groups.setdefault(video_id, {"video_id": video_id, "frames": set()})
            if len(parts) == 2 and filename == THUMBNAIL_NAME:
                g["thumbnail_key"] = key
            elif len(parts) == 2 and is_video_key(filename):
                g.setdefault("key", key)
                g.setdefault("name", filename)
            elif len(parts) == 3 and parts[1] == FRAMES_DIR and is_photo_key(filename):
                g["frames"].add(key)

        videos: List[VideoAsset] = []
        for video_id, g in groups.items():
            if "key" not in g:
                log.debug(f"[videos] folder {video_id} has no video file; skipped")
                continue
            thumb = g.get("thumbnail_key")
            videos.append(VideoAsset(
                video_id=video_id,
                name=g["name"],
                key=g["key"],
                url=self.store.url_for(g["key"]),
                thumbnail_key=thumb,
                thumbnail_url=self.store.url_for(thumb) if thumb else None,
                frame_count=len(g["frames"]),
            ))
        log.info(f"[videos] prefix={prefix} videos={len(videos)}")
        return videos

    async def delete_media(self, keys: Iterable[str]) -> List[str]:
        """Delete keys one by one; only keys the store confirmed are returned."""
        deleted: List[str] = []
        for key in dict.fromkeys(keys):
            if await self.store.delete_object(key):
                deleted.append(key)
            else:
                log.warning(f"[delete] store did not confirm deletion of {key}")
        log.info(f"[delete] deleted={len(deleted)}")
        return deleted
