"""
Shared fixtures: a deterministic in-process decoder, listing stores and
sample data. No Redis, S3 or real video files are needed.
"""
import asyncio
import io
import os
import sys
from pathlib import Path
from typing import Iterable, List, Optional, Set

import numpy as np
import pytest
from PIL import Image

# Add project root to path; keep test runs from writing log files.
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))
os.environ.setdefault("LOG_DIR", "")

from common.errors import DecodeError, FrameCaptureError  # noqa: E402
from common.schemas import ObjectEntry, VideoMetadata  # noqa: E402
from media.decoder import MediaDecoder, VideoSource  # noqa: E402
from media.store import MemoryObjectStore, ObjectStore  # noqa: E402


# ---------- fake decoder ----------
class FakeSource(VideoSource):
    def __init__(self, decoder: "FakeDecoder"):
        self.d = decoder
        self.metadata = VideoMetadata(duration=decoder.duration, width=decoder.width,
                                      height=decoder.height, frame_rate=decoder.frame_rate)
        self.position = 0.0
        self.closed = False

    async def seek(self, seconds: float) -> float:
        if self.d.seek_delay:
            await asyncio.sleep(self.d.seek_delay)
        if seconds in self.d.decode_error_at:
            raise DecodeError(f"corrupt stream at {seconds}")
        self.position = min(seconds, self.d.duration)
        self.d.seeks.append(seconds)
        return self.position

    async def read_frame(self) -> np.ndarray:
        if self.position in self.d.fail_at:
            raise FrameCaptureError(f"no frame at {self.position}")
        shade = int(self.position * 10) % 256
        return np.full((max(self.d.height, 1), max(self.d.width, 1), 3), shade, dtype=np.uint8)

    async def close(self) -> None:
        self.closed = True
        self.d.closed += 1


class FakeDecoder(MediaDecoder):
    def __init__(self, duration: float = 12.0, width: int = 64, height: int = 48, frame_rate: float = 30.0,
                 fail_at: Iterable[float] = (), decode_error_at: Iterable[float] = (),
                 seek_delay: float = 0.0, open_error: Optional[Exception] = None):
        self.duration = duration
        self.width = width
        self.height = height
        self.frame_rate = frame_rate
        self.fail_at: Set[float] = set(fail_at)
        self.decode_error_at: Set[float] = set(decode_error_at)
        self.seek_delay = seek_delay
        self.open_error = open_error
        self.seeks: List[float] = []
        self.opened = 0
        self.closed = 0

    async def open(self, video) -> VideoSource:
        if self.open_error is not None:
            raise self.open_error
        self.opened += 1
        return FakeSource(self)


# ---------- listing stores ----------
class StubListingStore(ObjectStore):
    """Returns a fixed listing (or raises) and counts calls."""

    def __init__(self, keys: Iterable[str] = (), error: Optional[Exception] = None):
        self.keys = list(keys)
        self.error = error
        self.calls = 0
        self.deleted: List[str] = []
        self.undeletable: Set[str] = set()

    async def list_objects(self, prefix: str) -> List[ObjectEntry]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return [ObjectEntry(key=k) for k in self.keys]

    async def delete_object(self, key: str) -> bool:
        if key in self.undeletable or key not in self.keys:
            return False
        self.keys = [k for k in self.keys if k != key]
        self.deleted.append(key)
        return True

    async def put_object(self, key: str, data: bytes, content_type: str) -> None:
        self.keys.append(key)

    def url_for(self, key: str) -> str:
        return f"https://media.test/{key}"


def jpeg_bytes(width: int = 200, height: int = 100, color=(200, 30, 30)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buf, format="JPEG")
    return buf.getvalue()


@pytest.fixture
def fake_decoder() -> FakeDecoder:
    return FakeDecoder()


@pytest.fixture
def memory_store() -> MemoryObjectStore:
    return MemoryObjectStore(base_url="https://media.test")


@pytest.fixture
def video_file(tmp_path) -> Path:
    # Content is irrelevant with FakeDecoder; only extension and size are validated.
    p = tmp_path / "clip.mp4"
    p.write_bytes(b"\x00\x00\x00\x18ftypmp42" + b"\x00" * 1024)
    return p


@pytest.fixture
def photo_keys() -> List[str]:
    return [f"events/shared/e1/images/p{i:02d}.jpg" for i in range(1, 46)]
