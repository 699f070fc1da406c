# media/decoder.py
"""
Decodable-video capability used by the sampler and thumbnail generator.

A MediaDecoder opens a video and hands back a VideoSource once metadata is
known. The source supports seek-by-time and readback of the current frame as
an RGB array. OpenCVDecoder is the default implementation; tests inject
their own decoder with deterministic frames.
"""
from __future__ import annotations
import asyncio, threading
from pathlib import Path
from typing import Union

import cv2
import numpy as np

from common.errors import DecodeError, FrameCaptureError
from common.logging import get_logger
from common.schemas import VideoMetadata

log = get_logger("decoder")

VideoInput = Union[str, Path]

DEFAULT_FRAME_RATE = 30.0


class VideoSource:
    """One open video; seeks on a single source must not overlap."""

    metadata: VideoMetadata

    async def seek(self, seconds: float) -> float:
        raise NotImplementedError

    async def read_frame(self) -> np.ndarray:
        raise NotImplementedError

    async def close(self) -> None:
        return None


class MediaDecoder:
    async def open(self, video: VideoInput) -> VideoSource:
        raise NotImplementedError


# ---------------- OpenCV implementation ----------------

class OpenCVSource(VideoSource):
    """
    Every native call on the capture holds `_lock`. A cancelled seek leaves its
    worker thread running, so release() must queue behind it.
    """

    def __init__(self, cap: "cv2.VideoCapture", name: str):
        self._cap = cap
        self._name = name
        self._lock = threading.Lock()
        self._released = False
        fps = float(cap.get(cv2.CAP_PROP_FPS) or 0.0)
        frames = float(cap.get(cv2.CAP_PROP_FRAME_COUNT) or 0.0)
        self._frame_count = int(frames)
        self._fps = fps if fps > 0 else DEFAULT_FRAME_RATE
        duration = frames / fps if fps > 0 and frames > 0 else 0.0
        self.metadata = VideoMetadata(
            duration=duration,
            width=int(cap.get(cv2.CAP_PROP_FRAME_WIDTH) or 0),
            height=int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT) or 0),
            frame_rate=self._fps,
        )

    def _seek_blocking(self, seconds: float) -> float:
        # Like a media element, targets past the end land on the last frame.
        index = int(round(seconds * self._fps))
        if self._frame_count > 0:
            index = max(0, min(index, self._frame_count - 1))
        with self._lock:
            if self._released:
                raise FrameCaptureError(f"seek on released capture {self._name}")
            ok = self._cap.set(cv2.CAP_PROP_POS_FRAMES, index)
        if not ok:
            raise FrameCaptureError(f"seek to {seconds:.3f}s failed for {self._name}")
        return index / self._fps

    def _read_blocking(self) -> np.ndarray:
        with self._lock:
            if self._released:
                raise FrameCaptureError(f"read on released capture {self._name}")
            ok, frame = self._cap.read()
        if not ok or frame is None:
            raise FrameCaptureError(f"no frame decoded from {self._name}")
        return cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)

    def _release_blocking(self) -> None:
        with self._lock:
            if not self._released:
                self._released = True
                self._cap.release()

    async def seek(self, seconds: float) -> float:
        return await asyncio.to_thread(self._seek_blocking, seconds)

    async def read_frame(self) -> np.ndarray:
        return await asyncio.to_thread(self._read_blocking)

    async def close(self) -> None:
        await asyncio.to_thread(self._release_blocking)


def _release_when_opened(task: "asyncio.Future") -> None:
    # open() was cancelled while the capture was still being created
    if task.cancelled() or task.exception() is not None:
        return
    task.result().release()
    log.debug("[open] released capture finished after cancellation")


class OpenCVDecoder(MediaDecoder):
    """Decodes local files or URLs with cv2.VideoCapture in a worker thread."""

    def __init__(self, capture_factory=None):
        self._capture_factory = capture_factory or cv2.VideoCapture

    async def open(self, video: VideoInput) -> VideoSource:
        name = str(video)
        if isinstance(video, Path) and not video.exists():
            raise DecodeError(f"Video not found: {name}")
        opening = asyncio.ensure_future(asyncio.to_thread(self._capture_factory, name))
        try:
            cap = await asyncio.shield(opening)
        except asyncio.CancelledError:
            opening.add_done_callback(_release_when_opened)
            raise
        if not cap.isOpened():
            cap.release()
            raise DecodeError(f"Failed to load video: {name}")
        source = OpenCVSource(cap, name)
        m = source.metadata
        log.debug(f"[open] {name} duration={m.duration:.3f}s size={m.width}x{m.height} fps={m.frame_rate:g}")
        return source
