# media/frame_sampler.py
"""
Frame sampling for uploaded videos.

A sampling run opens the video, derives a timestamp plan from its duration
and captures one JPEG still per timestamp. Seeks are strictly sequential on a
single source. Per-frame failures are logged and skipped; the run as a whole
is bounded by a timeout that only fires when nothing has been captured yet.
"""
from __future__ import annotations
import asyncio, math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from common.errors import DecodeError, InvalidDurationError, SamplingTimeoutError
from common.logging import get_logger
from common.schemas import VideoFrame
from media.canvas import Canvas
from media.decoder import MediaDecoder, OpenCVDecoder, VideoInput, VideoSource

log = get_logger("frame_sampler")

# Product-tuned bounds; kept as configuration rather than derived.
MIN_FRAME_INTERVAL_S = 1
MAX_FRAME_INTERVAL_S = 5
DEFAULT_TARGET_FRAMES = 10
SAMPLING_TIMEOUT_S = 30.0
JPEG_QUALITY = 0.8
FALLBACK_TIMESTAMP_S = 1.0


@dataclass
class SamplerSettings:
    target_frames: int = DEFAULT_TARGET_FRAMES
    min_interval_s: float = MIN_FRAME_INTERVAL_S
    max_interval_s: float = MAX_FRAME_INTERVAL_S
    timeout_s: float = SAMPLING_TIMEOUT_S
    jpeg_quality: float = JPEG_QUALITY
    fallback_timestamp_s: float = FALLBACK_TIMESTAMP_S
    thumbnail_at_s: float = 1.0

    @classmethod
    def from_config(cls, cfg: Dict[str, Any]) -> "SamplerSettings":
        s = (cfg or {}).get("sampling", {}) or {}
        d = cls()
        return cls(
            target_frames=int(s.get("target_frames", d.target_frames)),
            min_interval_s=float(s.get("min_interval_s", d.min_interval_s)),
            max_interval_s=float(s.get("max_interval_s", d.max_interval_s)),
            timeout_s=float(s.get("timeout_s", d.timeout_s)),
            jpeg_quality=float(s.get("jpeg_quality", d.jpeg_quality)),
            fallback_timestamp_s=float(s.get("fallback_timestamp_s", d.fallback_timestamp_s)),
            thumbnail_at_s=float(s.get("thumbnail_at_s", d.thumbnail_at_s)),
        )


# ---------------- timestamp plan ----------------

def calculate_optimal_frame_interval(
    duration: float,
    target_frames: int = DEFAULT_TARGET_FRAMES,
    min_interval: float = MIN_FRAME_INTERVAL_S,
    max_interval: float = MAX_FRAME_INTERVAL_S,
) -> int:
    """Whole seconds between samples: floor(clamp(duration / target_frames, min, max))."""
    if target_frames < 1:
        raise ValueError("target_frames must be >= 1")
    interval = duration / target_frames
    interval = max(min_interval, min(interval, max_interval))
    return int(math.floor(interval))


def generate_frame_timestamps(duration: float, interval: float) -> List[float]:
    """Grid of `interval` steps below duration, always closed by duration itself."""
    if interval <= 0:
        raise ValueError("interval must be > 0")
    timestamps: List[float] = []
    current = interval
    while current < duration:
        timestamps.append(float(current))
        current += interval
    if duration > 0:
        timestamps.append(float(duration))
    return timestamps


# ---------------- sampling run ----------------

@dataclass
class SamplingState:
    timestamps: List[float] = field(default_factory=list)
    frames: List[VideoFrame] = field(default_factory=list)
    next_index: int = 0
    has_error: bool = False

    @property
    def done(self) -> bool:
        return self.has_error or self.next_index >= len(self.timestamps)


async def _advance(state: SamplingState, source: VideoSource, canvas: Canvas, quality: float) -> None:
    """Process exactly one timestamp: seek, wait for the seek, draw, encode."""
    index = state.next_index
    ts = state.timestamps[index]
    state.next_index += 1
    log.debug(f"[sample] frame {index + 1}/{len(state.timestamps)} at {ts:g}s")
    try:
        await source.seek(ts)
        pixels = await source.read_frame()
        canvas.draw(pixels)
        data = canvas.encode(quality)
    except DecodeError:
        state.has_error = True
        raise
    except Exception as e:
        log.error(f"[sample] capture failed at {ts:g}s: {e}")
        return
    state.frames.append(VideoFrame(frame_number=index + 1, timestamp_seconds=ts, image_data=data))


async def _run(video: VideoInput, target_frame_count: int, decoder: MediaDecoder,
               settings: SamplerSettings, state: SamplingState) -> List[VideoFrame]:
    source = await decoder.open(video)
    try:
        meta = source.metadata
        log.info(f"[sample] {video} duration={meta.duration:g}s size={meta.width}x{meta.height}")
        if meta.duration <= 0:
            raise InvalidDurationError(meta.duration)

        interval = calculate_optimal_frame_interval(
            meta.duration, target_frame_count, settings.min_interval_s, settings.max_interval_s)
        timestamps = generate_frame_timestamps(meta.duration, interval)
        if not timestamps:
            timestamps = [settings.fallback_timestamp_s]
            log.info(f"[sample] empty plan, using fallback timestamp {settings.fallback_timestamp_s:g}s")
        state.timestamps = timestamps
        log.info(f"[sample] interval={interval}s timestamps={len(timestamps)}")

        if meta.width == 0 or meta.height == 0:
            log.warning(f"[sample] canvas dimensions are 0: {meta.width}x{meta.height}")
        canvas = Canvas(meta.width, meta.height)

        while not state.done:
            await _advance(state, source, canvas, settings.jpeg_quality)

        if not state.frames:
            log.warning(f"[sample] no frames were extracted from {video}")
        else:
            log.info(f"[sample] captured {len(state.frames)}/{len(timestamps)} frames from {video}")
        return list(state.frames)
    finally:
        await source.close()


async def sample_frames(
    video: VideoInput,
    target_frame_count: int = DEFAULT_TARGET_FRAMES,
    *,
    decoder: Optional[MediaDecoder] = None,
    settings: Optional[SamplerSettings] = None,
) -> List[VideoFrame]:
    """
    Extract up to ~target_frame_count stills from a video.

    Raises DecodeError, InvalidDurationError, or SamplingTimeoutError when no
    frame was produced within settings.timeout_s. Returns an empty list when
    every capture failed before the deadline.
    """
    decoder = decoder or OpenCVDecoder()
    settings = settings or SamplerSettings()
    state = SamplingState()
    task = asyncio.ensure_future(_run(video, target_frame_count, decoder, settings, state))

    done, _pending = await asyncio.wait({task}, timeout=settings.timeout_s)
    if task in done:
        return task.result()

    if not state.frames:
        log.error(f"[sample] timeout: no frames extracted from {video} within {settings.timeout_s:g}s")
        task.cancel()
        raise SamplingTimeoutError(settings.timeout_s)

    log.warning(f"[sample] past {settings.timeout_s:g}s with {len(state.frames)} frames; waiting for completion")
    return await task
