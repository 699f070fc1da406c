# media/ingest.py
from __future__ import annotations
import mimetypes
from pathlib import Path
from typing import Callable, List, Optional

from common.errors import MediaPipelineError
from common.logging import get_logger
from common.schemas import StoredFrame, UploadProgress, VideoFrame, VideoProcessingResult
from media import keys
from media.decoder import MediaDecoder, OpenCVDecoder
from media.formats import validate_video_file
from media.frame_sampler import SamplerSettings, sample_frames
from media.store import ObjectStore
from media.thumbnails import extract_video_metadata, generate_thumbnail

log = get_logger("ingest")

ProgressCallback = Callable[[UploadProgress], None]


def _progress(cb: Optional[ProgressCallback], stage: str, current: float, status: str,
              current_file: Optional[str] = None) -> None:
    if cb is not None:
        cb(UploadProgress(stage=stage, current=current, status=status, current_file=current_file))


async def process_video(
    store: ObjectStore,
    video_path: Path,
    event_id: str,
    video_id: str,
    video_name: Optional[str] = None,
    *,
    decoder: Optional[MediaDecoder] = None,
    settings: Optional[SamplerSettings] = None,
    on_progress: Optional[ProgressCallback] = None,
) -> VideoProcessingResult:
    """
    Metadata -> frames -> thumbnail -> upload (thumbnail, video, frames).

    Preview failures degrade to "no preview" (no frames / no thumbnail) and
    never block the upload. Validation errors and UploadError propagate.
    """
    video_path = Path(video_path)
    video_name = video_name or video_path.name
    decoder = decoder or OpenCVDecoder()
    settings = settings or SamplerSettings()

    fmt = validate_video_file(video_path)
    log.info(f"[ingest] start event={event_id} video={video_id} name={video_name} format={fmt.name}")

    _progress(on_progress, "processing", 10, "Extracting video metadata...")
    metadata = await extract_video_metadata(video_path, decoder=decoder)

    _progress(on_progress, "processing", 20, "Extracting video frames...")
    try:
        frames: List[VideoFrame] = await sample_frames(
            video_path, settings.target_frames, decoder=decoder, settings=settings)
    except MediaPipelineError as e:
        log.warning(f"[ingest] frame extraction failed for {video_name}, continuing without frames: {e}")
        frames = []
    if not frames:
        log.warning(f"[ingest] no frames extracted from video {video_name}")

    _progress(on_progress, "processing", 40, "Generating thumbnail...")
    thumb_key: Optional[str] = keys.thumbnail_key(event_id, video_id)
    try:
        thumbnail = await generate_thumbnail(
            video_path, decoder=decoder, at_seconds=settings.thumbnail_at_s, quality=settings.jpeg_quality)
    except MediaPipelineError as e:
        log.warning(f"[ingest] thumbnail failed for {video_name}, continuing without preview: {e}")
        thumbnail, thumb_key = None, None
    if thumbnail is not None:
        await store.put_object(thumb_key, thumbnail, "image/jpeg")
        log.info(f"[ingest] thumbnail uploaded key={thumb_key}")

    _progress(on_progress, "uploading", 60, "Uploading video file...", video_name)
    v_key = keys.video_key(event_id, video_id, video_name)
    content_type = fmt.mime_type or mimetypes.guess_type(video_name)[0] or "application/octet-stream"
    await store.put_file(v_key, video_path, content_type)
    log.info(f"[ingest] video uploaded key={v_key}")

    _progress(on_progress, "uploading", 70, "Uploading video frames...")
    stored: List[StoredFrame] = []
    for i, frame in enumerate(frames, start=1):
        f_key = keys.frame_key(event_id, video_id, frame.frame_number)
        await store.put_object(f_key, frame.image_data, frame.mime_type)
        stored.append(StoredFrame(
            frame_number=frame.frame_number,
            timestamp_seconds=frame.timestamp_seconds,
            remote_key=f_key,
            url=store.url_for(f_key),
        ))
        _progress(on_progress, "uploading", 70 + i / len(frames) * 20,
                  f"Uploaded frame {i} of {len(frames)}...")

    _progress(on_progress, "indexing", 95, "Processing complete!")
    log.info(f"[ingest] done event={event_id} video={video_id} frames={len(stored)}")
    return VideoProcessingResult(
        video_key=v_key,
        thumbnail_key=thumb_key,
        frames=stored,
        metadata=metadata,
        frame_count=len(stored),
    )
