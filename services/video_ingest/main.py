# services/video_ingest/main.py
from __future__ import annotations
import asyncio, os, shutil, tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

import aiofiles
import httpx
from pydantic import ValidationError

from common.bus import EventBus, StreamConsumer
from common.config import load_config, section
from common.logging import get_logger
from common.schemas import VideoProcessed, VideoUploaded
from media.decoder import MediaDecoder
from media.frame_sampler import SamplerSettings
from media.ingest import process_video
from media.store import ObjectStore, build_store

log = get_logger("video_ingest")

GROUP    = "video-ingest"
CONSUMER = os.getenv("CONSUMER_NAME", "vi-01")


# ---------- source helpers ----------
async def _download(url: str, dest: Path, timeout_sec: float) -> Path:
    async with httpx.AsyncClient(timeout=timeout_sec, follow_redirects=True) as client:
        async with client.stream("GET", url) as resp:
            resp.raise_for_status()
            async with aiofiles.open(dest, "wb") as f:
                async for chunk in resp.aiter_bytes(1024 * 1024):
                    await f.write(chunk)
    log.info(f"[download] {url} -> {dest} bytes={dest.stat().st_size}")
    return dest


class VideoIngestWorker:
    """videos.uploaded -> process_video -> videos.processed"""

    def __init__(self, store: ObjectStore, bus: Optional[EventBus], stream_out: str,
                 settings: SamplerSettings, decoder: Optional[MediaDecoder] = None,
                 download_timeout_sec: float = 60.0):
        self.store = store
        self.bus = bus
        self.stream_out = stream_out
        self.settings = settings
        self.decoder = decoder
        self.download_timeout_sec = download_timeout_sec

    async def handle(self, payload: Dict[str, Any]) -> VideoProcessed:
        try:
            evt = VideoUploaded.model_validate(payload)
        except ValidationError as e:
            raise ValueError(f"Invalid video.uploaded payload: {e.errors()[:3]}") from e
        if not evt.path and not evt.url:
            raise ValueError("video.uploaded needs either path or url")

        tmp_dir: Optional[str] = None
        try:
            if evt.path:
                video_path = Path(evt.path)
            else:
                tmp_dir = tempfile.mkdtemp(prefix="video_ingest_")
                video_path = await _download(evt.url, Path(tmp_dir) / evt.name, self.download_timeout_sec)

            result = await process_video(
                self.store, video_path, evt.event_id, evt.video_id, evt.name,
                decoder=self.decoder, settings=self.settings,
                on_progress=lambda p: log.debug(f"[progress] video={evt.video_id} {p.stage} {p.current:.0f}% {p.status}"),
            )
        finally:
            if tmp_dir:
                shutil.rmtree(tmp_dir, ignore_errors=True)

        out = VideoProcessed(
            event_id=evt.event_id,
            video_id=evt.video_id,
            video_key=result.video_key,
            thumbnail_key=result.thumbnail_key,
            frame_keys=[f.remote_key for f in result.frames],
            duration=result.metadata.duration,
            width=result.metadata.width,
            height=result.metadata.height,
            ts=datetime.now(timezone.utc).isoformat(),
        )
        if self.bus is not None:
            await self.bus.xadd_json(self.stream_out, out.model_dump())
        log.info(f"[processed] event={evt.event_id} video={evt.video_id} frames={len(out.frame_keys)} "
                 f"thumbnail={'yes' if out.thumbnail_key else 'no'}")
        return out


# ---------- Main ----------
async def main(config_path: Optional[str] = None):
    log.info("video_ingest starting…")
    cfg = load_config(config_path)

    runtime = section(cfg, "runtime")
    irt     = section(cfg, "ingest", "runtime")

    redis_url  = irt.get("redis_url", runtime.get("redis_url", os.getenv("REDIS_URL", "redis://127.0.0.1:6379/0")))
    stream_in  = runtime.get("stream_uploaded", "videos.uploaded")
    stream_out = runtime.get("stream_processed", "videos.processed")
    dlq        = irt.get("dlq_stream", "videos.ingest.dlq")
    batch      = int(irt.get("batch_size", 8))
    block_ms   = int(irt.get("block_ms", 5000))
    min_idle   = int(irt.get("min_idle_ms", 5000))
    drain_hist = bool(irt.get("drain_history", True))
    dl_timeout = float(section(cfg, "ingest").get("download_timeout_sec", 60))

    bus = await EventBus(redis_url).connect()
    worker = VideoIngestWorker(build_store(cfg), bus, stream_out, SamplerSettings.from_config(cfg),
                               download_timeout_sec=dl_timeout)
    consumer = StreamConsumer(bus, stream_in, GROUP, CONSUMER, worker.handle, dlq,
                              batch_size=batch, block_ms=block_ms, min_idle_ms=min_idle)

    log.info(f"Consuming stream_in={stream_in} → stream_out={stream_out} dlq={dlq} consumer={CONSUMER}")
    try:
        await consumer.run(drain_history=drain_hist)
    finally:
        await bus.close()

if __name__ == "__main__":
    asyncio.run(main())
