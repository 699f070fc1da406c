# scripts/sample_video.py
"""
Sample preview frames and a thumbnail from a local video.

  python -m scripts.sample_video clip.mp4 --out outputs/clip --frames 10
"""
import argparse, asyncio, json
from pathlib import Path

from common.config import load_config
from common.logging import get_logger
from media.formats import format_file_size, validate_video_file
from media.frame_sampler import SamplerSettings, sample_frames
from media.thumbnails import extract_video_metadata, generate_thumbnail

log = get_logger("sample_video")


def parse_args(argv=None):
    ap = argparse.ArgumentParser(description="Extract evenly spaced JPEG frames and a thumbnail from a video.")
    ap.add_argument("video", type=Path)
    ap.add_argument("--out", type=Path, default=Path("outputs"), help="output directory")
    ap.add_argument("--frames", type=int, default=None, help="target frame count (default from config)")
    ap.add_argument("--timeout", type=float, default=None, help="sampling timeout in seconds")
    ap.add_argument("--config", default=None, help="path to config.yaml")
    return ap.parse_args(argv)


async def run(args) -> dict:
    settings = SamplerSettings.from_config(load_config(args.config))
    if args.timeout is not None:
        settings.timeout_s = args.timeout
    target = args.frames or settings.target_frames

    fmt = validate_video_file(args.video)
    meta = await extract_video_metadata(args.video)
    log.info(f"{args.video} format={fmt.name} size={format_file_size(args.video.stat().st_size)} "
             f"duration={meta.duration:g}s {meta.width}x{meta.height}")

    out_dir = args.out
    (out_dir / "frames").mkdir(parents=True, exist_ok=True)
    frames = await sample_frames(args.video, target, settings=settings)
    for f in frames:
        (out_dir / "frames" / f"frame_{f.frame_number}.jpg").write_bytes(f.image_data)

    thumb = await generate_thumbnail(args.video, at_seconds=settings.thumbnail_at_s, quality=settings.jpeg_quality)
    (out_dir / "thumbnail.jpg").write_bytes(thumb)

    summary = {
        "video": str(args.video),
        "metadata": meta.model_dump(),
        "frames": [{"frame_number": f.frame_number, "timestamp_seconds": f.timestamp_seconds} for f in frames],
        "thumbnail": str(out_dir / "thumbnail.jpg"),
    }
    (out_dir / "summary.json").write_text(json.dumps(summary, indent=2), encoding="utf-8")
    log.info(f"wrote {len(frames)} frames + thumbnail to {out_dir}")
    return summary


def main(argv=None):
    asyncio.run(run(parse_args(argv)))

if __name__ == "__main__":
    main()
