# scripts/tail_stream.py
import argparse, asyncio, json
from redis import asyncio as aioredis

from common.bus import decode_payload
from common.config import load_config, section
from common.logging import get_logger

GROUP = "dev"
CONSUMER = "tail01"

log = get_logger("tail_stream")

async def ensure_group(r, stream: str):
    try:
        await r.xgroup_create(stream, GROUP, id="$", mkstream=True)
        log.info(f"Created consumer group '{GROUP}' on stream '{stream}'")
    except Exception as e:
        if "BUSYGROUP" not in str(e):
            raise

async def main(stream: str | None = None):
    rt = section(load_config(), "runtime")
    stream = stream or rt.get("stream_processed", "videos.processed")
    redis_url = rt.get("redis_url", "redis://127.0.0.1:6379/0")

    log.info(f"Tailing stream={stream} as group={GROUP} consumer={CONSUMER}")
    r = aioredis.from_url(redis_url, encoding="utf-8", decode_responses=True)
    await ensure_group(r, stream)
    while True:
        resp = await r.xreadgroup(GROUP, CONSUMER, streams={stream: ">"}, count=10, block=5000)
        if not resp:
            continue
        for _stream, messages in resp:
            for msg_id, kv in messages:
                payload = decode_payload(kv)
                log.info(f"{msg_id} {json.dumps(payload if payload is not None else kv, ensure_ascii=False)}")
                await r.xack(stream, GROUP, msg_id)

if __name__ == "__main__":
    ap = argparse.ArgumentParser(description="Print events from a pipeline stream.")
    ap.add_argument("stream", nargs="?", default=None, help="videos.uploaded | videos.processed | videos.ingest.dlq")
    asyncio.run(main(ap.parse_args().stream))
