# common/bus.py
from __future__ import annotations
import json
from typing import Any, Awaitable, Callable, Dict, Optional

from redis import asyncio as aioredis
from common.logging import get_logger

log = get_logger("bus")

Handler = Callable[[Dict[str, Any]], Awaitable[None]]


class EventBus:
    def __init__(self, redis_url: str):
        self._redis_url = redis_url
        self._redis = None

    @property
    def redis(self):
        assert self._redis is not None, "Call connect() first"
        return self._redis

    async def connect(self):
        if self._redis is None:
            log.info(f"Connecting to Redis: {self._redis_url}")
            self._redis = aioredis.from_url(self._redis_url, encoding="utf-8", decode_responses=True)
            try:
                pong = await self._redis.ping()
                log.info(f"Redis ping: {pong}")
            except Exception as e:
                log.error(f"Redis connection failed: {e}")
                raise
        return self

    async def close(self):
        if self._redis is not None:
            log.info("Closing Redis connection")
            await self._redis.close()
            self._redis = None

    async def xadd_json(self, stream: str, payload: Dict[str, Any]) -> str:
        data = {"json": json.dumps(payload, separators=(",", ":"))}
        msg_id = await self.redis.xadd(stream, data, maxlen=10000, approximate=True)
        log.debug(f"XADD stream={stream} id={msg_id}")
        return msg_id


def decode_payload(kv: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Payloads travel as {"json": "<object>"}; anything else is a schema mismatch."""
    raw = kv.get("json")
    if not raw:
        return None
    try:
        payload = json.loads(raw)
    except ValueError:
        return None
    return payload if isinstance(payload, dict) else None


class StreamConsumer:
    """
    Consumer-group reader shared by the workers:
      Phase 1: drain never-delivered history (ID '0')
      Phase 2: reclaim stale pending entries (XAUTOCLAIM)
      Phase 3: live consumption (ID '>')
    Every message is acked; failures go to the dead-letter stream.
    """

    def __init__(self, bus: EventBus, stream: str, group: str, consumer: str,
                 handler: Handler, dlq: str, batch_size: int = 8,
                 block_ms: int = 5000, min_idle_ms: int = 5000):
        self.bus = bus
        self.stream = stream
        self.group = group
        self.consumer = consumer
        self.handler = handler
        self.dlq = dlq
        self.batch_size = batch_size
        self.block_ms = block_ms
        self.min_idle_ms = min_idle_ms

    async def ensure_group(self):
        """Create group at 0-0 so backlog is visible on first run; ignore BUSYGROUP."""
        try:
            await self.bus.redis.xgroup_create(self.stream, self.group, id="0-0", mkstream=True)
            log.info(f"Created consumer group '{self.group}' at 0-0 on stream '{self.stream}'")
        except Exception as e:
            if "BUSYGROUP" in str(e):
                log.info(f"Consumer group '{self.group}' already exists on '{self.stream}'")
            else:
                raise

    async def _dead_letter(self, msg_id: str, error: Any):
        await self.bus.xadd_json(self.dlq, {"source": self.stream, "id": msg_id, "error": error})

    async def handle(self, phase: str, msg_id: str, kv: Dict[str, Any]):
        r = self.bus.redis
        try:
            payload = decode_payload(kv)
            if payload is None:
                await self._dead_letter(msg_id, {"reason": "schema_mismatch", "kv_keys": list(kv.keys())[:20]})
            else:
                await self.handler(payload)
        except Exception as e:
            log.error(f"[{phase}] Process error msg_id={msg_id}: {e}")
            await self._dead_letter(msg_id, str(e))
        await r.xack(self.stream, self.group, msg_id)

    async def drain_history(self):
        log.info("Phase 1: draining never-delivered history...")
        r = self.bus.redis
        while True:
            resp = await r.xreadgroup(self.group, self.consumer, streams={self.stream: "0"}, count=self.batch_size)
            if not resp:
                break
            total = 0
            for _stream, messages in resp:
                total += len(messages)
                for msg_id, kv in messages:
                    await self.handle("history", msg_id, kv)
            if total == 0:
                break

    async def recover_pending(self):
        log.info("Phase 2: recovering stale pending entries (min_idle_ms=%d)...", self.min_idle_ms)
        r = self.bus.redis
        cursor = "0-0"
        while True:
            try:
                next_cursor, claimed = (await r.xautoclaim(
                    self.stream, self.group, self.consumer, self.min_idle_ms,
                    start_id=cursor, count=self.batch_size))[:2]
            except Exception as e:
                log.warning(f"XAUTOCLAIM not available or failed ({e}); skipping pending recovery.")
                return

            if not claimed:
                if next_cursor == cursor:
                    return
                cursor = next_cursor
                continue

            for msg_id, kv in claimed:
                await self.handle("pending", msg_id, kv)
            cursor = next_cursor

    async def live_loop(self):
        log.info("Phase 3: live consumption (ID='>')...")
        r = self.bus.redis
        while True:
            resp = await r.xreadgroup(self.group, self.consumer, streams={self.stream: ">"},
                                      count=self.batch_size, block=self.block_ms)
            if not resp:
                continue
            for _stream, messages in resp:
                for msg_id, kv in messages:
                    await self.handle("live", msg_id, kv)

    async def run(self, drain_history: bool = True):
        await self.ensure_group()
        if drain_history:
            await self.drain_history()
        await self.recover_pending()
        await self.live_loop()
