# media/store.py
"""
Object-store collaborators.

The pipeline only needs four operations: list a prefix, delete a key, put an
object, and derive a public URL. S3ObjectStore wraps boto3 (blocking calls
run in worker threads); MemoryObjectStore backs local runs and tests.
"""
from __future__ import annotations
import asyncio
from pathlib import Path
from typing import Any, Dict, List, Optional

import aiofiles
import boto3
from boto3.exceptions import S3UploadFailedError
from boto3.s3.transfer import TransferConfig
from botocore.exceptions import BotoCoreError, ClientError

from common.config import section
from common.errors import ListError, UploadError
from common.logging import get_logger
from common.schemas import ObjectEntry

log = get_logger("store")


class ObjectStore:
    async def list_objects(self, prefix: str) -> List[ObjectEntry]:
        raise NotImplementedError

    async def delete_object(self, key: str) -> bool:
        raise NotImplementedError

    async def put_object(self, key: str, data: bytes, content_type: str) -> None:
        raise NotImplementedError

    async def put_file(self, key: str, path: Path, content_type: str) -> None:
        async with aiofiles.open(path, "rb") as f:
            data = await f.read()
        await self.put_object(key, data, content_type)

    def url_for(self, key: str) -> str:
        raise NotImplementedError


# ---------------- S3 ----------------

class S3ObjectStore(ObjectStore):
    def __init__(self, bucket: str, region: Optional[str] = None,
                 public_base_url: Optional[str] = None, max_keys: int = 1000, client=None,
                 multipart_threshold_mb: int = 8, multipart_chunk_mb: int = 16):
        if not bucket:
            raise ValueError("S3 bucket name not configured")
        self.bucket = bucket
        self.region = region
        self.max_keys = max(1, min(1000, int(max_keys)))
        self.public_base_url = (public_base_url or f"https://{bucket}.s3.amazonaws.com").rstrip("/")
        self._client = client
        self.transfer_config = TransferConfig(
            multipart_threshold=max(1, multipart_threshold_mb) * 1024 * 1024,
            multipart_chunksize=max(5, multipart_chunk_mb) * 1024 * 1024,
        )

    @property
    def client(self):
        if self._client is None:
            self._client = boto3.client("s3", region_name=self.region)
        return self._client

    def _list_blocking(self, prefix: str) -> List[ObjectEntry]:
        out: List[ObjectEntry] = []
        token: Optional[str] = None
        while True:
            kwargs: Dict[str, Any] = {"Bucket": self.bucket, "Prefix": prefix, "MaxKeys": self.max_keys}
            if token:
                kwargs["ContinuationToken"] = token
            resp = self.client.list_objects_v2(**kwargs)
            for obj in resp.get("Contents") or []:
                key = obj.get("Key")
                if key:
                    out.append(ObjectEntry(key=key, size=obj.get("Size")))
            if not resp.get("IsTruncated"):
                break
            token = resp.get("NextContinuationToken")
            if not token:
                break
        return out

    async def list_objects(self, prefix: str) -> List[ObjectEntry]:
        try:
            entries = await asyncio.to_thread(self._list_blocking, prefix)
        except (BotoCoreError, ClientError) as e:
            log.error(f"[list] bucket={self.bucket} prefix={prefix}: {e}")
            raise ListError(prefix, e) from e
        log.debug(f"[list] bucket={self.bucket} prefix={prefix} n={len(entries)}")
        return entries

    async def delete_object(self, key: str) -> bool:
        try:
            await asyncio.to_thread(self.client.delete_object, Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as e:
            log.error(f"[delete] bucket={self.bucket} key={key}: {e}")
            return False
        return True

    async def put_object(self, key: str, data: bytes, content_type: str) -> None:
        try:
            await asyncio.to_thread(self.client.put_object, Bucket=self.bucket, Key=key,
                                    Body=data, ContentType=content_type)
        except (BotoCoreError, ClientError) as e:
            raise UploadError(key, e) from e

    async def put_file(self, key: str, path: Path, content_type: str) -> None:
        """Managed upload; multipart above the threshold, never buffered whole in memory."""
        try:
            await asyncio.to_thread(self.client.upload_file, str(path), self.bucket, key,
                                    ExtraArgs={"ContentType": content_type}, Config=self.transfer_config)
        except (S3UploadFailedError, BotoCoreError, ClientError) as e:
            raise UploadError(key, e) from e
        log.debug(f"[upload] bucket={self.bucket} key={key} file={path}")

    def url_for(self, key: str) -> str:
        return f"{self.public_base_url}/{key}"


# ---------------- in-memory ----------------

class MemoryObjectStore(ObjectStore):
    """Dict-backed store; listings come back in lexicographic key order like S3."""

    def __init__(self, base_url: str = "memory://media"):
        self.base_url = base_url.rstrip("/")
        self.objects: Dict[str, bytes] = {}
        self.content_types: Dict[str, str] = {}

    async def list_objects(self, prefix: str) -> List[ObjectEntry]:
        return [ObjectEntry(key=k, size=len(v)) for k, v in sorted(self.objects.items()) if k.startswith(prefix)]

    async def delete_object(self, key: str) -> bool:
        if key not in self.objects:
            return False
        del self.objects[key]
        self.content_types.pop(key, None)
        return True

    async def put_object(self, key: str, data: bytes, content_type: str) -> None:
        self.objects[key] = bytes(data)
        self.content_types[key] = content_type

    def url_for(self, key: str) -> str:
        return f"{self.base_url}/{key}"


def build_store(cfg: Dict[str, Any]) -> ObjectStore:
    st = section(cfg, "store")
    backend = str(st.get("backend", "memory")).lower()
    if backend == "s3":
        return S3ObjectStore(
            bucket=st.get("bucket", ""),
            region=st.get("region"),
            public_base_url=st.get("public_base_url"),
            max_keys=int(st.get("max_keys", 1000)),
            multipart_threshold_mb=int(st.get("multipart_threshold_mb", 8)),
            multipart_chunk_mb=int(st.get("multipart_chunk_mb", 16)),
        )
    if backend == "memory":
        return MemoryObjectStore(base_url=st.get("public_base_url") or "memory://media")
    raise ValueError(f"Unknown store backend: {backend}")
