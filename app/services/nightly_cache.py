"""Snapshot cache with an expiry that depends on whether runs are in progress."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import time
from collections.abc import Callable, Sequence
from datetime import datetime, timedelta, timezone
from typing import Protocol

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from cachetools import TTLCache  # type: ignore[import-untyped]

from .nightly_errors import CacheStoreError, NightlyConfigurationError
from .nightly_models import CacheEntry, GuideStatus
from .nightly_stats import has_in_progress_runs

logger = logging.getLogger(__name__)

NIGHTLY_CACHE_KEY = "nightly-e2e:runs"
ACTIVE_TTL = timedelta(minutes=2)
IDLE_TTL = timedelta(minutes=5)
DEFAULT_WRITE_TIMEOUT_S = 2.0
MEMORY_CACHE_MAXSIZE = 256
# Longest expiry stored by any caller (run logs keep 10 minutes).
MEMORY_CACHE_TTL_S = 10 * 60


class BlobStore(Protocol):
    """Key-value string storage used as the cache backend."""

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str) -> None: ...


class InMemoryBlobStore:
    """Process-local backend; entries are evicted after a TTL or when full."""

    def __init__(
        self,
        maxsize: int = MEMORY_CACHE_MAXSIZE,
        ttl: float = MEMORY_CACHE_TTL_S,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self._data: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl, timer=timer)

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value


def get_s3_client():
    """Get configured S3 client, falling back to the default credential chain."""
    aws_access_key = os.getenv("AWS_ACCESS_KEY_ID")
    aws_secret_key = os.getenv("AWS_SECRET_ACCESS_KEY")
    aws_region = os.getenv("AWS_REGION", "ap-southeast-2")

    if aws_access_key and aws_secret_key:
        return boto3.client(
            "s3",
            aws_access_key_id=aws_access_key,
            aws_secret_access_key=aws_secret_key,
            region_name=aws_region,
        )
    return boto3.client("s3", region_name=aws_region)


class S3BlobStore:
    """Backend storing each key as one JSON object in an S3 bucket."""

    def __init__(self, bucket: str, prefix: str = "nightly-e2e/", client=None) -> None:
        self.bucket = bucket
        self.prefix = prefix
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = get_s3_client()
        return self._client

    def _object_key(self, key: str) -> str:
        return f"{self.prefix}{key.replace(':', '/')}.json"

    def _get_sync(self, key: str) -> str | None:
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=self._object_key(key))
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") in ("NoSuchKey", "404"):
                return None
            raise CacheStoreError(f"Failed to read s3://{self.bucket}/{self._object_key(key)}: {exc}") from exc
        except BotoCoreError as exc:
            raise CacheStoreError(f"Failed to read s3://{self.bucket}/{self._object_key(key)}: {exc}") from exc
        return response["Body"].read().decode("utf-8")

    def _set_sync(self, key: str, value: str) -> None:
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=self._object_key(key),
                Body=value.encode("utf-8"),
                ContentType="application/json",
                ServerSideEncryption="AES256",
            )
        except (BotoCoreError, ClientError) as exc:
            raise CacheStoreError(f"Failed to write s3://{self.bucket}/{self._object_key(key)}: {exc}") from exc

    async def get(self, key: str) -> str | None:
        return await asyncio.to_thread(self._get_sync, key)

    async def set(self, key: str, value: str) -> None:
        await asyncio.to_thread(self._set_sync, key, value)


def select_ttl(guides: Sequence[GuideStatus]) -> timedelta:
    """Shorter TTL while any nightly run is still executing."""
    return ACTIVE_TTL if has_in_progress_runs(guides) else IDLE_TTL


class CacheStore:
    """
    Best-effort cache for the aggregated nightly snapshot.

    Reads that fail or return undecodable data are treated as misses. Writes
    run as tasks whose completion the caller may await; a failed write is
    logged and resolves to False.
    """

    def __init__(
        self,
        backend: BlobStore,
        key: str = NIGHTLY_CACHE_KEY,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.backend = backend
        self.key = key
        self.clock = clock
        self._pending: set[asyncio.Task[bool]] = set()

    def now_ms(self) -> int:
        return int(self.clock() * 1000)

    async def get(self, key: str | None = None) -> CacheEntry | None:
        cache_key = key or self.key
        try:
            raw = await self.backend.get(cache_key)
        except Exception as exc:
            logger.warning("Cache read failed for %s, treating as miss: %s", cache_key, exc)
            return None
        if raw is None:
            return None
        try:
            return CacheEntry.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError) as exc:
            logger.warning("Discarding undecodable cache entry %s: %s", cache_key, exc)
            return None

    def build_entry(self, guides: list[GuideStatus]) -> CacheEntry:
        now = self.clock()
        ttl = select_ttl(guides)
        return CacheEntry(
            guides=guides,
            cached_at=datetime.fromtimestamp(now, tz=timezone.utc).isoformat().replace("+00:00", "Z"),
            expires_at=int((now + ttl.total_seconds()) * 1000),
        )

    async def _write(self, key: str, entry: CacheEntry) -> bool:
        try:
            await self.backend.set(key, json.dumps(entry.to_dict()))
        except Exception as exc:
            logger.warning("Cache write failed for %s: %s", key, exc)
            return False
        logger.debug("Cached nightly snapshot", extra={"key": key, "expires_at": entry.expires_at})
        return True

    def set(self, entry: CacheEntry, key: str | None = None) -> asyncio.Task[bool]:
        """Schedule the write and return its handle."""
        task = asyncio.create_task(self._write(key or self.key, entry))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def wait_for_write(
        self, handle: asyncio.Task[bool], timeout: float = DEFAULT_WRITE_TIMEOUT_S
    ) -> bool:
        """Wait up to ``timeout`` seconds; the write keeps running if it is slower."""
        try:
            return await asyncio.wait_for(asyncio.shield(handle), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("Cache write still pending after %.1fs, responding without it", timeout)
            return False


def get_write_timeout() -> float:
    raw = os.getenv("NIGHTLY_CACHE_WRITE_TIMEOUT")
    if not raw:
        return DEFAULT_WRITE_TIMEOUT_S
    try:
        return float(raw)
    except ValueError as exc:
        raise NightlyConfigurationError(
            f"NIGHTLY_CACHE_WRITE_TIMEOUT must be a number of seconds, got {raw!r}"
        ) from exc


def create_blob_store_from_env() -> BlobStore:
    backend = (os.getenv("NIGHTLY_CACHE_BACKEND") or "memory").strip().lower()
    if backend == "memory":
        return InMemoryBlobStore()
    if backend == "s3":
        bucket = os.getenv("NIGHTLY_CACHE_BUCKET")
        if not bucket:
            raise NightlyConfigurationError(
                "NIGHTLY_CACHE_BUCKET environment variable is required for the s3 cache backend"
            )
        return S3BlobStore(bucket, prefix=os.getenv("NIGHTLY_CACHE_PREFIX", "nightly-e2e/"))
    raise NightlyConfigurationError(f"Unknown NIGHTLY_CACHE_BACKEND: {backend}")


def create_cache_store_from_env() -> CacheStore:
    return CacheStore(create_blob_store_from_env())
