"""
Key-value persistence for browsing and attention state.

The stores only ever persist small string payloads under fixed keys,
so the backend contract is three methods: get, set, remove.

Supports three backends:
1. InMemory: For development/testing (default)
2. File: A single JSON document on disk
3. Redis: For shared deployments (when redis package is available)

Backends raise StorageError on failure. The stores treat persistence
as best-effort and never let that error reach the ranking path.
"""

import json
import os
import threading
from pathlib import Path
from typing import Dict, Optional, Protocol

from core.errors import StorageError
from core.logging import get_logger


logger = get_logger(__name__)


class Storage(Protocol):
    """String key-value storage."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def remove(self, key: str) -> None:
        ...


# =============================================================================
# In-Memory Backend (Default)
# =============================================================================

class InMemoryStorage:
    """
    In-memory storage for development/testing.

    Note: State is lost on restart.
    """

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def remove(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self):
        with self._lock:
            return list(self._data)


# =============================================================================
# File Backend
# =============================================================================

class FileStorage:
    """
    Stores all keys in one JSON object on disk.

    Writes go to a temporary sibling file first and are then renamed
    over the original, so a crash mid-write leaves the previous state.
    """

    def __init__(self, path: Path):
        self._path = Path(path)
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _read_all(self) -> Dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Unreadable storage file, starting empty",
                           path=str(self._path), error=str(e))
            return {}
        if not isinstance(raw, dict):
            return {}
        return {k: v for k, v in raw.items() if isinstance(v, str)}

    def _write_all(self, data: Dict[str, str], key: str) -> None:
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(data), encoding="utf-8")
            os.replace(tmp_path, self._path)
        except OSError as e:
            raise StorageError(f"Failed to write {self._path}: {e}", key=key) from e

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._read_all().get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            data = self._read_all()
            data[key] = value
            self._write_all(data, key)

    def remove(self, key: str) -> None:
        with self._lock:
            data = self._read_all()
            if key in data:
                del data[key]
                self._write_all(data, key)


# =============================================================================
# Redis Backend (Optional)
# =============================================================================

class RedisStorage:
    """
    Redis-based storage.

    Requires: pip install redis
    """

    def __init__(self, redis_url: str, namespace: str = "marketplace", client=None):
        """
        Args:
            redis_url: Redis connection URL
            namespace: Prefix applied to every key
            client: Pre-built redis client (skips connection setup)
        """
        self._namespace = namespace
        if client is not None:
            self._redis = client
            return

        try:
            import redis
        except ImportError:
            raise ImportError("Redis backend requires 'redis' package. Install with: pip install redis")

        self._redis = redis.from_url(redis_url, decode_responses=True)
        self._redis.ping()
        logger.info("Connected to Redis", url=redis_url.split("@")[-1])

    def _key(self, key: str) -> str:
        return f"{self._namespace}:{key}"

    def get(self, key: str) -> Optional[str]:
        try:
            value = self._redis.get(self._key(key))
        except Exception as e:
            raise StorageError(f"Redis get failed: {e}", key=key) from e
        if isinstance(value, bytes):
            value = value.decode("utf-8", errors="replace")
        return value

    def set(self, key: str, value: str) -> None:
        try:
            self._redis.set(self._key(key), value)
        except Exception as e:
            raise StorageError(f"Redis set failed: {e}", key=key) from e

    def remove(self, key: str) -> None:
        try:
            self._redis.delete(self._key(key))
        except Exception as e:
            raise StorageError(f"Redis delete failed: {e}", key=key) from e


class NamespacedStorage:
    """Prefixes every key, so several clients can share one backend."""

    def __init__(self, storage: Storage, namespace: str):
        self._storage = storage
        self._namespace = namespace

    def _key(self, key: str) -> str:
        return f"{self._namespace}:{key}"

    def get(self, key: str) -> Optional[str]:
        return self._storage.get(self._key(key))

    def set(self, key: str, value: str) -> None:
        self._storage.set(self._key(key), value)

    def remove(self, key: str) -> None:
        self._storage.remove(self._key(key))


# =============================================================================
# Factory
# =============================================================================

def create_storage(settings) -> Storage:
    """
    Build the storage backend named by settings.storage_backend.

    "auto" uses Redis when REDIS_URL is set and reachable, and falls back
    to memory otherwise.
    """
    backend = settings.storage_backend

    if backend == "auto":
        if settings.redis_url:
            try:
                storage = RedisStorage(settings.redis_url)
                logger.info("Using Redis storage backend")
                return storage
            except Exception as e:
                logger.warning("Redis unavailable, using in-memory storage", error=str(e))
        return InMemoryStorage()

    if backend == "redis":
        if not settings.redis_url:
            raise ValueError("storage_backend=redis requires REDIS_URL")
        return RedisStorage(settings.redis_url)

    if backend == "file":
        return FileStorage(settings.storage_path)

    return InMemoryStorage()
