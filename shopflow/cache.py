"""
Redis response cache for appointment and work order list queries

Non-authoritative: every failure degrades to a cache miss, and every write
path invalidates the namespaces it touched before returning.
"""
import json
import logging
import os
from typing import Any, Optional

import redis

from .config import CACHE_ENABLED, CACHE_TTL_SECONDS

logger = logging.getLogger(__name__)

# Namespaces (key prefixes)
APPOINTMENTS_NS = "appointments:"
WORK_ORDERS_NS = "workorder"  # covers workorder:<id> and workorders:status:<status>
ACTION_NEEDED_KEY = "servicewriters:corner"

redis_client: Optional[redis.Redis] = None


def get_redis_client() -> redis.Redis:
    """
    Get or create Redis client
    Supports both a REDIS_URL and individual host/port settings
    """
    global redis_client

    if redis_client is None:
        redis_url = os.getenv("REDIS_URL")

        if redis_url:
            logger.info("📡 Using Redis URL connection for response cache")
            client = redis.from_url(
                redis_url,
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
                health_check_interval=30,
            )
        else:
            redis_host = os.getenv("REDIS_HOST", "localhost")
            redis_port = int(os.getenv("REDIS_PORT", "6379"))
            redis_ssl = os.getenv("REDIS_SSL", "false").lower() == "true"
            logger.info(f"📡 Using Redis at {redis_host}:{redis_port} for response cache")
            client = redis.Redis(
                host=redis_host,
                port=redis_port,
                password=os.getenv("REDIS_PASSWORD"),
                db=int(os.getenv("REDIS_DB", "0")),
                ssl=redis_ssl,
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
                health_check_interval=30,
            )

        client.ping()
        redis_client = client
        logger.info("Redis connected successfully")

    return redis_client


class Cache:
    """Redis cache wrapper with automatic serialization"""

    def __init__(self, client: Optional[redis.Redis] = None):
        self.redis_client = client
        self._unavailable = False

    def _get_client(self):
        """Lazy load Redis client; stop retrying after the first failed connect"""
        if self.redis_client is None and not self._unavailable:
            try:
                self.redis_client = get_redis_client()
            except Exception as e:
                logger.warning(f"⚠️ Redis cache unavailable: {e}")
                self._unavailable = True
                return None
        return self.redis_client

    def get(self, key: str) -> Optional[Any]:
        """Get value from cache"""
        client = self._get_client()
        if not client:
            return None

        try:
            value = client.get(key)
            if value:
                logger.debug(f"✅ Cache HIT: {key}")
                return json.loads(value)
            logger.debug(f"❌ Cache MISS: {key}")
            return None
        except Exception as e:
            logger.error(f"❌ Cache get error for {key}: {e}")
            return None

    def set(self, key: str, value: Any, ttl: int = CACHE_TTL_SECONDS) -> bool:
        """Set value in cache with TTL"""
        client = self._get_client()
        if not client:
            return False

        try:
            client.setex(key, ttl, json.dumps(value, default=str))
            logger.debug(f"✅ Cache SET: {key} (TTL: {ttl}s)")
            return True
        except Exception as e:
            logger.error(f"❌ Cache set error for {key}: {e}")
            return False

    def delete(self, key: str) -> bool:
        """Delete value from cache"""
        client = self._get_client()
        if not client:
            return False

        try:
            client.delete(key)
            logger.debug(f"✅ Cache DELETE: {key}")
            return True
        except Exception as e:
            logger.error(f"❌ Cache delete error for {key}: {e}")
            return False

    def invalidate_namespace(self, prefix: str) -> int:
        """Delete every key starting with prefix"""
        client = self._get_client()
        if not client:
            return 0

        try:
            keys = list(client.scan_iter(match=f"{prefix}*", count=500))
            if keys:
                deleted = client.delete(*keys)
                logger.info(f"[Cache INVALIDATE] Cleared {deleted} entries matching '{prefix}'")
                return deleted
            return 0
        except Exception as e:
            logger.error(f"❌ Cache invalidate error for {prefix}: {e}")
            return 0

    def invalidate_namespaces(self, *prefixes: str) -> int:
        """Invalidate several namespaces in one batch"""
        return sum(self.invalidate_namespace(p) for p in prefixes)


class NullCache(Cache):
    """Cache that stores nothing (CACHE_ENABLED=false)"""

    def _get_client(self):
        return None


# Global cache instance
cache: Cache = Cache() if CACHE_ENABLED else NullCache()


def get_cache() -> Cache:
    """FastAPI dependency for the shared cache"""
    return cache


def appointment_range_key(start_date, end_date) -> str:
    """Build cache key for appointment date range queries"""
    return f"{APPOINTMENTS_NS}{start_date}_{end_date}"


def work_order_list_key(status: Optional[str] = None) -> str:
    """Build cache key for work order list queries"""
    return f"workorders:status:{status or 'all'}"
