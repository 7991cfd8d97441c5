import os
import json

import redis.asyncio as redis

from .logger import get_logger

_logger = get_logger(__name__)


class RedisCache:
    """
    Two level cache: L1 process memory, L2 Redis (JSON values with TTL).
    Falls back to memory only when Redis cannot be reached.

    Plugged into attribute classification with config.use_cache(RedisCache()).
    """

    def __init__(self, host=None, port=None, db=None, password=None, ttl=3600):
        self.host = host or os.getenv('REDIS_HOST', 'localhost')
        self.port = int(port or os.getenv('REDIS_PORT', 6379))
        self.db = int(db if db is not None else os.getenv('REDIS_DB', 0))
        self.password = password or os.getenv('REDIS_PASSWORD', None)
        self.ttl = ttl

        self.memory_store = {}
        self.use_redis = True
        self.redis = None
        self.initialized = False

    async def initialize(self):
        if self.initialized: return

        try:
            self.redis = redis.Redis(
                host=self.host,
                port=self.port,
                db=self.db,
                password=self.password,
                decode_responses=True
            )
            await self.redis.ping()
            _logger.info("Cache: Connected to Async Redis.")
        except Exception as e:
            _logger.warning(f"Cache: Async Redis connection failed ({e}). Using In-Memory Fallback.")
            self.use_redis = False

        self.initialized = True

    async def get(self, key, default=None):
        if not self.initialized: await self.initialize()

        # L1: Memory
        if key in self.memory_store:
            return self.memory_store[key]

        # L2: Redis
        try:
            if self.use_redis:
                val = await self.redis.get(key)
                if val is not None:
                    try:
                        data = json.loads(val)
                    except ValueError:
                        data = val

                    self.memory_store[key] = data
                    return data
        except Exception as e:
            _logger.error(f"Cache Error (get): {e}", extra={'context': {'key': key}})

        return default

    async def set(self, key, value, ttl=None):
        if not self.initialized: await self.initialize()

        # L1: Memory
        self.memory_store[key] = value

        # L2: Redis
        try:
            if self.use_redis:
                await self.redis.setex(key, ttl or self.ttl, json.dumps(value))
        except Exception as e:
            _logger.error(f"Cache Error (set): {e}", extra={'context': {'key': key}})

    async def delete(self, key):
        if not self.initialized: await self.initialize()

        self.memory_store.pop(key, None)

        try:
            if self.use_redis:
                await self.redis.delete(key)
        except Exception as e:
            _logger.error(f"Cache Error (delete): {e}", extra={'context': {'key': key}})

    async def delete_pattern(self, pattern: str):
        """
        Delete keys matching a glob pattern ('translatable.*') using SCAN.
        """
        if not self.initialized: await self.initialize()

        # L1: prefix match for patterns ending with *
        for key in list(self.memory_store.keys()):
            if pattern == "*" or (pattern.endswith("*") and str(key).startswith(pattern[:-1])) or key == pattern:
                del self.memory_store[key]

        try:
            if self.use_redis:
                keys_to_del = []
                async for key in self.redis.scan_iter(match=pattern):
                    keys_to_del.append(key)
                    if len(keys_to_del) >= 1000:
                        await self.redis.delete(*keys_to_del)
                        keys_to_del = []

                if keys_to_del:
                    await self.redis.delete(*keys_to_del)
                _logger.info(f"Cache: Deleted pattern '{pattern}'")
        except Exception as e:
            _logger.error(f"Cache Error (delete_pattern): {e}")
