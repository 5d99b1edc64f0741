"""
Query cache for Go Make Your Picks

Entries live in the Flask-Caching backend under ``namespace:generation:key``.
Invalidating a whole namespace moves it to a new generation, which makes every
older entry unreachable without scanning or pattern-matching keys, and works
the same for SimpleCache and Redis. Generations are nanosecond timestamps: if
the backend evicts one, the namespace restarts at a generation never used
before instead of an old one.
"""

import functools
import logging
import time

from flask import current_app

from app import cache

logger = logging.getLogger(__name__)

SEASONS = "seasons"
LEADERBOARD = "leaderboard"
SETTINGS = "settings"

# Distinguishes a cached None from a miss
_MISSING = object()


class QueryCache:
    """Explicit get/set/invalidate contract over the configured cache backend"""

    def __init__(self):
        self.hits = 0
        self.misses = 0

    def _generation(self, namespace):
        key = f"_gen:{namespace}"
        generation = cache.get(key)
        if generation is None:
            cache.add(key, time.time_ns(), timeout=0)
            generation = cache.get(key) or time.time_ns()
        return generation

    def _key(self, namespace, key):
        return f"{namespace}:{self._generation(namespace)}:{key}"

    def _default_ttl(self):
        return current_app.config.get("QUERY_CACHE_TTL", 300)

    def get(self, namespace, key, default=None):
        value = cache.get(self._key(namespace, key))
        if value is None:
            self.misses += 1
            return default
        self.hits += 1
        return value[0]

    def set(self, namespace, key, value, ttl=None):
        # Wrapped in a tuple so cached None/empty values still count as hits
        cache.set(
            self._key(namespace, key),
            (value,),
            timeout=ttl if ttl is not None else self._default_ttl(),
        )

    def get_or_set(self, namespace, key, loader, ttl=None):
        value = self.get(namespace, key, default=_MISSING)
        if value is _MISSING:
            value = loader()
            self.set(namespace, key, value, ttl=ttl)
        return value

    def invalidate(self, namespace, key):
        cache.delete(self._key(namespace, key))

    def invalidate_prefix(self, namespace):
        """Drop every entry of a namespace"""
        generation = max(time.time_ns(), self._generation(namespace) + 1)
        cache.set(f"_gen:{namespace}", generation, timeout=0)
        logger.debug(f"Cache namespace '{namespace}' invalidated (generation {generation})")

    def clear(self):
        cache.clear()
        self.hits = 0
        self.misses = 0

    def stats(self):
        return {
            "type": current_app.config.get("CACHE_TYPE", "Unknown"),
            "default_ttl": self._default_ttl(),
            "hits": self.hits,
            "misses": self.misses,
        }


query_cache = QueryCache()


def cached_query(namespace, ttl=None):
    """
    Decorator caching a function's return value in a namespace, keyed by
    its name and arguments

    Args:
        namespace: Namespace the entry belongs to, used for invalidation
        ttl: Timeout in seconds, defaults to QUERY_CACHE_TTL
    """

    def decorator(f):
        @functools.wraps(f)
        def wrapped(*args, **kwargs):
            args_str = ":".join(str(arg) for arg in args)
            kwargs_str = ":".join(f"{k}={v}" for k, v in sorted(kwargs.items()))
            key = f"{f.__name__}:{args_str}:{kwargs_str}"
            return query_cache.get_or_set(
                namespace, key, lambda: f(*args, **kwargs), ttl=ttl
            )

        return wrapped

    return decorator


def invalidate_season_caches():
    """Season list/winner data and every leaderboard derived from it"""
    query_cache.invalidate_prefix(SEASONS)
    query_cache.invalidate_prefix(LEADERBOARD)
