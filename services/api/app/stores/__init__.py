"""Data stores for persistence and caching.

Stores handle:
- PostgreSQL: engine/session lifecycle and the store adapter (repository)
- Redis: raw get/set/delete for the cache-aside layer

No caching decisions or invalidation logic in stores - that belongs in services.
"""
