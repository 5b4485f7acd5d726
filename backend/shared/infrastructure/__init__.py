"""
Infrastructure module: Database and Redis.

Provides:
- Database sessions and transactions (db.py)
- Redis connection pool for change notifications (redis_pool.py)
"""

from shared.infrastructure.db import (
    engine,
    SessionLocal,
    get_db,
    safe_commit,
)
from shared.infrastructure.redis_pool import (
    get_redis_sync_client,
    check_redis_health,
    close_redis_sync_client,
)

__all__ = [
    # db
    "engine",
    "SessionLocal",
    "get_db",
    "safe_commit",
    # redis
    "get_redis_sync_client",
    "check_redis_health",
    "close_redis_sync_client",
]
