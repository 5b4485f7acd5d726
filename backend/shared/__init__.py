"""
Shared module for common utilities of the REST API.

STRUCTURE:
- shared.infrastructure: Database, Redis and request correlation
  - db.py: SQLAlchemy sessions, safe_commit()
  - redis_pool.py: Redis connection pool for change notifications
  - correlation.py: X-Request-ID middleware and logging filter

- shared.config: Configuration
  - settings.py: Environment config (Pydantic)
  - logging.py: Structured logging
  - constants.py: Order, kitchen, table and payment enums

- shared.utils: Utilities
  - exceptions.py: HTTP exceptions with auto-logging
  - business_day.py: Business-day clock helpers
  - schemas.py: Shared Pydantic schemas

IMPORT EXAMPLES:
    from shared.infrastructure.db import get_db, safe_commit
    from shared.config.settings import settings
    from shared.config.constants import OrderStatus, KitchenStatus
    from shared.utils.exceptions import NotFoundError, ConsistencyError
"""
