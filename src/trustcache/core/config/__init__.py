"""
Configuration Module

Centralized, type-safe configuration for the trust analysis cache.

Components:
-----------
- **settings.py**: Pydantic-based configuration with environment variable loading
- **constants.py**: System-wide constants and enums (CacheTier, CacheNamespace, Stage)

Usage:
------
```python
from trustcache.core.config import get_settings
from trustcache.core.config.constants import CacheTier

settings = get_settings()
redis_url = settings.redis.REDIS_URL
```

Environment Variables:
---------------------
Configuration is loaded from environment variables or `.env` file:

```bash
REDIS_URL=redis://localhost:6379/0
DATABASE_URL=postgresql+psycopg://user:pass@db/trust
CACHE_ANALYSIS_TTL=86400
CACHE_CHALLENGE_TTL=3600
LOG_LEVEL=INFO
LOG_FORMAT=json
```
"""

from trustcache.core.config.constants import (
    ANALYSIS_CACHE_TTL,
    CHALLENGE_CACHE_TTL,
    TIER_PRIORITY,
    CacheNamespace,
    CacheTier,
    Stage,
)
from trustcache.core.config.settings import get_settings, reload_settings

__all__ = [
    # Settings
    "get_settings",
    "reload_settings",
    # Enums
    "Stage",
    "CacheTier",
    "CacheNamespace",
    "TIER_PRIORITY",
    # TTLs
    "ANALYSIS_CACHE_TTL",
    "CHALLENGE_CACHE_TTL",
]
