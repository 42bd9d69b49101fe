"""Rate limiting configuration for public form endpoints."""

import os

from slowapi import Limiter
from slowapi.util import get_remote_address

IS_TESTING = os.getenv("TESTING", "").lower() in ("1", "true", "yes")

# In-memory storage is per-process; put a shared store in front of multi-worker
# deployments via RATE_LIMIT_STORAGE_URI.
limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=os.getenv("RATE_LIMIT_STORAGE_URI", "memory://"),
    enabled=not IS_TESTING,
)
