"""Per-client request throttling (slowapi), keyed by remote address.

The limiter is attached to the app in main.py; write endpoints opt in with
``@limiter.limit(...)`` using the limits configured in settings.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from backend.config import settings

SUBMIT_LIMIT = settings.RATE_LIMIT_SUBMIT

limiter = Limiter(
    key_func=get_remote_address,
    enabled=settings.RATE_LIMIT_ENABLED,
)
