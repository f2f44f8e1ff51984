"""Shared slowapi limiter for the app and per-route limits."""
from slowapi import Limiter
from slowapi.util import get_remote_address
from bloomquest.config import settings
from bloomquest.constants import DEFAULT_RATE_LIMIT

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[DEFAULT_RATE_LIMIT],
    enabled=settings.RATE_LIMIT_ENABLED,
)
