"""
Global slowapi rate limiter for the public endpoints.

Mounted onto app.state in main.py so the slowapi middleware can find it.

Storage: set RATE_LIMIT_STORAGE_URL to a Redis URL in production so every
worker shares one counter; defaults to in-memory for local dev and tests.
"""
import os

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=os.getenv("RATE_LIMIT_STORAGE_URL", "memory://"),
)
