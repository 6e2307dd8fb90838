"""
api/limiter.py -- Per-IP request throttling for the auth and lesson routes.

Limits come from Settings and are applied per route:
  AUTH_RATE_LIMIT  register, login, verify-otp, change-password
  API_RATE_LIMIT   lesson catalogue routes
/api/v1/health is never limited.

Counters live in process memory, so with several workers each one throttles
independently. Route modules and api/main.py must share this one instance;
a limiter built per module would keep its own counters and never trip.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")
