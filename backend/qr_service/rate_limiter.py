"""Rate limiting.

Two layers share one client key:

- ``limiter`` (slowapi) puts tight per-endpoint limits on the auth routes.
- ``client_limiter`` is the access gate's per-client budget across every
  gated request: a fixed window (``settings.rate_limit_per_client``) whose
  counters live in a ``limits`` storage backend. Increments are atomic and
  expired windows are evicted by the storage. The default ``memory://``
  storage is per process; multi-process deployments must point
  ``rate_limit_storage_uri`` at a shared store such as Redis.
"""

import time

from limits import parse
from limits.storage import Storage, storage_from_string
from limits.strategies import FixedWindowRateLimiter
from slowapi import Limiter
from starlette.requests import Request

from qr_service.config import settings

UNKNOWN_CLIENT = "unknown"


def client_address(request: Request) -> str:
    """Key a request by client address.

    First X-Forwarded-For entry, then X-Real-IP, then the socket peer. Requests
    with none of these share the ``unknown`` bucket.
    """
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first

    real_ip = request.headers.get("X-Real-IP", "").strip()
    if real_ip:
        return real_ip

    if request.client and request.client.host:
        return request.client.host

    return UNKNOWN_CLIENT


class ClientRateLimiter:
    """Fixed-window request counter keyed by client address."""

    def __init__(self, limit: str, storage: Storage | None = None) -> None:
        self.item = parse(limit)
        self.storage = storage or storage_from_string("memory://")
        self._strategy = FixedWindowRateLimiter(self.storage)

    def hit(self, key: str) -> bool:
        """Count one request for the key; False once the window is exhausted."""
        return self._strategy.hit(self.item, key)

    def retry_after(self, key: str) -> int:
        """Seconds until the key's current window resets."""
        reset_time, _remaining = self._strategy.get_window_stats(self.item, key)
        return max(1, int(reset_time - time.time()))

    def reset(self) -> None:
        """Drop all counters."""
        self.storage.reset()


# Rate limiter instance - shared across modules
limiter = Limiter(key_func=client_address, storage_uri=settings.rate_limit_storage_uri)

client_limiter = ClientRateLimiter(
    settings.rate_limit_per_client, storage_from_string(settings.rate_limit_storage_uri)
)
