"""Rate limiting configuration (shared across routes and main app)."""

from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.requests import Request

from duck_racing.config import settings


def _client_key(request: Request) -> str:
    """Bucket by the first X-Forwarded-For hop when behind a proxy, else by peer address."""
    if settings.trust_proxy_headers:
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            return forwarded.split(",")[0].strip()
    return get_remote_address(request)


# default_limits applies to all routes; the Discord interaction endpoint is exempt.
limiter = Limiter(key_func=_client_key, default_limits=[settings.rate_limit])
