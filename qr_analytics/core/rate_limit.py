"""
rate_limit.py — Global rate limiter instance.

Uses slowapi (a Starlette-compatible wrapper around the `limits` library).
Requests are keyed by client IP address.

Image rendering is the only CPU-heavy path in the service, so it gets a
tighter limit than the JSON heatmap endpoints (see Settings).

Usage in routes:
    from fastapi import Request
    from qr_analytics.core.rate_limit import limiter

    @router.get("/some-endpoint")
    @limiter.limit(settings.heatmap_data_rate_limit)
    async def my_endpoint(request: Request):
        ...
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

# Key requests by client IP.
# Behind the API gateway this can be swapped for a tenant-ID key function.
limiter = Limiter(key_func=get_remote_address)
