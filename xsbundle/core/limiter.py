"""SlowAPI rate limiter singleton.

Bundling endpoints do real work per call (a full user query and archive
write, or a queued manifest walk), so they are throttled per client IP.

Usage in route handlers:
    @router.get("/some-endpoint")
    @limiter.limit(settings.bundle_rate_limit)
    async def handler(request: Request, ...):
        ...

The `Request` parameter is required by SlowAPI even if the handler doesn't
use it directly: it uses it to extract the key.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address, default_limits=[])
