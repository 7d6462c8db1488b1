"""
Rate Limiting Middleware
Throttles ledger write operations per client
"""
from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from collections import defaultdict, deque
from datetime import datetime, timedelta
from typing import Deque, Dict, Tuple, Optional
import hashlib
import threading
import logging

from pettycash.core.config import settings

logger = logging.getLogger(__name__)

READ_METHODS = ('GET', 'HEAD', 'OPTIONS')


def default_limits() -> Dict[str, Tuple[int, int]]:
    """(max requests, window seconds) keyed by path fragment"""
    return {
        '/petty-cash/transfers': (settings.RATE_LIMIT_TRANSFERS_PER_MINUTE, 60),
        '/retirement': (settings.RATE_LIMIT_RETIREMENTS_PER_MINUTE, 60),
        '/petty-cash/accounts': (settings.RATE_LIMIT_WRITES_PER_MINUTE, 60),
        '/customers': (settings.RATE_LIMIT_WRITES_PER_MINUTE, 60),
        '/reconciliation': (2 * settings.RATE_LIMIT_WRITES_PER_MINUTE, 60),
        'default': (100, 60),
    }


class RateLimiter:
    """
    In-memory sliding window, one window per (matched limit, client).
    Only suitable for a single process.
    """

    def __init__(self, limits: Optional[Dict[str, Tuple[int, int]]] = None):
        self.limits = limits or default_limits()
        self._hits: Dict[str, Deque[datetime]] = defaultdict(deque)
        self._lock = threading.Lock()

    @staticmethod
    def client_key(request: Request) -> str:
        """Client IP, plus a digest of the bearer token when the caller is authenticated"""
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            ip = forwarded.split(",")[0].strip()
        else:
            ip = request.headers.get("X-Real-IP") or (request.client.host if request.client else "unknown")

        auth_header = request.headers.get("Authorization", "")
        token = auth_header[len("Bearer "):] if auth_header.startswith("Bearer ") else ""
        return f"{ip}:{hashlib.sha256(token.encode()).hexdigest()[:16] if token else 'anonymous'}"

    def _match(self, path: str) -> Tuple[str, Tuple[int, int]]:
        """(bucket fragment, limit); the strictest matching fragment wins"""
        matches = [(self.limits[p], p) for p in self.limits if p != 'default' and p in path]
        if not matches:
            return 'default', self.limits['default']
        limit, fragment = min(matches)
        return fragment, limit

    def _limit_for(self, path: str) -> Tuple[int, int]:
        return self._match(path)[1]

    def is_allowed(self, request: Request) -> Tuple[bool, Optional[Dict]]:
        """
        Check a request against its window.

        Returns:
            Tuple of (is_allowed, rate_limit_info); reads always pass with no info
        """
        if request.method in READ_METHODS:
            return True, None

        path = request.url.path
        fragment, (limit, window) = self._match(path)
        key = f"{fragment}:{self.client_key(request)}"
        now = datetime.utcnow()

        with self._lock:
            hits = self._hits[key]
            while hits and hits[0] <= now - timedelta(seconds=window):
                hits.popleft()

            if len(hits) >= limit:
                retry_after = int((hits[0] + timedelta(seconds=window) - now).total_seconds()) if hits else window
                logger.warning(f"Rate limit exceeded for {key}: {len(hits)}/{limit} requests")
                return False, {
                    'limit': limit,
                    'remaining': 0,
                    'reset': retry_after,
                    'retry_after': max(1, retry_after)
                }

            hits.append(now)
            return True, {
                'limit': limit,
                'remaining': limit - len(hits),
                'reset': window
            }


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Applies RateLimiter to /api/ routes"""

    def __init__(self, app, rate_limiter: Optional[RateLimiter] = None):
        super().__init__(app)
        self.rate_limiter = rate_limiter or RateLimiter()

    async def dispatch(self, request: Request, call_next):
        if not settings.RATE_LIMIT_ENABLED or not request.url.path.startswith('/api/'):
            return await call_next(request)

        is_allowed, rate_info = self.rate_limiter.is_allowed(request)

        if not is_allowed:
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={
                    'detail': 'Too many requests. Please try again later.',
                    'error': 'rate_limited',
                    'retry_after': rate_info['retry_after']
                },
                headers={
                    'Retry-After': str(rate_info['retry_after']),
                    'X-RateLimit-Limit': str(rate_info['limit']),
                    'X-RateLimit-Remaining': '0',
                }
            )

        response = await call_next(request)

        if rate_info:
            for header, field in (('Limit', 'limit'), ('Remaining', 'remaining'), ('Reset', 'reset')):
                response.headers[f'X-RateLimit-{header}'] = str(rate_info[field])

        return response
