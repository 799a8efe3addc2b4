# backend/invite_service/core/rate_limit.py
import threading
import time
from typing import Callable, Dict, Tuple, List

from fastapi import Request, HTTPException, status


def client_ip(request: Request, trust_proxy_headers: bool = False) -> str:
    """
    Address a request came from.

    X-Forwarded-For is client-controlled, so it is only honoured when the
    service runs behind a proxy that overwrites it (TRUST_PROXY_HEADERS).
    """
    if trust_proxy_headers:
        # "client, proxy1, proxy2"
        xff = request.headers.get("x-forwarded-for")
        if xff:
            first = xff.split(",")[0].strip()
            if first:
                return first

    if request.client and request.client.host:
        return request.client.host

    return "unknown"


class SimpleRateLimiter:
    """
    Very simple in-memory rate limiter keyed by (key, client_ip).

    Good enough for:
      - local development
      - low-volume single-instance deployments

    Used on POST /invite/validate so a single client cannot sweep the
    6-character token space. Buckets with no hits inside the window are
    dropped, so the map only holds recently active clients.
    """

    def __init__(
        self,
        key: str,
        limit: int,
        window_seconds: int,
        trust_proxy_headers: bool = False,
        clock: Callable[[], float] = time.time,
    ):
        self.key = key
        self.limit = int(limit)
        self.window_seconds = int(window_seconds)
        self.trust_proxy_headers = trust_proxy_headers
        self._clock = clock
        # (key, ip) -> list[timestamps]
        self._store: Dict[Tuple[str, str], List[float]] = {}
        self._last_sweep = clock()
        self._lock = threading.Lock()

    def _sweep(self, cutoff: float) -> None:
        # Called with the lock held
        stale = [k for k, ts in self._store.items() if not ts or ts[-1] < cutoff]
        for k in stale:
            del self._store[k]

    def hit(self, request: Request) -> None:
        bucket_key = (self.key, client_ip(request, self.trust_proxy_headers))
        now = self._clock()
        cutoff = now - self.window_seconds

        with self._lock:
            if now - self._last_sweep >= self.window_seconds:
                self._sweep(cutoff)
                self._last_sweep = now

            # Drop old entries outside the window
            timestamps = [ts for ts in self._store.get(bucket_key, []) if ts >= cutoff]

            if len(timestamps) >= self.limit:
                self._store[bucket_key] = timestamps
                raise HTTPException(
                    status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                    detail="Too many requests, please slow down.",
                )

            timestamps.append(now)
            self._store[bucket_key] = timestamps

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)
