"""
TTL-differentiated cache for overview report payloads.

Keys follow ``my-reports:overview:<employee_code>:<digest>`` where the digest
is a stable hash of the full report scope (filter mode, period and service-line
filter). Closed fiscal years never change once the books are closed, so they
are kept twice as long as anything touching the open year.
"""

from __future__ import annotations

import hashlib
import json
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol

import redis.asyncio as redis

from practice_reports.models.enums import FilterMode
from practice_reports.services.fiscal import (
    AllFiscalYears,
    CustomDateRange,
    FiscalPeriodResolver,
    FiscalYearPeriod,
    PeriodDescriptor,
)


logger = logging.getLogger("practice_reports.cache")

OVERVIEW_PREFIX = "my-reports:overview:"
DEFAULT_OPEN_TTL_SECONDS = 1800
DEFAULT_CLOSED_TTL_SECONDS = 3600


class CacheBackend(Protocol):
    async def get(self, key: str) -> Any | None: ...

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None: ...

    async def close(self) -> None: ...


class MemoryCacheBackend:
    """Process-local TTL map, used when no Redis URL is configured."""

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        sweep_interval_seconds: float = 60.0,
    ) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[float, str]] = {}
        self._sweep_interval = sweep_interval_seconds
        self._next_sweep = clock() + sweep_interval_seconds

    def __len__(self) -> int:
        return len(self._entries)

    def sweep(self) -> int:
        """Drop every expired entry; returns how many were removed."""
        now = self._clock()
        expired = [key for key, (expires_at, _) in self._entries.items() if expires_at <= now]
        for key in expired:
            del self._entries[key]
        self._next_sweep = now + self._sweep_interval
        return len(expired)

    async def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, raw = entry
        if expires_at <= self._clock():
            self._entries.pop(key, None)
            return None
        return json.loads(raw)

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        now = self._clock()
        if now >= self._next_sweep:
            self.sweep()
        self._entries[key] = (now + ttl_seconds, json.dumps(value, default=str))

    async def close(self) -> None:
        self._entries.clear()


class RedisCacheBackend:
    def __init__(self, url: str) -> None:
        self._client = redis.from_url(url, encoding="utf-8", decode_responses=True)

    async def get(self, key: str) -> Any | None:
        raw = await self._client.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        await self._client.set(key, json.dumps(value, default=str), ex=ttl_seconds)

    async def close(self) -> None:
        await self._client.aclose()


def build_backend(redis_url: str) -> CacheBackend:
    if redis_url:
        return RedisCacheBackend(redis_url)
    return MemoryCacheBackend()


@dataclass(frozen=True)
class ReportScope:
    employee_code: str
    filter_mode: FilterMode
    period: PeriodDescriptor
    service_lines: tuple[str, ...] = ()

    @classmethod
    def build(
        cls,
        employee_code: str,
        filter_mode: FilterMode,
        period: PeriodDescriptor,
        service_lines: list[str] | tuple[str, ...] = (),
    ) -> ReportScope:
        return cls(employee_code, filter_mode, period, tuple(sorted(set(service_lines))))

    def as_dict(self) -> dict[str, Any]:
        match self.period:
            case FiscalYearPeriod(year=year):
                period: dict[str, Any] = {"kind": "fiscal_year", "year": year}
            case AllFiscalYears():
                period = {"kind": "all_years"}
            case CustomDateRange(start=start, end=end):
                period = {"kind": "custom", "start": start.isoformat(), "end": end.isoformat()}
        return {
            "employee_code": self.employee_code,
            "filter_mode": self.filter_mode.value,
            "period": period,
            "service_lines": list(self.service_lines),
        }


class ReportCache:
    def __init__(
        self,
        backend: CacheBackend,
        fiscal: FiscalPeriodResolver,
        *,
        open_ttl_seconds: int = DEFAULT_OPEN_TTL_SECONDS,
        closed_ttl_seconds: int = DEFAULT_CLOSED_TTL_SECONDS,
    ) -> None:
        self.backend = backend
        self.fiscal = fiscal
        self.open_ttl_seconds = open_ttl_seconds
        self.closed_ttl_seconds = closed_ttl_seconds

    @staticmethod
    def key_for(scope: ReportScope) -> str:
        serialized = json.dumps(scope.as_dict(), sort_keys=True)
        digest = hashlib.sha256(serialized.encode()).hexdigest()[:16]
        return f"{OVERVIEW_PREFIX}{scope.employee_code}:{digest}"

    def ttl_for(self, scope: ReportScope) -> int:
        match scope.period:
            case FiscalYearPeriod(year=year) if self.fiscal.is_closed(year):
                return self.closed_ttl_seconds
            case FiscalYearPeriod() | AllFiscalYears() | CustomDateRange():
                return self.open_ttl_seconds

    async def get(self, scope: ReportScope) -> dict[str, Any] | None:
        key = self.key_for(scope)
        try:
            payload = await self.backend.get(key)
        except Exception:
            logger.warning("Cache read failed for %s; treating as miss.", key, exc_info=True)
            return None
        if payload is None:
            logger.debug("Cache miss %s", key)
            return None
        logger.debug("Cache hit %s", key)
        return payload

    async def set(self, scope: ReportScope, payload: dict[str, Any]) -> None:
        key = self.key_for(scope)
        ttl = self.ttl_for(scope)
        try:
            await self.backend.set(key, payload, ttl)
        except Exception:
            logger.warning("Cache write failed for %s; continuing without cache.", key, exc_info=True)
            return
        logger.debug("Cached %s for %ss", key, ttl)

    async def close(self) -> None:
        await self.backend.close()
