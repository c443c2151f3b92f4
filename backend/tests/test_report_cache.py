from datetime import date
from unittest.mock import AsyncMock

import pytest

from practice_reports.models.enums import FilterMode
from practice_reports.services.fiscal import (
    AllFiscalYears,
    CustomDateRange,
    FiscalPeriodResolver,
    FiscalYearPeriod,
)
from practice_reports.services.report_cache import MemoryCacheBackend, ReportCache, ReportScope


class _Clock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def _cache(backend=None) -> ReportCache:
    fiscal = FiscalPeriodResolver(9, today=lambda: date(2024, 10, 15))
    return ReportCache(backend or MemoryCacheBackend(), fiscal)


def test_key_is_stable_and_ignores_service_line_order() -> None:
    first = ReportScope.build("E01", FilterMode.partner, FiscalYearPeriod(2024), ["TAX", "AUD", "TAX"])
    second = ReportScope.build("E01", FilterMode.partner, FiscalYearPeriod(2024), ["AUD", "TAX"])
    assert ReportCache.key_for(first) == ReportCache.key_for(second)
    assert ReportCache.key_for(first).startswith("my-reports:overview:E01:")


def test_key_changes_with_scope() -> None:
    base = ReportScope.build("E01", FilterMode.partner, FiscalYearPeriod(2024))
    keys = {
        ReportCache.key_for(base),
        ReportCache.key_for(ReportScope.build("E01", FilterMode.manager, FiscalYearPeriod(2024))),
        ReportCache.key_for(ReportScope.build("E01", FilterMode.partner, FiscalYearPeriod(2023))),
        ReportCache.key_for(ReportScope.build("E01", FilterMode.partner, AllFiscalYears())),
        ReportCache.key_for(ReportScope.build("E01", FilterMode.partner, FiscalYearPeriod(2024), ["AUD"])),
    }
    assert len(keys) == 5


def test_closed_years_live_longer() -> None:
    cache = _cache()
    closed = ReportScope.build("E01", FilterMode.partner, FiscalYearPeriod(2024))
    current = ReportScope.build("E01", FilterMode.partner, FiscalYearPeriod(2025))
    custom = ReportScope.build("E01", FilterMode.partner, CustomDateRange(date(2023, 1, 1), date(2023, 3, 31)))
    assert cache.ttl_for(closed) == 3600
    assert cache.ttl_for(current) == 1800
    assert cache.ttl_for(ReportScope.build("E01", FilterMode.partner, AllFiscalYears())) == 1800
    assert cache.ttl_for(custom) == 1800


@pytest.mark.asyncio
async def test_memory_backend_expires_entries() -> None:
    clock = _Clock()
    backend = MemoryCacheBackend(clock)
    await backend.set("k", {"value": 1}, 60)
    assert await backend.get("k") == {"value": 1}
    clock.now += 61
    assert await backend.get("k") is None


@pytest.mark.asyncio
async def test_round_trip_through_report_cache() -> None:
    cache = _cache()
    scope = ReportScope.build("E01", FilterMode.manager, FiscalYearPeriod(2025))
    assert await cache.get(scope) is None
    await cache.set(scope, {"employeeCode": "E01"})
    assert await cache.get(scope) == {"employeeCode": "E01"}


@pytest.mark.asyncio
async def test_backend_failures_are_treated_as_misses() -> None:
    backend = AsyncMock()
    backend.get.side_effect = ConnectionError("redis down")
    backend.set.side_effect = ConnectionError("redis down")
    cache = _cache(backend)
    scope = ReportScope.build("E01", FilterMode.manager, FiscalYearPeriod(2025))

    assert await cache.get(scope) is None
    await cache.set(scope, {"employeeCode": "E01"})
    backend.set.assert_awaited_once()
    assert backend.set.await_args.args[2] == 1800


@pytest.mark.asyncio
async def test_memory_backend_sweeps_expired_keys_on_write() -> None:
    clock = _Clock()
    backend = MemoryCacheBackend(clock, sweep_interval_seconds=60)
    for index in range(50):
        await backend.set(f"employee-{index}", {"index": index}, 30)
    assert len(backend) == 50

    clock.now += 61
    await backend.set("fresh", {"index": -1}, 30)
    assert len(backend) == 1
    assert await backend.get("fresh") == {"index": -1}


def test_memory_backend_sweep_keeps_live_entries() -> None:
    clock = _Clock()
    backend = MemoryCacheBackend(clock)
    backend._entries["old"] = (clock.now - 1, "{}")
    backend._entries["live"] = (clock.now + 100, "{}")
    assert backend.sweep() == 1
    assert len(backend) == 1
