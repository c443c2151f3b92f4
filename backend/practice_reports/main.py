from collections import defaultdict, deque
from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from practice_reports.api.routes import api_router
from practice_reports.core.config import Settings, get_settings
from practice_reports.db.base import Base
from practice_reports.db.session import SessionLocal, engine
from practice_reports.services.employees import SqlEmployeeResolver
from practice_reports.services.fiscal import FiscalPeriodResolver
from practice_reports.services.ledger_reader import SqlLedgerReader
from practice_reports.services.overview import OverviewOrchestrator
from practice_reports.services.report_cache import ReportCache, build_backend
from practice_reports.utils.retry import RetryConfig


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

settings = get_settings()
logger = logging.getLogger("practice_reports.api")


def build_retry_config(config: Settings) -> RetryConfig:
    return RetryConfig(
        max_attempts=config.ledger_retry_attempts,
        base_delay=config.ledger_retry_base_delay_seconds,
        max_delay=config.ledger_retry_max_delay_seconds,
    )


def build_overview_orchestrator(
    config: Settings,
    *,
    fiscal: FiscalPeriodResolver,
    reader: SqlLedgerReader,
    retry: RetryConfig,
) -> OverviewOrchestrator:
    cache = ReportCache(
        build_backend(config.redis_url),
        fiscal,
        open_ttl_seconds=config.report_cache_ttl_open_seconds,
        closed_ttl_seconds=config.report_cache_ttl_closed_seconds,
    )
    return OverviewOrchestrator(
        reader=reader,
        employees=SqlEmployeeResolver(SessionLocal),
        cache=cache,
        fiscal=fiscal,
        partner_categories=config.partner_categories,
        cost_excluded_categories=config.cost_excluded_categories,
        retry=retry,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    # ── startup ──
    if settings.auto_create_schema:
        Base.metadata.create_all(bind=engine)
    fiscal = FiscalPeriodResolver(settings.fiscal_year_start_month)
    reader = SqlLedgerReader(SessionLocal)
    retry = build_retry_config(settings)
    app.state.fiscal_resolver = fiscal
    app.state.ledger_reader = reader
    app.state.retry_config = retry
    app.state.overview_orchestrator = build_overview_orchestrator(
        settings, fiscal=fiscal, reader=reader, retry=retry
    )
    cache_kind = "redis" if settings.redis_url else "memory"
    logger.info("Practice Reports API ready (report cache: %s).", cache_kind)
    yield
    # ── shutdown ──
    await app.state.overview_orchestrator.aclose()
    engine.dispose()
    logger.info("Practice Reports API shutdown complete.")


app = FastAPI(
    title=settings.app_name,
    debug=settings.debug,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_request_buckets: dict[str, deque[float]] = defaultdict(deque)
_next_bucket_sweep = 0.0


def prune_request_buckets(now: float, window_seconds: float) -> int:
    """Forget clients whose last request fell outside the rate-limit window."""
    stale = [
        key for key, bucket in _request_buckets.items() if not bucket or now - bucket[-1] > window_seconds
    ]
    for key in stale:
        del _request_buckets[key]
    return len(stale)


@app.middleware("http")
async def request_log_and_rate_limit(request: Request, call_next):
    global _next_bucket_sweep
    started = time.monotonic()
    key = f"{request.client.host if request.client else 'unknown'}:{request.url.path}"
    now = time.time()
    if now >= _next_bucket_sweep:
        prune_request_buckets(now, settings.rate_limit_window_seconds)
        _next_bucket_sweep = now + settings.rate_limit_window_seconds
    bucket = _request_buckets[key]
    while bucket and now - bucket[0] > settings.rate_limit_window_seconds:
        bucket.popleft()
    if len(bucket) >= settings.rate_limit_requests:
        return JSONResponse(
            status_code=429,
            content={"detail": "Rate limit exceeded. Please retry later."},
        )
    bucket.append(now)

    try:
        response = await call_next(request)
    except Exception as exc:  # pragma: no cover
        logger.exception("Unhandled error for %s %s", request.method, request.url.path, exc_info=exc)
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})

    elapsed_ms = (time.monotonic() - started) * 1000
    logger.info(
        "%s %s -> %s %.2fms",
        request.method,
        request.url.path,
        response.status_code,
        elapsed_ms,
    )
    return response


@app.get("/healthz")
def healthz() -> dict:
    return {"ok": True, "timestamp": datetime.now(timezone.utc).isoformat()}


app.include_router(api_router, prefix=settings.api_prefix)
