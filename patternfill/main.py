from __future__ import annotations

import logging
import time

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from patternfill.errors import PatternFillError
from patternfill.logging_utils import (
    clear_request_context,
    configure_logging,
    current_request_id,
    log_event,
    new_request_id,
    request_elapsed_ms,
    set_request_context,
)
from patternfill.models import (
    ConfigCatalogResponse,
    GeneratePatternsRequest,
    GeneratePatternsResponse,
)
from patternfill.services.batch import BatchReport, PatternBatch
from patternfill.services.chart import Chart
from patternfill.services.collaborators import configure_engine, engine, load_engine_from_env
from patternfill.services.config_registry import get_registry

configure_logging()
logger = logging.getLogger(__name__)

_env_engine = load_engine_from_env()
if _env_engine.configured:
    configure_engine(_env_engine.graph_builder, _env_engine.synthesizer)

app = FastAPI(title="Pattern Fill")


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID") or new_request_id()
    set_request_context(request_id=request_id, route=request.url.path, method=request.method)
    started = time.perf_counter()
    log_event(logger, "request_started")
    try:
        response = await call_next(request)
    except Exception:
        elapsed_ms = request_elapsed_ms(started)
        log_event(logger, "request_completed", status_code=500, duration_ms=elapsed_ms)
        raise

    elapsed_ms = request_elapsed_ms(started)
    log_event(logger, "request_completed", status_code=response.status_code, duration_ms=elapsed_ms)
    response.headers["X-Request-ID"] = request_id
    clear_request_context()
    return response


@app.exception_handler(Exception)
async def global_exception_handler(_request: Request, exc: Exception):
    request_id = current_request_id()
    logger.exception(
        "unhandled_exception",
        extra={"event": "unhandled_exception", "request_id": request_id},
    )
    response = JSONResponse(
        status_code=500,
        content={
            "detail": "Something went wrong while processing your request. Please try again.",
            "request_id": request_id,
        },
        headers={"X-Request-ID": request_id},
    )
    clear_request_context()
    return response


def _handle_user_error(action: str, exc: ValueError) -> HTTPException:
    log_event(logger, "request_failed", level=logging.WARNING, action=action, reason=str(exc))
    return HTTPException(
        status_code=422,
        detail={
            "message": f"{action} failed. Please adjust inputs and try again.",
            "reason": str(exc),
            "request_id": current_request_id(),
        },
    )


def _report_warnings(report: BatchReport) -> list[str]:
    warnings = [
        f"Region at row {outcome.region.start_row} ({outcome.label}) was skipped: {outcome.reason}"
        for outcome in report.outcomes
        if outcome.status != "generated"
    ]
    if report.unhandled_error:
        warnings.append(report.unhandled_error)
    return warnings


@app.get("/api/configs", response_model=ConfigCatalogResponse)
def config_catalog_endpoint():
    return ConfigCatalogResponse(**get_registry().catalog())


@app.post("/api/generate-patterns", response_model=GeneratePatternsResponse)
def generate_patterns_endpoint(payload: GeneratePatternsRequest):
    chart = Chart.from_payload(payload.chart)
    batch = PatternBatch(
        chart,
        payload.regions,
        registry=get_registry(),
        engine=engine,
        use_new_seeds=payload.use_new_seeds,
    )
    log_event(
        logger,
        "pattern_batch_requested",
        chart_type=chart.chart_type,
        event_count=len(chart.events),
        region_rows=[(region.start_row, region.end_row) for region in batch.regions],
        use_new_seeds=payload.use_new_seeds,
    )
    report = batch.run()
    if not report.completed:
        raise _handle_user_error("Pattern generation", PatternFillError(report.aborted_reason))

    return GeneratePatternsResponse(
        description=report.description,
        added=report.added,
        deleted=report.deleted,
        events=list(chart.events),
        regions=[outcome.to_report() for outcome in report.outcomes],
        warnings=_report_warnings(report),
    )
