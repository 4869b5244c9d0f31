"""JSON API endpoints for current yields, history, recommendations, and control."""

from __future__ import annotations

from datetime import timedelta

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from yield_monitor.exceptions import FetchExhausted
from yield_monitor.logging import get_logger
from yield_monitor.models import utcnow
from yield_monitor.serialization import to_jsonable

log = get_logger(__name__)

router = APIRouter()

TIMEFRAMES = {
    "1h": timedelta(hours=1),
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
}


@router.get("/yields")
async def get_yields(request: Request) -> JSONResponse:
    """Latest snapshot per asset; empty list before the first ingestion."""
    orchestrator = request.app.state.orchestrator
    snapshots = orchestrator.get_current_yields()
    return JSONResponse(content=to_jsonable(snapshots))


@router.get("/yields/{symbol}")
async def get_yield(request: Request, symbol: str) -> JSONResponse:
    orchestrator = request.app.state.orchestrator
    if not orchestrator.is_tracked(symbol):
        return JSONResponse(content={"error": f"Unknown asset: {symbol}"}, status_code=404)

    snapshot = await orchestrator.get_asset(symbol)
    if snapshot is None:
        return JSONResponse(
            content={"error": f"No data yet for {symbol.upper()}"}, status_code=404
        )
    return JSONResponse(content=to_jsonable(snapshot))


@router.get("/yields/{symbol}/history")
async def get_yield_history(
    request: Request,
    symbol: str,
    timeframe: str = "24h",
    limit: int = 100,
    offset: int = 0,
) -> JSONResponse:
    orchestrator = request.app.state.orchestrator
    if not orchestrator.history_enabled:
        return JSONResponse(content={"error": "Yield history is disabled"}, status_code=503)
    if timeframe not in TIMEFRAMES:
        return JSONResponse(
            content={"error": f"Invalid timeframe: {timeframe}. Use one of {list(TIMEFRAMES)}"},
            status_code=400,
        )
    if limit < 1 or offset < 0:
        return JSONResponse(content={"error": "limit must be >= 1 and offset >= 0"}, status_code=400)

    since = utcnow() - TIMEFRAMES[timeframe]
    records = await orchestrator.get_history(symbol, since=since, limit=limit, offset=offset)
    return JSONResponse(
        content={
            "symbol": symbol.upper(),
            "timeframe": timeframe,
            "count": len(records),
            "history": [
                {**to_jsonable(record), "timestamp": record.timestamp.isoformat()}
                for record in records
            ],
        }
    )


@router.get("/history")
async def get_stored_yields(request: Request) -> JSONResponse:
    """Latest persisted value per symbol; survives restarts unlike /yields."""
    orchestrator = request.app.state.orchestrator
    if not orchestrator.history_enabled:
        return JSONResponse(content={"error": "Yield history is disabled"}, status_code=503)

    stored = await orchestrator.get_stored_yields()
    return JSONResponse(
        content={
            "total_records": stored["total_records"],
            "latest": [
                {**to_jsonable(record), "timestamp": record.timestamp.isoformat()}
                for record in stored["latest"]
            ],
        }
    )


@router.get("/recommendation")
async def get_recommendation(request: Request) -> JSONResponse:
    orchestrator = request.app.state.orchestrator
    return JSONResponse(content=to_jsonable(orchestrator.get_recommendation()))


@router.get("/events")
async def get_events(request: Request, limit: int = 50) -> JSONResponse:
    orchestrator = request.app.state.orchestrator
    return JSONResponse(content=to_jsonable(orchestrator.get_recent_events(limit)))


@router.get("/status")
async def get_status(request: Request) -> JSONResponse:
    orchestrator = request.app.state.orchestrator
    return JSONResponse(content=to_jsonable(orchestrator.get_status()))


@router.get("/health")
async def get_health(request: Request) -> JSONResponse:
    """200 when an ingestion happened within the health window, else 503."""
    orchestrator = request.app.state.orchestrator
    healthy = orchestrator.is_healthy()
    return JSONResponse(
        content={"status": "healthy" if healthy else "unhealthy"},
        status_code=200 if healthy else 503,
    )


@router.post("/fetch-now")
async def fetch_now(request: Request) -> JSONResponse:
    orchestrator = request.app.state.orchestrator
    summary = await orchestrator.fetch_now()
    log.info("manual_fetch_all", **{k: v for k, v in summary.items() if k != "failures"})
    return JSONResponse(content=to_jsonable(summary))


@router.post("/yields/{symbol}/fetch")
async def fetch_asset(request: Request, symbol: str) -> JSONResponse:
    orchestrator = request.app.state.orchestrator
    try:
        snapshot = await orchestrator.fetch_asset(symbol)
    except KeyError:
        return JSONResponse(content={"error": f"Unknown asset: {symbol}"}, status_code=404)
    except FetchExhausted as e:
        log.warning("manual_fetch_failed", symbol=symbol, error=str(e))
        return JSONResponse(content={"error": str(e)}, status_code=502)

    if snapshot is None:
        return JSONResponse(
            content={"error": f"Reading for {symbol.upper()} was rejected"}, status_code=422
        )
    return JSONResponse(content=to_jsonable(snapshot))


@router.post("/reset")
async def reset(request: Request) -> JSONResponse:
    orchestrator = request.app.state.orchestrator
    await orchestrator.reset()
    return JSONResponse(content={"success": True})
