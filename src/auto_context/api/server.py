"""FastAPI application — context evaluation, tick ingestion and rule management.

This module wires together:
- CORS + API key auth middleware
- The per-device tracker registry and the async tick pipeline
- Synchronous evaluation and queued ingestion endpoints
- Rules CRUD (``routes/rules.py``)
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, HTTPException

from auto_context.api.middleware import setup_middleware
from auto_context.api.routes.rules import router as rules_router
from auto_context.api.schemas import BatchIngestRequest, EvaluateResponse, IngestResponse
from auto_context.config import get_settings
from auto_context.engine.default_rules import default_rules
from auto_context.engine.models import ContextDecision
from auto_context.engine.rules import ensure_terminal_rule, load_rules
from auto_context.models import ContextTick
from auto_context.streaming.pipeline import StreamPipeline
from auto_context.streaming.trackers import TrackerRegistry

logger = structlog.get_logger(__name__)

VERSION = "0.1.0"

# ── Shared state (initialised in lifespan) ────────────────────

_registry: TrackerRegistry | None = None
_pipeline: StreamPipeline | None = None
_pipeline_task: asyncio.Task | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle hooks."""
    global _registry, _pipeline, _pipeline_task

    settings = get_settings()

    # 1. Rules
    rules = load_rules(settings.rules_file) if settings.rules_file else default_rules()
    ensure_terminal_rule(rules)

    # 2. Trackers
    _registry = TrackerRegistry.from_settings(rules, settings)

    # 3. Streaming pipeline
    _pipeline = StreamPipeline(_registry, maxsize=settings.pipeline_maxsize)

    async def _on_decision(tick: ContextTick, decision: ContextDecision) -> None:
        logger.debug(
            "server.tick_processed",
            device_id=tick.device_id,
            label=decision.label,
            fork=decision.fork.value,
        )

    _pipeline.add_observer(_on_decision)
    _pipeline_task = asyncio.create_task(_pipeline.start())

    logger.info("server.started", port=settings.api_port, rules=len(rules))

    yield  # ← application runs

    # Shutdown
    if _pipeline:
        await _pipeline.stop()
    if _pipeline_task:
        _pipeline_task.cancel()
    logger.info("server.stopped")


app = FastAPI(
    title="Auto Context API",
    description="Automatic context classification for air-quality exposure attribution.",
    version=VERSION,
    lifespan=lifespan,
)

# ── Middleware ────────────────────────────────────────────────
setup_middleware(app)

# ── Routers ───────────────────────────────────────────────────
app.include_router(rules_router)


def _require_registry() -> TrackerRegistry:
    if _registry is None:
        raise HTTPException(503, "Trackers not ready.")
    return _registry


# ── Health ────────────────────────────────────────────────────

@app.get("/health", tags=["system"])
async def health():
    return {"status": "ok", "pipeline_pending": _pipeline.pending if _pipeline else 0}


@app.get("/system/info", tags=["system"])
async def system_info():
    """Detailed system status for operational monitoring."""
    settings = get_settings()
    return {
        "version": VERSION,
        "pipeline": {
            "running": _pipeline is not None,
            "pending": _pipeline.pending if _pipeline else 0,
            "processed_total": _pipeline.processed_total if _pipeline else 0,
        },
        "trackers": {
            "ready": _registry is not None,
            "devices": len(_registry) if _registry else 0,
            "rule_count": len(_registry.rules) if _registry else 0,
        },
        "config": {
            "rules_file": settings.rules_file or None,
            "fork_gps_loss_seconds": settings.fork_gps_loss_seconds,
            "fork_hysteresis_seconds": settings.fork_hysteresis_seconds,
        },
    }


# ── Evaluation ────────────────────────────────────────────────

@app.post("/evaluate", response_model=EvaluateResponse, tags=["context"])
async def evaluate(tick: ContextTick):
    """Evaluate one tick and return its decision.

    The tick is queued behind anything already ingested, so a device's
    tracker always sees its ticks in arrival order.
    """
    if _pipeline is None:
        raise HTTPException(503, "Pipeline not ready.")
    decision = await _pipeline.submit(tick)
    return EvaluateResponse(device_id=tick.device_id, decision=decision)


@app.post("/ingest", status_code=202, response_model=IngestResponse, tags=["context"])
async def ingest(tick: ContextTick):
    """Queue a tick for background evaluation."""
    if _pipeline is None:
        raise HTTPException(503, "Pipeline not ready.")
    await _pipeline.publish(tick)
    return IngestResponse(queued=1, pending=_pipeline.pending)


@app.post("/ingest/batch", status_code=202, response_model=IngestResponse, tags=["context"])
async def ingest_batch(req: BatchIngestRequest):
    """Queue several ticks, preserving their order."""
    if _pipeline is None:
        raise HTTPException(503, "Pipeline not ready.")
    await _pipeline.publish_batch(req.ticks)
    return IngestResponse(queued=len(req.ticks), pending=_pipeline.pending)


# ── Devices ───────────────────────────────────────────────────

@app.get("/devices", tags=["devices"])
async def list_devices():
    return {"devices": _require_registry().device_ids}


@app.get("/devices/{device_id}/context", response_model=ContextDecision, tags=["devices"])
async def device_context(device_id: str):
    decision = _require_registry().latest(device_id)
    if decision is None:
        raise HTTPException(404, "No context evaluated for this device yet.")
    return decision


@app.delete("/devices/{device_id}", tags=["devices"])
async def reset_device(device_id: str):
    if not _require_registry().reset(device_id):
        raise HTTPException(404, "Device not tracked.")
    return {"reset": True}
