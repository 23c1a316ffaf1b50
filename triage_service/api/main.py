"""
FastAPI main application for the triage queue service.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import Body, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from triage_service.core.config import Config
from triage_service.core.exceptions import (
    ClassificationError,
    DuplicatePatientError,
    EmptyQueueError,
    ValidationError,
)
from triage_service.core.triage_service import get_triage_service, reset_triage_service
from triage_service.models.events import utc_now
from triage_service.api.websocket import manager, router as ws_router

# Configure logging
logging.basicConfig(
    level=Config.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Starting triage queue service...")

    service = get_triage_service()
    manager.attach(service.event_bus)

    logger.info("Triage queue service started successfully")

    yield

    logger.info("Shutting down triage queue service...")
    manager.detach()
    service.event_bus.stop()
    reset_triage_service()
    logger.info("Shutdown complete")


# Create FastAPI app
app = FastAPI(
    title="Triage Queue API",
    description="Vitals intake, risk triage and priority queue",
    version="1.0.0",
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=Config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ========================
# Error Mapping
# ========================

@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=422, content=exc.to_dict())


@app.exception_handler(DuplicatePatientError)
async def duplicate_patient_handler(request: Request, exc: DuplicatePatientError):
    return JSONResponse(
        status_code=409,
        content={"error": "duplicate_patient", "patient_id": exc.patient_id, "message": str(exc)}
    )


@app.exception_handler(EmptyQueueError)
async def empty_queue_handler(request: Request, exc: EmptyQueueError):
    return JSONResponse(status_code=404, content={"error": "empty_queue", "message": str(exc)})


@app.exception_handler(ClassificationError)
async def classification_error_handler(request: Request, exc: ClassificationError):
    logger.error(f"Classification failed for {request.url.path}: {exc}")
    return JSONResponse(
        status_code=503,
        content={"error": "classification_error", "message": str(exc), "retryable": exc.retryable}
    )


# ========================
# Health Endpoints
# ========================

@app.get("/")
async def root():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": "Triage Queue API",
        "version": "1.0.0",
        "timestamp": utc_now().isoformat()
    }


@app.get("/health")
async def health_check():
    """Detailed health check."""
    service = get_triage_service()
    return {
        "status": "healthy",
        "components": {
            "classifier": service.classifier.model_version,
            "queue_size": len(service.queue),
            "websocket_connections": manager.connection_count,
            "feedback_archive": "enabled" if service.feedback_sink else "disabled"
        },
        "config": {
            "debug": Config.DEBUG,
            "temperature_unit": service.normalizer.temperature_unit,
            "high_risk_alerts": service.high_risk_alerts
        }
    }


# ========================
# Assessment Endpoints
# ========================

@app.post("/predict/")
async def predict(vitals: Dict[str, Any] = Body(...)):
    """Assess a patient's vitals and add them to the queue."""
    service = get_triage_service()
    assessment = await service.submit_assessment(vitals)

    response = assessment.to_response()
    entry = service.queue.get(assessment.patient_id)
    response["queue_position"] = entry.queue_position if entry else None
    return response


# ========================
# Queue Endpoints
# ========================

@app.get("/queue/")
async def get_queue() -> List[Dict[str, Any]]:
    """Get the current queue, most urgent first."""
    return [entry.to_summary() for entry in get_triage_service().get_queue()]


@app.get("/queue/next/")
async def get_next_patient():
    """Call the next patient (removes them from the queue)."""
    entry = await get_triage_service().get_next_patient()
    return entry.to_summary()


@app.get("/queue/peek/")
async def peek_next_patient():
    """Show the next patient without removing them."""
    return get_triage_service().peek_next_patient().to_summary()


@app.delete("/queue/clear/")
async def clear_queue():
    """Remove everyone from the queue."""
    removed = await get_triage_service().clear_queue()
    return {"status": "cleared", "removed": removed}


@app.post("/queue/update-priorities/")
async def update_priorities():
    """Re-score the queue against current waits."""
    entries = await get_triage_service().update_priorities()
    return {
        "status": "updated",
        "total": len(entries),
        "queue": [entry.to_summary() for entry in entries]
    }


# ========================
# Feedback Endpoints
# ========================

@app.post("/feedback/")
async def provide_feedback(
    patient_id: str = Query(...),
    actual_wait_time: float = Query(...),
    satisfaction_score: float = Query(...),
    resource_utilization: Optional[float] = Query(None)
):
    """Record the observed outcome for an assessed patient."""
    return await get_triage_service().submit_feedback(
        patient_id,
        actual_wait_time,
        satisfaction_score,
        resource_utilization
    )


@app.get("/feedback/recent/")
def recent_feedback(limit: int = Query(50, ge=1, le=500)):
    """Recently archived feedback, read in the threadpool."""
    sink = get_triage_service().feedback_sink
    if sink is None:
        raise HTTPException(status_code=404, detail="Feedback archive is not configured")
    records = sink.recent(limit)
    return {"feedback": records, "total": len(records)}


# ========================
# Stats Endpoints
# ========================

@app.get("/stats/")
async def get_stats():
    """Queue statistics and calibration state."""
    return get_triage_service().get_stats()


@app.get("/config/scoring/")
async def get_scoring_config():
    """Current scoring parameters, including calibrated values."""
    return get_triage_service().scorer.parameters.to_dict()


app.include_router(ws_router)
