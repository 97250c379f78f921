"""FastAPI application exposing the auto-scheduling engine."""

import os
import time
import logging

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from autoschedule.alternatives import suggest_alternatives
from autoschedule.availability import availability_matrix
from autoschedule.config import DEFAULT_CONFIG
from autoschedule.conflicts import check_conflicts
from autoschedule.errors import InputError
from autoschedule.generator import generate_optimal_schedule, unscheduled_client_ids
from autoschedule.models import (
    AlternativesRequest, AlternativesResponse, AvailabilityMatrix,
    ConflictCheckRequest, ConflictCheckResponse,
    GenerateRequest, GenerateResponse,
    MatrixRequest, ScheduleValidation, ValidateRequest,
)
from autoschedule.validation import validate_schedule

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(title="Therapy Auto-Scheduler", version="1.0.0")

allowed_origins = os.environ.get("ALLOWED_ORIGINS", "*").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_methods=["POST", "OPTIONS", "GET"],
    allow_headers=["*"],
)


def _bad_request(e: InputError) -> HTTPException:
    logger.info("Rejected request: %s", e)
    return HTTPException(status_code=400, detail=str(e))


@app.get("/health")
def health():
    return {"status": "ok"}


@app.post("/schedule/generate", response_model=GenerateResponse)
def generate(request: GenerateRequest):
    start = time.time()
    try:
        schedule = generate_optimal_schedule(
            request.therapists, request.clients, request.existingSessions,
            request.startDate, request.endDate,
            config=request.config or DEFAULT_CONFIG,
        )
    except InputError as e:
        raise _bad_request(e)
    except Exception as e:
        logger.exception("Schedule generation failed")
        raise HTTPException(status_code=500, detail=str(e))

    missing = unscheduled_client_ids(request.clients, schedule)
    result = GenerateResponse(
        schedule=schedule,
        unscheduledClientIds=missing,
        statusMessage=(f"Scheduled {len(schedule)} sessions; "
                       f"{len(missing)} of {len(request.clients)} clients unscheduled."),
        solveTimeSeconds=round(time.time() - start, 3),
    )
    logger.info("Generate completed in %.3fs: %s", result.solveTimeSeconds, result.statusMessage)
    return result


@app.post("/conflicts/check", response_model=ConflictCheckResponse)
def conflicts(request: ConflictCheckRequest):
    try:
        found = check_conflicts(
            request.startTime, request.endTime, request.therapist.id, request.client.id,
            request.existingSessions, request.therapist, request.client, request.excludeSessionId,
            clients_by_id={c.id: c for c in request.clients} or None,
            config=request.config or DEFAULT_CONFIG,
        )
    except InputError as e:
        raise _bad_request(e)
    return ConflictCheckResponse(conflicts=found)


@app.post("/conflicts/alternatives", response_model=AlternativesResponse)
def alternatives(request: AlternativesRequest):
    config = request.config or DEFAULT_CONFIG
    clients_by_id = {c.id: c for c in request.clients} or None
    try:
        found = request.conflicts or check_conflicts(
            request.startTime, request.endTime, request.therapist.id, request.client.id,
            request.existingSessions, request.therapist, request.client, request.excludeSessionId,
            clients_by_id=clients_by_id, config=config,
        )
        suggestions = suggest_alternatives(
            request.startTime, request.endTime, request.therapist.id, request.client.id,
            request.existingSessions, request.therapist, request.client, found, request.excludeSessionId,
            clients_by_id=clients_by_id, config=config, limit=request.limit,
        )
    except InputError as e:
        raise _bad_request(e)
    return AlternativesResponse(alternatives=suggestions)


@app.post("/schedule/validate", response_model=ScheduleValidation)
def validate(request: ValidateRequest):
    return validate_schedule(request.schedule, request.config or DEFAULT_CONFIG)


@app.post("/availability/matrix", response_model=AvailabilityMatrix)
def matrix(request: MatrixRequest):
    return availability_matrix(request.therapists, request.clients, request.day, request.config or DEFAULT_CONFIG)
