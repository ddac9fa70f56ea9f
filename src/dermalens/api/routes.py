"""API route definitions."""

from __future__ import annotations

import asyncio
import logging
import tempfile
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, BinaryIO

import onnxruntime
from fastapi import APIRouter, File, Query, Request, UploadFile, status
from fastapi.responses import JSONResponse

from dermalens.api.schemas import (
    Diagnosis,
    DiagnosisResponse,
    DiseasesResponse,
    DiseaseUpdate,
    ErrorResponse,
    HealthResponse,
    HistoryEntry,
    HistoryResponse,
    ModelInfoResponse,
    PredictionOut,
    PredictMetadata,
    PredictResponse,
    RankedPredictionOut,
)
from dermalens.errors import UploadTooLarge

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from dermalens.config import Settings
    from dermalens.ml.inference import InferencePool
    from dermalens.pipeline import InferenceOrchestrator
    from dermalens.storage.database import Database
    from dermalens.storage.diagnoses import DiagnosisStore
    from dermalens.storage.history import HistoryLog

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1")

_COPY_CHUNK_SIZE = 1024 * 1024


def _get_settings(request: Request) -> Settings:
    settings: Settings = request.app.state.settings
    return settings


def _get_orchestrator(request: Request) -> InferenceOrchestrator:
    orchestrator: InferenceOrchestrator = request.app.state.orchestrator
    return orchestrator


def _get_diagnoses(request: Request) -> DiagnosisStore:
    store: DiagnosisStore = request.app.state.diagnoses
    return store


def _get_history(request: Request) -> HistoryLog:
    log: HistoryLog = request.app.state.history
    return log


def _error(status_code: int, error: str, detail: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, "detail": detail})


def _reserve_temp_path(upload_dir: str | None, suffix: str) -> Path:
    with tempfile.NamedTemporaryFile(dir=upload_dir, suffix=suffix, delete=False) as tmp:
        return Path(tmp.name)


def _spool(source: BinaryIO, path: Path, max_size: int) -> None:
    with path.open("wb") as out:
        while chunk := source.read(_COPY_CHUNK_SIZE):
            out.write(chunk)
            if out.tell() > max_size:
                raise UploadTooLarge(f"Upload exceeds {max_size} bytes")


@asynccontextmanager
async def staged_upload(upload: UploadFile, upload_dir: str | None, max_size: int) -> AsyncIterator[Path]:
    """Spool an upload into a temporary file that is removed on exit.

    File I/O runs in worker threads.

    Raises:
        UploadTooLarge: If the upload exceeds ``max_size`` bytes.
    """
    suffix = Path(upload.filename or "").suffix
    path = await asyncio.to_thread(_reserve_temp_path, upload_dir, suffix)
    try:
        await asyncio.to_thread(_spool, upload.file, path, max_size)
        yield path
    finally:
        path.unlink(missing_ok=True)


@router.post(
    "/predict",
    response_model=PredictResponse,
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
        status.HTTP_413_CONTENT_TOO_LARGE: {"model": ErrorResponse},
        status.HTTP_415_UNSUPPORTED_MEDIA_TYPE: {"model": ErrorResponse},
        status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
        status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorResponse},
    },
    summary="Classify a skin image",
)
async def predict_image(
    request: Request,
    image: Annotated[UploadFile | None, File(description="JPEG or PNG skin image")] = None,
) -> PredictResponse | JSONResponse:
    """Classify an uploaded image and attach diagnosis reference data."""
    if image is None:
        return _error(status.HTTP_400_BAD_REQUEST, "bad_request", "No image uploaded")

    settings = _get_settings(request)
    orchestrator = _get_orchestrator(request)
    try:
        async with staged_upload(image, settings.upload_dir, settings.max_file_size) as path:
            image_bytes = await asyncio.to_thread(path.read_bytes)
            result = await orchestrator.infer(image_bytes, image.content_type, image.filename)
    except UploadTooLarge as exc:
        return _error(status.HTTP_413_CONTENT_TOO_LARGE, "payload_too_large", str(exc))

    return PredictResponse(
        prediction=PredictionOut(label=result.label, confidence=result.confidence, percentage=result.percentage),
        top3=[RankedPredictionOut.model_validate(p) for p in result.top3],
        diagnosis=Diagnosis.model_validate(result.diagnosis) if result.diagnosis is not None else None,
        metadata=PredictMetadata(
            input_shape=list(result.metadata.input_shape),
            class_count=result.metadata.class_count,
            history_saved=result.metadata.history_saved,
        ),
    )


@router.get(
    "/diagnosis/{disease_name}",
    response_model=DiagnosisResponse,
    summary="Get diagnosis information for a disease",
)
async def get_diagnosis(request: Request, disease_name: str) -> DiagnosisResponse | JSONResponse:
    """Look up a disease by name (case-insensitive)."""
    store = _get_diagnoses(request)
    record = await asyncio.to_thread(store.find_by_name, disease_name, True)
    if record is None:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"error": "Disease not found in database", "disease_name": disease_name},
        )
    return DiagnosisResponse(disease=Diagnosis.model_validate(record))


@router.get(
    "/history",
    response_model=HistoryResponse,
    summary="Recent prediction history",
)
async def get_history(
    request: Request,
    limit: Annotated[int | None, Query()] = None,
) -> HistoryResponse:
    """Return the most recent predictions, newest first."""
    settings = _get_settings(request)
    if limit is None:
        limit = settings.history_default_limit
    limit = max(1, min(limit, settings.history_max_limit))

    log = _get_history(request)
    records = await asyncio.to_thread(log.recent, limit)
    return HistoryResponse(
        history=[
            HistoryEntry(
                id=r.id,
                predicted_label=r.predicted_label,
                confidence=r.confidence,
                image_name=r.image_name,
                timestamp=r.timestamp,
                ranked_predictions=[RankedPredictionOut.model_validate(p) for p in r.ranked_predictions],
            )
            for r in records
        ]
    )


@router.get(
    "/diseases",
    response_model=DiseasesResponse,
    summary="List all diseases",
)
async def list_diseases(request: Request) -> DiseasesResponse:
    """Return every disease reference entry ordered by name."""
    store = _get_diagnoses(request)
    records = await asyncio.to_thread(store.list_all)
    return DiseasesResponse(diseases=[Diagnosis.model_validate(r) for r in records])


@router.put(
    "/diseases/{disease_id}",
    response_model=DiagnosisResponse,
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
        status.HTTP_404_NOT_FOUND: {"model": ErrorResponse},
    },
    summary="Update disease information",
)
async def update_disease(request: Request, disease_id: int, body: DiseaseUpdate) -> DiagnosisResponse | JSONResponse:
    """Apply a partial update to a disease reference entry."""
    store = _get_diagnoses(request)
    try:
        record = await asyncio.to_thread(store.update, disease_id, body.model_dump(exclude_none=True))
    except ValueError as exc:
        return _error(status.HTTP_400_BAD_REQUEST, "bad_request", str(exc))
    if record is None:
        return _error(status.HTTP_404_NOT_FOUND, "not_found", f"Disease {disease_id} not found")
    return DiagnosisResponse(disease=Diagnosis.model_validate(record))


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
)
async def health(request: Request) -> HealthResponse:
    """Return service health status."""
    settings = _get_settings(request)
    handle = _get_orchestrator(request).handle
    pool: InferencePool = request.app.state.inference_pool
    database: Database = request.app.state.database
    return HealthResponse(
        status="healthy",
        model_loaded=handle is not None,
        degraded=handle.degraded if handle is not None else False,
        load_strategy=handle.strategy if handle is not None else None,
        database_connected=await asyncio.to_thread(database.ping),
        onnxruntime_version=onnxruntime.__version__,
        device=settings.device,
        concurrent_requests=pool.active_count,
        queue_depth=pool.queue_depth,
        inferences_served=pool.completed_count,
    )


@router.get(
    "/model",
    response_model=ModelInfoResponse,
    responses={status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorResponse}},
    summary="Describe the loaded classifier",
)
async def model_info(request: Request) -> ModelInfoResponse | JSONResponse:
    """Return the interface of the loaded classifier."""
    handle = _get_orchestrator(request).handle
    if handle is None:
        return _error(status.HTTP_503_SERVICE_UNAVAILABLE, "model_unavailable", "Model not loaded")
    return ModelInfoResponse(
        strategy=handle.strategy,
        degraded=handle.degraded,
        input_shape=[1, *handle.input_shape],
        classes=list(handle.labels),
    )
