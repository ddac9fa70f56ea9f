"""FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from dermalens.api.routes import router
from dermalens.config import get_settings
from dermalens.errors import (
    InferenceError,
    ModelLoadError,
    ModelUnavailable,
    PredictionError,
    PreprocessError,
    StoreError,
    UnsupportedMediaType,
)
from dermalens.ml.inference import InferencePool
from dermalens.ml.model_loader import ModelLoader
from dermalens.ml.preprocessing import ImagePreprocessor
from dermalens.pipeline import InferenceOrchestrator
from dermalens.storage.database import Database
from dermalens.storage.diagnoses import SqliteDiagnosisStore
from dermalens.storage.history import SqliteHistoryLog

logger = logging.getLogger(__name__)

_ERROR_STATUS: dict[type[InferenceError], tuple[int, str]] = {
    UnsupportedMediaType: (status.HTTP_415_UNSUPPORTED_MEDIA_TYPE, "unsupported_media_type"),
    ModelUnavailable: (status.HTTP_503_SERVICE_UNAVAILABLE, "model_unavailable"),
    PreprocessError: (status.HTTP_400_BAD_REQUEST, "preprocessing_failed"),
    PredictionError: (status.HTTP_500_INTERNAL_SERVER_ERROR, "prediction_failed"),
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan: initialize on startup, clean up on shutdown."""
    settings = get_settings()
    app.state.settings = settings

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    logger.info(
        "Starting DermaLens (device=%s, max_concurrent=%s, model_dir=%s)",
        settings.device,
        settings.max_concurrent,
        settings.model_dir,
    )

    database = Database(settings.database_path)
    database.initialize()

    try:
        handle = ModelLoader(settings).load()
    except ModelLoadError:
        logger.critical("Failed to load model; aborting startup", exc_info=True)
        database.close()
        raise

    inference_pool = InferencePool(settings.max_concurrent)
    history = SqliteHistoryLog(database)
    diagnoses = SqliteDiagnosisStore(database)

    app.state.database = database
    app.state.inference_pool = inference_pool
    app.state.history = history
    app.state.diagnoses = diagnoses
    app.state.orchestrator = InferenceOrchestrator(
        handle=handle,
        preprocessor=ImagePreprocessor(settings.max_image_pixels),
        pool=inference_pool,
        history=history,
        diagnoses=diagnoses,
    )

    logger.info("DermaLens ready with %d disease classes", handle.class_count)
    yield

    logger.info("Shutting down DermaLens")
    inference_pool.shutdown()
    database.close()
    logger.info("DermaLens shutdown complete")


async def _inference_error_handler(request: Request, exc: Exception) -> JSONResponse:
    status_code, error = _ERROR_STATUS.get(type(exc), (status.HTTP_500_INTERNAL_SERVER_ERROR, "inference_failed"))
    logger.warning("Request %s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status_code, content={"error": error, "detail": str(exc)})


async def _timeout_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.warning("Inference queue timeout on %s", request.url.path)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"error": "busy", "detail": "Inference capacity exhausted, retry later"},
    )


async def _store_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Store failure on %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "database_error", "detail": str(exc)},
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    application = FastAPI(
        title="DermaLens",
        description="Skin condition image classification with diagnosis reference data and prediction history",
        version="0.1.0",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.add_exception_handler(InferenceError, _inference_error_handler)
    application.add_exception_handler(TimeoutError, _timeout_handler)
    application.add_exception_handler(StoreError, _store_error_handler)

    application.include_router(router)
    return application


app = create_app()


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    settings = get_settings()
    uvicorn.run("dermalens.main:app", host=settings.host, port=settings.port)
