"""Inference orchestration: validate, classify, record history, attach diagnosis."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from dermalens.errors import ModelUnavailable, StoreError, UnsupportedMediaType
from dermalens.ml.predictor import RankedPrediction, predict
from dermalens.storage.history import PredictionRecord

if TYPE_CHECKING:
    from dermalens.ml.inference import InferencePool
    from dermalens.ml.model_loader import ClassifierHandle
    from dermalens.ml.preprocessing import ImagePreprocessor
    from dermalens.storage.diagnoses import DiagnosisRecord, DiagnosisStore
    from dermalens.storage.history import HistoryLog

logger = logging.getLogger(__name__)

ACCEPTED_MEDIA_TYPES: frozenset[str] = frozenset({"image/jpeg", "image/jpg", "image/png"})
TOP_K = 3


@dataclass(frozen=True)
class InferenceMetadata:
    input_shape: tuple[int, ...]
    class_count: int
    history_saved: bool


@dataclass(frozen=True)
class InferenceResult:
    """Composed outcome of one successful inference request."""

    label: str
    confidence: float
    percentage: str
    top3: list[RankedPrediction]
    diagnosis: DiagnosisRecord | None
    metadata: InferenceMetadata


class InferenceOrchestrator:
    """Drives preprocess -> predict -> history -> diagnosis for a single upload.

    The classifier handle is injected once by the serving context and shared
    read-only across requests.
    """

    def __init__(
        self,
        handle: ClassifierHandle | None,
        preprocessor: ImagePreprocessor,
        pool: InferencePool,
        history: HistoryLog,
        diagnoses: DiagnosisStore,
    ) -> None:
        self._handle = handle
        self._preprocessor = preprocessor
        self._pool = pool
        self._history = history
        self._diagnoses = diagnoses

    @property
    def handle(self) -> ClassifierHandle | None:
        return self._handle

    async def infer(self, image_bytes: bytes, mime_type: str | None, filename: str | None) -> InferenceResult:
        """Classify an uploaded image and enrich the result.

        Raises:
            UnsupportedMediaType: If ``mime_type`` is not JPEG or PNG.
            ModelUnavailable: If no classifier has been loaded.
            PreprocessError: If the image cannot be decoded.
            PredictionError: If the forward pass fails.
            TimeoutError: If the inference pool stays saturated.
        """
        if (mime_type or "").lower() not in ACCEPTED_MEDIA_TYPES:
            raise UnsupportedMediaType(f"Invalid file type {mime_type!r}. Only JPEG and PNG are allowed.")
        handle = self._handle
        if handle is None:
            raise ModelUnavailable("Model not loaded")

        logger.info("Processing image: %s", filename)
        ranked = await self._pool.run(self._classify, handle, image_bytes)
        top = ranked[0]
        logger.info("Top prediction: %s (%.2f%%)", top.label, top.confidence * 100)

        history_saved = await self._save_history(ranked, filename)
        diagnosis = await self._lookup_diagnosis(top.label)

        return InferenceResult(
            label=top.label,
            confidence=top.confidence,
            percentage=f"{top.confidence * 100:.2f}%",
            top3=ranked[:TOP_K],
            diagnosis=diagnosis,
            metadata=InferenceMetadata(
                input_shape=(1, *handle.input_shape),
                class_count=handle.class_count,
                history_saved=history_saved,
            ),
        )

    def _classify(self, handle: ClassifierHandle, image_bytes: bytes) -> list[RankedPrediction]:
        # Runs on an inference worker; the tensor never leaves this frame.
        tensor = self._preprocessor.preprocess(image_bytes)
        return predict(handle, tensor)

    async def _save_history(self, ranked: list[RankedPrediction], filename: str | None) -> bool:
        top = ranked[0]
        record = PredictionRecord(
            predicted_label=top.label,
            confidence=top.confidence,
            image_name=filename or "unknown",
            ranked_predictions=tuple(ranked),
        )
        try:
            record_id = await asyncio.to_thread(self._history.append, record)
        except Exception:
            logger.warning("Failed to save prediction history for %s", filename, exc_info=True)
            return False
        logger.debug("Saved prediction %s", record_id)
        return True

    async def _lookup_diagnosis(self, label: str) -> DiagnosisRecord | None:
        try:
            diagnosis = await asyncio.to_thread(self._diagnoses.find_by_name, label, True)
        except StoreError:
            logger.warning("Diagnosis lookup failed for %s", label, exc_info=True)
            return None
        if diagnosis is None:
            logger.info("No diagnosis reference found for %s", label)
        return diagnosis
