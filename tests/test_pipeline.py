"""Tests for the inference orchestrator."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING
from unittest.mock import MagicMock

if TYPE_CHECKING:
    from collections.abc import Iterator

import numpy as np
import pytest
from conftest import make_settings

from dermalens.errors import (
    HistoryWriteError,
    ModelUnavailable,
    PredictionError,
    PreprocessError,
    StoreError,
    UnsupportedMediaType,
)
from dermalens.ml.inference import InferencePool
from dermalens.ml.model_loader import ClassifierHandle, ModelLoader
from dermalens.ml.preprocessing import ImagePreprocessor
from dermalens.pipeline import InferenceOrchestrator
from dermalens.storage.diagnoses import DiagnosisRecord
from dermalens.storage.history import PredictionRecord

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_ECZEMA = DiagnosisRecord(
    id=2,
    name="Eczema",
    description="Red, itchy skin",
    causes="Genetics",
    prevention="Moisturize",
    treatment="Corticosteroids",
    severity="medium",
)


def _handle(scores: list[float] | None = None) -> ClassifierHandle:
    session = MagicMock()
    session.run.return_value = [np.array([scores or [0.1, 0.7, 0.2]], dtype=np.float32)]
    return ClassifierHandle(
        session=session,
        input_name="input",
        input_shape=(224, 224, 3),
        labels=("Acne", "Eczema", "Melanoma"),
        strategy="direct",
    )


@pytest.fixture()
def pool() -> Iterator[InferencePool]:
    inference_pool = InferencePool(max_concurrent=1)
    yield inference_pool
    inference_pool.shutdown()


@pytest.fixture()
def history() -> MagicMock:
    log = MagicMock()
    log.append.return_value = 1
    return log


@pytest.fixture()
def diagnoses() -> MagicMock:
    store = MagicMock()
    store.find_by_name.return_value = _ECZEMA
    return store


def _orchestrator(
    pool: InferencePool,
    history: MagicMock,
    diagnoses: MagicMock,
    handle: ClassifierHandle | None = None,
    preprocessor: ImagePreprocessor | MagicMock | None = None,
) -> InferenceOrchestrator:
    return InferenceOrchestrator(
        handle=handle,
        preprocessor=preprocessor or ImagePreprocessor(max_image_pixels=16_777_216),
        pool=pool,
        history=history,
        diagnoses=diagnoses,
    )


# ---------------------------------------------------------------------------
# Result composition
# ---------------------------------------------------------------------------


class TestSuccessfulInference:
    async def test_scenario_result(
        self, pool: InferencePool, history: MagicMock, diagnoses: MagicMock, png_bytes: bytes
    ) -> None:
        orchestrator = _orchestrator(pool, history, diagnoses, handle=_handle())

        result = await orchestrator.infer(png_bytes, "image/png", "lesion.png")

        assert result.label == "Eczema"
        assert result.confidence == pytest.approx(0.7)
        assert result.percentage == "70.00%"
        assert [p.label for p in result.top3] == ["Eczema", "Melanoma", "Acne"]
        assert result.diagnosis == _ECZEMA
        assert result.metadata.input_shape == (1, 224, 224, 3)
        assert result.metadata.class_count == 3
        assert result.metadata.history_saved is True

    async def test_one_history_write_and_one_lookup(
        self, pool: InferencePool, history: MagicMock, diagnoses: MagicMock, jpeg_bytes: bytes
    ) -> None:
        orchestrator = _orchestrator(pool, history, diagnoses, handle=_handle())

        await orchestrator.infer(jpeg_bytes, "image/jpeg", "lesion.jpg")

        history.append.assert_called_once()
        record: PredictionRecord = history.append.call_args.args[0]
        assert record.predicted_label == "Eczema"
        assert record.image_name == "lesion.jpg"
        assert len(record.ranked_predictions) == 3
        diagnoses.find_by_name.assert_called_once_with("Eczema", True)

    async def test_missing_filename_recorded_as_unknown(
        self, pool: InferencePool, history: MagicMock, diagnoses: MagicMock, png_bytes: bytes
    ) -> None:
        orchestrator = _orchestrator(pool, history, diagnoses, handle=_handle())
        await orchestrator.infer(png_bytes, "image/png", None)
        assert history.append.call_args.args[0].image_name == "unknown"

    async def test_mime_type_is_case_insensitive(
        self, pool: InferencePool, history: MagicMock, diagnoses: MagicMock, png_bytes: bytes
    ) -> None:
        orchestrator = _orchestrator(pool, history, diagnoses, handle=_handle())
        result = await orchestrator.infer(png_bytes, "IMAGE/PNG", "a.png")
        assert result.label == "Eczema"


# ---------------------------------------------------------------------------
# Best-effort side effects
# ---------------------------------------------------------------------------


class TestDegradedSideEffects:
    async def test_history_failure_still_returns_prediction(
        self, pool: InferencePool, history: MagicMock, diagnoses: MagicMock, png_bytes: bytes
    ) -> None:
        history.append.side_effect = HistoryWriteError("disk full")
        orchestrator = _orchestrator(pool, history, diagnoses, handle=_handle())

        result = await orchestrator.infer(png_bytes, "image/png", "a.png")

        assert result.label == "Eczema"
        assert result.metadata.history_saved is False
        diagnoses.find_by_name.assert_called_once()

    async def test_unexpected_history_error_is_contained(
        self, pool: InferencePool, history: MagicMock, diagnoses: MagicMock, png_bytes: bytes
    ) -> None:
        history.append.side_effect = RuntimeError("connection reset")
        orchestrator = _orchestrator(pool, history, diagnoses, handle=_handle())

        result = await orchestrator.infer(png_bytes, "image/png", "a.png")

        assert result.metadata.history_saved is False

    async def test_missing_diagnosis_is_none(
        self, pool: InferencePool, history: MagicMock, diagnoses: MagicMock, png_bytes: bytes
    ) -> None:
        diagnoses.find_by_name.return_value = None
        orchestrator = _orchestrator(pool, history, diagnoses, handle=_handle())

        result = await orchestrator.infer(png_bytes, "image/png", "a.png")

        assert result.diagnosis is None
        assert result.label == "Eczema"

    async def test_diagnosis_store_failure_is_none(
        self, pool: InferencePool, history: MagicMock, diagnoses: MagicMock, png_bytes: bytes
    ) -> None:
        diagnoses.find_by_name.side_effect = StoreError("locked")
        orchestrator = _orchestrator(pool, history, diagnoses, handle=_handle())

        result = await orchestrator.infer(png_bytes, "image/png", "a.png")

        assert result.diagnosis is None


# ---------------------------------------------------------------------------
# Request-scoped failures
# ---------------------------------------------------------------------------


class TestFailures:
    @pytest.mark.parametrize("mime_type", ["image/gif", "application/pdf", "text/plain", "", None])
    async def test_unsupported_media_type_never_preprocesses(
        self, pool: InferencePool, history: MagicMock, diagnoses: MagicMock, mime_type: str | None
    ) -> None:
        preprocessor = MagicMock()
        orchestrator = _orchestrator(pool, history, diagnoses, handle=_handle(), preprocessor=preprocessor)

        with pytest.raises(UnsupportedMediaType):
            await orchestrator.infer(b"GIF89a", mime_type, "a.gif")

        preprocessor.preprocess.assert_not_called()
        history.append.assert_not_called()

    async def test_model_unavailable(
        self, pool: InferencePool, history: MagicMock, diagnoses: MagicMock, png_bytes: bytes
    ) -> None:
        orchestrator = _orchestrator(pool, history, diagnoses, handle=None)
        with pytest.raises(ModelUnavailable):
            await orchestrator.infer(png_bytes, "image/png", "a.png")

    async def test_preprocess_error_propagates(
        self, pool: InferencePool, history: MagicMock, diagnoses: MagicMock
    ) -> None:
        orchestrator = _orchestrator(pool, history, diagnoses, handle=_handle())

        with pytest.raises(PreprocessError):
            await orchestrator.infer(b"not really a png", "image/png", "a.png")

        history.append.assert_not_called()
        diagnoses.find_by_name.assert_not_called()

    async def test_prediction_error_propagates(
        self, pool: InferencePool, history: MagicMock, diagnoses: MagicMock, png_bytes: bytes
    ) -> None:
        handle = _handle()
        handle.session.run.side_effect = RuntimeError("kernel crashed")
        orchestrator = _orchestrator(pool, history, diagnoses, handle=handle)

        with pytest.raises(PredictionError):
            await orchestrator.infer(png_bytes, "image/png", "a.png")

        history.append.assert_not_called()


# ---------------------------------------------------------------------------
# End to end with a real classifier
# ---------------------------------------------------------------------------


class TestRealClassifier:
    async def test_same_bytes_same_ranking(
        self, model_dir: Path, pool: InferencePool, history: MagicMock, png_bytes: bytes
    ) -> None:
        handle = ModelLoader(make_settings(model_dir=str(model_dir))).load()
        diagnoses = MagicMock()
        diagnoses.find_by_name.return_value = None
        orchestrator = _orchestrator(pool, history, diagnoses, handle=handle)

        first = await orchestrator.infer(png_bytes, "image/png", "a.png")
        second = await orchestrator.infer(png_bytes, "image/png", "a.png")

        assert first.top3 == second.top3
        assert first.metadata.class_count == 11
        ranked = history.append.call_args.args[0].ranked_predictions
        assert len(ranked) == 11
        assert sum(p.confidence for p in ranked) == pytest.approx(1.0, abs=1e-4)
        assert pool.completed_count == 2
