"""Tests for ranked-output extraction."""

from __future__ import annotations

from unittest.mock import MagicMock

import numpy as np
import pytest

from dermalens.errors import PredictionError
from dermalens.ml.model_loader import ClassifierHandle
from dermalens.ml.predictor import RankedPrediction, predict


def _handle(scores: list[float], labels: tuple[str, ...] = ("Acne", "Eczema", "Melanoma")) -> ClassifierHandle:
    session = MagicMock()
    session.run.return_value = [np.array([scores], dtype=np.float32)]
    return ClassifierHandle(
        session=session,
        input_name="input",
        input_shape=(224, 224, 3),
        labels=labels,
        strategy="direct",
    )


_TENSOR = np.zeros((1, 224, 224, 3), dtype=np.float32)


class TestPredict:
    def test_ranks_by_confidence(self) -> None:
        ranked = predict(_handle([0.1, 0.7, 0.2]), _TENSOR)

        assert [p.label for p in ranked] == ["Eczema", "Melanoma", "Acne"]
        assert ranked[0].confidence == pytest.approx(0.7)
        assert ranked[1].confidence == pytest.approx(0.2)
        assert ranked[2].confidence == pytest.approx(0.1)

    def test_ties_keep_label_order(self) -> None:
        ranked = predict(_handle([0.25, 0.5, 0.25]), _TENSOR)
        assert [p.label for p in ranked] == ["Eczema", "Acne", "Melanoma"]

    def test_returns_every_class(self) -> None:
        labels = tuple(f"class_{i}" for i in range(11))
        scores = np.random.default_rng(0).dirichlet(np.ones(11)).tolist()

        ranked = predict(_handle(scores, labels), _TENSOR)

        assert len(ranked) == 11
        assert sorted(p.label for p in ranked) == sorted(labels)
        assert [p.confidence for p in ranked] == sorted((p.confidence for p in ranked), reverse=True)
        assert sum(p.confidence for p in ranked) == pytest.approx(1.0, abs=1e-5)

    def test_feeds_tensor_under_input_name(self) -> None:
        handle = _handle([0.1, 0.7, 0.2])
        predict(handle, _TENSOR)
        handle.session.run.assert_called_once_with(None, {"input": _TENSOR})

    def test_output_width_mismatch_raises(self) -> None:
        with pytest.raises(PredictionError, match="2 scores for 3 classes"):
            predict(_handle([0.4, 0.6]), _TENSOR)

    def test_runtime_failure_wrapped(self) -> None:
        handle = _handle([0.1, 0.7, 0.2])
        handle.session.run.side_effect = RuntimeError("device lost")

        with pytest.raises(PredictionError, match="device lost"):
            predict(handle, _TENSOR)

    def test_results_are_plain_floats(self) -> None:
        ranked = predict(_handle([0.1, 0.7, 0.2]), _TENSOR)
        assert all(type(p.confidence) is float for p in ranked)
        assert ranked[0] == RankedPrediction(label="Eczema", confidence=ranked[0].confidence)
