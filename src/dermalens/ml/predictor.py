"""Single forward pass and ranked-output extraction."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

from dermalens.errors import PredictionError

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from dermalens.ml.model_loader import ClassifierHandle


@dataclass(frozen=True)
class RankedPrediction:
    """A single class label with its softmax confidence."""

    label: str
    confidence: float


def predict(handle: ClassifierHandle, tensor: NDArray[np.float32]) -> list[RankedPrediction]:
    """Run the classifier and return every class ranked by confidence.

    Confidences are taken as emitted by the model's softmax; ties keep label
    table order.

    Raises:
        PredictionError: If the forward pass fails or the output width does
            not match the label table.
    """
    try:
        outputs = handle.session.run(None, {handle.input_name: tensor})
    except Exception as exc:  # noqa: BLE001
        raise PredictionError(f"Model inference failed: {exc}") from exc

    scores = np.asarray(outputs[0], dtype=np.float32).reshape(-1)
    if scores.size != len(handle.labels):
        raise PredictionError(f"Model returned {scores.size} scores for {len(handle.labels)} classes")

    ranked = [RankedPrediction(label=label, confidence=float(score)) for label, score in zip(handle.labels, scores)]
    # sorted() is stable, also with reverse=True
    return sorted(ranked, key=lambda p: p.confidence, reverse=True)
