"""Append-only prediction history log."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Protocol

from dermalens.errors import HistoryWriteError, StoreError
from dermalens.ml.predictor import RankedPrediction

if TYPE_CHECKING:
    import sqlite3

    from dermalens.storage.database import Database


@dataclass(frozen=True)
class PredictionRecord:
    """One successful inference, as written to the history log."""

    predicted_label: str
    confidence: float
    image_name: str
    ranked_predictions: tuple[RankedPrediction, ...]
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    id: int | None = None


class HistoryLog(Protocol):
    """Protocol for the prediction history log (kept for test mocking)."""

    def append(self, record: PredictionRecord) -> int:
        """Persist a record and return its id.

        Raises:
            HistoryWriteError: If the record could not be written.
        """
        ...

    def recent(self, limit: int) -> list[PredictionRecord]:
        """Return up to ``limit`` records, most recent first."""
        ...


def _from_row(row: sqlite3.Row) -> PredictionRecord:
    ranked = json.loads(row["all_predictions"] or "[]")
    return PredictionRecord(
        id=row["id"],
        predicted_label=row["predicted_disease"],
        confidence=row["confidence"],
        image_name=row["image_name"],
        ranked_predictions=tuple(RankedPrediction(label=p["class"], confidence=p["confidence"]) for p in ranked),
        timestamp=datetime.fromisoformat(row["prediction_date"]),
    )


class SqliteHistoryLog:
    """HistoryLog backed by the ``prediction_history`` table."""

    def __init__(self, database: Database) -> None:
        self._db = database

    def append(self, record: PredictionRecord) -> int:
        payload = json.dumps(
            [{"class": p.label, "confidence": p.confidence} for p in record.ranked_predictions],
        )
        try:
            with self._db.transaction() as conn:
                cursor = conn.execute(
                    "INSERT INTO prediction_history "
                    "(predicted_disease, confidence, image_name, prediction_date, all_predictions) "
                    "VALUES (?, ?, ?, ?, ?)",
                    (
                        record.predicted_label,
                        record.confidence,
                        record.image_name or "unknown",
                        record.timestamp.isoformat(),
                        payload,
                    ),
                )
        except StoreError as exc:
            raise HistoryWriteError(f"Failed to save prediction: {exc}") from exc
        return int(cursor.lastrowid)

    def recent(self, limit: int) -> list[PredictionRecord]:
        with self._db.transaction() as conn:
            rows = conn.execute(
                "SELECT * FROM prediction_history ORDER BY prediction_date DESC, id DESC LIMIT ?",
                (limit,),
            ).fetchall()
        return [_from_row(row) for row in rows]
