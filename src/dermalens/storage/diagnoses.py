"""Disease reference store: diagnosis metadata keyed by class label."""

from __future__ import annotations

import dataclasses
import sqlite3
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Mapping

    from dermalens.storage.database import Database


@dataclass(frozen=True)
class DiagnosisRecord:
    """Reference information for one disease."""

    id: int
    name: str
    description: str | None
    causes: str | None
    prevention: str | None
    treatment: str | None
    severity: str
    created_at: str | None = None
    updated_at: str | None = None


# Request field -> DiagnosisRecord attribute. Anything else is rejected.
UPDATABLE_FIELDS: dict[str, str] = {
    "description": "description",
    "causes": "causes",
    "prevention": "prevention",
    "treatment": "treatment",
    "severity": "severity",
    "severity_level": "severity",
}


class DiagnosisStore(Protocol):
    """Protocol for diagnosis lookup (kept for test mocking)."""

    def find_by_name(self, name: str, case_insensitive: bool = True) -> DiagnosisRecord | None:
        """Return the record whose name matches exactly, or None."""
        ...

    def list_all(self) -> list[DiagnosisRecord]:
        """Return every record ordered by name."""
        ...

    def update(self, disease_id: int, fields: Mapping[str, object]) -> DiagnosisRecord | None:
        """Apply whitelisted field changes; return the updated record or None if absent."""
        ...


def _from_row(row: sqlite3.Row) -> DiagnosisRecord:
    return DiagnosisRecord(
        id=row["id"],
        name=row["name"],
        description=row["description"],
        causes=row["causes"],
        prevention=row["prevention"],
        treatment=row["treatment"],
        severity=row["severity_level"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class SqliteDiagnosisStore:
    """DiagnosisStore backed by the ``diseases`` table."""

    def __init__(self, database: Database) -> None:
        self._db = database

    def find_by_name(self, name: str, case_insensitive: bool = True) -> DiagnosisRecord | None:
        query = (
            "SELECT * FROM diseases WHERE LOWER(name) = LOWER(?)"
            if case_insensitive
            else "SELECT * FROM diseases WHERE name = ?"
        )
        with self._db.transaction() as conn:
            row = conn.execute(query, (name,)).fetchone()
        return _from_row(row) if row is not None else None

    def list_all(self) -> list[DiagnosisRecord]:
        with self._db.transaction() as conn:
            rows = conn.execute("SELECT * FROM diseases ORDER BY name").fetchall()
        return [_from_row(row) for row in rows]

    def update(self, disease_id: int, fields: Mapping[str, object]) -> DiagnosisRecord | None:
        """Update a disease from a partial mapping of allowed fields.

        Raises:
            ValueError: If no allowed field is present or a value is not a string.
        """
        changes: dict[str, str] = {}
        for key, value in fields.items():
            attr = UPDATABLE_FIELDS.get(key)
            if attr is None or value is None:
                continue
            if not isinstance(value, str):
                raise ValueError(f"Field '{key}' must be a string")
            changes[attr] = value
        if not changes:
            raise ValueError("No fields to update")

        with self._db.transaction() as conn:
            row = conn.execute("SELECT * FROM diseases WHERE id = ?", (disease_id,)).fetchone()
            if row is None:
                return None
            updated = dataclasses.replace(
                _from_row(row),
                **changes,
                updated_at=datetime.now(UTC).strftime("%Y-%m-%d %H:%M:%S"),
            )
            conn.execute(
                "UPDATE diseases SET description = ?, causes = ?, prevention = ?, treatment = ?, "
                "severity_level = ?, updated_at = ? WHERE id = ?",
                (
                    updated.description,
                    updated.causes,
                    updated.prevention,
                    updated.treatment,
                    updated.severity,
                    updated.updated_at,
                    disease_id,
                ),
            )
        return updated
