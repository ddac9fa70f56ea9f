"""Pydantic request/response schemas for the DermaLens API."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class RankedPredictionOut(BaseModel):
    """A single class with its confidence score."""

    model_config = ConfigDict(from_attributes=True)

    label: str
    confidence: float = Field(ge=0.0, le=1.0)


class PredictionOut(BaseModel):
    """Top-1 prediction."""

    label: str
    confidence: float = Field(ge=0.0, le=1.0)
    percentage: str = Field(description="Confidence formatted as a percentage, e.g. '70.00%'")


class Diagnosis(BaseModel):
    """Reference information for a disease."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str | None
    causes: str | None
    prevention: str | None
    treatment: str | None
    severity: str
    created_at: str | None = None
    updated_at: str | None = None


class PredictMetadata(BaseModel):
    input_shape: list[int]
    class_count: int
    history_saved: bool


class PredictResponse(BaseModel):
    """Response for the prediction endpoint."""

    success: bool = True
    prediction: PredictionOut
    top3: list[RankedPredictionOut]
    diagnosis: Diagnosis | None
    metadata: PredictMetadata


class DiagnosisResponse(BaseModel):
    success: bool = True
    disease: Diagnosis


class DiseasesResponse(BaseModel):
    success: bool = True
    diseases: list[Diagnosis]


class DiseaseUpdate(BaseModel):
    """Partial update for a disease reference entry."""

    model_config = ConfigDict(extra="forbid")

    description: str | None = None
    causes: str | None = None
    prevention: str | None = None
    treatment: str | None = None
    severity: str | None = None


class HistoryEntry(BaseModel):
    id: int | None
    predicted_label: str
    confidence: float
    image_name: str
    timestamp: datetime
    ranked_predictions: list[RankedPredictionOut]


class HistoryResponse(BaseModel):
    success: bool = True
    history: list[HistoryEntry]


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "healthy"
    model_loaded: bool
    degraded: bool
    load_strategy: str | None
    database_connected: bool
    onnxruntime_version: str
    device: str
    concurrent_requests: int
    queue_depth: int
    inferences_served: int


class ModelInfoResponse(BaseModel):
    """Interface of the loaded classifier."""

    strategy: str
    degraded: bool
    input_shape: list[int]
    classes: list[str]


class ErrorResponse(BaseModel):
    """Standard error response."""

    error: str
    detail: str
