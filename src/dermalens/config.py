"""Environment-based configuration for DermaLens."""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from DERMALENS_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="DERMALENS_",
        case_sensitive=False,
    )

    # Server
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 3000
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # ML device
    device: Literal["cpu", "cuda", "openvino"] = "cpu"

    # ONNX Runtime threading
    intra_op_threads: int = Field(default=0, ge=0)
    inter_op_threads: int = Field(default=1, ge=1)

    # Concurrency
    max_concurrent: int = Field(default=2, ge=1)

    # Input limits
    max_image_pixels: int = Field(default=16_777_216, ge=1)
    max_file_size: int = Field(default=20_971_520, ge=1)

    # Model source
    model_dir: str = "./model"
    model_filename: str = "model.onnx"
    weights_filename: str = "model.onnx.data"
    model_repo_id: str | None = None
    reconstruction_seed: int = 0

    # Storage
    database_path: str = "dermalens.db"
    upload_dir: str | None = None
    history_default_limit: int = Field(default=10, ge=1)
    history_max_limit: int = Field(default=100, ge=1)


def get_settings() -> Settings:
    """Create and return application settings."""
    return Settings()
