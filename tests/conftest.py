"""Shared fixtures: settings, on-disk ONNX models and encoded test images."""

from __future__ import annotations

import io
from pathlib import Path

import numpy as np
import onnx
import pytest
from PIL import Image

from dermalens.config import Settings
from dermalens.ml.architecture import build_classifier_graph

MODEL_FILENAME = "model.onnx"
WEIGHTS_FILENAME = "model.onnx.data"


def make_settings(**overrides: object) -> Settings:
    defaults: dict[str, object] = {
        "device": "cpu",
        "model_dir": "/tmp/dermalens_test_model",
        "model_filename": MODEL_FILENAME,
        "weights_filename": WEIGHTS_FILENAME,
        "model_repo_id": None,
        "intra_op_threads": 0,
        "inter_op_threads": 1,
        "max_concurrent": 2,
        "database_path": ":memory:",
    }
    defaults.update(overrides)
    return Settings(**defaults)  # type: ignore[arg-type]


def save_with_external_data(model: onnx.ModelProto, directory: Path) -> Path:
    """Write ``model`` as descriptor + single external weights blob."""
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / MODEL_FILENAME
    onnx.save_model(
        model,
        str(path),
        save_as_external_data=True,
        all_tensors_to_one_file=True,
        location=WEIGHTS_FILENAME,
        size_threshold=0,
    )
    return path


def encode_image(mode: str = "RGB", size: tuple[int, int] = (320, 240), fmt: str = "PNG", seed: int = 0) -> bytes:
    rng = np.random.default_rng(seed)
    channels = {"L": 1, "RGB": 3, "RGBA": 4}[mode]
    pixels = rng.integers(0, 256, size=(size[1], size[0], channels), dtype=np.uint8)
    if channels == 1:
        pixels = pixels[:, :, 0]
    buf = io.BytesIO()
    Image.fromarray(pixels).save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture()
def model_dir(tmp_path: Path) -> Path:
    """A directory holding a valid classifier saved with external weights."""
    directory = tmp_path / "model"
    save_with_external_data(build_classifier_graph(seed=7).model, directory)
    return directory


@pytest.fixture()
def png_bytes() -> bytes:
    return encode_image()


@pytest.fixture()
def jpeg_bytes() -> bytes:
    return encode_image(fmt="JPEG", seed=1)
