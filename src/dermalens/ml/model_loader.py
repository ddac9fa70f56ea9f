"""Model loader: fetch, load and verify the ONNX skin classifier.

Loading tries an ordered list of strategies and stops at the first one that
yields a session. The last strategy rebuilds the architecture in code and
transplants whatever weights it can recover from the stored model; if none
can be recovered the classifier still starts, flagged as degraded.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

import onnx
from huggingface_hub import hf_hub_download
from onnxruntime import InferenceSession, SessionOptions
from onnxruntime.capi.onnxruntime_pybind11_state import ExecutionMode

from dermalens.errors import ModelLoadError
from dermalens.ml.architecture import (
    build_classifier_graph,
    harvest_layer_weights,
    transplant_weights,
)
from dermalens.ml.labels import DISEASE_CLASSES, INPUT_SHAPE

if TYPE_CHECKING:
    from collections.abc import Callable

    from dermalens.config import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClassifierHandle:
    """A loaded, verified classifier shared read-only by all requests."""

    session: InferenceSession
    input_name: str
    input_shape: tuple[int, int, int]
    labels: tuple[str, ...]
    strategy: str
    degraded: bool = False

    @property
    def class_count(self) -> int:
        return len(self.labels)


@dataclass(frozen=True)
class _InterfaceMetadata:
    input_shape: tuple[int, int, int]
    output_width: int


class ModelLoader:
    """Acquires a ClassifierHandle from the configured model directory."""

    def __init__(self, settings: Settings, labels: tuple[str, ...] = DISEASE_CLASSES) -> None:
        self._settings = settings
        self._labels = labels
        self._model_dir = Path(settings.model_dir)
        self._model_path = self._model_dir / settings.model_filename
        self._weights_path = self._model_dir / settings.weights_filename

        self._providers = self._build_providers()
        self._session_options = self._build_session_options()
        self._degraded = False

    # -- Public API ---------------------------------------------------------

    def load(self) -> ClassifierHandle:
        """Run the strategy chain and return a verified handle.

        Raises:
            ModelLoadError: If the model files are missing, every strategy
                fails, or the loaded model has the wrong interface.
        """
        self.ensure_downloaded()
        self._check_files()

        strategies: list[tuple[str, Callable[[], InferenceSession]]] = [
            ("direct", self._load_direct),
            ("in_memory", self._load_in_memory),
            ("posix_path", self._load_posix_path),
            ("reconstruction", self._load_reconstructed),
        ]

        failures: list[str] = []
        for name, strategy in strategies:
            self._degraded = False
            try:
                session = strategy()
            except Exception as exc:  # noqa: BLE001
                logger.warning("Model load strategy '%s' failed: %s", name, exc)
                failures.append(f"{name}: {exc}")
                continue

            handle = self._verify(session, strategy=name)
            logger.info(
                "Loaded classifier via '%s' (input=%s, classes=%d, degraded=%s)",
                name,
                handle.input_shape,
                handle.class_count,
                handle.degraded,
            )
            return handle

        raise ModelLoadError(f"All model load strategies failed for {self._model_path}: " + "; ".join(failures))

    def ensure_downloaded(self) -> None:
        """Fetch missing model files from the Hugging Face Hub when a repo is configured."""
        repo_id = self._settings.model_repo_id
        if repo_id is None:
            return

        self._model_dir.mkdir(parents=True, exist_ok=True)
        for path in (self._model_path, self._weights_path):
            if path.exists():
                continue
            downloaded = hf_hub_download(
                repo_id=repo_id,
                filename=path.name,
                local_dir=str(self._model_dir),
            )
            logger.info("Downloaded %s to %s", path.name, downloaded)

    # -- Strategies ---------------------------------------------------------

    def _load_direct(self) -> InferenceSession:
        return self._create_session(str(self._model_path.resolve()))

    def _load_in_memory(self) -> InferenceSession:
        # onnx resolves the external weights itself; the runtime only sees bytes.
        model = onnx.load(str(self._model_path), load_external_data=True)
        return self._create_session(model.SerializeToString())

    def _load_posix_path(self) -> InferenceSession:
        return self._create_session(str(self._model_path).replace("\\", "/"))

    def _load_reconstructed(self) -> InferenceSession:
        metadata = self._read_interface_metadata()
        logger.warning(
            "Rebuilding classifier architecture (input=%s, outputs=%d)",
            metadata.input_shape,
            metadata.output_width,
        )
        reconstructed = build_classifier_graph(
            input_shape=metadata.input_shape,
            seed=self._settings.reconstruction_seed,
        )

        try:
            original = onnx.load(str(self._model_path), load_external_data=True)
            source_layers = harvest_layer_weights(original)
            del original
            transplanted = transplant_weights(reconstructed, source_layers)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Could not harvest original weights (%s); using random initialization", exc)
            transplanted = 0

        expected = len(reconstructed.weighted_layers)
        if transplanted < expected:
            self._degraded = True
            logger.warning(
                "Reconstructed classifier is DEGRADED: %d of %d weighted layers transplanted",
                transplanted,
                expected,
            )
        else:
            logger.info("Transplanted weights into all %d weighted layers", expected)

        return self._create_session(reconstructed.model.SerializeToString())

    # -- Internal -----------------------------------------------------------

    def _check_files(self) -> None:
        for path in (self._model_path, self._weights_path):
            if not path.is_file():
                raise ModelLoadError(f"Model file not found at: {path.resolve()}")

    def _read_interface_metadata(self) -> _InterfaceMetadata:
        """Read input shape and output width from the descriptor, ignoring weights."""
        try:
            model = onnx.load(str(self._model_path), load_external_data=False)
            input_dims = model.graph.input[0].type.tensor_type.shape.dim
            output_dims = model.graph.output[0].type.tensor_type.shape.dim
            shape = tuple(d.dim_value for d in input_dims[1:])
            width = output_dims[-1].dim_value
            if len(shape) != 3 or not all(shape) or not width:
                raise ValueError(f"incomplete interface: input={shape}, outputs={width}")
        except Exception as exc:  # noqa: BLE001
            logger.warning("Descriptor metadata unreadable (%s); assuming the trained interface", exc)
            return _InterfaceMetadata(input_shape=INPUT_SHAPE, output_width=len(self._labels))
        return _InterfaceMetadata(input_shape=shape, output_width=width)  # type: ignore[arg-type]

    def _verify(self, session: InferenceSession, strategy: str) -> ClassifierHandle:
        model_input = session.get_inputs()[0]
        input_shape = tuple(model_input.shape[1:])
        if input_shape != INPUT_SHAPE:
            raise ModelLoadError(f"Model input shape {input_shape} does not match expected {INPUT_SHAPE}")

        output_width = session.get_outputs()[0].shape[-1]
        if output_width != len(self._labels):
            raise ModelLoadError(
                f"Model produces {output_width} outputs but {len(self._labels)} class labels are defined"
            )

        return ClassifierHandle(
            session=session,
            input_name=model_input.name,
            input_shape=INPUT_SHAPE,
            labels=self._labels,
            strategy=strategy,
            degraded=self._degraded,
        )

    def _create_session(self, source: str | bytes) -> InferenceSession:
        return InferenceSession(
            source,
            sess_options=self._session_options,
            providers=self._providers,
        )

    def _build_providers(self) -> list[str | tuple[str, dict[str, object]]]:
        device = self._settings.device
        if device == "cuda":
            return [
                ("CUDAExecutionProvider", {"device_id": 0, "arena_extend_strategy": "kSameAsRequested"}),
                "CPUExecutionProvider",
            ]
        if device == "openvino":
            return [
                ("OpenVINOExecutionProvider", {"device_type": "CPU"}),
                "CPUExecutionProvider",
            ]
        return ["CPUExecutionProvider"]

    def _build_session_options(self) -> SessionOptions:
        opts = SessionOptions()
        opts.intra_op_num_threads = self._settings.intra_op_threads
        opts.inter_op_num_threads = self._settings.inter_op_threads
        opts.execution_mode = ExecutionMode.ORT_SEQUENTIAL
        opts.enable_mem_pattern = True
        opts.enable_mem_reuse = True

        if self._settings.device == "openvino":
            # OpenVINO does its own graph optimization
            from onnxruntime import GraphOptimizationLevel

            opts.graph_optimization_level = GraphOptimizationLevel.ORT_DISABLE_ALL
        return opts
