"""Programmatic rebuild of the classifier graph for the reconstruction fallback.

Layer layout (NHWC input, same layer order as the trained Keras model)::

    Transpose NHWC -> NCHW
    3 x [Conv 3x3 valid + ReLU -> BatchNormalization -> MaxPool 2x2]   (32, 64, 128 filters)
    AveragePool 7x7 stride 7 -> Transpose NCHW -> NHWC -> Flatten
    Dropout(0.3) -> Dense(128, ReLU) -> Dropout(0.3) -> Dense(N, Softmax)

Weighted layers are tracked in order so that tensors harvested from another
model can be transplanted index-for-index.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field

import numpy as np
import onnx
from onnx import TensorProto, helper, numpy_helper

from dermalens.ml.labels import INPUT_SHAPE

logger = logging.getLogger(__name__)

OPSET_VERSION = 13
IR_VERSION = 8

# Kept in lockstep with DISEASE_CLASSES by hand.
RECONSTRUCTED_NUM_CLASSES = 11

CONV_FILTERS: tuple[int, ...] = (32, 64, 128)
KERNEL_SIZE = 3
POOL_SIZE = 2
AVG_POOL_SIZE = 7
DENSE_UNITS = 128
DROPOUT_RATE = 0.3
BATCH_NORM_EPSILON = 1e-3

INPUT_NAME = "input"
OUTPUT_NAME = "probabilities"


@dataclass
class ReconstructedModel:
    """A rebuilt ONNX model plus the initializer names of each weighted layer."""

    model: onnx.ModelProto
    weighted_layers: list[tuple[str, ...]]


@dataclass
class _GraphBuilder:
    rng: np.random.Generator
    nodes: list[onnx.NodeProto] = field(default_factory=list)
    initializers: list[onnx.TensorProto] = field(default_factory=list)
    weighted_layers: list[tuple[str, ...]] = field(default_factory=list)

    def constant(self, name: str, array: np.ndarray) -> str:
        self.initializers.append(numpy_helper.from_array(np.asarray(array, dtype=np.float32), name=name))
        return name

    def layer(self, *params: tuple[str, np.ndarray]) -> list[str]:
        names = [self.constant(name, array) for name, array in params]
        self.weighted_layers.append(tuple(names))
        return names

    def node(self, op_type: str, inputs: list[str], name: str, output: str | None = None, **attrs: object) -> str:
        out = output or f"{name}_out"
        self.nodes.append(helper.make_node(op_type, inputs, [out], name=name, **attrs))
        return out

    def glorot(self, shape: tuple[int, ...], fan_in: int, fan_out: int) -> np.ndarray:
        limit = math.sqrt(6.0 / (fan_in + fan_out))
        return self.rng.uniform(-limit, limit, size=shape).astype(np.float32)


def build_classifier_graph(
    num_classes: int = RECONSTRUCTED_NUM_CLASSES,
    input_shape: tuple[int, int, int] = INPUT_SHAPE,
    seed: int = 0,
) -> ReconstructedModel:
    """Build the classifier as an ONNX graph with seeded Glorot-uniform weights."""
    height, width, channels = input_shape
    b = _GraphBuilder(rng=np.random.default_rng(seed))

    x = b.node("Transpose", [INPUT_NAME], "to_nchw", perm=[0, 3, 1, 2])
    in_channels = channels
    for i, filters in enumerate(CONV_FILTERS, start=1):
        k = KERNEL_SIZE
        kernel, bias = b.layer(
            (f"conv{i}_kernel", b.glorot((filters, in_channels, k, k), in_channels * k * k, filters * k * k)),
            (f"conv{i}_bias", np.zeros(filters)),
        )
        x = b.node("Conv", [x, kernel, bias], f"conv{i}", kernel_shape=[k, k])
        x = b.node("Relu", [x], f"conv{i}_relu")

        gamma, beta, mean, var = b.layer(
            (f"bn{i}_gamma", np.ones(filters)),
            (f"bn{i}_beta", np.zeros(filters)),
            (f"bn{i}_moving_mean", np.zeros(filters)),
            (f"bn{i}_moving_variance", np.ones(filters)),
        )
        x = b.node("BatchNormalization", [x, gamma, beta, mean, var], f"bn{i}", epsilon=BATCH_NORM_EPSILON)
        x = b.node("MaxPool", [x], f"pool{i}", kernel_shape=[POOL_SIZE, POOL_SIZE], strides=[POOL_SIZE, POOL_SIZE])

        height = (height - k + 1) // POOL_SIZE
        width = (width - k + 1) // POOL_SIZE
        in_channels = filters

    x = b.node(
        "AveragePool",
        [x],
        "avg_pool",
        kernel_shape=[AVG_POOL_SIZE, AVG_POOL_SIZE],
        strides=[AVG_POOL_SIZE, AVG_POOL_SIZE],
    )
    height = (height - AVG_POOL_SIZE) // AVG_POOL_SIZE + 1
    width = (width - AVG_POOL_SIZE) // AVG_POOL_SIZE + 1
    if height < 1 or width < 1:
        raise ValueError(f"Input shape {input_shape} is too small for the classifier architecture")

    # Flatten in NHWC order so dense kernels line up with the Keras layout.
    x = b.node("Transpose", [x], "to_nhwc", perm=[0, 2, 3, 1])
    x = b.node("Flatten", [x], "flatten", axis=1)
    flat = height * width * in_channels

    ratio = b.constant("dropout_ratio", np.array(DROPOUT_RATE))
    x = b.node("Dropout", [x, ratio], "dropout1")
    kernel, bias = b.layer(
        ("dense1_kernel", b.glorot((flat, DENSE_UNITS), flat, DENSE_UNITS)),
        ("dense1_bias", np.zeros(DENSE_UNITS)),
    )
    x = b.node("Gemm", [x, kernel, bias], "dense1")
    x = b.node("Relu", [x], "dense1_relu")
    x = b.node("Dropout", [x, ratio], "dropout2")
    kernel, bias = b.layer(
        ("dense2_kernel", b.glorot((DENSE_UNITS, num_classes), DENSE_UNITS, num_classes)),
        ("dense2_bias", np.zeros(num_classes)),
    )
    x = b.node("Gemm", [x, kernel, bias], "dense2")
    b.node("Softmax", [x], "softmax", output=OUTPUT_NAME, axis=-1)

    graph = helper.make_graph(
        b.nodes,
        "dermalens_classifier",
        [helper.make_tensor_value_info(INPUT_NAME, TensorProto.FLOAT, ["batch", *input_shape])],
        [helper.make_tensor_value_info(OUTPUT_NAME, TensorProto.FLOAT, ["batch", num_classes])],
        initializer=b.initializers,
    )
    model = helper.make_model(
        graph,
        opset_imports=[helper.make_opsetid("", OPSET_VERSION)],
        ir_version=IR_VERSION,
        producer_name="dermalens",
    )
    return ReconstructedModel(model=model, weighted_layers=b.weighted_layers)


def harvest_layer_weights(model: onnx.ModelProto) -> list[list[np.ndarray]]:
    """Group a model's floating-point initializers by the node that consumes them.

    Scalars and integer tensors (reshape targets, dropout ratios) are skipped,
    so each entry corresponds to one weighted layer in graph order.
    """
    initializers = {init.name: init for init in model.graph.initializer}
    layers: list[list[np.ndarray]] = []
    for node in model.graph.node:
        weights = [numpy_helper.to_array(initializers[name]) for name in node.input if name in initializers]
        weights = [w for w in weights if w.ndim > 0 and np.issubdtype(w.dtype, np.floating)]
        if weights:
            layers.append(weights)
    return layers


def transplant_weights(reconstructed: ReconstructedModel, source_layers: list[list[np.ndarray]]) -> int:
    """Copy harvested weights into the rebuilt layers where every shape matches.

    Returns:
        Number of weighted layers that received transplanted tensors.
    """
    graph = reconstructed.model.graph
    index_by_name = {init.name: idx for idx, init in enumerate(graph.initializer)}

    transplanted = 0
    for layer_index, (names, source) in enumerate(zip(reconstructed.weighted_layers, source_layers)):
        targets = [numpy_helper.to_array(graph.initializer[index_by_name[name]]) for name in names]
        if len(targets) != len(source) or any(t.shape != s.shape for t, s in zip(targets, source)):
            logger.debug("Layer %d: shape mismatch, keeping initial weights", layer_index)
            continue
        for name, array in zip(names, source):
            graph.initializer[index_by_name[name]].CopyFrom(
                numpy_helper.from_array(array.astype(np.float32), name=name)
            )
        transplanted += 1
    return transplanted
