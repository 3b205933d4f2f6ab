"""Shared model builders for the onnxfuzz tests."""

from __future__ import annotations

import io
from pathlib import Path

import onnx
import pytest
from onnx import TensorProto, helper

from onnxfuzz.engines.echo_engine import EchoEngine
from onnxfuzz.render import StreamSink


def make_identity_model(size: int = 2) -> onnx.ModelProto:
    """Single float32 input of ``size`` elements passed straight through."""
    X = helper.make_tensor_value_info("input", TensorProto.FLOAT, [size])
    Y = helper.make_tensor_value_info("output", TensorProto.FLOAT, [size])
    identity = helper.make_node("Identity", inputs=["input"], outputs=["output"])
    graph = helper.make_graph([identity], "identity", [X], [Y])
    model = helper.make_model(graph, opset_imports=[helper.make_opsetid("", 17)])
    model.ir_version = 8
    return model


def make_two_input_model() -> onnx.ModelProto:
    """float32[2, 2] and int32[3] inputs, each echoed by an Identity node."""
    A = helper.make_tensor_value_info("a", TensorProto.FLOAT, [2, 2])
    B = helper.make_tensor_value_info("b", TensorProto.INT32, [3])
    A_out = helper.make_tensor_value_info("a_out", TensorProto.FLOAT, [2, 2])
    B_out = helper.make_tensor_value_info("b_out", TensorProto.INT32, [3])
    nodes = [
        helper.make_node("Identity", inputs=["a"], outputs=["a_out"]),
        helper.make_node("Identity", inputs=["b"], outputs=["b_out"]),
    ]
    graph = helper.make_graph(nodes, "two_inputs", [A, B], [A_out, B_out])
    model = helper.make_model(graph, opset_imports=[helper.make_opsetid("", 17)])
    model.ir_version = 8
    return model


def make_sequence_input_model() -> onnx.ModelProto:
    """A sequence input followed by a float32[3] tensor input."""
    S = helper.make_tensor_sequence_value_info("seq", TensorProto.FLOAT, None)
    X = helper.make_tensor_value_info("x", TensorProto.FLOAT, [3])
    L = helper.make_tensor_value_info("length", TensorProto.INT64, [])
    Y = helper.make_tensor_value_info("y", TensorProto.FLOAT, [3])
    nodes = [
        helper.make_node("SequenceLength", inputs=["seq"], outputs=["length"]),
        helper.make_node("Identity", inputs=["x"], outputs=["y"]),
    ]
    graph = helper.make_graph(nodes, "seq_and_tensor", [S, X], [L, Y])
    model = helper.make_model(graph, opset_imports=[helper.make_opsetid("", 17)])
    model.ir_version = 8
    return model

def make_bfloat16_input_model() -> onnx.ModelProto:
    """bfloat16[2] input ahead of a float32[2] input, both echoed."""
    X = helper.make_tensor_value_info("x", TensorProto.BFLOAT16, [2])
    Z = helper.make_tensor_value_info("z", TensorProto.FLOAT, [2])
    X_out = helper.make_tensor_value_info("x_out", TensorProto.BFLOAT16, [2])
    Z_out = helper.make_tensor_value_info("z_out", TensorProto.FLOAT, [2])
    nodes = [
        helper.make_node("Identity", inputs=["x"], outputs=["x_out"]),
        helper.make_node("Identity", inputs=["z"], outputs=["z_out"]),
    ]
    graph = helper.make_graph(nodes, "bfloat16_then_float", [X, Z], [X_out, Z_out])
    model = helper.make_model(graph, opset_imports=[helper.make_opsetid("", 17)])
    model.ir_version = 8
    return model


@pytest.fixture
def identity_model() -> onnx.ModelProto:
    return make_identity_model()


@pytest.fixture
def identity_path(tmp_path: Path, identity_model: onnx.ModelProto) -> str:
    path = str(tmp_path / "identity.onnx")
    onnx.save(identity_model, path)
    return path


@pytest.fixture
def echo_engine() -> EchoEngine:
    return EchoEngine()


class CaptureSink(StreamSink):
    """StreamSink over a StringIO, exposing what was written."""

    def __init__(self) -> None:
        super().__init__(io.StringIO())

    @property
    def text(self) -> str:
        return self.stream.getvalue()


@pytest.fixture
def capture_sinks() -> dict[str, CaptureSink]:
    return {"console": CaptureSink(), "test_log": CaptureSink()}
