"""Tests for the ONNX Runtime engine plugin, end to end through PredictionSession."""

from __future__ import annotations

import sys
from unittest.mock import patch

import numpy as np
import onnx
import onnxruntime as ort
import pytest
from conftest import (
    CaptureSink,
    make_bfloat16_input_model,
    make_identity_model,
    make_sequence_input_model,
    make_two_input_model,
)
from onnx import TensorProto, helper

from onnxfuzz.engines.ort_engine import (
    LOAD_MODEL_FORMAT_KEY,
    ONNXRuntimeEngine,
    _get_execution_providers,
    _has_onnxruntime,
)
from onnxfuzz.errors import InferenceError, LoadError, UnsupportedTypeError
from onnxfuzz.generators import make_random_generator
from onnxfuzz.prediction import PredictionSession
from onnxfuzz.types import ElementType, InputKind, TensorBuffer


def _save_ort_format(model: onnx.ModelProto, path: str) -> bytes:
    """Convert ``model`` to an ORT flatbuffer at ``path`` and return its bytes."""
    options = ort.SessionOptions()
    options.graph_optimization_level = ort.GraphOptimizationLevel.ORT_ENABLE_BASIC
    options.optimized_model_filepath = path
    options.add_session_config_entry("session.save_model_format", "ORT")
    ort.InferenceSession(
        model.SerializeToString(), options, providers=["CPUExecutionProvider"]
    )
    with open(path, "rb") as fh:
        return fh.read()


def _make_dynamic_model() -> onnx.ModelProto:
    X = helper.make_tensor_value_info("x", TensorProto.FLOAT, ["batch", 3])
    Y = helper.make_tensor_value_info("y", TensorProto.FLOAT, ["batch", 3])
    identity = helper.make_node("Identity", inputs=["x"], outputs=["y"])
    graph = helper.make_graph([identity], "dynamic", [X], [Y])
    model = helper.make_model(graph, opset_imports=[helper.make_opsetid("", 17)])
    model.ir_version = 8
    return model


# ---------------------------------------------------------------------------
# Detection helpers
# ---------------------------------------------------------------------------


class TestDetection:
    def test_has_onnxruntime(self) -> None:
        assert _has_onnxruntime() is True

    def test_unavailable(self) -> None:
        with patch.dict(sys.modules, {"onnxruntime": None}):
            assert _has_onnxruntime() is False
            assert _get_execution_providers() == []

    def test_cpu_provider_listed(self) -> None:
        assert "CPUExecutionProvider" in _get_execution_providers()


class TestONNXRuntimeEngine:
    def setup_method(self) -> None:
        self.engine = ONNXRuntimeEngine()

    def test_name(self) -> None:
        assert self.engine.name == "onnxruntime"

    def test_display_name_cuda(self) -> None:
        with patch(
            "onnxfuzz.engines.ort_engine._get_execution_providers",
            return_value=["CPUExecutionProvider", "CUDAExecutionProvider"],
        ):
            assert self.engine.display_name == "ONNX Runtime (CUDA)"

    def test_display_name_cpu(self) -> None:
        with patch(
            "onnxfuzz.engines.ort_engine._get_execution_providers",
            return_value=[],
        ):
            assert self.engine.display_name == "ONNX Runtime (CPU)"

    def test_detect(self) -> None:
        assert self.engine.detect() is True

    def test_enable_telemetry(self) -> None:
        with patch.object(ort, "enable_telemetry_events") as mock_enable:
            self.engine.enable_telemetry()
        mock_enable.assert_called_once()

    def test_format_hint_sets_config_entry(self) -> None:
        data = make_identity_model().SerializeToString()
        session = self.engine.load_bytes(data, "ONNX")
        options = session._session.get_session_options()
        assert options.get_session_config_entry(LOAD_MODEL_FORMAT_KEY) == "ONNX"

    def test_missing_file(self, tmp_path) -> None:
        with pytest.raises(LoadError, match="not found"):
            self.engine.load_path(str(tmp_path / "missing.onnx"))

    def test_invalid_file(self, tmp_path) -> None:
        path = tmp_path / "bad.onnx"
        path.write_bytes(b"definitely not protobuf")
        with pytest.raises(LoadError):
            self.engine.load_path(str(path))

    def test_empty_buffer(self) -> None:
        with pytest.raises(LoadError, match="empty"):
            self.engine.load_bytes(b"", "ORT")

    def test_input_type_info(self) -> None:
        session = self.engine.load_bytes(make_two_input_model().SerializeToString())
        a = session.input_type_info(0)
        b = session.input_type_info(1)
        assert (a.kind, a.element_type, a.element_count) == (
            InputKind.TENSOR,
            ElementType.FLOAT,
            4,
        )
        assert (b.kind, b.element_type, b.element_count) == (
            InputKind.TENSOR,
            ElementType.INT32,
            3,
        )

    def test_symbolic_dims_resolved(self) -> None:
        engine = ONNXRuntimeEngine(dynamic_dim=4)
        session = engine.load_bytes(_make_dynamic_model().SerializeToString())
        info = session.input_type_info(0)
        assert info.shape == ["batch", 3]
        assert info.resolved_shape == (4, 3)
        assert info.element_count == 12

    def test_sequence_input_classified(self) -> None:
        session = self.engine.load_bytes(make_sequence_input_model().SerializeToString())
        info = session.input_type_info(0)
        assert info.kind is InputKind.SEQUENCE
        assert not info.is_tensor


# ---------------------------------------------------------------------------
# Through PredictionSession
# ---------------------------------------------------------------------------


class TestPredictionWithOnnxRuntime:
    def setup_method(self) -> None:
        self.engine = ONNXRuntimeEngine()
        self.console = CaptureSink()
        self.test_log = CaptureSink()

    def _kwargs(self) -> dict:
        return {"engine": self.engine, "console": self.console, "test_log": self.test_log}

    def test_three_forms_agree(self, tmp_path) -> None:
        model = make_two_input_model()
        path = str(tmp_path / "two.onnx")
        onnx.save(model, path)

        sessions = [
            PredictionSession.from_file(path, **self._kwargs()),
            PredictionSession.from_model_description(model, **self._kwargs()),
            PredictionSession.from_raw_bytes(
                model.SerializeToString(), "ONNX", **self._kwargs()
            ),
        ]
        tables = {
            (
                s.get_input_count(),
                s.get_output_count(),
                tuple(s.input_names),
                tuple(s.output_names),
            )
            for s in sessions
        }
        assert tables == {(2, 2, ("a", "b"), ("a_out", "b_out"))}
        for s in sessions:
            s.close()

    def test_identity_round_trip_from_raw_bytes(self) -> None:
        data = make_identity_model(2).SerializeToString()
        input_log = CaptureSink()
        with PredictionSession.from_raw_bytes(data, "ONNX", **self._kwargs()) as session:
            session.setup_input(make_random_generator(sink=input_log), seed=0)
            session.run_inference()
            rendered_output = session.render_outputs()

        _, input_values = input_log.text.split(" = ", 1)
        _, output_values = rendered_output.split(" = ", 1)
        assert output_values == input_values
        assert "inference completed" in self.test_log.text

    def test_ort_format_buffer_with_default_hint(self, tmp_path) -> None:
        data = _save_ort_format(make_identity_model(2), str(tmp_path / "identity.ort"))
        input_log = CaptureSink()
        with PredictionSession.from_raw_bytes(data, **self._kwargs()) as session:
            next_seed = session.setup_input(make_random_generator(sink=input_log), seed=0)
            session.run_inference()
            rendered_output = session.render_outputs()

        assert next_seed == 1
        _, input_values = input_log.text.split(" = ", 1)
        name, output_values = rendered_output.split(" = ", 1)
        assert name == "output"
        assert output_values == input_values

    def test_ort_format_buffer_rejected_as_onnx(self, tmp_path) -> None:
        data = _save_ort_format(make_identity_model(2), str(tmp_path / "identity.ort"))
        with pytest.raises(LoadError):
            PredictionSession.from_raw_bytes(data, "ONNX", **self._kwargs())

    def test_two_inputs_end_to_end(self) -> None:
        with PredictionSession.from_model_description(
            make_two_input_model(), **self._kwargs()
        ) as session:
            next_seed = session.setup_input(make_random_generator(sink=CaptureSink()), seed=3)
            session.run_inference()
            a_out, b_out = session.output_arrays()
        assert next_seed == 5
        assert a_out.shape == (2, 2) and a_out.dtype == np.float32
        assert b_out.dtype == np.int32

    def test_bfloat16_input_fails_generation(self) -> None:
        with PredictionSession.from_model_description(
            make_bfloat16_input_model(), **self._kwargs()
        ) as session:
            info = session.input_type_info(0)
            assert (info.kind, info.element_type) == (InputKind.TENSOR, "bfloat16")
            with pytest.raises(UnsupportedTypeError):
                session.setup_input(make_random_generator(sink=CaptureSink()), seed=0)
        assert "Unsupported" not in self.console.text

    def test_mismatched_format_hint(self) -> None:
        data = make_identity_model().SerializeToString()
        with pytest.raises(LoadError):
            PredictionSession.from_raw_bytes(data, "ORT", **self._kwargs())

    def test_default_hint_is_ort(self) -> None:
        data = make_identity_model().SerializeToString()
        with pytest.raises(LoadError):
            PredictionSession.from_raw_bytes(data, **self._kwargs())

    def test_garbage_bytes(self) -> None:
        with pytest.raises(LoadError):
            PredictionSession.from_raw_bytes(b"\x00\x01\x02garbage", "ONNX", **self._kwargs())

    def test_nonexistent_path(self, tmp_path) -> None:
        with pytest.raises(LoadError):
            PredictionSession.from_file(str(tmp_path / "nope.onnx"), **self._kwargs())

    def test_engine_failure_propagates_as_inference_error(self) -> None:
        with PredictionSession.from_model_description(
            make_identity_model(), **self._kwargs()
        ) as session:
            # int32 data for a float input: ORT rejects it at run time
            session.set_input(0, TensorBuffer(ElementType.INT32, np.array([1, 2], dtype=np.int32)))
            with pytest.raises(InferenceError) as excinfo:
                session.run_inference()
        assert excinfo.value.__cause__ is not None
        assert "Something went wrong in inference" in self.test_log.text

    def test_skipped_sequence_input_leaves_run_failing(self) -> None:
        with PredictionSession.from_model_description(
            make_sequence_input_model(), **self._kwargs()
        ) as session:
            next_seed = session.setup_input(make_random_generator(sink=CaptureSink()), seed=0)
            assert next_seed == 1
            assert "Unsupported" in self.console.text
            with pytest.raises(InferenceError, match="seq"):
                session.run_inference()
