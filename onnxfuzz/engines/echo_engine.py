"""Echo engine plugin — in-process stand-in for the engine under test.

Reads the model's declared inputs and outputs with the ``onnx`` parser and
echoes input values back as outputs instead of executing the graph. Useful
for dry-running a corpus and for testing the harness without onnxruntime.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Optional, Sequence

import numpy as np

from ..errors import InferenceError, LoadError
from ..types import (
    ElementType,
    InputTypeInfo,
    TensorBuffer,
    classify_type_string,
    resolve_shape,
)
from .base import EnginePlugin, EngineSession

logger = logging.getLogger(__name__)


def _element_name(code: int) -> str:
    """onnxruntime element name for a ``TensorProto`` code (``16`` -> ``bfloat16``)."""
    try:
        return ElementType.from_code(code).ort_name
    except ValueError:
        pass
    from onnx import TensorProto

    try:
        return TensorProto.DataType.Name(code).lower()
    except ValueError:
        return f"<{code}>"


def type_string_from_proto(type_proto: Any) -> str:
    """Render an ``onnx.TypeProto`` the way onnxruntime names types."""
    which = type_proto.WhichOneof("value")
    if which == "tensor_type":
        elem = type_proto.tensor_type.elem_type
        return f"tensor({_element_name(elem)})"
    if which == "sparse_tensor_type":
        elem = type_proto.sparse_tensor_type.elem_type
        return f"sparse_tensor({_element_name(elem)})"
    if which == "sequence_type":
        return f"seq({type_string_from_proto(type_proto.sequence_type.elem_type)})"
    if which == "map_type":
        key = _element_name(type_proto.map_type.key_type)
        value = type_string_from_proto(type_proto.map_type.value_type)
        return f"map({key},{value})"
    if which == "optional_type":
        return f"optional({type_string_from_proto(type_proto.optional_type.elem_type)})"
    return "unknown"


def _shape_from_proto(type_proto: Any) -> list[Any]:
    if type_proto.WhichOneof("value") != "tensor_type":
        return []
    if not type_proto.tensor_type.HasField("shape"):
        return []
    dims: list[Any] = []
    for dim in type_proto.tensor_type.shape.dim:
        if dim.HasField("dim_value"):
            dims.append(dim.dim_value)
        elif dim.HasField("dim_param"):
            dims.append(dim.dim_param)
        else:
            dims.append(None)
    return dims


class EchoEngine(EnginePlugin):
    """Engine that parses the model schema and echoes inputs to outputs."""

    def __init__(self, dynamic_dim: int = 1) -> None:
        self.dynamic_dim = dynamic_dim

    @property
    def name(self) -> str:
        return "echo"

    @property
    def display_name(self) -> str:
        return "echo (no real inference)"

    def detect(self) -> bool:
        return True

    def detect_info(self) -> str:
        return "schema only — echoes input"

    def load_path(self, path: str) -> EngineSession:
        if not os.path.isfile(path):
            raise LoadError(f"Model file not found: {path}")
        with open(path, "rb") as fh:
            return self.load_bytes(fh.read(), None)

    def load_bytes(
        self, data: bytes, format_hint: Optional[str] = None
    ) -> EngineSession:
        import onnx
        from google.protobuf.message import DecodeError

        if format_hint and format_hint.upper() != "ONNX":
            raise LoadError(f"Echo engine only reads ONNX models, not {format_hint}")
        if not data:
            raise LoadError("Model buffer is empty")
        try:
            model = onnx.load_model_from_string(data)
        except (DecodeError, ValueError) as exc:
            raise LoadError(f"Failed to parse model: {exc}") from exc
        if not model.HasField("graph"):
            raise LoadError("Model has no graph")
        return _EchoSession(model.graph, dynamic_dim=self.dynamic_dim)


class _EchoSession(EngineSession):
    def __init__(self, graph: Any, dynamic_dim: int = 1) -> None:
        initializers = {init.name for init in graph.initializer}
        self._inputs = [vi for vi in graph.input if vi.name not in initializers]
        self._outputs = list(graph.output)
        self._dynamic_dim = dynamic_dim

    @property
    def input_names(self) -> list[str]:
        return [vi.name for vi in self._inputs]

    @property
    def output_names(self) -> list[str]:
        return [vi.name for vi in self._outputs]

    def input_type_info(self, index: int) -> InputTypeInfo:
        vi = self._inputs[index]
        type_string = type_string_from_proto(vi.type)
        kind, element_type = classify_type_string(type_string)
        shape = _shape_from_proto(vi.type)
        return InputTypeInfo(
            name=vi.name,
            kind=kind,
            type_string=type_string,
            element_type=element_type,
            shape=shape,
            resolved_shape=resolve_shape(shape, self._dynamic_dim),
        )

    def create_tensor(self, buffer: TensorBuffer, shape: Sequence[int]) -> Any:
        return buffer.data.reshape(tuple(shape))

    def run(
        self,
        input_names: Sequence[str],
        input_values: Sequence[Any],
        output_names: Sequence[str],
    ) -> list[Any]:
        if any(value is None for value in input_values):
            raise InferenceError("Echo engine received an unset input")
        outputs: list[Any] = []
        for index, name in enumerate(output_names):
            if index < len(input_values):
                outputs.append(np.array(input_values[index], copy=True))
                continue
            vi = self._outputs[index]
            type_string = type_string_from_proto(vi.type)
            _kind, element_type = classify_type_string(type_string)
            if not isinstance(element_type, ElementType):
                raise InferenceError(
                    f"Echo engine cannot produce output {name!r} ({type_string})"
                )
            shape = resolve_shape(_shape_from_proto(vi.type), self._dynamic_dim)
            outputs.append(np.zeros(shape, dtype=element_type.dtype))
        logger.debug("Echoed %d input(s) to %d output(s)", len(input_values), len(outputs))
        return outputs

    def to_numpy(self, value: Any) -> Any:
        return np.asarray(value)

    def release(self) -> None:
        self._inputs = []
        self._outputs = []
