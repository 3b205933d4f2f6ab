"""
onnxfuzz — a small, deterministic fuzz driver for ONNX inference engines.

Loads a model from a path, a parsed ``onnx.ModelProto`` or a raw buffer,
fills every tensor input with seeded random data, runs inference once and
renders the outputs as text.
"""

from __future__ import annotations

__version__ = "0.3.0"

from .errors import (
    HarnessError,
    InferenceError,
    LoadError,
    SerializationError,
    UnsupportedInputKind,
    UnsupportedTypeError,
)
from .generators import (
    RandomTensorGenerator,
    generate_ones_input,
    generate_random_input,
    make_random_generator,
    make_replay_generator,
)
from .prediction import PredictionSession, serialize_model
from .render import LogSink, OutputRenderer, StreamSink, setup_test_log
from .types import (
    ElementTag,
    ElementType,
    FilePath,
    InMemoryModel,
    InputKind,
    InputTypeInfo,
    ModelSource,
    RawBytes,
    TensorBuffer,
)

__all__ = [
    "ElementTag",
    "ElementType",
    "FilePath",
    "HarnessError",
    "InMemoryModel",
    "InferenceError",
    "InputKind",
    "InputTypeInfo",
    "LoadError",
    "LogSink",
    "ModelSource",
    "OutputRenderer",
    "PredictionSession",
    "RandomTensorGenerator",
    "RawBytes",
    "SerializationError",
    "StreamSink",
    "TensorBuffer",
    "UnsupportedInputKind",
    "UnsupportedTypeError",
    "generate_ones_input",
    "generate_random_input",
    "make_random_generator",
    "make_replay_generator",
    "serialize_model",
    "setup_test_log",
]
