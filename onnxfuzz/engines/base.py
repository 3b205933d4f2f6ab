"""Abstract engine plugin interface for the prediction harness.

An engine loads a model (from a path or from a serialized buffer) and hands
back an :class:`EngineSession`. The harness only ever talks to these two
interfaces, so the onnxruntime engine and the in-process echo engine are
interchangeable.
"""

from __future__ import annotations

import abc
from typing import Any, Optional, Sequence

from ..types import InputTypeInfo, TensorBuffer


class EngineSession(abc.ABC):
    """A loaded, ready-to-run model inside an engine."""

    @property
    @abc.abstractmethod
    def input_names(self) -> list[str]:
        """Declared input names, in engine order."""

    @property
    @abc.abstractmethod
    def output_names(self) -> list[str]:
        """Declared output names, in engine order."""

    @abc.abstractmethod
    def input_type_info(self, index: int) -> InputTypeInfo:
        """Classification, element type and shape of input ``index``."""

    @abc.abstractmethod
    def create_tensor(self, buffer: TensorBuffer, shape: Sequence[int]) -> Any:
        """Wrap ``buffer`` as an engine-native tensor value of ``shape``."""

    @abc.abstractmethod
    def run(
        self,
        input_names: Sequence[str],
        input_values: Sequence[Any],
        output_names: Sequence[str],
    ) -> list[Any]:
        """Run inference once. Raises InferenceError on any engine failure."""

    @abc.abstractmethod
    def to_numpy(self, value: Any) -> Any:
        """Return the engine value's contents as a numpy array."""

    def release(self) -> None:
        """Free the engine-side resources of this session."""


class EnginePlugin(abc.ABC):
    """Base class for inference engine plugins.

    Each engine plugin provides:
    - detect(): is this engine available on the current system?
    - load_path() / load_bytes(): create an EngineSession
    - enable_telemetry(): switch on the engine's instrumentation hook
    """

    @property
    @abc.abstractmethod
    def name(self) -> str:
        """Short engine identifier (e.g. 'onnxruntime', 'echo')."""

    @property
    def display_name(self) -> str:
        """Human-readable engine name for terminal output."""
        return self.name

    @abc.abstractmethod
    def detect(self) -> bool:
        """Check if this engine is available on the current system.

        Must not raise exceptions — return False if unavailable.
        """

    def detect_info(self) -> str:
        """Short description of the detected runtime (e.g. providers)."""
        return ""

    def enable_telemetry(self) -> None:
        """Enable the engine's telemetry events. No-op by default."""

    @abc.abstractmethod
    def load_path(self, path: str) -> EngineSession:
        """Load a model from disk with default session options.

        Raises LoadError if the file is missing or not a valid model.
        """

    @abc.abstractmethod
    def load_bytes(
        self, data: bytes, format_hint: Optional[str] = None
    ) -> EngineSession:
        """Load a model from a serialized buffer.

        ``format_hint`` pins the loader to one serialization format
        (``"ORT"`` or ``"ONNX"``); ``None`` uses default options.
        Raises LoadError on malformed or unsupported bytes.
        """
