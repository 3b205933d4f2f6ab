"""ONNX Runtime engine plugin — the engine under test.

Loads models through ``onnxruntime.InferenceSession`` either from a path or
from an in-memory buffer. Buffers may be pinned to a serialization format
(``ORT`` flatbuffer or ``ONNX`` protobuf) through the
``session.load_model_format`` config entry, so pre-optimized ``.ort``
buffers are accepted as well as plain ONNX.

Inputs are wrapped as ``OrtValue`` objects without copying and the run goes
through ``run_with_ort_values`` so outputs stay engine-native until rendered.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Optional, Sequence

from ..errors import InferenceError, LoadError
from ..types import InputTypeInfo, TensorBuffer, classify_type_string, resolve_shape
from .base import EnginePlugin, EngineSession

logger = logging.getLogger(__name__)

LOAD_MODEL_FORMAT_KEY = "session.load_model_format"

# Process-wide ORT environment setup happens once, before the first session.
_environment_ready = False


def _has_onnxruntime() -> bool:
    """Check if the onnxruntime package is importable."""
    try:
        import onnxruntime  # type: ignore[import-untyped]  # noqa: F401

        return True
    except ImportError:
        return False


def _get_execution_providers() -> list[str]:
    """Return the list of available ONNX Runtime execution providers."""
    try:
        import onnxruntime as ort  # type: ignore[import-untyped]

        return ort.get_available_providers()
    except (ImportError, AttributeError):
        return []


def _init_environment(log_severity: int) -> None:
    global _environment_ready
    if _environment_ready:
        return
    import onnxruntime as ort  # type: ignore[import-untyped]

    ort.set_default_logger_severity(log_severity)
    _environment_ready = True
    logger.debug(
        "ONNX Runtime %s environment initialized (severity=%d)",
        ort.__version__,
        log_severity,
    )


def reset_environment() -> None:
    """Forget the process-wide environment setup (for testing)."""
    global _environment_ready
    _environment_ready = False


class ONNXRuntimeEngine(EnginePlugin):
    """Engine backed by ``onnxruntime.InferenceSession``."""

    def __init__(
        self,
        providers: Optional[list[str]] = None,
        dynamic_dim: int = 1,
        log_severity: int = 3,
    ) -> None:
        self.providers = providers or ["CPUExecutionProvider"]
        self.dynamic_dim = dynamic_dim
        self.log_severity = log_severity

    @property
    def name(self) -> str:
        return "onnxruntime"

    @property
    def display_name(self) -> str:
        providers = _get_execution_providers()
        accel = "CPU"
        for provider, label in [
            ("TensorrtExecutionProvider", "TensorRT"),
            ("CUDAExecutionProvider", "CUDA"),
            ("CoreMLExecutionProvider", "CoreML"),
            ("DmlExecutionProvider", "DirectML"),
            ("OpenVINOExecutionProvider", "OpenVINO"),
        ]:
            if provider in providers:
                accel = label
                break
        return f"ONNX Runtime ({accel})"

    def detect(self) -> bool:
        return _has_onnxruntime()

    def detect_info(self) -> str:
        return ", ".join(_get_execution_providers())

    def enable_telemetry(self) -> None:
        import onnxruntime as ort  # type: ignore[import-untyped]

        ort.enable_telemetry_events()

    def load_path(self, path: str) -> EngineSession:
        if not os.path.isfile(path):
            raise LoadError(f"Model file not found: {path}")
        return self._create_session(path, None)

    def load_bytes(
        self, data: bytes, format_hint: Optional[str] = None
    ) -> EngineSession:
        if not data:
            raise LoadError("Model buffer is empty")
        return self._create_session(data, format_hint)

    def _create_session(
        self, model: Any, format_hint: Optional[str]
    ) -> "_ORTSession":
        try:
            import onnxruntime as ort  # type: ignore[import-untyped]
        except ImportError as exc:
            raise LoadError(
                "onnxruntime is not installed. "
                "Install with: pip install 'onnxfuzz[onnx]'"
            ) from exc

        _init_environment(self.log_severity)

        options = ort.SessionOptions()
        if format_hint:
            options.add_session_config_entry(LOAD_MODEL_FORMAT_KEY, format_hint)

        try:
            session = ort.InferenceSession(
                model, sess_options=options, providers=self.providers
            )
        except Exception as exc:
            source = model if isinstance(model, str) else f"<{len(model)} bytes>"
            raise LoadError(f"Failed to load model {source}: {exc}") from exc

        return _ORTSession(session, dynamic_dim=self.dynamic_dim)


class _ORTSession(EngineSession):
    """EngineSession over an ``onnxruntime.InferenceSession``."""

    def __init__(self, session: Any, dynamic_dim: int = 1) -> None:
        self._session = session
        self._dynamic_dim = dynamic_dim
        self._inputs = session.get_inputs()
        self._outputs = session.get_outputs()

    @property
    def input_names(self) -> list[str]:
        return [arg.name for arg in self._inputs]

    @property
    def output_names(self) -> list[str]:
        return [arg.name for arg in self._outputs]

    def input_type_info(self, index: int) -> InputTypeInfo:
        arg = self._inputs[index]
        kind, element_type = classify_type_string(arg.type)
        shape = list(arg.shape or [])
        return InputTypeInfo(
            name=arg.name,
            kind=kind,
            type_string=arg.type,
            element_type=element_type,
            shape=shape,
            resolved_shape=resolve_shape(shape, self._dynamic_dim),
        )

    def create_tensor(self, buffer: TensorBuffer, shape: Sequence[int]) -> Any:
        import onnxruntime as ort  # type: ignore[import-untyped]

        return ort.OrtValue.ortvalue_from_numpy(buffer.data.reshape(tuple(shape)))

    def run(
        self,
        input_names: Sequence[str],
        input_values: Sequence[Any],
        output_names: Sequence[str],
    ) -> list[Any]:
        import onnxruntime as ort  # type: ignore[import-untyped]

        feed = dict(zip(input_names, input_values))
        try:
            return self._session.run_with_ort_values(
                list(output_names), feed, ort.RunOptions()
            )
        except Exception as exc:
            raise InferenceError(str(exc)) from exc

    def to_numpy(self, value: Any) -> Any:
        if not value.is_tensor():
            raise TypeError(f"Output of type {value.data_type()} is not a tensor")
        return value.numpy()

    def release(self) -> None:
        self._session = None
        self._inputs = []
        self._outputs = []
