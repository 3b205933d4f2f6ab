"""Prediction session: load a model, feed it generated inputs, run it once.

A :class:`PredictionSession` owns exactly one engine session. It is built
from one of three model sources::

    PredictionSession.from_file("model.onnx")
    PredictionSession.from_model_description(onnx.load("model.onnx"))
    PredictionSession.from_raw_bytes(data, format_hint="ORT")

and then driven through one prediction cycle::

    with PredictionSession.from_file("model.onnx") as session:
        session.setup_input(generate_random_input, seed=0)
        session.run_inference()
        session.print_output_values()

Engine failures are logged and re-raised unchanged; nothing here retries
or recovers.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from .engines import EnginePlugin, EngineSession, get_registry
from .errors import (
    InferenceError,
    SerializationError,
    UnsupportedInputKind,
    UnsupportedTypeError,
)
from .generators import InputGenerator
from .render import LogSink, OutputRenderer, StreamSink, TextSink
from .types import (
    FilePath,
    InMemoryModel,
    InputTypeInfo,
    ModelSource,
    RawBytes,
    TensorBuffer,
)

logger = logging.getLogger(__name__)


def _resolve_engine(engine: Optional[EnginePlugin]) -> EnginePlugin:
    if engine is not None:
        return engine
    from .config import load_harness_config

    return get_registry().require(load_harness_config().engine)


def serialize_model(model: Any) -> bytes:
    """Serialize a model description into a buffer of its exact byte size."""
    try:
        size = model.ByteSize()
        data = model.SerializeToString()
    except Exception as exc:
        raise SerializationError(f"Failed to serialize model: {exc}") from exc
    if len(data) != size:
        raise SerializationError(
            f"Serialized model is {len(data)} bytes, expected {size}"
        )
    return data


class PredictionSession:
    """One loaded model plus the tensor slots for a single inference call."""

    def __init__(
        self,
        engine: EnginePlugin,
        engine_session: EngineSession,
        model_buffer: Optional[bytes] = None,
        console: Optional[TextSink] = None,
        test_log: Optional[TextSink] = None,
        renderer: Optional[OutputRenderer] = None,
    ) -> None:
        self._engine = engine
        self._session: Optional[EngineSession] = engine_session
        # Session-owned copy of the serialized model, alive as long as we are
        self._model_buffer = model_buffer
        self.console = console or StreamSink()
        self.test_log = test_log or LogSink()
        self.renderer = renderer or OutputRenderer()

        self.input_names: list[str] = list(engine_session.input_names)
        self.output_names: list[str] = list(engine_session.output_names)
        self.input_values: list[Any] = [None] * len(self.input_names)
        self.output_values: list[Any] = [None] * len(self.output_names)
        self._input_buffers: list[Optional[TensorBuffer]] = [None] * len(self.input_names)

        engine.enable_telemetry()

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_file(
        cls, path: str, engine: Optional[EnginePlugin] = None, **kwargs: Any
    ) -> "PredictionSession":
        """Load a model from disk with default session options."""
        engine = _resolve_engine(engine)
        engine_session = engine.load_path(str(path))
        logger.info("Loaded %s with %s", path, engine.name)
        return cls._create(engine, engine_session, None, **kwargs)

    @classmethod
    def from_model_description(
        cls, model: Any, engine: Optional[EnginePlugin] = None, **kwargs: Any
    ) -> "PredictionSession":
        """Serialize an in-memory model description and load the bytes."""
        engine = _resolve_engine(engine)
        data = serialize_model(model)
        engine_session = engine.load_bytes(data, None)
        logger.info("Loaded %d-byte model description with %s", len(data), engine.name)
        return cls._create(engine, engine_session, data, **kwargs)

    @classmethod
    def from_raw_bytes(
        cls,
        data: bytes,
        format_hint: str = "ORT",
        engine: Optional[EnginePlugin] = None,
        **kwargs: Any,
    ) -> "PredictionSession":
        """Load an already-serialized model pinned to ``format_hint``."""
        engine = _resolve_engine(engine)
        buffer = bytes(data)
        engine_session = engine.load_bytes(buffer, format_hint)
        logger.info(
            "Loaded %d raw bytes (%s) with %s", len(buffer), format_hint, engine.name
        )
        return cls._create(engine, engine_session, buffer, **kwargs)

    @classmethod
    def from_source(
        cls, source: ModelSource, engine: Optional[EnginePlugin] = None, **kwargs: Any
    ) -> "PredictionSession":
        if isinstance(source, FilePath):
            return cls.from_file(source.path, engine=engine, **kwargs)
        if isinstance(source, InMemoryModel):
            return cls.from_model_description(source.model, engine=engine, **kwargs)
        if isinstance(source, RawBytes):
            return cls.from_raw_bytes(
                source.data, source.format_hint, engine=engine, **kwargs
            )
        raise TypeError(f"Unknown model source: {type(source).__name__}")

    @classmethod
    def _create(
        cls,
        engine: EnginePlugin,
        engine_session: EngineSession,
        model_buffer: Optional[bytes],
        **kwargs: Any,
    ) -> "PredictionSession":
        try:
            return cls(engine, engine_session, model_buffer, **kwargs)
        except BaseException:
            engine_session.release()
            raise

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def closed(self) -> bool:
        return self._session is None

    @property
    def engine_session(self) -> EngineSession:
        if self._session is None:
            raise RuntimeError("Prediction session is closed")
        return self._session

    def close(self) -> None:
        """Release the engine session. Safe to call more than once."""
        session, self._session = self._session, None
        if session is not None:
            session.release()
            self._model_buffer = None
            self._input_buffers = [None] * len(self.input_names)

    def __enter__(self) -> "PredictionSession":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Schema introspection
    # ------------------------------------------------------------------

    def get_input_count(self) -> int:
        return len(self.input_names)

    def get_output_count(self) -> int:
        return len(self.output_names)

    def input_type_info(self, index: int) -> InputTypeInfo:
        return self.engine_session.input_type_info(index)

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    def set_input(self, index: int, buffer: TensorBuffer) -> None:
        """Wrap ``buffer`` as input ``index``. A second call overwrites the first."""
        info = self.input_type_info(index)
        if buffer.count != info.element_count:
            raise ValueError(
                f"Input {info.name!r} expects {info.element_count} elements, "
                f"got {buffer.count}"
            )
        self.input_values[index] = self.engine_session.create_tensor(
            buffer, info.resolved_shape
        )
        # The engine value may borrow the buffer's memory
        self._input_buffers[index] = buffer

    def setup_input(self, generate_data: InputGenerator, seed: int) -> int:
        """Feed every dense-tensor input through ``generate_data``.

        The seed advances by one per dense tensor input, whatever its element
        type; skipped (non-tensor) inputs leave it unchanged. Element types
        the callback cannot fill fail there with ``UnsupportedTypeError``.
        Returns the next unused seed.
        """
        self.test_log.write("input data:\n")
        for index in range(self.get_input_count()):
            try:
                info = self.input_type_info(index).require_tensor()
            except UnsupportedInputKind as exc:
                logger.warning("%s", exc)
                self.console.write("Unsupported \n")
                continue

            generate_data(
                self,
                index,
                self.input_names[index],
                info.element_type,
                info.element_count,
                seed,
            )
            seed += 1
        return seed

    # ------------------------------------------------------------------
    # Inference
    # ------------------------------------------------------------------

    def run_inference(self) -> None:
        """Run the model once with the current input slots.

        Every failure is logged with a fixed marker and re-raised as-is.
        """
        self.test_log.write("inference starting \n")
        try:
            unset = [
                name
                for name, value in zip(self.input_names, self.input_values)
                if value is None
            ]
            if unset:
                raise InferenceError(f"Inputs not set: {', '.join(unset)}")
            outputs = self.engine_session.run(
                self.input_names, self.input_values, self.output_names
            )
        except Exception:
            self.test_log.write("Something went wrong in inference \n")
            logger.exception("Inference failed")
            raise

        self.output_values = list(outputs)
        self.test_log.write("inference completed \n")

    # ------------------------------------------------------------------
    # Outputs
    # ------------------------------------------------------------------

    def output_arrays(self) -> list[Any]:
        return [self.engine_session.to_numpy(value) for value in self.output_values]

    def render_outputs(self) -> str:
        """Render every output as ``name = [...]`` lines, in declared order."""
        parts = []
        for name, value in zip(self.output_names, self.output_values):
            if value is None:
                parts.append(f"{name} = <unset>\n")
                continue
            try:
                array = self.engine_session.to_numpy(value)
            except TypeError as exc:
                logger.debug("Cannot render output %s: %s", name, exc)
                parts.append(f"{name} = <non-tensor>\n")
                continue
            try:
                parts.append(self.renderer.format_array(name, array))
            except (ValueError, UnsupportedTypeError) as exc:
                logger.debug("Cannot render output %s: %s", name, exc)
                parts.append(f"{name} = <unsupported>\n")
        return "".join(parts)

    def print_output_values(self, sink: Optional[TextSink] = None) -> None:
        target = sink or self.test_log
        target.write("output data:\n")
        target.write(self.render_outputs())
        target.write("\n")

    def __str__(self) -> str:
        return self.render_outputs()
