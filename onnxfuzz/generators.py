"""Input data generation.

:class:`RandomTensorGenerator` produces reproducible flat buffers. The
``generate_*`` functions are input generator callbacks for
:meth:`PredictionSession.setup_input`; any callable with the same signature
can be substituted (mutation-guided, adversarial, corpus replay, ...).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Mapping, Protocol

import numpy as np

from .errors import UnsupportedTypeError
from .render import LogSink, OutputRenderer, TextSink
from .types import (
    ElementTag,
    ElementType,
    TensorBuffer,
    element_type_label,
    require_element_type,
)

if TYPE_CHECKING:
    from .prediction import PredictionSession

logger = logging.getLogger(__name__)

_INT32_INFO = np.iinfo(np.int32)


class InputGenerator(Protocol):
    def __call__(
        self,
        session: "PredictionSession",
        index: int,
        name: str,
        element_type: ElementTag,
        count: int,
        seed: int,
    ) -> None: ...


class RandomTensorGenerator:
    """Seeded uniform data for float32 and int32 tensors.

    Same ``(element_type, count, seed)`` always yields the same buffer.
    Integer bounds are inclusive-low, exclusive-high.
    """

    SUPPORTED = (ElementType.FLOAT, ElementType.INT32)

    def __init__(
        self,
        float_low: float = 0.0,
        float_high: float = 1.0,
        int_low: int = int(_INT32_INFO.min),
        int_high: int = int(_INT32_INFO.max),
    ) -> None:
        if float_low >= float_high:
            raise ValueError("float_low must be below float_high")
        if int_low >= int_high:
            raise ValueError("int_low must be below int_high")
        self.float_low = float_low
        self.float_high = float_high
        self.int_low = int_low
        self.int_high = int_high

    def generate(self, element_type: ElementTag, count: int, seed: int) -> TensorBuffer:
        if element_type not in self.SUPPORTED:
            raise UnsupportedTypeError(
                f"only floats/ints are implemented, got {element_type_label(element_type)}"
            )
        if count < 0:
            raise ValueError(f"count must be non-negative, got {count}")

        rng = np.random.default_rng(seed)
        if element_type is ElementType.FLOAT:
            data = rng.uniform(self.float_low, self.float_high, size=count).astype(np.float32)
        else:
            data = rng.integers(self.int_low, self.int_high, size=count, dtype=np.int32)
        return TensorBuffer(element_type, data)


def _log_generated(sink: TextSink, name: str, buffer: TensorBuffer) -> None:
    OutputRenderer().write_sequence(sink, name, buffer.element_type, buffer.data)


def make_random_generator(
    generator: RandomTensorGenerator | None = None,
    sink: TextSink | None = None,
) -> InputGenerator:
    """Build a callback that feeds seeded random data into each input."""
    tensor_generator = generator or RandomTensorGenerator()
    log_sink = sink or LogSink()

    def generate(
        session: "PredictionSession",
        index: int,
        name: str,
        element_type: ElementTag,
        count: int,
        seed: int,
    ) -> None:
        buffer = tensor_generator.generate(element_type, count, seed)
        _log_generated(log_sink, name, buffer)
        session.set_input(index, buffer)

    return generate


generate_random_input = make_random_generator()


def generate_ones_input(
    session: "PredictionSession",
    index: int,
    name: str,
    element_type: ElementTag,
    count: int,
    seed: int,
) -> None:
    """All-ones smoke-test input; ignores the seed."""
    element_type = require_element_type(element_type)
    if element_type is ElementType.STRING:
        raise UnsupportedTypeError("ones input is not defined for string tensors")
    buffer = TensorBuffer(element_type, np.ones(count, dtype=element_type.dtype))
    _log_generated(LogSink(), name, buffer)
    session.set_input(index, buffer)


def make_replay_generator(
    arrays: Mapping[str, Any], fallback: InputGenerator | None = None
) -> InputGenerator:
    """Build a callback replaying saved input arrays by input name.

    Inputs missing from ``arrays`` go to ``fallback`` (seeded random data by
    default), so a partial corpus still drives every input.
    """
    fallback = fallback or generate_random_input

    def generate(
        session: "PredictionSession",
        index: int,
        name: str,
        element_type: ElementTag,
        count: int,
        seed: int,
    ) -> None:
        if name not in arrays:
            logger.debug("No saved data for input %s, falling back", name)
            fallback(session, index, name, element_type, count, seed)
            return
        element_type = require_element_type(element_type)
        data = np.asarray(arrays[name], dtype=element_type.dtype).reshape(-1)
        if data.size != count:
            raise ValueError(
                f"Saved data for input {name!r} has {data.size} elements, "
                f"model expects {count}"
            )
        buffer = TensorBuffer(element_type, data)
        _log_generated(LogSink(), name, buffer)
        session.set_input(index, buffer)

    return generate


def load_corpus(path: str) -> dict[str, np.ndarray]:
    """Load a ``.npz`` archive of input arrays keyed by input name."""
    with np.load(path, allow_pickle=False) as archive:
        return {key: archive[key] for key in archive.files}
