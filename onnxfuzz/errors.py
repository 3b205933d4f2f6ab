"""Error taxonomy for the prediction harness.

Everything except :class:`UnsupportedInputKind` is fatal to the current
prediction attempt and propagates unchanged to the fuzz driver.
"""

from __future__ import annotations


class HarnessError(RuntimeError):
    pass


class LoadError(HarnessError):
    """Raised when the engine cannot load a model from a path or buffer."""


class SerializationError(HarnessError):
    """Raised when an in-memory model description cannot be serialized."""


class UnsupportedTypeError(HarnessError):
    """Raised when data is requested for an element type with no generator."""


class UnsupportedInputKind(HarnessError):
    """Raised for non-tensor inputs (sequence, map, ...).

    Never fatal: the input walk logs it and skips the input.
    """


class InferenceError(HarnessError):
    """Raised when the engine's run call fails."""
