"""onnxfuzz engine plugins — the engines a prediction session can load into.

Usage::

    from onnxfuzz.engines import get_registry

    registry = get_registry()
    engine = registry.require("onnxruntime")
"""

from .base import EnginePlugin, EngineSession
from .registry import (
    DetectionResult,
    EngineRegistry,
    get_registry,
    reset_registry,
)

__all__ = [
    "DetectionResult",
    "EnginePlugin",
    "EngineRegistry",
    "EngineSession",
    "get_registry",
    "reset_registry",
]
