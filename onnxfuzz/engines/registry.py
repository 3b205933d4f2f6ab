"""Engine registry — the process-wide set of engines sessions can borrow.

Usage::

    from onnxfuzz.engines import get_registry

    registry = get_registry()
    engine = registry.require("onnxruntime")
    session = engine.load_path("model.onnx")
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .base import EnginePlugin

logger = logging.getLogger(__name__)


@dataclass
class DetectionResult:
    """Result of engine detection."""

    engine: EnginePlugin
    available: bool
    info: str = ""


class EngineRegistry:
    """Registry of available inference engines.

    Engines register themselves via ``register()``; ``detect_all()`` reports
    which ones can run on this system.
    """

    def __init__(self) -> None:
        self._engines: list[EnginePlugin] = []

    def register(self, engine: EnginePlugin) -> None:
        """Register an engine plugin."""
        # Avoid duplicate registration
        for existing in self._engines:
            if existing.name == engine.name:
                return
        self._engines.append(engine)

    @property
    def engines(self) -> list[EnginePlugin]:
        """All registered engines."""
        return list(self._engines)

    def get_engine(self, name: str) -> Optional[EnginePlugin]:
        """Get a specific engine by name."""
        for engine in self._engines:
            if engine.name == name:
                return engine
        return None

    def require(self, name: str) -> EnginePlugin:
        """Get an engine by name, raising ValueError if unknown or unavailable."""
        engine = self.get_engine(name)
        if engine is None:
            available = [e.name for e in self._engines]
            raise ValueError(
                f"Unknown engine '{name}'. Available: {', '.join(available)}"
            )
        if not engine.detect():
            raise ValueError(
                f"Engine '{name}' is not available on this system. "
                f"Check that the required libraries are installed."
            )
        return engine

    def detect_all(self) -> list[DetectionResult]:
        """Detect which engines are available on this system."""
        results: list[DetectionResult] = []
        for engine in self._engines:
            try:
                available = engine.detect()
                info = engine.detect_info() if available else ""
                results.append(
                    DetectionResult(engine=engine, available=available, info=info)
                )
            except Exception as exc:
                logger.debug("Engine %s detection failed: %s", engine.name, exc)
                results.append(
                    DetectionResult(engine=engine, available=False, info=str(exc))
                )
        return results


# ---------------------------------------------------------------------------
# Global registry singleton
# ---------------------------------------------------------------------------

_registry: Optional[EngineRegistry] = None


def get_registry() -> EngineRegistry:
    """Get the global engine registry, auto-registering built-in engines."""
    global _registry
    if _registry is None:
        _registry = EngineRegistry()
        _auto_register(_registry)
    return _registry


def reset_registry() -> None:
    """Reset the global registry (for testing)."""
    global _registry
    _registry = None


def _auto_register(registry: EngineRegistry) -> None:
    """Register all built-in engines, configured from the harness config."""
    from ..config import load_harness_config
    from .echo_engine import EchoEngine
    from .ort_engine import ONNXRuntimeEngine

    config = load_harness_config()
    registry.register(
        ONNXRuntimeEngine(
            providers=config.providers,
            dynamic_dim=config.dynamic_dim,
            log_severity=config.ort_log_severity,
        )
    )
    registry.register(EchoEngine(dynamic_dim=config.dynamic_dim))
