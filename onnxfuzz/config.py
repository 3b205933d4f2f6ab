"""Harness configuration.

Resolution order (later wins): built-in defaults, ``~/.onnxfuzz/config.json``,
``ONNXFUZZ_*`` environment variables, then explicit CLI flags.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)


@dataclass
class HarnessConfig:
    seed: int = 0
    engine: str = "onnxruntime"
    providers: list[str] = field(default_factory=lambda: ["CPUExecutionProvider"])
    # Value substituted for symbolic/unknown input dimensions
    dynamic_dim: int = 1
    format_hint: str = "ORT"
    log_file: Optional[str] = None
    log_level: str = "INFO"
    # onnxruntime logger severity: 0=verbose .. 4=fatal
    ort_log_severity: int = 3


_ENV_VARS = {
    "seed": ("ONNXFUZZ_SEED", int),
    "engine": ("ONNXFUZZ_ENGINE", str),
    "providers": ("ONNXFUZZ_PROVIDERS", lambda v: [p.strip() for p in v.split(",") if p.strip()]),
    "dynamic_dim": ("ONNXFUZZ_DYNAMIC_DIM", int),
    "format_hint": ("ONNXFUZZ_FORMAT", str),
    "log_file": ("ONNXFUZZ_LOG_FILE", str),
    "log_level": ("ONNXFUZZ_LOG_LEVEL", str),
    "ort_log_severity": ("ONNXFUZZ_ORT_LOG_SEVERITY", int),
}


def _config_path() -> Path:
    return Path.home() / ".onnxfuzz" / "config.json"


def load_config() -> dict[str, Any]:
    """Load the local config from ``~/.onnxfuzz/config.json``."""
    path = _config_path()
    if path.exists():
        try:
            return json.loads(path.read_text())
        except (json.JSONDecodeError, OSError):
            return {}
    return {}


def load_harness_config(**overrides: Any) -> HarnessConfig:
    """Build a HarnessConfig from file, environment and ``overrides``.

    ``None`` overrides are ignored so CLI options can be passed straight
    through.
    """
    config = HarnessConfig()
    known = {f.name for f in fields(HarnessConfig)}

    file_values = {k: v for k, v in load_config().items() if k in known}
    if file_values:
        config = replace(config, **file_values)

    env_values: dict[str, Any] = {}
    for attr, (var, convert) in _ENV_VARS.items():
        raw = os.environ.get(var)
        if raw is None or raw == "":
            continue
        try:
            env_values[attr] = convert(raw)
        except ValueError:
            logger.warning("Ignoring invalid %s=%r", var, raw)
    if env_values:
        config = replace(config, **env_values)

    cli_values = {k: v for k, v in overrides.items() if v is not None and k in known}
    if cli_values:
        config = replace(config, **cli_values)
    return config
