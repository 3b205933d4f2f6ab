"""
onnxfuzz command-line interface.

Usage::

    onnxfuzz run model.onnx --seed 7
    onnxfuzz run model.ort --mode bytes --format ORT
    onnxfuzz run model.onnx --mode proto --strategy ones
    onnxfuzz run model.onnx --strategy replay --corpus crash-42.npz
    onnxfuzz inspect model.onnx
    onnxfuzz engines
    onnxfuzz fuzz corpus/ -max_total_time=60
"""

from __future__ import annotations

import click

from onnxfuzz import __version__


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="onnxfuzz")
def main() -> None:
    """onnxfuzz — drive random inputs through an ONNX model once."""


# ---------------------------------------------------------------------------
# Register command modules
# ---------------------------------------------------------------------------

from onnxfuzz.commands import engines, fuzz, predict  # noqa: E402

for _mod in [predict, engines, fuzz]:
    _mod.register(main)
