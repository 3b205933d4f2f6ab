#!/usr/bin/env python3
"""libFuzzer target: raw bytes -> model load -> random inputs -> one run.

The first byte picks the serialized format (ORT or ONNX), the next four the
input seed; the rest is handed to the engine as the model buffer. Load
failures and inputs we cannot generate data for are expected outcomes.
Everything else, inference errors included, is a finding.
``ONNXFUZZ_LENIENT=1`` treats inference errors as expected too.
"""

import logging
import os
import sys

import atheris

with atheris.instrument_imports():
    from onnxfuzz.engines import get_registry
    from onnxfuzz.errors import InferenceError, LoadError, UnsupportedTypeError
    from onnxfuzz.generators import make_random_generator
    from onnxfuzz.prediction import PredictionSession
    from onnxfuzz.render import LogSink

LENIENT = os.environ.get("ONNXFUZZ_LENIENT", "") == "1"

_quiet = LogSink(level=logging.DEBUG)
_generate = make_random_generator(sink=_quiet)


def TestOneInput(data):
    """Fuzz one model buffer through a full prediction cycle."""
    fdp = atheris.FuzzedDataProvider(data)
    format_hint = "ORT" if fdp.ConsumeBool() else "ONNX"
    seed = fdp.ConsumeIntInRange(0, 2**31 - 1)
    model_bytes = fdp.ConsumeBytes(fdp.remaining_bytes())

    engine = get_registry().require(os.environ.get("ONNXFUZZ_ENGINE", "onnxruntime"))
    try:
        session = PredictionSession.from_raw_bytes(
            model_bytes, format_hint, engine=engine, console=_quiet, test_log=_quiet
        )
    except LoadError:
        return

    with session:
        try:
            session.setup_input(_generate, seed)
            session.run_inference()
        except UnsupportedTypeError:
            return
        except InferenceError:
            if not LENIENT:
                raise
            return
        session.render_outputs()


def main(argv=None):
    atheris.Setup(argv or sys.argv, TestOneInput)
    atheris.Fuzz()


if __name__ == "__main__":
    main()
