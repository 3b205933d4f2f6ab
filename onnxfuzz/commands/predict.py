"""Prediction commands — run one prediction cycle, inspect a model's schema."""

from __future__ import annotations

import logging
import sys
from typing import Optional

import click

from onnxfuzz.config import HarnessConfig, load_harness_config
from onnxfuzz.errors import HarnessError, LoadError
from onnxfuzz.generators import (
    InputGenerator,
    generate_ones_input,
    generate_random_input,
    load_corpus,
    make_replay_generator,
)
from onnxfuzz.prediction import PredictionSession
from onnxfuzz.render import StreamSink, setup_test_log
from onnxfuzz.types import FilePath, InMemoryModel, ModelSource, RawBytes


def register(cli: click.Group) -> None:
    cli.add_command(run)
    cli.add_command(inspect)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _build_source(path: str, mode: str, format_hint: str) -> ModelSource:
    """Turn a model path into the model source selected by ``mode``."""
    if mode == "file":
        return FilePath(path)
    if mode == "proto":
        import onnx
        from google.protobuf.message import DecodeError

        try:
            return InMemoryModel(onnx.load(path))
        except (DecodeError, OSError) as exc:
            raise LoadError(f"Failed to parse {path}: {exc}") from exc
    try:
        with open(path, "rb") as fh:
            return RawBytes(fh.read(), format_hint)
    except OSError as exc:
        raise LoadError(f"Failed to read {path}: {exc}") from exc


def _select_generator(strategy: str, corpus: Optional[str]) -> InputGenerator:
    if strategy == "ones":
        return generate_ones_input
    if strategy == "replay":
        if not corpus:
            raise click.UsageError("--strategy replay requires --corpus")
        return make_replay_generator(load_corpus(corpus))
    return generate_random_input


def _open_session(
    model: str, mode: str, config: HarnessConfig
) -> PredictionSession:
    from onnxfuzz.engines import get_registry

    try:
        engine = get_registry().require(config.engine)
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc
    source = _build_source(model, mode, config.format_hint)
    return PredictionSession.from_source(source, engine=engine)


_mode_option = click.option(
    "--mode",
    "-m",
    type=click.Choice(["file", "proto", "bytes"]),
    default="file",
    help="How the model reaches the engine: load the path directly, parse it "
    "with onnx and re-serialize, or hand over the raw file bytes (default: file).",
)
_format_option = click.option(
    "--format",
    "format_hint",
    default=None,
    help="Serialized format pinned for --mode bytes: ORT or ONNX (default: ORT).",
)
_engine_option = click.option(
    "--engine",
    "-e",
    default=None,
    help="Engine to load the model into (onnxruntime, echo).",
)


# ---------------------------------------------------------------------------
# onnxfuzz run
# ---------------------------------------------------------------------------


@click.command()
@click.argument("model")
@_mode_option
@_format_option
@_engine_option
@click.option("--seed", "-s", default=None, type=int, help="Seed for the first input (default: 0).")
@click.option(
    "--strategy",
    type=click.Choice(["random", "ones", "replay"]),
    default="random",
    help="Input data strategy (default: random).",
)
@click.option("--corpus", default=None, help=".npz file of inputs for --strategy replay.")
@click.option("--log-file", default=None, help="Also write the test log to this file.")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging.")
def run(
    model: str,
    mode: str,
    format_hint: Optional[str],
    engine: Optional[str],
    seed: Optional[int],
    strategy: str,
    corpus: Optional[str],
    log_file: Optional[str],
    verbose: bool,
) -> None:
    """Run one prediction cycle on MODEL with generated inputs.

    Prints the inputs to the test log and the outputs to stdout. Exits 1 if
    loading, input generation or inference fails.
    """
    config = load_harness_config(
        seed=seed,
        engine=engine,
        format_hint=format_hint,
        log_file=log_file,
        log_level="DEBUG" if verbose else None,
    )
    level = getattr(logging, config.log_level.upper(), logging.INFO)
    setup_test_log(config.log_file, level)
    logging.basicConfig(level=level)

    generate_data = _select_generator(strategy, corpus)

    try:
        with _open_session(model, mode, config) as session:
            session.setup_input(generate_data, config.seed)
            session.run_inference()
            session.print_output_values()
            session.print_output_values(StreamSink())
    except HarnessError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)


# ---------------------------------------------------------------------------
# onnxfuzz inspect
# ---------------------------------------------------------------------------


@click.command()
@click.argument("model")
@_mode_option
@_format_option
@_engine_option
def inspect(
    model: str, mode: str, format_hint: Optional[str], engine: Optional[str]
) -> None:
    """Show the declared inputs and outputs of MODEL."""
    config = load_harness_config(engine=engine, format_hint=format_hint)
    try:
        with _open_session(model, mode, config) as session:
            click.echo(f"Inputs ({session.get_input_count()}):")
            for index in range(session.get_input_count()):
                info = session.input_type_info(index)
                if info.is_tensor:
                    click.echo(
                        f"  [{index}] {info.name}: {info.type_string} "
                        f"shape={info.shape} elements={info.element_count}"
                    )
                else:
                    click.echo(f"  [{index}] {info.name}: {info.type_string} (unsupported)")
            click.echo(f"Outputs ({session.get_output_count()}):")
            for index, name in enumerate(session.output_names):
                click.echo(f"  [{index}] {name}")
    except HarnessError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)
