"""onnxfuzz fuzz -- hand raw model bytes from libFuzzer to the engine."""

from __future__ import annotations

import sys

import click


def register(cli: click.Group) -> None:
    cli.add_command(fuzz)


@click.command(
    context_settings={"ignore_unknown_options": True, "allow_extra_args": True}
)
@click.argument("fuzzer_args", nargs=-1, type=click.UNPROCESSED)
def fuzz(fuzzer_args: tuple[str, ...]) -> None:
    """Run the atheris fuzz target. Extra arguments go to libFuzzer.

    Requires ``pip install 'onnxfuzz[fuzz]'``.
    """
    try:
        import onnxfuzz.fuzz_target as fuzz_target
    except ImportError as exc:
        raise click.ClickException(
            f"{exc}. Install with: pip install 'onnxfuzz[fuzz]'"
        ) from exc

    fuzz_target.main([sys.argv[0], *fuzzer_args])
