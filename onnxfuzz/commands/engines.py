"""onnxfuzz engines -- list registered engines and whether they can run here."""

from __future__ import annotations

import click


def register(cli: click.Group) -> None:
    cli.add_command(engines)


@click.command()
def engines() -> None:
    """List available inference engines."""
    from onnxfuzz.engines import get_registry

    for result in get_registry().detect_all():
        mark = "+" if result.available else "-"
        info = f" ({result.info})" if result.info else ""
        click.echo(f"  {mark} {result.engine.name}: {result.engine.display_name}{info}")
