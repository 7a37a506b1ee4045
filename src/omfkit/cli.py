"""Command-line interface for omfkit."""

import sys
import logging
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from omfkit.config import LoaderConfig
from omfkit.errors import OmfError

console = Console()
err_console = Console(stderr=True)


def _setup_logging(verbose: int) -> None:
    level = logging.WARNING
    if verbose == 1:
        level = logging.INFO
    elif verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _load(ctx: click.Context, path: str):
    from omfkit import OmfModule

    try:
        return OmfModule.load(path, ctx.obj["config"])
    except OmfError as e:
        console.print(f"[red]Failed to load {path}: {e}[/red]")
        sys.exit(1)


def _find_segment(module, target: str):
    """Look up a segment by name, or by 0-based number."""
    seg = module.get_segment(target)
    if seg is not None:
        return seg
    try:
        number = int(target, 0)
    except ValueError:
        return None
    segments = module.all_segments
    if 0 <= number < len(segments):
        return segments[number]
    return None


def _hex_line(offset: int, chunk: bytes) -> str:
    hex_bytes = " ".join(f"{b:02x}" for b in chunk)
    text = "".join(chr(b) if 0x20 <= b < 0x7F else "." for b in chunk)
    return f"[green]{offset:08x}[/green]  {hex_bytes:<47}  [dim]{escape(text)}[/dim]"


@click.group()
@click.version_option(version="0.1.0")
@click.option("-v", "--verbose", count=True, help="Increase log verbosity")
@click.option("--config", "config_path", type=click.Path(dir_okay=False), help="JSON loader config")
@click.option("--base", default=None, help="First address for relocatable segments")
@click.option("--max-fill", type=int, default=None, help="Largest zero fill allowed in a segment")
@click.pass_context
def main(
    ctx: click.Context,
    verbose: int,
    config_path: str | None,
    base: str | None,
    max_fill: int | None,
) -> None:
    """omfkit - OMF object module segment inspector."""
    _setup_logging(verbose)
    config = LoaderConfig.load(config_path)
    if base is not None:
        try:
            config.base_address = int(base, 0)
        except ValueError:
            raise click.BadParameter(f"Invalid address: {base}", param_hint="--base") from None
    if max_fill is not None:
        config.max_fill = max_fill
    ctx.obj = {"config": config}


@main.command()
@click.argument("module", type=click.Path(exists=True))
@click.pass_context
def info(ctx: click.Context, module: str) -> None:
    """Display module information."""
    mod = _load(ctx, module)

    console.print(Panel.fit(f"[bold]{Path(module).name}[/bold]", title="Module Info"))

    table = Table(show_header=False)
    table.add_column("Property", style="cyan")
    table.add_column("Value")

    table.add_row("Path", str(mod.path))
    table.add_row("Module Name", mod.name or "N/A")
    table.add_row("Records", str(mod.record_count))
    table.add_row("Names", str(len(mod.names)))
    table.add_row("Segments", str(len(mod.segments)))
    table.add_row("Injected Segments", str(len(mod.extra_segments)))
    table.add_row("Image End", f"{mod.next_address:#x}")

    console.print(table)


@main.command()
@click.argument("module", type=click.Path(exists=True))
@click.pass_context
def segments(ctx: click.Context, module: str) -> None:
    """List segments with placement and permissions."""
    mod = _load(ctx, module)

    table = Table(title="Segments")
    table.add_column("#")
    table.add_column("Name", style="cyan")
    table.add_column("Class")
    table.add_column("Align")
    table.add_column("Combine")
    table.add_column("Bits")
    table.add_column("Address", style="green")
    table.add_column("Length")
    table.add_column("Perm")
    table.add_column("Blocks")

    for i, seg in enumerate(mod.all_segments):
        address = f"{seg.address:#x}" if seg.address is not None else "-"
        name = escape(seg.display_name)
        if seg.is_synthetic:
            name += " [dim](injected)[/dim]"
        table.add_row(
            str(i),
            name,
            seg.class_name or "",
            str(seg.alignment),
            str(seg.combine),
            "16" if seg.is_16bit else "32",
            address,
            f"{seg.declared_length:#x}",
            str(seg.permissions),
            str(len(seg.fragments)),
        )

    console.print(table)


@main.command()
@click.argument("module", type=click.Path(exists=True))
@click.pass_context
def layout(ctx: click.Context, module: str) -> None:
    """Show the record layout of each segment definition."""
    mod = _load(ctx, module)

    for seg in mod.segments:
        table = Table(title=f"{seg.display_name}")
        table.add_column("Field", style="cyan")
        table.add_column("Offset", style="green")
        table.add_column("Size")

        offset = 0
        for fld in seg.layout():
            table.add_row(fld.name, str(offset), str(fld.size))
            offset += fld.size

        console.print(table)


@main.command()
@click.argument("module", type=click.Path(exists=True))
@click.argument("segment")
@click.option("-n", "--limit", default=256, help="Maximum bytes to show (0 for all)")
@click.pass_context
def dump(ctx: click.Context, module: str, segment: str, limit: int) -> None:
    """Hex dump the reconstructed contents of a segment."""
    mod = _load(ctx, module)

    seg = _find_segment(mod, segment)
    if seg is None:
        console.print(f"[red]Segment not found: {segment}[/red]")
        sys.exit(1)

    base = seg.address or 0
    console.print(f"[bold]{escape(seg.display_name)}[/bold] @ {base:#x}\n")

    with mod.open_segment(seg) as stream:
        data = stream.read(limit) if limit > 0 else stream.readall()
        for i in range(0, len(data), 16):
            console.print(_hex_line(base + i, data[i : i + 16]))

        for skipped in stream.skipped:
            console.print(f"[yellow]{skipped}[/yellow]")
        if stream.error is not None:
            console.print(f"[red]{stream.error}[/red]")
            sys.exit(1)
