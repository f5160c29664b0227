"""gren-make-static CLI entry point.

Usage:
  gren-make-static <input-file> <executable>
  gren-make-static --snapshot <input-file> <snapshot-file>
  gren-make-static --dry-run <input-file> <executable>
"""

from __future__ import annotations

import importlib.metadata
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from gren_make_static.assemble import (
    BuildPaths,
    executable_plan,
    make_executable,
    make_snapshot,
    resolve_executable_path,
)
from gren_make_static.cli.errors import err_config, render_error
from gren_make_static.config import ToolConfig, load_config
from gren_make_static.errors import ConfigError, MakeStaticError

console = Console()
err_console = Console(stderr=True)

_HELP = """\
Use this program to convert Gren applications into static executables.

The Gren application has to target the node platform, be compiled to a file
without the .js extension and cannot make use of ports.

Usage:

    gren-make-static <input-file> <executable>

You can also generate a snapshot, which can be passed to node.js to improve
startup time:

    gren-make-static --snapshot <input-file> <snapshot-file>
"""


def _version_callback(value: bool) -> None:
    if value:
        try:
            ver = importlib.metadata.version("gren-make-static")
        except importlib.metadata.PackageNotFoundError:
            ver = "dev"
        typer.echo(f"gren-make-static {ver}")
        raise typer.Exit()


app = typer.Typer(
    name="gren-make-static",
    add_completion=False,
    rich_markup_mode=None,
    context_settings={"help_option_names": ["-h", "--help"]},
)


@app.command(help=_HELP)
def make_static_cmd(
    ctx: typer.Context,
    paths: Annotated[
        list[Path] | None,
        typer.Argument(help="<input-file> followed by <executable> or <snapshot-file>.", show_default=False),
    ] = None,
    snapshot: Annotated[
        bool,
        typer.Option("--snapshot", "-s", help="Write a startup snapshot blob instead of an executable."),
    ] = False,
    node: Annotated[
        Path | None,
        typer.Option("--node", help="node binary to build with and embed. Defaults to node on PATH."),
    ] = None,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", help="Show the build plan without touching any file."),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show the resolved configuration and every pipeline step."),
    ] = False,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
) -> None:
    if not paths or len(paths) != 2:
        typer.echo(ctx.get_help())
        raise typer.Exit(0)

    source, output = paths

    # ---- Config (resolved once, threaded into every step) ----
    try:
        config = load_config().with_node(node)
    except ConfigError as exc:
        err_console.print(err_config(exc))
        raise typer.Exit(exc.exit_code)

    if verbose:
        _show_config(config)
        _show_temporaries(BuildPaths.for_input(source), snapshot=snapshot)

    if dry_run:
        _show_dry_run(source, output, config, snapshot=snapshot)
        return

    def report(message: str) -> None:
        if verbose:
            console.print(f"  [dim]•[/] {escape(message)}")

    if snapshot:
        action = "Failed to create snapshot"
        build = make_snapshot
    else:
        action = "Failed to create static executable"
        build = make_executable

    try:
        build(source, output, config, report)
    except MakeStaticError as exc:
        err_console.print(render_error(action, exc))
        raise typer.Exit(exc.exit_code)

    console.print("Done!")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _show_config(config: ToolConfig) -> None:
    console.print(f"[bold]node:[/]      {escape(str(config.node or '(not found)'))}")
    console.print(f"[bold]platform:[/]  {escape(config.platform)}")
    if config.is_mac:
        console.print(f"[bold]codesign:[/]  {escape(config.codesign)}")


def _show_temporaries(paths: BuildPaths, *, snapshot: bool) -> None:
    temporaries = [paths.script] if snapshot else paths.temporaries()
    for path in temporaries:
        console.print(f"[bold]temporary:[/] {escape(str(path))}")


def _show_dry_run(source: Path, output: Path, config: ToolConfig, *, snapshot: bool) -> None:
    paths = BuildPaths.for_input(source)

    table = Table(title="Build plan (dry run)", show_lines=False)
    table.add_column("#", style="dim", width=3)
    table.add_column("Step", style="bold")
    table.add_column("Detail")

    if snapshot:
        plan = [
            ("transform", f"{paths.source} → {paths.script}"),
            ("snapshot", f"{paths.script} → {output}"),
        ]
    else:
        plan = executable_plan(paths, resolve_executable_path(output, config), config)

    for i, (step, detail) in enumerate(plan, start=1):
        table.add_row(str(i), step, escape(detail))

    console.print(table)
    console.print("\n[dim]Dry run — no files written, no commands run.[/]")


if __name__ == "__main__":
    app()
