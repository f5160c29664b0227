"""gren-make-static rich error messages — actionable feedback.

Every error shown to the operator contains:
  1. What went wrong (the failing step and its underlying cause)
  2. What to do about it

Usage:
    from gren_make_static.cli.errors import err_toolchain
    err_console.print(err_toolchain("Failed to create static executable", exc))
    raise typer.Exit(exc.exit_code)
"""

from __future__ import annotations

from rich.markup import escape

from gren_make_static.errors import (
    ConfigError,
    FilesystemError,
    InjectionError,
    InputPatternError,
    MakeStaticError,
    SigningError,
    ToolchainError,
)


def err_input_pattern(action: str, exc: InputPatternError) -> str:
    """The compiled source has zero or several Gren init calls."""
    return (
        f"[red]Error:[/] {action}.\n"
        f"  {escape(str(exc))}\n"
        "  The input must be a Gren application compiled for the node platform,\n"
        "  to a file without the .js extension, and must not use ports.\n"
        "  Rebuild it with:  gren make --output=<input-file> <Main.gren>"
    )


def err_toolchain(action: str, exc: ToolchainError) -> str:
    """node failed or is missing."""
    hint = (
        "  Install node (v20 or later) or pass its location:  --node /path/to/node"
        if exc.returncode is None
        else "  Check the node output above; single executable builds need node v20 or later."
    )
    return f"[red]Error:[/] {action}.\n  {escape(str(exc))}\n{hint}"


def err_signing(action: str, exc: SigningError) -> str:
    """codesign failed or is missing (macOS only)."""
    return (
        f"[red]Error:[/] {action}.\n"
        f"  {escape(str(exc))}\n"
        "  Install the Xcode command line tools:  xcode-select --install"
    )


def err_injection(action: str, exc: InjectionError) -> str:
    """The blob could not be injected into the copied node binary."""
    return (
        f"[red]Error:[/] {action}.\n"
        f"  {escape(str(exc))}\n"
        "  Use an official node release binary that supports single executable\n"
        "  applications:  --node /path/to/node"
    )


def err_filesystem(action: str, exc: FilesystemError) -> str:
    """A read / write / copy / chmod step failed."""
    cause = exc.__cause__ if exc.__cause__ is not None else exc
    return (
        f"[red]Error:[/] {action}.\n"
        f"  {escape(str(exc))}\n"
        f"  Cause: {escape(type(cause).__name__)}\n"
        "  Check that the input file exists and the output directory is writable."
    )


def err_config(exc: ConfigError) -> str:
    """A config file could not be used."""
    return (
        f"[red]Error:[/] Invalid configuration.\n"
        f"  {escape(str(exc))}\n"
        "  Fix or remove gren-make-static.yaml / ~/.gren-make-static/config.yaml."
    )


def render_error(action: str, exc: MakeStaticError) -> str:
    """Pick the message builder matching the error kind."""
    if isinstance(exc, InputPatternError):
        return err_input_pattern(action, exc)
    if isinstance(exc, ToolchainError):
        return err_toolchain(action, exc)
    if isinstance(exc, SigningError):
        return err_signing(action, exc)
    if isinstance(exc, InjectionError):
        return err_injection(action, exc)
    if isinstance(exc, FilesystemError):
        return err_filesystem(action, exc)
    if isinstance(exc, ConfigError):
        return err_config(exc)
    return f"[red]Error:[/] {action}.\n  {escape(str(exc))}"
