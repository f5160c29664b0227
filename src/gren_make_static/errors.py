"""Pipeline error taxonomy.

Every failure the packaging pipeline can report derives from
:class:`MakeStaticError`. Each kind maps to its own process exit code so
scripts can tell a bad input apart from a broken toolchain:

  ConfigError       2   invalid gren-make-static.yaml / global config
  InputPatternError 3   init call missing or ambiguous in the source
  ToolchainError    4   node exited non-zero (or is missing)
  SigningError      5   codesign failed (macOS only)
  InjectionError    6   payload could not be injected into the binary
  FilesystemError   7   read / write / copy / chmod failed
"""

from __future__ import annotations

from collections.abc import Sequence


class MakeStaticError(RuntimeError):
    """Base class for all errors raised by the packaging pipeline."""

    exit_code: int = 1


class ConfigError(MakeStaticError):
    """Raised when a config file contains an invalid value."""

    exit_code = 2


class InputPatternError(MakeStaticError):
    """The source does not contain exactly one Gren init call."""

    exit_code = 3


class PatternNotFoundError(InputPatternError):
    """No Gren init call was found in the source."""


class AmbiguousPatternError(InputPatternError):
    """More than one Gren init call was found in the source."""

    def __init__(self, message: str, count: int) -> None:
        super().__init__(message)
        self.count = count


class _SubprocessError(MakeStaticError):
    """A blocking external command failed.

    Attributes:
        cmd: The full argument vector that was executed.
        returncode: Exit status, or ``None`` if the command could not be started.
        stderr: Raw diagnostic output of the command, unmodified.
    """

    def __init__(
        self,
        message: str,
        cmd: Sequence[str],
        returncode: int | None = None,
        stderr: bytes = b"",
    ) -> None:
        self.cmd = list(cmd)
        self.returncode = returncode
        self.stderr = stderr
        diagnostics = stderr.decode("utf-8", errors="replace").rstrip()
        if diagnostics:
            message = f"{message}\n{diagnostics}"
        super().__init__(message)


class ToolchainError(_SubprocessError):
    """The node toolchain exited non-zero or could not be started."""

    exit_code = 4


class SigningError(_SubprocessError):
    """codesign exited non-zero or could not be started."""

    exit_code = 5


class InjectionError(MakeStaticError):
    """The snapshot blob could not be injected into the staged binary."""

    exit_code = 6


class FilesystemError(MakeStaticError):
    """A filesystem operation of the pipeline failed.

    The original :class:`OSError` is always available as ``__cause__``.
    """

    exit_code = 7
