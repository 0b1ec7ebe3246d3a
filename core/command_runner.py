"""Execution of external tools (interpreter, make, javac, gem) with dry-run support."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Sequence
import logging
import os
import shlex
import subprocess


logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Represents the outcome of an executed command."""

    command: Sequence[str]
    returncode: int
    stdout: str
    stderr: str
    streamed: bool = False


class CommandError(RuntimeError):
    """Raised when an external tool exits with a non-zero status."""

    def __init__(self, result: CommandResult, *, cwd: Path | None = None):
        message = f"Command failed with exit code {result.returncode}: {format_command(result.command)}"
        if cwd is not None:
            message = f"{message} (cwd={cwd})"
        if result.streamed:
            message = f"{message}\nstdout/stderr already streamed above."
        elif result.stdout or result.stderr:
            message = (
                f"{message}\n"
                f"stdout: {result.stdout}\n"
                f"stderr: {result.stderr}"
            )
        super().__init__(message)
        self.result = result
        self.cwd = cwd


def format_command(command: Sequence[str]) -> str:
    return " ".join(shlex.quote(str(part)) for part in command)


class CommandRunner:
    """Abstract command runner interface."""

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        check: bool = True,
        stream: bool = True,
    ) -> CommandResult:
        raise NotImplementedError

    def format_command(self, command: Sequence[str]) -> str:
        return format_command(command)


class SubprocessCommandRunner(CommandRunner):
    """Command runner that executes commands via :mod:`subprocess`.

    Tools are streamed to the terminal by default, the way a build tool echoes
    compiler output; ``stream=False`` captures output instead (used when the
    caller needs to parse it, e.g. runtime detection).
    """

    @staticmethod
    def _merge_environment(env: Mapping[str, str] | None) -> Dict[str, str] | None:
        if env is None:
            return None
        merged = os.environ.copy()
        merged.update(env)
        return merged

    @staticmethod
    def _finalize(result: CommandResult, *, check: bool, cwd: Path | None) -> CommandResult:
        if check and result.returncode != 0:
            raise CommandError(result, cwd=cwd)
        return result

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        check: bool = True,
        stream: bool = True,
    ) -> CommandResult:
        argv = [str(part) for part in command]
        logger.info("%s", self.format_command(argv))
        merged_env = self._merge_environment(env)
        if not stream:
            process = subprocess.run(
                argv,
                cwd=str(cwd) if cwd else None,
                env=merged_env,
                capture_output=True,
                text=True,
                check=False,
            )
            return self._finalize(
                CommandResult(
                    command=argv,
                    returncode=process.returncode,
                    stdout=process.stdout,
                    stderr=process.stderr,
                ),
                check=check,
                cwd=cwd,
            )

        process = subprocess.run(
            argv,
            cwd=str(cwd) if cwd else None,
            env=merged_env,
            check=False,
        )

        return self._finalize(
            CommandResult(
                command=argv,
                returncode=process.returncode,
                stdout="",
                stderr="",
                streamed=True,
            ),
            check=check,
            cwd=cwd,
        )


@dataclass(slots=True)
class RecordedCommand:
    command: List[str]
    cwd: str | None
    env: Dict[str, str] = field(default_factory=dict)


class RecordingCommandRunner(CommandRunner):
    """Command runner that records commands instead of executing them.

    ``responses`` maps the first argument of a command (the executable) to
    canned stdout, which lets callers that parse tool output run dry.
    """

    def __init__(self, responses: Mapping[str, str] | None = None) -> None:
        self.commands: List[RecordedCommand] = []
        self._responses = dict(responses or {})

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        check: bool = True,
        stream: bool = True,
    ) -> CommandResult:
        argv = [str(part) for part in command]
        self.commands.append(
            RecordedCommand(command=argv, cwd=str(cwd) if cwd else None, env=dict(env) if env else {})
        )
        stdout = self._responses.get(argv[0], "") if argv else ""
        return CommandResult(command=argv, returncode=0, stdout=stdout, stderr="")

    def iter_commands(self) -> Iterable[RecordedCommand]:
        return iter(self.commands)

    def iter_formatted(self) -> Iterable[str]:
        for record in self.commands:
            parts: List[str] = ["[dry-run]"]
            if record.cwd:
                parts.append(f"(cwd={record.cwd})")
            parts.append(self.format_command(record.command))
            yield " ".join(parts)


__all__ = [
    "CommandError",
    "CommandResult",
    "CommandRunner",
    "RecordedCommand",
    "RecordingCommandRunner",
    "SubprocessCommandRunner",
    "format_command",
]
