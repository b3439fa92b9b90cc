"""Typed execution of external tools.

Every package-manager, compiler, subscription, and container-engine call goes
through a :class:`Runner`. Commands are explicit argument lists; no shell
strings are ever built.
"""

from __future__ import annotations

import os
import subprocess
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from fipsbuild.errors import ExternalToolError
from fipsbuild.models import CommandResult
from fipsbuild.observability import StructuredLogger

REDACTED = "***"
STDERR_LIMIT = 2000


class Runner(Protocol):
    def run(
        self,
        argv: Sequence[str],
        *,
        env: Mapping[str, str] | None = None,
        input: str | None = None,
        cwd: str | Path | None = None,
        check: bool = True,
        capture: bool = True,
        secrets: Sequence[str] = (),
    ) -> CommandResult:
        """Run ``argv`` and return its exit status and captured output."""


def redact(argv: Sequence[str], secrets: Sequence[str]) -> str:
    hidden = {secret for secret in secrets if secret}
    return " ".join(REDACTED if arg in hidden else arg for arg in argv)


@dataclass(slots=True)
class SubprocessRunner:
    """Runs commands on the host with :func:`subprocess.run`.

    ``env`` entries are layered over the current process environment.
    With ``capture=False`` the tool writes straight to the terminal, which
    keeps long compiles visible; the result then carries no output.
    """

    logger: StructuredLogger = field(default_factory=StructuredLogger)
    verbose: bool = False

    def run(
        self,
        argv: Sequence[str],
        *,
        env: Mapping[str, str] | None = None,
        input: str | None = None,
        cwd: str | Path | None = None,
        check: bool = True,
        capture: bool = True,
        secrets: Sequence[str] = (),
    ) -> CommandResult:
        cmd = [str(arg) for arg in argv]
        pretty = redact(cmd, secrets)
        if self.verbose:
            self.logger.info("run", f"Running: {pretty}")

        run_env = None
        if env:
            run_env = {**os.environ, **env}

        try:
            completed = subprocess.run(
                cmd,
                cwd=str(cwd) if cwd is not None else None,
                env=run_env,
                input=input,
                capture_output=capture,
                text=True,
                errors="replace",
                check=False,
            )
        except FileNotFoundError as exc:
            if check:
                raise ExternalToolError(
                    f"Command not found: {cmd[0]}",
                    hint="Install the tool or make sure it is on PATH.",
                    context={"command": pretty},
                ) from exc
            return CommandResult(argv=tuple(cmd), returncode=127, stderr=str(exc))

        result = CommandResult(
            argv=tuple(cmd),
            returncode=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
        )
        if check and not result.ok:
            raise command_failed(result, secrets=secrets)
        return result


def command_failed(
    result: CommandResult,
    *,
    secrets: Sequence[str] = (),
    message: str | None = None,
    hint: str | None = None,
) -> ExternalToolError:
    stderr = result.stderr.strip()
    for secret in secrets:
        if secret:
            stderr = stderr.replace(secret, REDACTED)
    return ExternalToolError(
        message or f"Command failed with exit status {result.returncode}.",
        hint=hint,
        context={
            "command": redact(result.argv, secrets),
            "returncode": str(result.returncode),
            "stderr": stderr[:STDERR_LIMIT],
        },
    )


__all__ = ["REDACTED", "Runner", "SubprocessRunner", "command_failed", "redact"]
