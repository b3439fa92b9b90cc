"""Test doubles shared across test modules."""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from fipsbuild.models import CommandResult
from fipsbuild.runner import command_failed

Effect = Callable[["Call"], None]

FIPS_PROVIDERS_OUTPUT = (
    "Providers:\n"
    "  base\n"
    "    name: OpenSSL Base Provider\n"
    "  fips\n"
    "    name: OpenSSL FIPS Provider\n"
)


@dataclass(frozen=True, slots=True)
class Call:
    argv: tuple[str, ...]
    env: Mapping[str, str] | None
    input: str | None
    cwd: str | None


@dataclass(slots=True)
class _Response:
    prefix: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str
    effect: Effect | None


@dataclass(slots=True)
class FakeRunner:
    """Records every command and answers from registered argv prefixes.

    The program is matched by basename, so ``openssl`` also answers
    ``/staging/usr/local/bin/openssl``. Unregistered commands succeed silently.
    """

    calls: list[Call] = field(default_factory=list)
    responses: list[_Response] = field(default_factory=list)

    def on(
        self,
        *prefix: str,
        returncode: int = 0,
        stdout: str = "",
        stderr: str = "",
        effect: Effect | None = None,
    ) -> FakeRunner:
        self.responses.append(_Response(tuple(prefix), returncode, stdout, stderr, effect))
        return self

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
        call = Call(
            argv=tuple(str(arg) for arg in argv),
            env=dict(env) if env else None,
            input=input,
            cwd=str(cwd) if cwd is not None else None,
        )
        self.calls.append(call)
        response = self._match(call.argv)
        if response is None:
            result = CommandResult(argv=call.argv, returncode=0)
        else:
            if response.effect is not None:
                response.effect(call)
            result = CommandResult(
                argv=call.argv,
                returncode=response.returncode,
                stdout=response.stdout,
                stderr=response.stderr,
            )
        if check and not result.ok:
            raise command_failed(result, secrets=secrets)
        return result

    def commands(self) -> list[tuple[str, ...]]:
        return [(Path(call.argv[0]).name, *call.argv[1:]) for call in self.calls]

    def called(self, *prefix: str) -> bool:
        return any(command[: len(prefix)] == prefix for command in self.commands())

    def _match(self, argv: tuple[str, ...]) -> _Response | None:
        command = (Path(argv[0]).name, *argv[1:])
        best: _Response | None = None
        for response in self.responses:
            if command[: len(response.prefix)] == response.prefix:
                if best is None or len(response.prefix) >= len(best.prefix):
                    best = response
        return best


def files_under(path: Path) -> list[Path]:
    return sorted(p for p in path.rglob("*") if p.is_file() or p.is_symlink())
