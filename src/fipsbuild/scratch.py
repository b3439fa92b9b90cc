"""Scoped ownership of temporary build paths."""

from __future__ import annotations

import shutil
import signal
import tempfile
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path


@dataclass(slots=True)
class ScratchSpace:
    base: Path
    paths: list[Path] = field(default_factory=list)

    def mkdtemp(self, prefix: str) -> Path:
        self.base.mkdir(parents=True, exist_ok=True)
        path = Path(tempfile.mkdtemp(prefix=prefix, dir=self.base))
        self.paths.append(path)
        return path

    def track(self, path: Path) -> Path:
        self.paths.append(path)
        return path

    def remove_all(self) -> None:
        while self.paths:
            path = self.paths.pop()
            if path.is_dir() and not path.is_symlink():
                shutil.rmtree(path, ignore_errors=True)
            else:
                path.unlink(missing_ok=True)


def _raise_on_sigterm(signum: int, frame: object) -> None:
    raise SystemExit(128 + signum)


@contextmanager
def scratch_space(base: str | Path) -> Iterator[ScratchSpace]:
    """Yield a :class:`ScratchSpace` whose paths are removed on every exit.

    SIGTERM is turned into ``SystemExit`` while the guard is active so an
    interrupted build still unwinds through the cleanup.
    """
    space = ScratchSpace(base=Path(base))
    previous = None
    if threading.current_thread() is threading.main_thread():
        previous = signal.signal(signal.SIGTERM, _raise_on_sigterm)
    try:
        yield space
    finally:
        space.remove_all()
        if previous is not None:
            signal.signal(signal.SIGTERM, previous)


__all__ = ["ScratchSpace", "scratch_space"]
