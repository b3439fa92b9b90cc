"""apt-get wrapper used by both configuration methods."""

from __future__ import annotations

import shutil
from dataclasses import dataclass

from fipsbuild.models import CommandResult
from fipsbuild.runner import Runner
from fipsbuild.settings import Settings

APT_ENV = {"DEBIAN_FRONTEND": "noninteractive"}
PACKAGE_ARGS = (
    "--allow-downgrades",
    "--allow-remove-essential",
    "--allow-change-held-packages",
    "--no-install-recommends",
)
APT_LISTS_DIR = "/var/lib/apt/lists"


@dataclass(slots=True)
class AptInstaller:
    runner: Runner
    settings: Settings

    def update(self) -> CommandResult:
        return self._apt("-y", *PACKAGE_ARGS, "update")

    def install(self, *packages: str) -> CommandResult:
        return self._apt("-y", *PACKAGE_ARGS, "install", *packages)

    def purge(self, *packages: str, check: bool = True) -> CommandResult:
        return self._apt("-y", "remove", "--purge", *packages, check=check)

    def autoremove(self, *, check: bool = True) -> CommandResult:
        return self._apt("-y", "autoremove", "--purge", check=check)

    def clean(self, *, check: bool = True) -> CommandResult:
        result = self._apt("clean", check=check)
        self.drop_lists()
        return result

    def drop_lists(self) -> None:
        lists_dir = self.settings.path(APT_LISTS_DIR)
        if not lists_dir.is_dir():
            return
        for entry in lists_dir.iterdir():
            if entry.is_dir() and not entry.is_symlink():
                shutil.rmtree(entry)
            else:
                entry.unlink()

    def _apt(self, *args: str, check: bool = True) -> CommandResult:
        return self.runner.run(("apt-get", *args), env=APT_ENV, check=check)


__all__ = ["APT_ENV", "APT_LISTS_DIR", "AptInstaller", "PACKAGE_ARGS"]
