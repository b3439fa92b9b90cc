"""Rootfs image build through the docker CLI.

Builds the stack image (``Dockerfile`` or ``Dockerfile.fips``), exports the
container filesystem as ``<name>.<arch>.tar.gz``, and writes a receipt with
the tarball digest followed by the image's ``dpkg -l`` listing.
"""

from __future__ import annotations

import gzip
import os
import shutil
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path

from fipsbuild.errors import ExternalToolError, ImageBuildError
from fipsbuild.fetch import sha256_file
from fipsbuild.models import Method
from fipsbuild.observability import StructuredLogger
from fipsbuild.runner import Runner, SubprocessRunner
from fipsbuild.settings import BuildSettings

BUILDKIT_ENV = {"DOCKER_BUILDKIT": "1"}
SECRET_ID = "ubuntu_pro_token"


@dataclass(slots=True)
class RootfsBuilder:
    settings: BuildSettings = field(default_factory=BuildSettings)
    logger: StructuredLogger = field(default_factory=StructuredLogger)
    runner: Runner | None = None

    def __post_init__(self) -> None:
        if self.runner is None:
            self.runner = SubprocessRunner(logger=self.logger)

    def build(self) -> Path:
        """Produce the rootfs tarball, reusing an existing image id file."""
        self.build_image()
        return self.export_rootfs()

    def build_args(self) -> list[str]:
        s = self.settings
        args = [
            "--platform",
            s.platform,
            "-f",
            s.dockerfile,
            "--build-arg",
            f"base={s.base}",
            "--build-arg",
            f"packages={self._read_input(f'packages/{s.name}')}",
            "--build-arg",
            f"fips_packages={self._read_input(f'packages/{s.name}.fips')}",
            "--build-arg",
            f"locales={self._read_input('locales')}",
            "--build-arg",
            f"fips={'true' if s.fips else 'false'}",
            "--build-arg",
            f"fips_method={s.fips_method}",
        ]
        secret = self.secret_arg()
        if secret is not None:
            args.extend(["--secret", secret])
        args.extend(["--no-cache", f"--iidfile={s.iid_file}", "."])
        return args

    def secret_arg(self) -> str | None:
        s = self.settings
        token_file = s.file(s.token_file)
        if s.fips_method != Method.UBUNTU_PRO.value or not token_file.is_file():
            return None
        return f"id={SECRET_ID},src={token_file}"

    def build_image(self) -> Path:
        iid_file = self.settings.iid_file
        if iid_file.exists():
            self.logger.info("build", f"Image id file {iid_file.name} exists; skipping docker build", stage="image")
            return iid_file
        self.logger.info("build", f"Building {self.settings.build} from {self.settings.dockerfile}", stage="image")
        try:
            self.runner.run(
                ("docker", "build", *self.build_args()),
                env=BUILDKIT_ENV,
                cwd=self.settings.workdir,
                capture=False,
            )
        except ExternalToolError as exc:
            raise ImageBuildError(
                "docker build failed.",
                hint="Check the docker build output above.",
                context=exc.context,
            ) from exc
        return iid_file

    def export_rootfs(self) -> Path:
        s = self.settings
        if not s.iid_file.exists():
            raise ImageBuildError(
                "Image id file is missing.",
                hint="Run the image build first.",
                context={"iid_file": str(s.iid_file)},
            )
        image_id = s.iid_file.read_text(encoding="utf-8").strip()
        s.cid_file.unlink(missing_ok=True)

        with self._container(image_id) as package_list:
            cid = s.cid_file.read_text(encoding="utf-8").strip()
            export_tar = s.file(f"{s.build}.tar")
            try:
                self.runner.run(("docker", "export", "-o", str(export_tar), cid))
                _gzip_file(export_tar, s.tarball)
            except ExternalToolError as exc:
                raise ImageBuildError("docker export failed.", context=exc.context) from exc
            finally:
                export_tar.unlink(missing_ok=True)

            digest = sha256_file(s.tarball)
            s.receipt.write_text(f"Rootfs SHASUM: {digest}\n\n{package_list}", encoding="utf-8")
            self.logger.info("build", f"Rootfs SHASUM: {digest}", stage="export")
        return s.tarball

    def clean(self) -> list[Path]:
        s = self.settings
        removed = []
        for path in (s.iid_file, s.cid_file, s.tarball, s.packages_list):
            if path.exists():
                path.unlink()
                removed.append(path)
        return removed

    @contextmanager
    def _container(self, image_id: str) -> Iterator[str]:
        """Run ``dpkg -l`` in a container from ``image_id`` and remove it afterwards."""
        s = self.settings
        try:
            try:
                result = self.runner.run(("docker", "run", f"--cidfile={s.cid_file}", image_id, "dpkg", "-l"))
            except ExternalToolError as exc:
                raise ImageBuildError("docker run failed.", context=exc.context) from exc
            s.packages_list.write_text(result.stdout, encoding="utf-8")
            yield result.stdout
        finally:
            if s.cid_file.exists():
                cid = s.cid_file.read_text(encoding="utf-8").strip()
                if cid:
                    self.runner.run(("docker", "rm", "-f", cid), check=False)
            s.cid_file.unlink(missing_ok=True)
            s.packages_list.unlink(missing_ok=True)

    def _read_input(self, name: str) -> str:
        path = self.settings.file(name)
        if not path.is_file():
            return ""
        return path.read_text(encoding="utf-8").rstrip("\n")


def _gzip_file(source: Path, target: Path) -> None:
    partial = target.with_name(f".{target.name}.partial")
    with source.open("rb") as src, gzip.open(partial, "wb") as dst:
        shutil.copyfileobj(src, dst)
    os.replace(partial, target)


__all__ = ["BUILDKIT_ENV", "RootfsBuilder", "SECRET_ID"]
