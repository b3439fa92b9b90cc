"""Settings for the configuration procedure and the rootfs build."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from fipsbuild.models import Method

OPENSSL_VERSION = "3.0.13"
# Update together with OPENSSL_VERSION; digests are published on openssl.org/source.
OPENSSL_SHA256 = "88525753f79d3bec27d2fa7c66aa0b92b3aa9498dafd93d7cfa4b3780cdae313"
OPENSSL_SOURCE_URL = "https://www.openssl.org/source/openssl-{version}.tar.gz"

SECRET_MOUNT_PATH = "/run/secrets/ubuntu_pro_token"
TOKEN_ENV_VAR = "UBUNTU_PRO_TOKEN_ENV"

_TRUTHY = {"1", "true", "yes", "on"}


def _flag(value: str | None) -> bool:
    return (value or "").strip().lower() in _TRUTHY


@dataclass(frozen=True, slots=True)
class Settings:
    """Paths and pinned inputs used by the FIPS configuration procedure.

    Every absolute path is resolved against ``root`` so the whole procedure
    can run against a staging tree instead of the live filesystem.
    """

    root: Path = Path("/")
    openssl_version: str = OPENSSL_VERSION
    openssl_sha256: str = OPENSSL_SHA256
    openssl_url: str | None = None
    prefix: str = "/usr/local"
    openssldir: str = "/usr/local/ssl"
    marker_path: str = "/etc/cflinuxfs5-fips"
    secret_path: str = SECRET_MOUNT_PATH
    token_env_var: str = TOKEN_ENV_VAR
    scratch_dir: str = "/tmp"
    strict_verification: bool = False

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        env = os.environ if environ is None else environ
        return cls(
            root=Path(env.get("FIPSBUILD_ROOT", "/")),
            strict_verification=_flag(env.get("FIPSBUILD_STRICT_VERIFY")),
        )

    def path(self, absolute: str) -> Path:
        return self.root / absolute.lstrip("/")

    @property
    def source_url(self) -> str:
        return self.openssl_url or OPENSSL_SOURCE_URL.format(version=self.openssl_version)

    @property
    def tarball_name(self) -> str:
        return f"openssl-{self.openssl_version}.tar.gz"

    @property
    def bin_dir(self) -> str:
        return f"{self.prefix}/bin"

    @property
    def lib_dir(self) -> str:
        return f"{self.prefix}/lib"

    @property
    def openssl_bin(self) -> str:
        return f"{self.bin_dir}/openssl"

    @property
    def fips_config(self) -> str:
        return f"{self.openssldir}/openssl-fips.cnf"

    @property
    def fips_module_config(self) -> str:
        return f"{self.openssldir}/fipsmodule.cnf"


@dataclass(frozen=True, slots=True)
class BuildSettings:
    """Inputs of the rootfs image build, read from the same variables make uses."""

    arch: str = "x86_64"
    name: str = "cflinuxfs5"
    base: str = "ubuntu:noble"
    fips: bool = False
    fips_method: str = Method.SOURCE.value
    token_file: Path = Path(".ubuntu-pro-token")
    workdir: Path = Path(".")
    platform: str = "linux/amd64"

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        *,
        workdir: str | Path = ".",
    ) -> BuildSettings:
        env = os.environ if environ is None else environ
        return cls(
            arch=env.get("ARCH", "x86_64"),
            name=env.get("NAME", "cflinuxfs5"),
            base=env.get("BASE", "ubuntu:noble"),
            fips=env.get("FIPS", "false") == "true",
            fips_method=env.get("FIPS_METHOD", Method.SOURCE.value),
            token_file=Path(env.get("UBUNTU_PRO_TOKEN_FILE", ".ubuntu-pro-token")),
            workdir=Path(workdir).resolve(),
        )

    @property
    def build(self) -> str:
        return f"{self.name}.{self.arch}"

    @property
    def dockerfile(self) -> str:
        return "Dockerfile.fips" if self.fips else "Dockerfile"

    def file(self, name: str | Path) -> Path:
        path = Path(name)
        # docker runs with cwd=workdir, so every path handed to it must be absolute
        return path if path.is_absolute() else self.workdir.resolve() / path

    @property
    def iid_file(self) -> Path:
        return self.file(f"{self.build}.iid")

    @property
    def cid_file(self) -> Path:
        return self.file(f"{self.build}.cid")

    @property
    def tarball(self) -> Path:
        return self.file(f"{self.build}.tar.gz")

    @property
    def receipt(self) -> Path:
        return self.file(f"receipt.{self.build}")

    @property
    def packages_list(self) -> Path:
        return self.file("packages-list")


__all__ = [
    "BuildSettings",
    "OPENSSL_SHA256",
    "OPENSSL_SOURCE_URL",
    "OPENSSL_VERSION",
    "SECRET_MOUNT_PATH",
    "Settings",
    "TOKEN_ENV_VAR",
]
