"""Build OpenSSL with the FIPS provider from a pinned source release.

The result is installed under an isolated prefix next to the system OpenSSL.
It provides FIPS-capable algorithms and configuration, but it is NOT a NIST
FIPS 140-2/140-3 validated module.
"""

from __future__ import annotations

import os
import textwrap
from dataclasses import dataclass, field
from pathlib import Path

from fipsbuild.fetch import extract_tarball, fetch
from fipsbuild.managed import ensure_line, prepend_path_entry, write_file
from fipsbuild.models import ConfigurationRequest, Method
from fipsbuild.observability import StructuredLogger
from fipsbuild.packages import AptInstaller
from fipsbuild.runner import Runner
from fipsbuild.scratch import ScratchSpace
from fipsbuild.settings import Settings

BUILD_PACKAGES = ("build-essential", "wget", "ca-certificates", "perl")
BUILD_TOOLCHAIN = ("build-essential",)

LD_SO_CONF = "/etc/ld.so.conf.d/openssl-fips.conf"
PROFILE_SCRIPT = "/etc/profile.d/openssl-fips.sh"
ENVIRONMENT_D_CONF = "/etc/environment.d/10-openssl-fips.conf"
GLOBAL_ENVIRONMENT = "/etc/environment"
SSL_CONFIG_LINK = "/etc/ssl/openssl-fips.cnf"
PATH_MARKER = "openssl-fips-path"

NOT_VALIDATED_WARNING = (
    "Building OpenSSL from source with FIPS module support.\n"
    "This does NOT produce NIST FIPS 140-2/140-3 validated cryptography.\n"
    "For true FIPS compliance, use 'ubuntu-pro' method or a certified base image."
)

FIPS_CONFIG_TEMPLATE = textwrap.dedent("""\
    # OpenSSL FIPS configuration for cflinuxfs5
    # Applies only to processes started with OPENSSL_CONF={config_path}

    openssl_conf = openssl_init

    .include {module_config}

    [openssl_init]
    providers = provider_sect
    alg_section = algorithm_sect

    [provider_sect]
    fips = fips_sect
    base = base_sect

    [base_sect]
    activate = 1

    [fips_sect]
    activate = 1

    [algorithm_sect]
    default_properties = fips=yes
""")


def render_fips_config(settings: Settings) -> str:
    return FIPS_CONFIG_TEMPLATE.format(
        config_path=settings.fips_config,
        module_config=settings.fips_module_config,
    )


@dataclass(slots=True)
class SourceBuild:
    runner: Runner
    settings: Settings
    logger: StructuredLogger = field(default_factory=StructuredLogger)
    method: Method = Method.SOURCE
    installer: AptInstaller = field(init=False)

    def __post_init__(self) -> None:
        self.installer = AptInstaller(runner=self.runner, settings=self.settings)

    def prepare(self, request: ConfigurationRequest) -> None:
        for line in NOT_VALIDATED_WARNING.splitlines():
            self.logger.warning("source", line, stage="prepare")
        if request.extra_packages:
            self.logger.info(
                "source",
                "Extra FIPS packages only apply to the ubuntu-pro method; ignoring them.",
                stage="prepare",
            )

    def configure(self, request: ConfigurationRequest, scratch: ScratchSpace) -> None:
        self.logger.info("source", "Installing build dependencies...", stage="dependencies")
        self.installer.update()
        self.installer.install(*BUILD_PACKAGES)

        source_dir = self.fetch_source(scratch)
        self.build_and_install(source_dir)
        self.register_library_path()
        self.write_fips_config()
        self.publish_path()
        self.remove_build_tools()

        self.logger.info("source", f"OpenSSL FIPS module installed to {self.settings.prefix}", stage="install")
        self.logger.info(
            "source",
            f"Use 'OPENSSL_CONF={self.settings.fips_config} openssl ...' for FIPS mode",
            stage="install",
        )

    def fetch_source(self, scratch: ScratchSpace) -> Path:
        workdir = scratch.mkdtemp("configure-fips-")
        self.logger.info(
            "source", f"Downloading OpenSSL {self.settings.openssl_version}...", stage="fetch"
        )
        archive = fetch(
            self.settings.source_url,
            sha256=self.settings.openssl_sha256,
            dest_dir=workdir,
            filename=self.settings.tarball_name,
        )
        self.logger.info("source", "Checksum verified successfully.", stage="fetch")
        extract_tarball(archive, workdir)
        return workdir / f"openssl-{self.settings.openssl_version}"

    def build_and_install(self, source_dir: Path) -> None:
        install_env = self._install_env()
        self.logger.info("source", "Configuring OpenSSL with FIPS module support...", stage="build")
        self.runner.run(
            (
                "./Configure",
                "enable-fips",
                "shared",
                f"--prefix={self.settings.prefix}",
                f"--openssldir={self.settings.openssldir}",
                "--libdir=lib",
            ),
            cwd=source_dir,
            capture=False,
        )
        self.logger.info("source", "Building OpenSSL (this may take several minutes)...", stage="build")
        self.runner.run(("make", f"-j{os.cpu_count() or 1}"), cwd=source_dir, capture=False)
        self.logger.info("source", "Installing OpenSSL...", stage="install")
        self.runner.run(("make", "install"), cwd=source_dir, env=install_env, capture=False)
        self.logger.info("source", "Installing FIPS module...", stage="install")
        self.runner.run(("make", "install_fips"), cwd=source_dir, env=install_env, capture=False)

    def register_library_path(self) -> None:
        ensure_line(self.settings.path(LD_SO_CONF), self.settings.lib_dir)
        if self._staged:
            self.runner.run(("ldconfig", "-r", str(self.settings.root)))
        else:
            self.runner.run(("ldconfig",))

    def write_fips_config(self) -> Path:
        config_path = write_file(self.settings.path(self.settings.fips_config), render_fips_config(self.settings))
        link = self.settings.path(SSL_CONFIG_LINK)
        link.parent.mkdir(parents=True, exist_ok=True)
        link.unlink(missing_ok=True)
        link.symlink_to(self.settings.fips_config)
        return config_path

    def publish_path(self) -> None:
        bin_dir = self.settings.bin_dir
        # login shells
        write_file(self.settings.path(PROFILE_SCRIPT), f'export PATH="{bin_dir}:$PATH"\n')
        # systemd user/service environment
        write_file(self.settings.path(ENVIRONMENT_D_CONF), f"PATH={bin_dir}:${{PATH}}\n")
        # non-interactive shells via pam_env
        prepend_path_entry(self.settings.path(GLOBAL_ENVIRONMENT), bin_dir, marker=PATH_MARKER)

    def remove_build_tools(self) -> None:
        """Best-effort footprint reduction; failures are reported, never raised."""
        self.logger.info("source", "Cleaning up build artifacts...", stage="cleanup")
        results = (
            self.installer.purge(*BUILD_TOOLCHAIN, check=False),
            self.installer.autoremove(check=False),
        )
        for result in results:
            if not result.ok:
                self.logger.warning(
                    "source",
                    f"Cleanup step failed ({' '.join(result.argv)}): exit {result.returncode}",
                    stage="cleanup",
                )
        try:
            clean = self.installer.clean(check=False)
        except OSError as exc:
            self.logger.warning("source", f"Could not clear apt lists: {exc}", stage="cleanup")
            return
        if not clean.ok:
            self.logger.warning("source", f"apt-get clean failed: exit {clean.returncode}", stage="cleanup")

    def verification_target(self) -> tuple[str, str | None]:
        return (
            str(self.settings.path(self.settings.openssl_bin)),
            str(self.settings.path(self.settings.fips_config)),
        )

    def marker_fields(self) -> dict[str, str | None]:
        return {
            "openssl_version": self.settings.openssl_version,
            "config_path": self.settings.fips_config,
            "binary_path": self.settings.openssl_bin,
        }

    @property
    def _staged(self) -> bool:
        return self.settings.root != Path("/")

    def _install_env(self) -> dict[str, str] | None:
        if self._staged:
            return {"DESTDIR": str(self.settings.root)}
        return None


__all__ = [
    "BUILD_PACKAGES",
    "FIPS_CONFIG_TEMPLATE",
    "GLOBAL_ENVIRONMENT",
    "PATH_MARKER",
    "SourceBuild",
    "render_fips_config",
]
