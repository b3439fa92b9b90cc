"""Enable Ubuntu Pro's certified FIPS package channel."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

from fipsbuild.credentials import SecretProvider
from fipsbuild.errors import ExternalToolError
from fipsbuild.models import ConfigurationRequest, Credential, Method
from fipsbuild.observability import StructuredLogger
from fipsbuild.packages import AptInstaller
from fipsbuild.runner import Runner, command_failed
from fipsbuild.scratch import ScratchSpace
from fipsbuild.settings import Settings

PRO_TOOLS_PACKAGE = "ubuntu-advantage-tools"
FIPS_SERVICE = "fips-updates"


@dataclass(slots=True)
class UbuntuPro:
    runner: Runner
    settings: Settings
    logger: StructuredLogger = field(default_factory=StructuredLogger)
    environ: Mapping[str, str] | None = None
    method: Method = Method.UBUNTU_PRO
    installer: AptInstaller = field(init=False)
    _credential: Credential | None = field(init=False, default=None, repr=False)

    def __post_init__(self) -> None:
        self.installer = AptInstaller(runner=self.runner, settings=self.settings)

    def prepare(self, request: ConfigurationRequest) -> None:
        self.logger.info("ubuntu-pro", "Configuring Ubuntu Pro FIPS packages...", stage="prepare")
        provider = SecretProvider(settings=self.settings, logger=self.logger, environ=self.environ)
        self._credential = provider.require()

    def configure(self, request: ConfigurationRequest, scratch: ScratchSpace) -> None:
        if self._credential is None:
            raise RuntimeError("prepare() must run before configure().")

        self.logger.info("ubuntu-pro", "Installing Ubuntu Pro tools...", stage="dependencies")
        self.installer.update()
        self.installer.install(PRO_TOOLS_PACKAGE)

        self.attach(self._credential)
        self._credential = None

        self.logger.info("ubuntu-pro", "Enabling FIPS updates...", stage="enable")
        result = self.runner.run(("pro", "enable", FIPS_SERVICE, "--assume-yes"), check=False)
        if not result.ok:
            raise command_failed(result, message="Failed to enable FIPS updates.")

        self.installer.update()
        if request.extra_packages:
            packages = " ".join(request.extra_packages)
            self.logger.info(
                "ubuntu-pro", f"Installing FIPS-specific packages: {packages}", stage="packages"
            )
            try:
                self.installer.install(*request.extra_packages)
            except ExternalToolError as exc:
                raise ExternalToolError(
                    "Failed to install FIPS packages.",
                    hint=exc.hint,
                    context=exc.context,
                ) from exc

        self.installer.clean()
        self.logger.info("ubuntu-pro", "Ubuntu Pro FIPS configuration complete", stage="packages")

    def attach(self, credential: Credential) -> None:
        """Attach the subscription; the token is dropped whatever the outcome."""
        self.logger.info("ubuntu-pro", "Attaching to Ubuntu Pro...", stage="attach")
        token = credential.value
        try:
            self.runner.run(("pro", "attach", token), secrets=(token,))
        finally:
            credential.clear()

    def verification_target(self) -> tuple[str, str | None]:
        return "openssl", None

    def marker_fields(self) -> dict[str, str | None]:
        return {}


__all__ = ["FIPS_SERVICE", "PRO_TOOLS_PACKAGE", "UbuntuPro"]
