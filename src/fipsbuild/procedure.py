"""Top-level FIPS configuration procedure.

``DISABLED`` exits immediately. Otherwise the method is validated, the
selected handler runs its preflight and its configuration inside a scratch
space, the verification probe runs, and the marker record is written. Any
fatal error aborts before the marker is written; scratch paths are removed on
every exit path.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

from fipsbuild.errors import VerificationError
from fipsbuild.marker import MarkerWriter
from fipsbuild.methods import create_handler
from fipsbuild.models import ConfigurationRequest, MarkerRecord, Method, ProcedureOutcome
from fipsbuild.observability import StructuredLogger
from fipsbuild.runner import Runner, SubprocessRunner
from fipsbuild.scratch import scratch_space
from fipsbuild.settings import Settings
from fipsbuild.verify import VerificationProbe, kernel_fips_enabled

KERNEL_FIPS_FLAG = "/proc/sys/crypto/fips_enabled"


@dataclass(slots=True)
class ConfigurationProcedure:
    settings: Settings = field(default_factory=Settings)
    logger: StructuredLogger = field(default_factory=StructuredLogger)
    runner: Runner | None = None
    environ: Mapping[str, str] | None = None

    def __post_init__(self) -> None:
        if self.runner is None:
            self.runner = SubprocessRunner(logger=self.logger)

    def run(self, request: ConfigurationRequest) -> ProcedureOutcome:
        outcome = ProcedureOutcome(request=request)
        if not request.enabled:
            self.logger.info("procedure", "FIPS mode not enabled, skipping FIPS configuration", stage="disabled")
            return outcome

        method = request.method
        handler = create_handler(
            method,
            runner=self.runner,
            settings=self.settings,
            logger=self.logger,
            environ=self.environ,
        )
        self.logger.banner(f"Configuring FIPS mode (method: {method})")

        with scratch_space(self.settings.path(self.settings.scratch_dir)) as scratch:
            handler.prepare(request)
            handler.configure(request, scratch)

            self.logger.banner("Verifying FIPS configuration...")
            openssl_bin, openssl_conf = handler.verification_target()
            probe = VerificationProbe(runner=self.runner, logger=self.logger)
            outcome.verification = probe.run(openssl_bin=openssl_bin, openssl_conf=openssl_conf)
            outcome.openssl_version = probe.version(openssl_bin)
            self.logger.info("procedure", f"OpenSSL version: {outcome.openssl_version}", stage="verify")
            if method is Method.UBUNTU_PRO:
                self._report_kernel_mode()

            if self.settings.strict_verification and outcome.verification.failed:
                raise VerificationError(
                    "FIPS verification failed and strict verification is enabled.",
                    hint="Inspect the probe output above or drop --strict-verify for best-effort mode.",
                    context={
                        "provider_active": str(outcome.verification.provider_active).lower(),
                        "failed_checks": ",".join(outcome.verification.failed_checks),
                    },
                )

            record = MarkerRecord.now(method=method, **handler.marker_fields())
            outcome.marker_path = MarkerWriter(settings=self.settings, logger=self.logger).write(record)
            outcome.marker = record
            outcome.configured = True

        self.logger.banner("FIPS configuration complete")
        return outcome

    def _report_kernel_mode(self) -> None:
        enabled = kernel_fips_enabled(self.settings.path(KERNEL_FIPS_FLAG))
        if enabled is None:
            return
        if enabled:
            self.logger.info("procedure", "Kernel FIPS mode: ENABLED", stage="verify")
        else:
            self.logger.info(
                "procedure",
                "Note: Kernel FIPS mode requires FIPS-enabled kernel at boot time",
                stage="verify",
            )


__all__ = ["ConfigurationProcedure", "KERNEL_FIPS_FLAG"]
