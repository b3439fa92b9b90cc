"""Core typed dataclasses for configuration requests and their outcomes."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from pathlib import Path
from typing import Literal

from fipsbuild.errors import ConfigurationError

CredentialSource = Literal["secret_mount", "environment", "none"]
CheckOutcome = Literal["pass", "fail", "inconclusive"]

NOT_VALIDATED_NOTICE = (
    "# NOTE: Source-built OpenSSL is NOT NIST FIPS 140-2/140-3 validated\n"
    "# For compliance purposes, use ubuntu-pro method with certified packages\n"
)


class Method(StrEnum):
    SOURCE = "source"
    UBUNTU_PRO = "ubuntu-pro"


METHOD_DESCRIPTIONS = {
    Method.SOURCE: "Build OpenSSL with FIPS module (not NIST-validated)",
    Method.UBUNTU_PRO: "Use Ubuntu Pro FIPS packages (NIST-validated)",
}


def parse_method(value: str) -> Method:
    try:
        return Method(value)
    except ValueError:
        supported = ", ".join(f"{m.value} ({METHOD_DESCRIPTIONS[m]})" for m in Method)
        raise ConfigurationError(
            f"Unknown FIPS method: {value}",
            hint=f"Supported methods: {supported}.",
            context={"method": value},
        ) from None


@dataclass(frozen=True, slots=True)
class ConfigurationRequest:
    """Immutable invocation inputs.

    ``method_name`` keeps the raw selector so a disabled request never has to
    validate it; ``method`` validates on access.
    """

    enabled: bool
    method_name: str = Method.SOURCE.value
    extra_packages: tuple[str, ...] = ()

    @classmethod
    def from_inputs(
        cls,
        enabled: str = "false",
        method: str = Method.SOURCE.value,
        packages: str = "",
    ) -> ConfigurationRequest:
        return cls(
            enabled=enabled == "true",
            method_name=method,
            extra_packages=tuple(packages.split()),
        )

    @property
    def method(self) -> Method:
        return parse_method(self.method_name)


@dataclass(slots=True)
class Credential:
    value: str = field(repr=False)
    source: CredentialSource

    @property
    def present(self) -> bool:
        return self.source != "none" and bool(self.value)

    def clear(self) -> None:
        self.value = ""


@dataclass(frozen=True, slots=True)
class CommandResult:
    argv: tuple[str, ...]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        return self.stdout + self.stderr


@dataclass(frozen=True, slots=True)
class VerificationResult:
    provider_active: bool
    algorithm_checks: Mapping[str, CheckOutcome] = field(default_factory=dict)

    @property
    def failed_checks(self) -> tuple[str, ...]:
        return tuple(sorted(name for name, outcome in self.algorithm_checks.items() if outcome == "fail"))

    @property
    def failed(self) -> bool:
        # inconclusive is not a failure: `openssl enc` rejects AEAD ciphers on 3.x
        return not self.provider_active or bool(self.failed_checks)


@dataclass(frozen=True, slots=True)
class MarkerRecord:
    enabled: bool
    method: Method
    configured_at: datetime
    openssl_version: str | None = None
    config_path: str | None = None
    binary_path: str | None = None

    @classmethod
    def now(cls, *, method: Method, **fields: str | None) -> MarkerRecord:
        return cls(
            enabled=True,
            method=method,
            configured_at=datetime.now(timezone.utc),
            **fields,
        )

    def fields(self) -> dict[str, str]:
        values = {
            "FIPS_ENABLED": "true" if self.enabled else "false",
            "FIPS_METHOD": self.method.value,
            "FIPS_CONFIGURED_AT": self.configured_at.astimezone(timezone.utc).strftime(
                "%Y-%m-%dT%H:%M:%SZ"
            ),
        }
        if self.method is Method.SOURCE:
            values["OPENSSL_VERSION"] = self.openssl_version or ""
            values["OPENSSL_FIPS_CONF"] = self.config_path or ""
            values["OPENSSL_FIPS_BIN"] = self.binary_path or ""
        return values

    def render(self) -> str:
        text = "".join(f"{key}={value}\n" for key, value in self.fields().items())
        if self.method is Method.SOURCE:
            text += "\n" + NOT_VALIDATED_NOTICE
        return text


@dataclass(slots=True)
class ProcedureOutcome:
    request: ConfigurationRequest
    configured: bool = False
    verification: VerificationResult | None = None
    marker: MarkerRecord | None = None
    marker_path: Path | None = None
    openssl_version: str | None = None


__all__ = [
    "CheckOutcome",
    "CommandResult",
    "ConfigurationRequest",
    "Credential",
    "CredentialSource",
    "MarkerRecord",
    "Method",
    "METHOD_DESCRIPTIONS",
    "NOT_VALIDATED_NOTICE",
    "ProcedureOutcome",
    "VerificationResult",
    "parse_method",
]
