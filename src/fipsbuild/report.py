"""Deterministic export of a configuration run."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path

import cbor2

from fipsbuild.models import ProcedureOutcome


@dataclass(frozen=True, slots=True)
class RunReport:
    enabled: bool
    method: str
    configured: bool
    extra_packages: tuple[str, ...] = ()
    provider_active: bool | None = None
    algorithm_checks: dict[str, str] = field(default_factory=dict)
    openssl_version: str | None = None
    marker: dict[str, str] = field(default_factory=dict)
    marker_path: str | None = None
    warnings: tuple[str, ...] = ()
    schema_version: int = 1

    @classmethod
    def from_outcome(
        cls,
        outcome: ProcedureOutcome,
        *,
        warnings: tuple[str, ...] = (),
    ) -> RunReport:
        verification = outcome.verification
        return cls(
            enabled=outcome.request.enabled,
            method=outcome.request.method_name,
            configured=outcome.configured,
            extra_packages=outcome.request.extra_packages,
            provider_active=None if verification is None else verification.provider_active,
            algorithm_checks={} if verification is None else dict(verification.algorithm_checks),
            openssl_version=outcome.openssl_version,
            marker={} if outcome.marker is None else outcome.marker.fields(),
            marker_path=None if outcome.marker_path is None else str(outcome.marker_path),
            warnings=warnings,
        )

    def to_json(self, path: str | Path | None = None) -> str:
        encoded = json.dumps(self._payload(), indent=2, sort_keys=True) + "\n"
        if path is not None:
            Path(path).write_text(encoded, encoding="utf-8")
        return encoded

    def to_cbor(self, path: str | Path | None = None) -> bytes:
        encoded = cbor2.dumps(self._payload(), canonical=True)
        if path is not None:
            Path(path).write_bytes(encoded)
        return encoded

    def write(self, path: str | Path) -> Path:
        """Write CBOR for a ``.cbor`` suffix, JSON otherwise."""
        output_path = Path(path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        if output_path.suffix == ".cbor":
            self.to_cbor(output_path)
        else:
            self.to_json(output_path)
        return output_path

    def _payload(self) -> dict[str, object]:
        return {
            "schema_version": self.schema_version,
            "enabled": self.enabled,
            "method": self.method,
            "configured": self.configured,
            "extra_packages": list(self.extra_packages),
            "provider_active": self.provider_active,
            "algorithm_checks": dict(sorted(self.algorithm_checks.items())),
            "openssl_version": self.openssl_version,
            "marker": dict(sorted(self.marker.items())),
            "marker_path": self.marker_path,
            "warnings": list(self.warnings),
        }


__all__ = ["RunReport"]
