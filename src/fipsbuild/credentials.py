"""Subscription credential resolution."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field

from fipsbuild.errors import ConfigurationError
from fipsbuild.models import Credential
from fipsbuild.observability import StructuredLogger
from fipsbuild.settings import Settings

MISSING_TOKEN_HINT = (
    "Provide the token via BuildKit secret (recommended):\n"
    "  docker build --secret id=ubuntu_pro_token,src=token.txt ...\n"
    "Or via environment (less secure):\n"
    "  docker build --build-arg UBUNTU_PRO_TOKEN_ENV=xxx ..."
)


@dataclass(slots=True)
class SecretProvider:
    """Resolves the Ubuntu Pro token: mounted secret first, environment second."""

    settings: Settings
    logger: StructuredLogger = field(default_factory=StructuredLogger)
    environ: Mapping[str, str] | None = None

    def resolve(self) -> Credential:
        secret_file = self.settings.path(self.settings.secret_path)
        if secret_file.is_file():
            value = secret_file.read_text(encoding="utf-8").strip()
            if value:
                self.logger.info("secrets", "Using Ubuntu Pro token from BuildKit secret")
                return Credential(value=value, source="secret_mount")

        env = os.environ if self.environ is None else self.environ
        value = env.get(self.settings.token_env_var, "").strip()
        if value:
            self.logger.info("secrets", "Using Ubuntu Pro token from environment variable")
            self.logger.warning("secrets", "Token may be visible in process listings")
            return Credential(value=value, source="environment")

        return Credential(value="", source="none")

    def require(self) -> Credential:
        credential = self.resolve()
        if not credential.present:
            raise ConfigurationError(
                "Ubuntu Pro token not provided.",
                hint=MISSING_TOKEN_HINT,
                context={
                    "secret_path": self.settings.secret_path,
                    "env_var": self.settings.token_env_var,
                },
            )
        return credential


__all__ = ["MISSING_TOKEN_HINT", "SecretProvider"]
