"""Protocol shared by the configuration method handlers."""

from __future__ import annotations

from typing import Protocol

from fipsbuild.models import ConfigurationRequest, Method
from fipsbuild.scratch import ScratchSpace


class MethodHandler(Protocol):
    method: Method

    def prepare(self, request: ConfigurationRequest) -> None:
        """Validate inputs before any mutating action is taken."""

    def configure(self, request: ConfigurationRequest, scratch: ScratchSpace) -> None:
        """Perform the method's package and filesystem changes."""

    def verification_target(self) -> tuple[str, str | None]:
        """Return the openssl binary and config file the probe should use."""

    def marker_fields(self) -> dict[str, str | None]:
        """Return method-specific marker record fields."""
