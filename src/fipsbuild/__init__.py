"""Rootfs build and FIPS configuration tooling for cflinuxfs5."""

from .errors import (
    ConfigurationError,
    ErrorCode,
    ExternalToolError,
    FipsError,
    ImageBuildError,
    IntegrityError,
    VerificationError,
)
from .image import RootfsBuilder
from .models import (
    ConfigurationRequest,
    Credential,
    MarkerRecord,
    Method,
    ProcedureOutcome,
    VerificationResult,
)
from .procedure import ConfigurationProcedure
from .report import RunReport
from .settings import BuildSettings, Settings

__all__ = [
    "BuildSettings",
    "ConfigurationError",
    "ConfigurationProcedure",
    "ConfigurationRequest",
    "Credential",
    "ErrorCode",
    "ExternalToolError",
    "FipsError",
    "ImageBuildError",
    "IntegrityError",
    "MarkerRecord",
    "Method",
    "ProcedureOutcome",
    "RootfsBuilder",
    "RunReport",
    "Settings",
    "VerificationError",
    "VerificationResult",
]
