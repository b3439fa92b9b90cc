"""Configuration method handlers."""

from __future__ import annotations

from collections.abc import Mapping

from fipsbuild.models import Method
from fipsbuild.observability import StructuredLogger
from fipsbuild.runner import Runner
from fipsbuild.settings import Settings

from .base import MethodHandler
from .source import SourceBuild
from .ubuntu_pro import UbuntuPro


def create_handler(
    method: Method,
    *,
    runner: Runner,
    settings: Settings,
    logger: StructuredLogger,
    environ: Mapping[str, str] | None = None,
) -> MethodHandler:
    if method is Method.SOURCE:
        return SourceBuild(runner=runner, settings=settings, logger=logger)
    return UbuntuPro(runner=runner, settings=settings, logger=logger, environ=environ)


__all__ = ["MethodHandler", "SourceBuild", "UbuntuPro", "create_handler"]
