"""Command-line entrypoint.

Usage:
    fipsbuild configure [ENABLED] [METHOD] [PACKAGES]
    fipsbuild build
    fipsbuild clean
    fipsbuild help
"""

from __future__ import annotations

import argparse
import dataclasses
import sys
from collections.abc import Sequence
from pathlib import Path

from fipsbuild.errors import FipsError
from fipsbuild.image import RootfsBuilder
from fipsbuild.models import ConfigurationRequest
from fipsbuild.observability import StructuredLogger
from fipsbuild.procedure import ConfigurationProcedure
from fipsbuild.report import RunReport
from fipsbuild.settings import BuildSettings, Settings

HELP_TEXT = """\
cflinuxfs5 Build System

Usage:
  fipsbuild build                          - Build standard rootfs
  FIPS=true fipsbuild build                - Build with FIPS support (source method)
  FIPS=true FIPS_METHOD=ubuntu-pro fipsbuild build - Build with Ubuntu Pro FIPS
  fipsbuild configure true source          - Configure FIPS inside an image build
  fipsbuild clean                          - Remove build outputs

FIPS Methods:
  source     - Build OpenSSL with FIPS module (NOT NIST-validated)
  ubuntu-pro - Use Ubuntu Pro FIPS packages (NIST-validated)

For ubuntu-pro method, create token file:
  echo 'your-ubuntu-pro-token' > .ubuntu-pro-token

Variables:
  FIPS                    - Enable FIPS build (true/false, default: false)
  FIPS_METHOD             - FIPS method (source/ubuntu-pro, default: source)
  UBUNTU_PRO_TOKEN_FILE   - Token file path (default: .ubuntu-pro-token)
  BASE                    - Base image (default: ubuntu:noble)
  FIPSBUILD_ROOT          - Filesystem root configured by 'configure' (default: /)
  FIPSBUILD_STRICT_VERIFY - Fail 'configure' when FIPS verification fails
"""


def cmd_configure(args: argparse.Namespace, logger: StructuredLogger) -> int:
    settings = Settings.from_env()
    if args.strict_verify:
        settings = dataclasses.replace(settings, strict_verification=True)
    request = ConfigurationRequest.from_inputs(args.enabled, args.method, args.packages)
    procedure = ConfigurationProcedure(settings=settings, logger=logger)
    outcome = procedure.run(request)
    if args.report is not None:
        warnings = tuple(record["message"] for record in logger.warnings())
        RunReport.from_outcome(outcome, warnings=warnings).write(args.report)
    return 0


def cmd_build(args: argparse.Namespace, logger: StructuredLogger) -> int:
    builder = RootfsBuilder(settings=BuildSettings.from_env(workdir=args.workdir), logger=logger)
    tarball = builder.build()
    logger.info("cli", f"Rootfs written to {tarball}")
    return 0


def cmd_clean(args: argparse.Namespace, logger: StructuredLogger) -> int:
    builder = RootfsBuilder(settings=BuildSettings.from_env(workdir=args.workdir), logger=logger)
    for path in builder.clean():
        logger.info("cli", f"Removed {path}")
    return 0


def cmd_help(args: argparse.Namespace, logger: StructuredLogger) -> int:
    print(HELP_TEXT, end="")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="fipsbuild", description="cflinuxfs5 rootfs and FIPS build tool")
    parser.add_argument("--log-json", type=Path, help="Write structured log records as JSON lines")
    sub = parser.add_subparsers(dest="command", required=True)

    configure_p = sub.add_parser("configure", help="Configure FIPS mode on this filesystem")
    configure_p.add_argument("enabled", nargs="?", default="false", help="'true' to enable FIPS configuration")
    configure_p.add_argument("method", nargs="?", default="source", help="source or ubuntu-pro")
    configure_p.add_argument("packages", nargs="?", default="", help="Space-separated extra FIPS packages")
    configure_p.add_argument("--report", type=Path, help="Write a run report (.json or .cbor)")
    configure_p.add_argument(
        "--strict-verify",
        action="store_true",
        help="Treat failed FIPS verification as fatal",
    )
    configure_p.set_defaults(handler=cmd_configure)

    for name, handler, summary in (
        ("build", cmd_build, "Build the rootfs tarball and receipt"),
        ("clean", cmd_clean, "Remove build outputs"),
    ):
        command_p = sub.add_parser(name, help=summary)
        command_p.add_argument("--workdir", type=Path, default=Path("."), help="Build context directory")
        command_p.set_defaults(handler=handler)

    help_p = sub.add_parser("help", help="Show build system usage")
    help_p.set_defaults(handler=cmd_help)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logger = StructuredLogger()
    try:
        return args.handler(args, logger)
    except FipsError as exc:
        logger.error("cli", str(exc), code=exc.code)
        return 1
    finally:
        if args.log_json is not None:
            logger.to_json_lines(args.log_json)


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
