"""Command line entry point.

Example::

    knock-on-gpus --devices 0,1 -- python train.py
    knock-on-gpus --auto-select 2 --memory-border-mib 500 -- python train.py
"""

import argparse
import logging
import sys
from enum import IntEnum
from typing import List, Optional, Tuple

from pydantic import ValidationError

from knock_on_gpus.config import Settings, settings as default_settings
from knock_on_gpus.errors import (
    ConfigurationError,
    LaunchError,
    TelemetryQueryError,
    TelemetrySourceError,
)
from knock_on_gpus.models.devices import format_device_list
from knock_on_gpus.models.request import KnockOutcome, KnockRequest
from knock_on_gpus.services.gatekeeper import Gatekeeper
from knock_on_gpus.services.launcher import CommandLauncher

__version__ = "1.0.0"

logger = logging.getLogger("knock_on_gpus")


class ExitCode(IntEnum):
    """Process exit codes."""

    SUCCESS = 0
    OCCUPIED = 1
    CONFIGURATION_ERROR = 2
    TELEMETRY_ERROR = 3
    LAUNCH_ERROR = 127
    INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="knock-on-gpus",
        description="Check that GPUs are vacant, then run a command on them.",
        epilog="Put the command to run after `--`, "
        "e.g. `knock-on-gpus --devices 0,1 -- python train.py`.",
    )
    parser.add_argument(
        "-d", "--devices", help="Comma-separated indices into the visible devices"
    )
    parser.add_argument("--min-gpus", type=int, default=0, help="Minimum number of GPUs to use")
    parser.add_argument("--max-gpus", type=int, default=None, help="Maximum number of GPUs to use")
    parser.add_argument(
        "--memory-border-mib",
        type=float,
        default=None,
        help="A GPU using at least this much memory is occupied",
    )
    parser.add_argument(
        "-n", "--auto-select", type=int, default=None, help="Pick the first N vacant GPUs"
    )
    parser.add_argument(
        "--strict-gpu",
        action="store_true",
        help="Fail when no GPU can be checked instead of falling back to CPU",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def split_command(argv: List[str]) -> Tuple[List[str], List[str]]:
    """Split ``argv`` at the first ``--`` into options and the command."""
    if "--" in argv:
        index = argv.index("--")
        return argv[:index], argv[index + 1:]
    return argv, []


def configure_logging(level: str) -> None:
    logging.basicConfig(format="%(levelname)s: %(message)s", level=level.upper())


def report_vacant(outcome: KnockOutcome) -> None:
    if outcome.cpu_fallback:
        logger.info("No GPU available, falling back to CPU.")
        return
    devices = outcome.devices
    logger.info(
        "GPU %s %s available!",
        format_device_list(devices),
        "are" if len(devices) > 1 else "is",
    )


def report_occupied(outcome: KnockOutcome, request: KnockRequest) -> None:
    verdict = outcome.verdict
    if request.auto_select is not None:
        vacant = len(verdict.statuses) - len(verdict.occupied_statuses)
        logger.error(
            "Only %d of %d checked GPU(s) are vacant, but %d are requested.",
            vacant,
            len(verdict.statuses),
            request.auto_select,
        )
    for status in verdict.occupied_statuses:
        logger.error("GPU %d is currently in use (%s)", status.gpu_id, status.describe())
    logger.info("See `nvidia-smi` for more information.")


def format_validation_error(error: ValidationError) -> str:
    messages = []
    for detail in error.errors():
        location = ".".join(str(part) for part in detail["loc"])
        messages.append(f"{location}: {detail['msg']}" if location else detail["msg"])
    return "; ".join(messages)


def main(
    argv: Optional[List[str]] = None,
    settings: Optional[Settings] = None,
    gatekeeper: Optional[Gatekeeper] = None,
    launcher: Optional[CommandLauncher] = None,
) -> int:
    settings = settings or default_settings
    argv = sys.argv[1:] if argv is None else argv
    options, command = split_command(argv)
    args = build_parser().parse_args(options)

    configure_logging("DEBUG" if args.verbose else settings.log_level)

    try:
        request = KnockRequest(
            devices=args.devices,
            min_gpus=args.min_gpus,
            max_gpus=args.max_gpus if args.max_gpus is not None else settings.max_gpus,
            memory_border_mib=args.memory_border_mib,
            auto_select=args.auto_select,
            strict_gpu=args.strict_gpu,
            command=command,
        )
    except ValidationError as e:
        logger.error("Invalid arguments: %s", format_validation_error(e))
        return ExitCode.CONFIGURATION_ERROR

    gatekeeper = gatekeeper or Gatekeeper(settings)
    try:
        outcome = gatekeeper.knock(request)
    except ConfigurationError as e:
        logger.error("%s", e)
        return ExitCode.CONFIGURATION_ERROR
    except (TelemetrySourceError, TelemetryQueryError) as e:
        logger.error("Error has occurred while checking GPU usage: %s", e)
        return ExitCode.TELEMETRY_ERROR

    if not outcome.is_vacant:
        report_occupied(outcome, request)
        return ExitCode.OCCUPIED

    report_vacant(outcome)
    if not request.command:
        logger.warning("No command to execute.")
        logger.info(
            "If you use this command with `&&`, use `--` instead. "
            "Example: `knock-on-gpus --devices 0,1 -- python train.py`"
        )
        return ExitCode.SUCCESS

    launcher = launcher or CommandLauncher()
    try:
        return launcher.run(request.command, outcome.environment)
    except LaunchError as e:
        logger.error("%s", e)
        return ExitCode.LAUNCH_ERROR
    except KeyboardInterrupt:
        logger.warning("Interrupted.")
        return ExitCode.INTERRUPTED


if __name__ == "__main__":
    sys.exit(main())
