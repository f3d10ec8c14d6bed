"""Main entry point for the storage key listing alert workflow.

Runs the provisioning chain once:
- Creates a resource group, storage account, action group and activity log alert
- Lists the storage keys to trigger the alert and reads back the activity log
- Deletes the resource group on every exit path
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import signal
import sys
from collections.abc import Callable
from datetime import UTC, datetime

from .config import Config, ConfigurationError, LogFormat
from .orchestrator import run_workflow
from .provider import ArmProvider
from .receivers import ReceiversLoadError, resolve_notification_channels

EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130

# LogRecord attributes that are not user-supplied extra fields
_RESERVED_RECORD_KEYS = frozenset(
    (
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "taskName",
        "message",
    )
)


class JsonFormatter(logging.Formatter):
    """Format logs as JSON for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
        }

        # Add extra fields from the record
        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_KEYS:
                log_data[key] = value

        # Add exception info if present
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(log_format: LogFormat | str = LogFormat.JSON) -> None:
    """Configure logging to stdout, JSON by default."""
    handler = logging.StreamHandler(sys.stdout)
    if LogFormat(log_format) is LogFormat.JSON:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)-8s %(name)s: %(message)s")
        )

    root_logger = logging.getLogger()
    for existing in list(root_logger.handlers):
        root_logger.removeHandler(existing)
    root_logger.addHandler(handler)
    root_logger.setLevel(logging.INFO)

    # Reduce noise from Azure SDK
    logging.getLogger("azure").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


async def main(
    load_config: Callable[[], Config] = Config.from_env,
    *,
    log_format: LogFormat | str = LogFormat.JSON,
) -> int:
    """Run the workflow.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    setup_logging(log_format)
    logger = logging.getLogger(__name__)

    def load_and_configure_logging() -> Config:
        config = load_config()
        if config.log_format is not LogFormat(log_format):
            setup_logging(config.log_format)
        return config

    workflow = asyncio.ensure_future(
        run_workflow(
            load_and_configure_logging,
            ArmProvider.from_config,
            load_channels=lambda config: resolve_notification_channels(config.receivers_file),
        )
    )

    # Cancelling the workflow lets the teardown guard delete the resource group
    loop = asyncio.get_running_loop()

    def signal_handler(sig: signal.Signals) -> None:
        logger.info("Received signal", extra={"signal": sig.name})
        workflow.cancel()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, lambda s=sig: signal_handler(s))

    try:
        outcome = await workflow
    except ConfigurationError as e:
        logger.error("Configuration error", extra={"error": str(e)})
        return EXIT_FAILURE
    except ReceiversLoadError as e:
        logger.error("Receivers file could not be loaded", extra={"error": str(e)})
        return EXIT_FAILURE
    except asyncio.CancelledError:
        logger.warning("Workflow cancelled")
        return EXIT_INTERRUPTED
    except Exception as e:
        logger.exception("Workflow failed unexpectedly", extra={"error": str(e)})
        return EXIT_FAILURE
    finally:
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.remove_signal_handler(sig)

    if outcome.cleanup_error is not None:
        # Reported on its own; never replaces the provisioning result
        logger.error(
            "Resource group cleanup failed",
            extra={"error": str(outcome.cleanup_error)},
        )

    if not outcome.success:
        logger.error(
            "Workflow failed",
            extra={
                "halted_at": outcome.halted_at.value if outcome.halted_at else None,
                "error": str(outcome.error),
                "error_type": type(outcome.error).__name__,
            },
        )
        return EXIT_FAILURE

    logger.info(
        "Workflow completed successfully",
        extra={
            "resources_created": len(outcome.handles),
            "alert_observed": outcome.probe.observed if outcome.probe else False,
            "duration_seconds": outcome.duration_seconds,
        },
    )
    return EXIT_SUCCESS


def log_format_from_env() -> str:
    """LOG_FORMAT from the environment, falling back to json when unset or invalid.

    An invalid value is still reported by configuration validation.
    """
    log_format = os.environ.get("LOG_FORMAT", "").lower()
    if log_format not in {f.value for f in LogFormat}:
        return LogFormat.JSON.value
    return log_format


def run() -> None:
    """Entry point for the workflow console script."""
    try:
        sys.exit(asyncio.run(main(log_format=log_format_from_env())))
    except KeyboardInterrupt:
        sys.exit(EXIT_INTERRUPTED)


if __name__ == "__main__":
    run()
