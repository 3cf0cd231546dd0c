# =============================================================================
# Structured Logging Setup (JSONL format)
# =============================================================================

import json
import sys
import traceback
from contextvars import ContextVar
from pathlib import Path

import platformdirs
from loguru import logger

APP_NAME = "nunchux"
LOG_FILENAME = "nunchux.jsonl"

# Correlation ID for one nunchux invocation
trace_id_var: ContextVar[str] = ContextVar('trace_id', default=None)


def json_sink(message):
    """JSONL sink for debug runs - writes to stderr."""
    record = message.record
    log_entry = {
        "timestamp": record["time"].strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z",
        "level": record["level"].name.lower(),
        "component": record["function"],
        "operation": record["extra"].get("operation", "unknown"),
        "operation_status": record["extra"].get("status", None),
        "trace_id": record["extra"].get("trace_id") or trace_id_var.get(),
        "message": record["message"],
        "context": {k: v for k, v in record["extra"].items()
                   if k not in ("operation", "status", "trace_id", "metrics")},
        "metrics": record["extra"].get("metrics", {}),
        "error": None
    }

    if record["exception"]:
        exc_type, exc_value, exc_tb = record["exception"]
        tb_lines = []
        if exc_tb:
            tb_lines = traceback.format_tb(exc_tb)

        log_entry["error"] = {
            "type": exc_type.__name__ if exc_type else "Unknown",
            "message": str(exc_value) if exc_value else "Unknown error",
            "traceback_lines": tb_lines
        }

    sys.stderr.write(json.dumps(log_entry, default=str) + "\n")


def get_log_path() -> Path:
    """Return the JSONL log file path (directory is not created)."""
    # macOS: ~/Library/Logs/nunchux/
    # Linux: ~/.local/state/nunchux/log/
    return Path(platformdirs.user_log_dir(appname=APP_NAME)) / LOG_FILENAME


def setup_logger(debug: bool = False):
    """
    Configure Loguru for machine-readable JSONL output.

    The picker owns the terminal, so nothing is written to stderr unless
    debug mode is on. The rotating file sink always records DEBUG and up.

    Args:
        debug: Also mirror every record to stderr as JSONL

    Returns:
        The configured logger
    """
    logger.remove()

    if debug:
        logger.add(
            json_sink,
            level="DEBUG"
        )

    log_dir = Path(platformdirs.user_log_dir(
        appname=APP_NAME,
        ensure_exists=True
    ))

    logger.add(
        str(log_dir / LOG_FILENAME),
        format="{message}",
        serialize=True,
        rotation="10 MB",
        retention="7 days",
        compression="gz",
        level="DEBUG"
    )

    return logger
