"""
Logging setup for the graph importer.

Uses Loguru for structured, colorized logging with file rotation. Every
module logs through ``logger.bind(component=...)``; records without a
component fall back to ``importer``.
"""

import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from loguru import logger


# Remove default handler
logger.remove()
logger.configure(extra={"component": "importer"})

# Track if logging has been configured
_logging_configured = False

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | "
    "<level>{level:<8}</level> | "
    "<cyan>{extra[component]}</cyan> | "
    "{thread.name} | "
    "<level>{message}</level>"
)

FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | "
    "{level:<8} | "
    "{extra[component]} | "
    "{thread.name} | "
    "{name}:{function}:{line} | "
    "{message}"
)


def setup_logging(
    log_dir: Path,
    level: str = "INFO",
    log_format: Optional[str] = None,
    console: bool = True,
    file: bool = True,
) -> Optional[Path]:
    """
    Configure logging for an import run.

    Args:
        log_dir: Directory to store log files.
        level: Logging level (DEBUG, INFO, WARNING, ERROR).
        log_format: Custom console format string.
        console: Whether to log to console.
        file: Whether to log to file.

    Returns:
        Path to the log file created, or None when file logging is off.
    """
    global _logging_configured

    # Clear existing handlers if reconfiguring
    if _logging_configured:
        logger.remove()

    if console:
        logger.add(
            sys.stderr,
            format=log_format or CONSOLE_FORMAT,
            level=level,
            colorize=True,
        )

    log_file = None
    if file:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
        log_file = log_dir / f"import_{timestamp}.log"
        # enqueue: loader threads log concurrently
        logger.add(
            log_file,
            format=FILE_FORMAT,
            level=level,
            rotation="10 MB",
            retention="30 days",
            compression="gz",
            enqueue=True,
        )

    _logging_configured = True
    logger.info(f"Logging initialized. Log file: {log_file}")

    return log_file
