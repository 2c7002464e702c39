from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

from loguru import logger

_configured = False


class InterceptHandler(logging.Handler):
    """Routes standard logging records (uvicorn, httpx) through loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Attribute the record to the original caller, not to the logging module
        frame = logging.currentframe()
        depth = 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


# PUBLIC_INTERFACE
def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    rotation: str = "10 MB",
    retention: str = "7 days",
    force: bool = False,
) -> None:
    """
    Configure loguru sinks once per process.

    :param level: Minimum level for every sink (e.g. "INFO", "DEBUG")
    :param log_file: Optional file path; enables a rotating file sink
    :param rotation: Rotation policy for the file sink
    :param retention: Retention policy for the file sink
    :param force: Reconfigure even if logging was already set up
    """
    global _configured
    if _configured and not force:
        return

    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format="{time:HH:mm:ss}|{module}|{level.name}|{message}",
        backtrace=False,
        diagnose=False,
    )

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            path,
            level=level,
            format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}",
            rotation=rotation,
            retention=retention,
            encoding="utf-8",
        )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    _configured = True
