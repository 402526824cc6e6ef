"""Runtime logging helpers."""

from __future__ import annotations

import inspect
import logging
import os
import sys

from loguru import logger

_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<6} | {name}:{function}:{line} | {message}"
_CONFIGURED = False


class InterceptHandler(logging.Handler):
    """Handler that forwards stdlib logging messages to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = inspect.currentframe(), 0
        while frame:
            filename = frame.f_code.co_filename
            is_logging = filename == logging.__file__
            is_frozen = "importlib" in filename and "_bootstrap" in filename
            if depth > 0 and not (is_logging or is_frozen):
                break
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def parse_log_filter(value: str | None = None) -> tuple[str, dict[str | None, str | int | bool]]:
    """Parse a WSRPC_LOG_FILTER value.

    Format: "level" or "level,module1=level,module2=false"
    Examples:
        - "info" - global INFO level
        - "info,wsrpc.rpc=debug" - global INFO, wsrpc.rpc at DEBUG
        - "info,websockets=false" - global INFO, websockets disabled

    Returns:
        (global_level, module_filter_dict)
    """
    filter_env = (value if value is not None else os.getenv("WSRPC_LOG_FILTER", "info")).lower()
    parts = [p.strip() for p in filter_env.split(",") if p.strip()]

    filter_dict: dict[str | None, str | int | bool] = {}
    global_level = "info"

    for part in parts:
        if "=" in part:
            module, level = part.split("=", 1)
            module = module.strip()
            level = level.strip()
            if level == "false":
                filter_dict[module] = False
            else:
                filter_dict[module] = level.upper()
        else:
            global_level = part

    return global_level, filter_dict


def _setup_stdlib_intercept() -> None:
    """Forward stdlib logging (websockets uses it) to loguru."""
    root_logger = logging.getLogger()
    if not any(isinstance(handler, InterceptHandler) for handler in root_logger.handlers):
        root_logger.addHandler(InterceptHandler())


def configure_logging(*, force: bool = False) -> None:
    """Configure process-level logging once.

    Log levels controlled by WSRPC_LOG_FILTER:
    - "info" - global INFO level
    - "debug,wsrpc.transport=info" - global DEBUG with the transport at INFO
    - "info,wsrpc.rpc=false" - global INFO, wsrpc.rpc disabled
    """
    global _CONFIGURED
    if _CONFIGURED and not force:
        return

    global_level, module_filter = parse_log_filter()

    logger.remove()
    logger.add(
        sys.stderr,
        level="TRACE" if module_filter else global_level.upper(),
        format=_FORMAT,
        backtrace=False,
        diagnose=False,
        filter={"": global_level.upper(), **module_filter},
    )

    _setup_stdlib_intercept()

    _CONFIGURED = True
