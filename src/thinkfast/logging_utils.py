"""Centralised logging utilities for the ThinkFast tools."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional, Union

__all__ = ["configure_logging", "resolve_level"]

_MANAGED_HANDLER_FLAG = "_thinkfast_managed_handler"

# Transfer libraries log every request at INFO; keep them out of game logs.
_CHATTY_LOGGERS = ("httpx", "httpcore", "urllib3")


def _default_log_directory() -> Path:
    """Return the directory for ThinkFast log files (``THINKFAST_LOG_DIR`` wins)."""

    env_override = os.environ.get("THINKFAST_LOG_DIR")
    if env_override:
        return Path(env_override).expanduser()
    return Path("~/.thinkfast/logs").expanduser()


def resolve_level(level: Union[int, str, None]) -> int:
    """Accept ``logging`` constants or names; fall back to ``THINKFAST_LOG_LEVEL``."""

    if level is None:
        level = os.environ.get("THINKFAST_LOG_LEVEL", "INFO")
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.strip().upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def _remove_managed_handlers(logger: logging.Logger) -> None:
    """Detach any handlers previously installed by :func:`configure_logging`."""

    for handler in list(logger.handlers):
        if getattr(handler, _MANAGED_HANDLER_FLAG, False):
            logger.removeHandler(handler)
            handler.close()


def _install(logger: logging.Logger, handler: logging.Handler, level: int) -> None:
    handler.setLevel(level)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    setattr(handler, _MANAGED_HANDLER_FLAG, True)
    logger.addHandler(handler)


def configure_logging(
    log_name: str,
    *,
    level: Union[int, str, None] = None,
    log_dir: Optional[Path] = None,
    include_console: bool = True,
) -> Path:
    """Send root logging to ``<log_dir>/<log_name>.log`` (and stderr)."""

    resolved = resolve_level(level)
    target_directory = (
        Path(log_dir).expanduser() if log_dir else _default_log_directory()
    )
    target_directory.mkdir(parents=True, exist_ok=True)
    log_path = target_directory / f"{log_name}.log"

    root_logger = logging.getLogger()
    root_logger.setLevel(resolved)
    _remove_managed_handlers(root_logger)

    _install(root_logger, logging.FileHandler(log_path, encoding="utf-8"), resolved)
    if include_console:
        _install(root_logger, logging.StreamHandler(), resolved)

    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(max(resolved, logging.WARNING))
    logging.captureWarnings(True)

    return log_path
