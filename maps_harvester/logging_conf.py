"""Logging configuration built around structlog JSON logging."""

from __future__ import annotations

import logging
import logging.config
import os
from pathlib import Path
from typing import Iterable

import structlog

_LOGGING_INITIALISED = False


def _default_log_dir() -> Path:
    env_root = os.environ.get("MAPS_HARVESTER_HOME")
    if env_root:
        return Path(env_root).expanduser().resolve() / "logs"
    return Path(__file__).resolve().parents[1] / "logs"


def configure_logging(verbose: bool = False) -> structlog.BoundLogger:
    """Configure structlog + stdlib handlers and return application logger."""

    global _LOGGING_INITIALISED
    log_dir = _default_log_dir()
    error_log = log_dir / "error.log"
    harvester_log = log_dir / "harvester.log"
    runs_dir = log_dir / "runs"
    runs_dir.mkdir(parents=True, exist_ok=True)
    error_log.touch(exist_ok=True)
    harvester_log.touch(exist_ok=True)

    if not _LOGGING_INITIALISED:
        level = "DEBUG" if verbose else "INFO"
        logging.config.dictConfig(
            {
                "version": 1,
                "disable_existing_loggers": False,
                "formatters": {
                    "plain": {
                        "()": "pythonjsonlogger.jsonlogger.JsonFormatter",
                        "fmt": "%(asctime)s %(levelname)s %(name)s %(message)s",
                    }
                },
                "handlers": {
                    "console": {
                        "class": "logging.StreamHandler",
                        "level": level,
                        "formatter": "plain",
                    },
                    "harvester_file": {
                        "class": "logging.FileHandler",
                        "level": "INFO",
                        "filename": str(harvester_log),
                        "formatter": "plain",
                    },
                    "error_file": {
                        "class": "logging.FileHandler",
                        "level": "ERROR",
                        "filename": str(error_log),
                        "formatter": "plain",
                    },
                },
                "loggers": {
                    "maps_harvester": {
                        "handlers": ["console", "harvester_file", "error_file"],
                        "level": level,
                        "propagate": False,
                    },
                },
            }
        )

        structlog.configure(
            processors=[
                structlog.contextvars.merge_contextvars,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.stdlib.add_log_level,
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
            ],
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )
        _LOGGING_INITIALISED = True
    return structlog.get_logger("maps_harvester")


def run_logger(run_name: str, verbose: bool = False) -> structlog.BoundLogger:
    """Return a logger bound to one run and ensure its file handler exists."""

    configure_logging(verbose)
    run_log_path = _default_log_dir() / "runs" / f"{run_name}.log"
    run_log_path.parent.mkdir(parents=True, exist_ok=True)

    logger_name = f"maps_harvester.run.{run_name}"
    py_logger = logging.getLogger(logger_name)
    if not any(
        isinstance(handler, logging.FileHandler) and handler.baseFilename == str(run_log_path)
        for handler in py_logger.handlers
    ):
        file_handler = logging.FileHandler(run_log_path, encoding="utf-8")
        global_logger = logging.getLogger("maps_harvester")
        if global_logger.handlers:
            file_handler.setFormatter(global_logger.handlers[0].formatter)
        file_handler.setLevel(logging.INFO)
        py_logger.addHandler(file_handler)

    return structlog.get_logger(logger_name).bind(run=run_name)


def tail_log(path: Path, line_count: int = 100) -> list[str]:
    """Return the last N lines from a log file."""

    if not path.exists():
        return []
    with path.open("r", encoding="utf-8", errors="ignore") as stream:
        lines = stream.readlines()
    return lines[-line_count:]


def log_file_path(run_name: str | None = None) -> Path:
    """Return the run log for ``run_name`` or the global harvester log."""

    if run_name:
        return _default_log_dir() / "runs" / f"{run_name}.log"
    return _default_log_dir() / "harvester.log"


def available_run_logs() -> Iterable[Path]:
    """Yield available run log file paths."""

    runs_dir = _default_log_dir() / "runs"
    if not runs_dir.exists():
        return []
    return sorted(p for p in runs_dir.glob("*.log"))


__all__ = ["available_run_logs", "configure_logging", "log_file_path", "run_logger", "tail_log"]
