from __future__ import annotations

import logging
import os
import tempfile
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

PACKAGE_LOGGER_NAME = "OverlayStage"
LOG_DIR_ENV_VAR = "OVERLAY_STAGE_LOG_DIR"
PROPAGATE_ENV_VAR = "OVERLAY_STAGE_PROPAGATE_LOGS"
LOG_FILENAME = "overlay-stage.log"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def resolve_logs_dir(log_dir_name: str = "OverlayStage") -> Path:
    """
    Resolve the directory to store stage logs.

    Strategy:
    - Use OVERLAY_STAGE_LOG_DIR if set.
    - Fall back to XDG state/cache locations, then `cwd/logs/<log_dir_name>`.
    - Final fallback: tempdir/<log_dir_name>.
    """
    candidates = []

    env_override = os.environ.get(LOG_DIR_ENV_VAR)
    if env_override:
        candidates.append(Path(env_override).expanduser())

    state_home = Path(os.environ.get("XDG_STATE_HOME", Path.home() / ".local" / "state"))
    cache_home = Path(os.environ.get("XDG_CACHE_HOME", Path.home() / ".cache"))
    candidates.append(state_home / "overlay-stage" / "logs")
    candidates.append(cache_home / "overlay-stage" / "logs")
    candidates.append(Path.cwd() / "logs")

    for index, base in enumerate(candidates):
        # The env override is used as-is; the shared roots get a per-app folder.
        target = base if (index == 0 and env_override) else base / log_dir_name
        try:
            target.mkdir(parents=True, exist_ok=True)
            return target
        except OSError:
            continue

    temp_fallback = Path(tempfile.gettempdir()) / log_dir_name
    temp_fallback.mkdir(parents=True, exist_ok=True)
    return temp_fallback


def build_rotating_file_handler(
    log_dir: Path,
    filename: str = LOG_FILENAME,
    *,
    retention: int = 5,
    max_bytes: int = 512 * 1024,
    formatter: Optional[logging.Formatter] = None,
) -> logging.Handler:
    """Construct a rotating file handler with sane defaults."""
    retention = max(1, retention)
    backup_count = max(0, retention - 1)
    log_dir.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        log_dir / filename,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    if formatter is not None:
        handler.setFormatter(formatter)
    return handler


def resolve_log_level(debug_enabled: bool) -> int:
    return logging.DEBUG if debug_enabled else logging.INFO


def propagation_requested() -> bool:
    return os.environ.get(PROPAGATE_ENV_VAR, "").lower() in {"1", "true", "yes", "on"}


def configure_package_logger(
    *,
    dev_mode: bool,
    log_dir: Optional[Path] = None,
    retention: int = 5,
) -> logging.Logger:
    """Set level, propagation and the rotating file handler on the ``OverlayStage`` logger.

    Module loggers are children (``OverlayStage.ImageCache`` etc.) and inherit this setup.
    """

    logger = logging.getLogger(PACKAGE_LOGGER_NAME)
    logger.setLevel(resolve_log_level(dev_mode))
    logger.propagate = propagation_requested()
    for handler in list(logger.handlers):
        if isinstance(handler, RotatingFileHandler):
            logger.removeHandler(handler)
            handler.close()
    if log_dir is not None:
        logger.addHandler(
            build_rotating_file_handler(
                log_dir,
                retention=retention,
                formatter=logging.Formatter(LOG_FORMAT),
            )
        )
    return logger
