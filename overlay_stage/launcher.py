from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import Optional

from PyQt6.QtWidgets import QApplication

from overlay_stage.logging_utils import PACKAGE_LOGGER_NAME, configure_package_logger, resolve_logs_dir
from overlay_stage.stage_config import load_initial_settings, resolve_settings_path
from overlay_stage.stage_window import StageWindow
from overlay_stage.version import DEV_MODE_ENV_VAR, __version__, is_dev_build

_LOGGER = logging.getLogger(PACKAGE_LOGGER_NAME)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Compose a photo with stickers and text, then export a PNG")
    parser.add_argument("--settings", help="Path to stage_settings.json")
    parser.add_argument("--photo", help="Base photo to open instead of the configured sample")
    parser.add_argument("--debug", action="store_true", help=f"Enable debug logging (same as {DEV_MODE_ENV_VAR}=1)")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    settings_path = resolve_settings_path(args.settings)
    settings = load_initial_settings(settings_path)
    dev_mode = bool(args.debug) or is_dev_build(__version__)
    log_dir = resolve_logs_dir()
    configure_package_logger(dev_mode=dev_mode, log_dir=log_dir, retention=settings.log_retention)

    _LOGGER.info("Starting Overlay Stage %s (pid=%s)", __version__, os.getpid())
    _LOGGER.debug(
        "Loaded settings from %s: base_image=%s catalog=%d retention=%d debounce=%dms",
        settings_path,
        settings.base_image,
        len(settings.catalog),
        settings.log_retention,
        settings.repaint_debounce_ms,
    )

    app = QApplication(sys.argv if argv is None else [sys.argv[0], *argv])
    window = StageWindow(settings)
    if args.photo:
        window.document.set_base_image(args.photo)
    window.show()

    exit_code = app.exec()
    _LOGGER.info("Overlay Stage exiting with code %s", exit_code)
    return int(exit_code)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
