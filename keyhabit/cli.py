#!/usr/bin/env python3
"""
keyhabit CLI entry point
"""

from __future__ import annotations

import argparse
import logging
import logging.handlers
import os
import signal
import sys
import traceback
from pathlib import Path

from keyhabit import __version__

DEFAULT_LOG_FILE = '~/.keyhabit.log'


def setup_logging(debug: bool = False, log_file: str | None = None) -> logging.Logger:
    """Setup logging to both console and file

    Args:
        debug: Enable debug level logging
        log_file: Path to log file (default: ~/.keyhabit.log)
    """
    import keyhabit.log  # registers TRACE level

    logger = logging.getLogger('keyhabit')
    if logger.handlers:
        return logger

    logger.setLevel(logging.DEBUG if debug else logging.INFO)

    if log_file is None:
        log_file = os.path.expanduser(DEFAULT_LOG_FILE)

    fmt = logging.Formatter(
        '[%(asctime)s] %(levelname)-8s %(name)s: %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    # File handler (rotate log file when it gets too large)
    try:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=10*1024*1024,  # 10 MB
            backupCount=5
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(fmt)
        logger.addHandler(file_handler)
    except OSError as e:
        print(f"Warning: Could not setup file logging: {e}", file=sys.stderr)

    # Console handler (warnings in production, everything in debug)
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.DEBUG if debug else logging.WARNING)
    console_handler.setFormatter(fmt)
    logger.addHandler(console_handler)

    return logger


def enable_debug_logging(logger: logging.Logger) -> None:
    """Raise an already configured logger and all its handlers to DEBUG."""
    logger.setLevel(logging.DEBUG)
    for handler in logger.handlers:
        handler.setLevel(logging.DEBUG)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog='keyhabit',
        description='Break repetitive key habits: throttle repeated motion keys and suggest better commands',
    )
    parser.add_argument(
        '--debug',
        action='store_true',
        help='Enable debug mode with verbose logging'
    )
    parser.add_argument(
        '--config',
        type=str,
        default=None,
        help='Path to config file (default: ~/.config/keyhabit/config.json)'
    )
    parser.add_argument(
        '--logfile',
        type=str,
        default=None,
        help='Path to log file (default: ~/.keyhabit.log)'
    )
    parser.add_argument(
        '--disabled',
        action='store_true',
        help='Start with the engine disabled (toggle with the toggle key or SIGUSR1)'
    )
    parser.add_argument(
        '--write-config',
        action='store_true',
        help='Write the effective config to the config path and exit'
    )
    parser.add_argument(
        '--version',
        action='version',
        version='%(prog)s ' + __version__
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Main entry point for keyhabit"""
    args = parse_args(argv)
    log = setup_logging(debug=args.debug, log_file=args.logfile)

    # Import after args parsing to avoid import-time side effects
    from keyhabit.app import KeyHabitApp
    from keyhabit.config import ConfigManager

    config = ConfigManager(config_path=args.config)
    debug = args.debug or config.get('debug', False)
    if debug and not args.debug:
        enable_debug_logging(log)
        log.debug("Debug logging enabled by %s", config.config_path)

    if args.write_config:
        if not config.save():
            return 1
        print(config.config_path)
        return 0

    log.info("keyhabit %s started (pid %d)", __version__, os.getpid())

    app = KeyHabitApp(debug=debug, config=config, start_disabled=args.disabled)

    def stop_handler(signum: int, frame) -> None:
        log.info("Received %s, shutting down", signal.Signals(signum).name)
        app.stop()

    def toggle_handler(signum: int, frame) -> None:
        enabled = app.toggle()
        log.info("Toggled by signal: engine %s", "enabled" if enabled else "disabled")

    signal.signal(signal.SIGINT, stop_handler)
    signal.signal(signal.SIGTERM, stop_handler)
    signal.signal(signal.SIGUSR1, toggle_handler)

    try:
        app.run()
        return 0

    except KeyboardInterrupt:
        log.info("keyhabit terminated by user (Ctrl+C)")
        return 0

    except PermissionError as e:
        log.error("Permission error: %s", e)
        log.error("This may be due to missing permission to access input devices.")
        log.error("Try running with: sudo usermod -a -G input $USER")
        log.debug(traceback.format_exc())
        return 1

    except (OSError, RuntimeError) as e:
        log.error("%s: %s", type(e).__name__, e)
        log.debug(traceback.format_exc())
        return 1

    except Exception as e:
        log.error("Unexpected error: %s", e)
        log.debug(traceback.format_exc())
        return 1


if __name__ == '__main__':
    sys.exit(main())
