#!/usr/bin/env python3
"""
CLI for the watchf file watcher.

Usage:
    python -m src.cli start . -r -p '\\.py$' -c 'pytest -q'
    python -m src.cli start -e modify,delete -i 500ms -c 'make' -c 'echo %t %f'
    python -m src.cli stop
    python -m src.cli status
"""

import argparse
import logging
import signal
import sys
import time
from pathlib import Path

from src.watchf import (
    ALL_EVENTS,
    DEFAULT_CONFIG_FILE,
    VALID_EVENTS,
    ConfigError,
    Daemon,
    DaemonError,
    WatchConfig,
    WatchfError,
    WatchService,
    __version__,
    format_duration,
    parse_duration,
    parse_event_list,
)


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("cli")

DAEMON_NAME = "watchf"


class GracefulShutdown:
    """Handle graceful shutdown on SIGINT/SIGTERM."""

    def __init__(self):
        self.should_exit = False
        signal.signal(signal.SIGINT, self._handler)
        signal.signal(signal.SIGTERM, self._handler)

    def _handler(self, signum, frame):
        logger.info("Received shutdown signal, stopping...")
        self.should_exit = True


def _duration(text: str) -> float:
    try:
        return parse_duration(text)
    except ConfigError as e:
        raise argparse.ArgumentTypeError(str(e))


def build_config(args) -> WatchConfig:
    """
    Build the watch configuration from a config file and command-line flags.

    The config file is used when --config is given, or when the default
    file exists and no command was passed with -c. Flags given on the
    command line override values from the file.
    """
    if args.config:
        config = WatchConfig.load(args.config)
    elif not args.commands and Path(DEFAULT_CONFIG_FILE).exists():
        logger.info(f"Using configuration from {DEFAULT_CONFIG_FILE}")
        config = WatchConfig.load(DEFAULT_CONFIG_FILE)
    else:
        config = WatchConfig()

    if args.recursive:
        config.recursive = True
    if args.pattern is not None:
        config.include_pattern = args.pattern
    if args.interval is not None:
        config.interval = args.interval
    if args.events is not None:
        config.events = args.events
    if args.commands:
        config.commands = list(args.commands)
    if args.continue_on_error:
        config.continue_on_error = True
    if args.stabilize_timeout is not None:
        config.stabilize_timeout = args.stabilize_timeout

    config.validate()

    if args.write_config:
        config.save(args.config or DEFAULT_CONFIG_FILE)

    return config


def cmd_start(args):
    """Run the watch service in the foreground until interrupted."""
    try:
        config = build_config(args)
    except ConfigError as e:
        logger.error(str(e))
        sys.exit(1)

    if not config.commands:
        logger.warning("No commands configured; events will only be logged")

    roots = args.paths or ["."]
    service = WatchService(roots, config)
    daemon = Daemon(DAEMON_NAME, service)

    shutdown = GracefulShutdown()

    try:
        daemon.start()
    except WatchfError as e:
        logger.error(f"Cannot start watcher: {e}")
        sys.exit(1)

    logger.info(f"Watching {', '.join(service.paths)} (recursive: {config.recursive})")
    logger.info(f"Events: {', '.join(config.events)}; pattern: {config.include_pattern}")
    if config.interval:
        logger.info(f"Minimum interval between executions: {format_duration(config.interval)}")
    for command in config.commands:
        logger.info(f"  - {command}")
    logger.info("Press Ctrl+C to stop")

    while not shutdown.should_exit:
        time.sleep(0.5)

    try:
        daemon.stop()
    except WatchfError as e:
        logger.error(f"Error while stopping: {e}")
        sys.exit(1)

    logger.info("Watcher stopped")


def cmd_stop(args):
    """Stop the instance recorded in the PID file."""
    daemon = Daemon(DAEMON_NAME)
    try:
        daemon.stop()
    except DaemonError as e:
        logger.error(str(e))
        sys.exit(1)
    print(f"Stopped {DAEMON_NAME} (pid {daemon.pid})")


def cmd_status(args):
    """Report whether an instance is running."""
    daemon = Daemon(DAEMON_NAME)
    if daemon.is_running():
        print(f"{DAEMON_NAME} is running (pid {daemon.pid})")
    else:
        print(f"{DAEMON_NAME} is not running")


def cmd_events(args):
    """List the event names accepted by -e."""
    for kind, description in VALID_EVENTS.items():
        print(f"  {kind.value:<8} {description}")
    print(f"  {ALL_EVENTS:<8} Create/Delete/Modify/Rename")


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="watchf",
        description="Run commands when files change",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Command templates may use:
  %f  path of the file or directory that changed
  %t  event type (create, modify, delete, rename)

Examples:
  # Run the tests whenever a Python file under the current tree changes
  watchf start -r -p '\\.py$' -c 'pytest -q'

  # Save the flags to {DEFAULT_CONFIG_FILE} and reuse them later
  watchf start -r -e modify -c 'make' -w
  watchf start

  # Stop a running instance from another terminal
  watchf stop
        """,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="command", required=True)

    # Start command
    start_parser = subparsers.add_parser("start", help="Watch directories and run commands on changes")
    start_parser.add_argument("paths", nargs="*", help="Directories to watch (default: current directory)")
    start_parser.add_argument("-r", "--recursive", action="store_true", help="Watch directories recursively")
    start_parser.add_argument("-p", "--pattern", default=None, help="File name matches regular expression pattern (default: .*)")
    start_parser.add_argument("-i", "--interval", type=_duration, default=None,
                              help="Minimum time between command executions, e.g. 500ms, 2s (default: 0, no limit)")
    start_parser.add_argument("-e", "--events", type=parse_event_list, default=None,
                              help="Comma separated events to listen for: create, delete, modify, rename, all")
    start_parser.add_argument("-c", "--command", dest="commands", action="append", default=[],
                              help="Command to run (repeatable, run in order)")
    start_parser.add_argument("--continue-on-error", action="store_true",
                              help="Keep running the remaining commands after one fails")
    start_parser.add_argument("--stabilize-timeout", type=_duration, default=None,
                              help="Give up on a file that keeps growing after this long (default: 0, wait forever)")
    start_parser.add_argument("--config", default=None, help=f"Configuration file (default: {DEFAULT_CONFIG_FILE} if present)")
    start_parser.add_argument("-w", "--write-config", action="store_true", help="Save the resulting configuration")
    start_parser.set_defaults(func=cmd_start)

    # Stop command
    stop_parser = subparsers.add_parser("stop", help="Stop the running watcher")
    stop_parser.set_defaults(func=cmd_stop)

    # Status command
    status_parser = subparsers.add_parser("status", help="Show whether a watcher is running")
    status_parser.set_defaults(func=cmd_status)

    # Events command
    events_parser = subparsers.add_parser("events", help="List the supported events")
    events_parser.set_defaults(func=cmd_events)

    args = parser.parse_args(argv)

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    args.func(args)


if __name__ == "__main__":
    main()
