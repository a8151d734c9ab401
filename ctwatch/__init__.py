"""ctwatch - Live view of a certificate-transparency match feed."""

import argparse
import logging
import signal
import sys
from threading import Event

__version__ = "0.1.0"

# Set by SIGINT/SIGTERM; the run loop waits on it between redraws.
_shutdown_event: Event | None = None

logger = logging.getLogger(__name__)


def _setup_logging(verbose: bool = False) -> None:
    """Send log records to stdout so they interleave with the terminal view."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
    )


def _handle_shutdown(signum: int, frame: object) -> None:
    """Stop the live view on SIGINT or SIGTERM."""
    logger.info("Received %s, stopping live view", signal.Signals(signum).name)
    if _shutdown_event is not None:
        _shutdown_event.set()


def _load(args: argparse.Namespace):
    """Load configuration and apply command-line overrides. Exits on error."""
    from dataclasses import replace

    from .config import Config, ConfigError, build_config, load_config

    try:
        config: Config = load_config(args.config) if args.config else build_config({})
        if args.url:
            config = replace(config, backend=replace(config.backend, base_url=args.url))
        if args.window is not None:
            config = replace(config, view=replace(config.view, time_window_minutes=args.window))
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        sys.exit(1)
    return config


def _build_dashboard(args: argparse.Namespace):
    from .dashboard import Dashboard

    config = _load(args)
    dashboard = Dashboard(config)
    if args.query:
        dashboard.set_query(args.query)
    if args.priority:
        dashboard.set_priority(args.priority)
    return config, dashboard


def _print_view(dashboard) -> None:
    from .render import render_text

    state = dashboard.state()
    print(render_text(state, dashboard.rows(state)), flush=True)


def _cmd_run(args: argparse.Namespace) -> None:
    """Execute the run command - poll the backend and print the view every interval."""
    global _shutdown_event

    _setup_logging(args.verbose)
    logger.info("ctwatch %s starting...", __version__)

    config, dashboard = _build_dashboard(args)
    logger.info(
        "Polling %s every %dms (window: %d minutes)",
        config.backend.base_url,
        config.poller.interval_ms,
        config.view.time_window_minutes,
    )

    _shutdown_event = Event()
    signal.signal(signal.SIGTERM, _handle_shutdown)
    signal.signal(signal.SIGINT, _handle_shutdown)

    try:
        dashboard.start()
        while not _shutdown_event.wait(config.poller.interval_seconds):
            _print_view(dashboard)
    except KeyboardInterrupt:
        # Backup handler if signal doesn't work
        logger.info("Keyboard interrupt received")
    finally:
        logger.info("Shutting down...")
        dashboard.close()
        logger.info("Shutdown complete")


def _cmd_snapshot(args: argparse.Namespace) -> None:
    """Execute the snapshot command - poll once, print the view and exit."""
    from .models import Liveness
    from .render import render_text

    _setup_logging(args.verbose)

    _, dashboard = _build_dashboard(args)
    try:
        state = dashboard.refresh_once()
        print(render_text(state, dashboard.rows(state)))
    finally:
        dashboard.close()

    if state.liveness is not Liveness.ONLINE:
        sys.exit(1)


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-c", "--config",
        help="Path to YAML configuration file (default: built-in defaults)",
    )
    parser.add_argument(
        "--url",
        help="Backend base URL (overrides config)",
    )
    parser.add_argument(
        "-q", "--query",
        default="",
        help="Only show matches with a DNS name containing this text",
    )
    parser.add_argument(
        "-p", "--priority",
        help="Only show matches with this exact priority",
    )
    parser.add_argument(
        "-w", "--window",
        type=int,
        help="Trailing time window in minutes (overrides config)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (debug) logging",
    )


def main() -> None:
    """Main entry point for the ctwatch package."""
    parser = argparse.ArgumentParser(
        description="ctwatch - Live view of a certificate-transparency match feed"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"ctwatch {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command")

    # Run subcommand (default behavior)
    run_parser = subparsers.add_parser(
        "run",
        help="Poll the backend continuously and print the live view (default)",
    )
    _add_common_arguments(run_parser)
    run_parser.set_defaults(func=_cmd_run)

    # Snapshot subcommand
    snapshot_parser = subparsers.add_parser(
        "snapshot",
        help="Poll once, print the view and exit (non-zero when the backend is offline)",
    )
    _add_common_arguments(snapshot_parser)
    snapshot_parser.set_defaults(func=_cmd_snapshot)

    args = parser.parse_args()

    # Default to 'run' if no command specified
    if args.command is None:
        args = run_parser.parse_args([])
        args.func = _cmd_run

    args.func(args)
