"""Command line entry point: fade a sway panel with the window topology."""

import argparse
import asyncio
import logging
import signal
import sys

from i3ipc import Connection
from i3ipc.aio import Connection as AioConnection

from .animation import EASINGS, FadeDriver, ImmediateDriver
from .classifier import SHELL_INTERNAL_CLASSES
from .controller import QUIET_WINDOW_MS, WARMUP_MS, PanelController
from .logging_utils import setup_logging
from .settings import JsonFileSettings, Settings, SettingsFileWatcher
from .sway import SwayOpacityApplier, SwayTopologySource
from .timers import LoopTimers

logger = logging.getLogger(__name__)

DEFAULT_CRITERIA = '[app_id="panel"]'


def build_parser():
    parser = argparse.ArgumentParser(
        prog="panel-fader",
        description="Fade a panel between transparent, semi-opaque and opaque as windows come and go.",
    )
    parser.add_argument("--config", help="JSON settings file, reloaded when it changes")
    parser.add_argument(
        "--criteria",
        default=DEFAULT_CRITERIA,
        help=f"sway criteria selecting the panel (default: {DEFAULT_CRITERIA})",
    )
    parser.add_argument("--primary-output", help="output treated as the primary monitor (default: first active)")
    parser.add_argument("--overview-mode", help="binding mode during which updates are suspended")
    parser.add_argument(
        "--restore-opacity",
        type=float,
        default=1.0,
        help="opacity painted when the fader exits (default: 1.0)",
    )
    parser.add_argument(
        "--exclude-class",
        action="append",
        default=[],
        metavar="CLASS",
        help="app_id or window class never counted as a window (repeatable)",
    )
    parser.add_argument("--easing", choices=sorted(EASINGS), default="quad")
    parser.add_argument("--no-animation", action="store_true", help="apply opacity changes immediately")
    parser.add_argument("--quiet-ms", type=int, default=QUIET_WINDOW_MS, help="debounce window for topology events")
    parser.add_argument("--warmup-ms", type=int, default=WARMUP_MS, help="delay before the first update")
    parser.add_argument("--debug", action="store_true", help="verbose logging regardless of settings")
    parser.add_argument("--log-file", help="also log to this rotating file")
    return parser


async def run(args):
    loop = asyncio.get_running_loop()

    query = Connection()
    events = await AioConnection(auto_reconnect=True).connect()
    source = SwayTopologySource(
        query,
        events,
        primary_output=args.primary_output,
        overview_mode=args.overview_mode,
    )
    applier = SwayOpacityApplier(query, args.criteria, restore_opacity=args.restore_opacity)
    timers = LoopTimers(loop)
    if args.no_animation:
        driver = ImmediateDriver(applier)
    else:
        driver = FadeDriver(applier, timers, easing=EASINGS[args.easing])

    watcher = None
    if args.config:
        settings = JsonFileSettings(args.config)
        watcher = SettingsFileWatcher(settings, loop)
    else:
        settings = Settings()

    controller = PanelController(
        source,
        settings,
        applier,
        timers,
        driver,
        quiet_ms=args.quiet_ms,
        warmup_ms=args.warmup_ms,
        excluded_classes=SHELL_INTERNAL_CLASSES | set(args.exclude_class),
        debug=args.debug,
    )

    shutdown = asyncio.Event()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, shutdown.set)

    controller.start()
    if watcher is not None:
        try:
            watcher.start()
        except OSError as e:
            logger.warning("Not watching %s: %s", args.config, e)
    logger.info("panel fader started successfully.")

    main_task = asyncio.create_task(events.main())
    shutdown_task = asyncio.create_task(shutdown.wait())
    try:
        await asyncio.wait([main_task, shutdown_task], return_when=asyncio.FIRST_COMPLETED)
    finally:
        controller.stop()
        if watcher is not None:
            watcher.stop()
        source.close()
        events.main_quit()
        for task in (main_task, shutdown_task):
            task.cancel()
        await asyncio.gather(main_task, shutdown_task, return_exceptions=True)
    return 0


def main(argv=None):
    args = build_parser().parse_args(argv)
    setup_logging(debug=args.debug, log_file=args.log_file)
    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        return 0
    except Exception as e:
        logger.error("Fatal error: %s", e, exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
