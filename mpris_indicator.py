import asyncio
import signal
from typing import Optional

from config import DEBUG, PLAYERCTL, VERSION
from logging_config import setup_logging, get_logger
from player_hub import (
    IndicatorController,
    NullWindowManager,
    PlayerRecord,
    PlayerRegistry,
    PlayerctlWatcher,
    StaticIconTheme,
    shutdown_daemon_executor,
)

logger = get_logger(__name__)

_shutdown_event: Optional[asyncio.Event] = None
_watcher: Optional[PlayerctlWatcher] = None
_registry: Optional[PlayerRegistry] = None
_indicator: Optional[IndicatorController] = None


def _describe(record: Optional[PlayerRecord]) -> str:
    if record is None:
        return "none"
    track = " - ".join(part for part in (record.artist, record.title) if part)
    return f"{record.player_name or record.bus_name} [{record.playback_status.name.lower()}] {track}".rstrip()


def _on_active_changed(record: Optional[PlayerRecord]) -> None:
    logger.info(f"Active player: {_describe(record)}")


def _on_visibility_changed(visible: bool) -> None:
    logger.debug(f"Indicator {'shown' if visible else 'hidden'}")


def _on_icon_changed(icon) -> None:
    logger.debug(f"Indicator icon: {icon.name if icon else None}")


async def cleanup() -> None:
    """Cleanup resources before exit"""
    logger.info("Cleaning up resources...")
    if _watcher is not None:
        await _watcher.stop()
    if _indicator is not None:
        _indicator.destroy()
    if _registry is not None:
        _registry.stop()
    if _watcher is not None:
        _watcher.destroy()
    shutdown_daemon_executor()
    logger.info("Cleanup complete")


async def main(poll_interval: Optional[float] = None) -> None:
    global _shutdown_event, _watcher, _registry, _indicator

    _shutdown_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _shutdown_event.set)

    _watcher = PlayerctlWatcher(poll_interval=poll_interval)
    if not _watcher.is_available():
        logger.error("playerctl is required. Install with: sudo apt install playerctl")
        return

    # Headless: no window manager and no icon theme to consult
    _registry = PlayerRegistry(_watcher, NullWindowManager(), StaticIconTheme())
    _registry.active_changed.connect(_on_active_changed)
    _indicator = IndicatorController(_registry)
    _indicator.visibility_changed.connect(_on_visibility_changed)
    _indicator.icon_changed.connect(_on_icon_changed)

    try:
        _registry.start()
        _watcher.start()
        logger.info("Watching for MPRIS players...")
        await _shutdown_event.wait()
        logger.info("Shutdown requested")
    finally:
        await cleanup()


def cli() -> None:
    import argparse
    parser = argparse.ArgumentParser(description='MPRIS Indicator - tracks media players and the active one')
    parser.add_argument('--poll-interval', type=float, default=None,
                        help=f"Seconds between playerctl polls (default: {PLAYERCTL['poll_interval']})")
    parser.add_argument('--log-level', default=None,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help=f"Console log level (default: {DEBUG['log_level']})")
    args = parser.parse_args()

    setup_logging(
        console_level=args.log_level or DEBUG.get("log_level", "INFO"),
        file_level="DEBUG" if DEBUG.get("log_detailed", False) else "INFO",
        console=DEBUG.get("log_to_console", True),
        log_file=DEBUG.get("log_file", "mpris_indicator.log"),
        max_bytes=DEBUG["log_rotation"]["max_bytes"],
        backup_count=DEBUG["log_rotation"]["backup_count"],
    )

    if not PLAYERCTL["enabled"]:
        logger.warning("playerctl backend is disabled in settings, nothing to do")
        raise SystemExit(0)

    try:
        logger.info(f"Starting MPRIS Indicator {VERSION}...")
        asyncio.run(main(args.poll_interval))
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt caught in main...")
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        raise


if __name__ == "__main__":
    cli()
