"""
MPRIS players via playerctl.

Works on any Linux desktop with playerctl installed, without a D-Bus binding:
the watcher polls ``playerctl -l`` for the list of players, each proxy polls
its player's status and metadata, and commands run as background
subprocesses.

Requirements:
- playerctl installed: sudo apt install playerctl

playerctl can't tell us the owning pid, so the watcher uses the
``instanceNNN`` suffix that Chromium, VLC and friends append to their bus
name (it is the pid) and 0 otherwise.
"""
from __future__ import annotations
import asyncio
import subprocess
from pathlib import PurePosixPath
from typing import Dict, List, Optional
from urllib.parse import unquote, urlparse

import config
from ..helpers import (
    create_tracked_task,
    get_numbers_from_end_of,
    has_running_loop,
    run_in_daemon_executor,
)
from ..state import MPRIS_BUS_PREFIX, VIDEO_ICON_NAME
from .base import (
    BasePlayerProxy,
    BasePlayerWatcher,
    PlaybackStatus,
    PlayerCapability,
    PlayerProxyError,
)
from logging_config import get_logger

logger = get_logger(__name__)

# status, artist, title, art url, player name, track url; one per line
METADATA_FORMAT = "{{status}}\n{{artist}}\n{{title}}\n{{mpris:artUrl}}\n{{playerName}}\n{{xesam:url}}"
METADATA_FIELDS = 6

# Consecutive failed polls before a player is given up on
MAX_POLL_FAILURES = 3

VIDEO_EXTENSIONS = {
    ".mp4", ".mkv", ".webm", ".avi", ".mov", ".m4v", ".wmv", ".flv", ".mpg", ".mpeg", ".ogv",
}

_BASE_CAPABILITIES = PlayerCapability.PREVIOUS | PlayerCapability.PLAY_PAUSE_STOP | PlayerCapability.NEXT


def player_name_from_bus_name(bus_name: str) -> str:
    """org.mpris.MediaPlayer2.vlc.instance42 -> vlc.instance42"""
    if bus_name.startswith(MPRIS_BUS_PREFIX):
        return bus_name[len(MPRIS_BUS_PREFIX):]
    return bus_name


def pid_hint(player: str) -> int:
    """chromium.instance1234 -> 1234, anything without an instance suffix -> 0"""
    if ".instance" not in player:
        return 0
    return get_numbers_from_end_of(player) or 0


def mimetype_icon_for_url(url: Optional[str]) -> str:
    """A video icon for tracks that look like video files, "" otherwise."""
    if not url:
        return ""
    suffix = PurePosixPath(unquote(urlparse(url).path)).suffix.lower()
    return VIDEO_ICON_NAME if suffix in VIDEO_EXTENSIONS else ""


class PlayerctlProxy(BasePlayerProxy):
    """
    One player, addressed with ``playerctl -p <player>``.

    playerctl exposes neither CanGoNext & co. nor Raise, so the transport
    capabilities are always on and raise_() always declines. The desktop
    entry is guessed from the player name minus its instance suffix, which
    is what most players use.
    """

    def __init__(self, bus_name: str, timeout: Optional[float] = None):
        super().__init__(bus_name)
        self.player = player_name_from_bus_name(bus_name)
        self._timeout = timeout if timeout is not None else config.PLAYERCTL["timeout"]
        self._failures = 0
        self._destroyed = False

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    # === Polling ===

    async def refresh(self) -> bool:
        """
        Poll the player once and apply what changed.

        Returns False if the poll failed. After MAX_POLL_FAILURES failures in
        a row self_destruct is emitted.
        """
        if self._destroyed:
            return False
        try:
            props = await run_in_daemon_executor(self._fetch_properties_sync)
        except PlayerProxyError as e:
            self._failures += 1
            logger.debug(f"{self.player}: poll failed ({self._failures}/{MAX_POLL_FAILURES}): {e}")
            if self._failures >= MAX_POLL_FAILURES and not self._destroyed:
                logger.info(f"{self.player} stopped answering, dropping it")
                self.self_destruct.emit()
            return False

        # The record may have been torn down while we were waiting
        if self._destroyed:
            return False
        self._failures = 0
        self.update(**props)
        return True

    def _fetch_properties_sync(self) -> Dict:
        """Blocking playerctl call (run in executor)."""
        try:
            result = subprocess.run(
                ["playerctl", "-p", self.player, "metadata", "--format", METADATA_FORMAT],
                capture_output=True,
                text=True,
                timeout=self._timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise PlayerProxyError("playerctl timed out") from e
        except FileNotFoundError as e:
            raise PlayerProxyError("playerctl is not installed") from e

        if result.returncode != 0:
            raise PlayerProxyError(result.stderr.strip() or f"playerctl exited with {result.returncode}")

        return self._parse_metadata(result.stdout)

    def _parse_metadata(self, output: str) -> Dict:
        lines = output.rstrip("\n").split("\n")
        lines += [""] * (METADATA_FIELDS - len(lines))
        status, artist, title, art_url, player_name, url = (line.strip() for line in lines[:METADATA_FIELDS])
        return {
            "playback_status": PlaybackStatus.from_string(status),
            "artist": artist,
            "title": title,
            "cover_url": art_url or None,
            "player_name": player_name or self.player.split(".")[0],
            "desktop_entry": self.player.split(".")[0],
            "mimetype_icon_name": mimetype_icon_for_url(url),
            "capabilities": _BASE_CAPABILITIES,
        }

    # === Commands ===

    def previous(self) -> bool:
        return self._dispatch("previous")

    def play_pause_stop(self) -> bool:
        return self._dispatch("play-pause")

    def next(self) -> bool:
        return self._dispatch("next")

    def raise_(self) -> bool:
        logger.debug(f"{self.player}: playerctl can't raise windows")
        return False

    def _dispatch(self, command: str) -> bool:
        if self._destroyed:
            raise PlayerProxyError(f"{self.player} is gone")
        if not has_running_loop():
            raise PlayerProxyError(f"No event loop to send {command} to {self.player}")
        create_tracked_task(self._run_command(command))
        return True

    async def _run_command(self, command: str) -> None:
        ok = await run_in_daemon_executor(self._run_command_sync, command)
        if not ok:
            logger.debug(f"{self.player}: {command} failed")

    def _run_command_sync(self, command: str) -> bool:
        """Blocking playerctl call (run in executor)."""
        try:
            result = subprocess.run(
                ["playerctl", "-p", self.player, command],
                capture_output=True,
                text=True,
                timeout=self._timeout,
            )
            return result.returncode == 0
        except subprocess.TimeoutExpired:
            logger.debug(f"playerctl {command} timed out")
            return False
        except FileNotFoundError:
            logger.warning("playerctl not installed. Install with: sudo apt install playerctl")
            return False

    def destroy(self) -> None:
        self._destroyed = True
        super().destroy()


class PlayerctlWatcher(BasePlayerWatcher):
    """
    Announces the players ``playerctl -l`` lists.

    Usage:
        watcher = PlayerctlWatcher()
        registry = PlayerRegistry(watcher, window_manager, icon_theme)
        registry.start()
        watcher.start()
        ...
        await watcher.stop()
    """

    def __init__(self, poll_interval: Optional[float] = None, timeout: Optional[float] = None):
        super().__init__()
        self.poll_interval = poll_interval if poll_interval is not None else config.PLAYERCTL["poll_interval"]
        self._timeout = timeout if timeout is not None else config.PLAYERCTL["timeout"]
        self._proxies: Dict[str, PlayerctlProxy] = {}
        self._task: Optional[asyncio.Task] = None
        self._playerctl_available: Optional[bool] = None

    def create_proxy(self, bus_name: str) -> PlayerctlProxy:
        proxy = PlayerctlProxy(bus_name, self._timeout)
        proxy.self_destruct.connect(lambda: self._on_proxy_gone(bus_name, proxy))
        self._proxies[bus_name] = proxy
        return proxy

    def is_available(self) -> bool:
        """Check that playerctl is installed. The result is cached."""
        if self._playerctl_available is None:
            try:
                result = subprocess.run(
                    ["playerctl", "--version"],
                    capture_output=True,
                    text=True,
                    timeout=self._timeout,
                )
                self._playerctl_available = result.returncode == 0
                if self._playerctl_available:
                    logger.debug(f"playerctl found: {result.stdout.strip()}")
                else:
                    logger.warning("playerctl not available (command failed)")
            except FileNotFoundError:
                self._playerctl_available = False
                logger.warning("playerctl not installed. Install with: sudo apt install playerctl")
            except subprocess.TimeoutExpired:
                self._playerctl_available = False
                logger.warning("playerctl check timed out")
        return self._playerctl_available

    # === Polling ===

    async def poll(self) -> None:
        """One round: reconcile the player list, then refresh every proxy."""
        players = await run_in_daemon_executor(self._list_players_sync)
        if players is None:
            return

        current = {MPRIS_BUS_PREFIX + player for player in players}
        for bus_name in sorted(self.announced - current):
            self._proxies.pop(bus_name, None)
            self._name_vanished(bus_name)

        for player in players:
            bus_name = MPRIS_BUS_PREFIX + player
            if bus_name in self.announced:
                continue
            generation = self._name_appeared(bus_name)
            self._announce(bus_name, generation, pid_hint(player))

        for bus_name, proxy in list(self._proxies.items()):
            if proxy.destroyed:
                self._proxies.pop(bus_name, None)
                continue
            await proxy.refresh()

    def _list_players_sync(self) -> Optional[List[str]]:
        """
        Blocking playerctl call (run in executor).

        Returns None when playerctl couldn't be asked, so a hiccup doesn't
        look like every player quitting at once.
        """
        try:
            result = subprocess.run(
                ["playerctl", "-l"],
                capture_output=True,
                text=True,
                timeout=self._timeout,
            )
        except subprocess.TimeoutExpired:
            logger.debug("playerctl -l timed out")
            return None
        except FileNotFoundError:
            self._playerctl_available = False
            logger.warning("playerctl not installed. Install with: sudo apt install playerctl")
            return None

        # playerctl exits non-zero with "No players found"
        if result.returncode != 0:
            return []

        players = []
        for line in result.stdout.splitlines():
            player = line.strip()
            if player and player not in players:
                players.append(player)
        return players

    async def run(self) -> None:
        logger.info(f"Polling playerctl every {self.poll_interval}s")
        while True:
            try:
                await self.poll()
            except Exception as e:
                # One bad round shouldn't stop the watcher
                logger.error(f"playerctl poll failed: {e}", exc_info=True)
            await asyncio.sleep(self.poll_interval)

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = create_tracked_task(self.run())
        return self._task

    async def stop(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        for bus_name in sorted(self.announced):
            self._name_vanished(bus_name)
        self._proxies.clear()

    def _on_proxy_gone(self, bus_name: str, proxy: PlayerctlProxy) -> None:
        if self._proxies.get(bus_name) is not proxy:
            return
        self._proxies.pop(bus_name, None)
        # Forget it so the next poll announces it afresh if it's still listed
        self._name_vanished(bus_name)
