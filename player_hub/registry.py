"""
Player registry and arbiter.

Keeps one PlayerRecord per MPRIS bus name, applies the watcher's lifecycle
events and decides which player is the "active" one the indicator shows and
sends input to.

Usage:
    registry = PlayerRegistry(watcher, window_manager, icon_theme)
    registry.active_changed.connect(on_active)
    registry.start()
    ...
    registry.stop()
"""
from __future__ import annotations
from typing import Dict, List, Optional

from .icons import IconTheme
from .player import PlayerRecord
from .signals import Signal, SignalTracker
from .sources.base import BasePlayerWatcher
from .windowing import WindowManager
from logging_config import get_logger

logger = get_logger(__name__)


def rank_players(players) -> List[PlayerRecord]:
    """
    Most relevant player first.

    Descending by: focused, playback status (Playing > Paused > Stopped),
    last window activation, last status change. A focused player is what the
    user is looking at; otherwise a playing one beats a paused one; then the
    most recently used window; and for players that never had a window the
    most recent status change. The sort is stable, so full ties keep
    registration order.
    """
    return sorted(players, key=lambda record: record.sort_key(), reverse=True)


class PlayerRegistry:
    """
    Signals:
        active_changed(record or None)   the active player is a different one
        icon_changed(record)             a player's icon changed
        player_added(record)
        player_removed(record)           emitted after the record is destroyed
    """

    def __init__(
        self,
        watcher: BasePlayerWatcher,
        window_manager: WindowManager,
        icon_theme: IconTheme,
    ):
        self.active_changed = Signal("active-changed")
        self.icon_changed = Signal("icon-changed")
        self.player_added = Signal("player-added")
        self.player_removed = Signal("player-removed")

        self._watcher = watcher
        self._wm = window_manager
        self._theme = icon_theme
        self._players: Dict[str, PlayerRecord] = {}
        self._player_signals: Dict[str, SignalTracker] = {}
        self._active: Optional[PlayerRecord] = None
        self._signals = SignalTracker()
        self._started = False

    # === Lifecycle ===

    def start(self) -> None:
        if self._started:
            return
        self._started = True
        self._signals.push(self._watcher.player_added, self.source_appeared)
        self._signals.push(self._watcher.player_removed, self.source_vanished)
        self._signals.push(self._watcher.owner_changed, self.owner_changed)
        logger.info("Player registry started")

    def stop(self) -> None:
        """Disconnect from the watcher and destroy every record before returning."""
        self._signals.disconnect_all()
        removed = [self._detach_player(bus_name) for bus_name in list(self._players)]
        self._started = False
        self._set_active(None)
        for record in removed:
            self.player_removed.emit(record)
        logger.info("Player registry stopped")

    # === Watcher events ===

    def source_appeared(self, bus_name: str, pid: int) -> None:
        removed = None
        if bus_name in self._players:
            # Vanished is always delivered first, so this is a backend bug.
            # Replace rather than keep two records for one name.
            logger.warning(f"{bus_name} appeared twice, replacing the old player")
            removed = self._detach_player(bus_name)
        record = self._attach_player(bus_name, pid)
        self._update_active()
        if removed is not None:
            self.player_removed.emit(removed)
        self.player_added.emit(record)

    def source_vanished(self, bus_name: str) -> None:
        record = self._detach_player(bus_name)
        if record is None:
            return
        self._update_active()
        self.player_removed.emit(record)

    def owner_changed(self, bus_name: str, pid: int) -> None:
        """Same name, different process: rebuild the record from scratch."""
        removed = self._detach_player(bus_name)
        record = self._attach_player(bus_name, pid)
        # Observers only hear about it once both halves are done
        self._update_active()
        if removed is not None:
            self.player_removed.emit(removed)
        self.player_added.emit(record)

    # === Queries ===

    @property
    def active(self) -> Optional[PlayerRecord]:
        return self._active

    @property
    def players(self) -> List[PlayerRecord]:
        return list(self._players.values())

    def get(self, bus_name: str) -> Optional[PlayerRecord]:
        return self._players.get(bus_name)

    def ranked(self) -> List[PlayerRecord]:
        return rank_players(self._players.values())

    def pick_active(self) -> Optional[PlayerRecord]:
        ranked = self.ranked()
        return ranked[0] if ranked else None

    def refresh_icons(self) -> bool:
        """Re-pick every player icon (e.g. the icon theme changed)."""
        any_changed = False
        for record in list(self._players.values()):
            if record.refresh_icon():
                any_changed = True
                self.icon_changed.emit(record)
        return any_changed

    def __len__(self) -> int:
        return len(self._players)

    def __contains__(self, bus_name: str) -> bool:
        return bus_name in self._players

    # === Internals ===

    def _attach_player(self, bus_name: str, pid: int) -> PlayerRecord:
        proxy = self._watcher.create_proxy(bus_name)
        record = PlayerRecord(bus_name, pid, proxy, self._wm, self._theme)
        signals = SignalTracker()
        signals.push(record.status_changed, self._on_status_changed)
        signals.push(record.icon_changed, self._on_icon_changed)
        signals.push(record.destruct_requested, self._on_destruct_requested)
        self._players[bus_name] = record
        self._player_signals[bus_name] = signals
        logger.info(f"Player added: {bus_name} (pid {pid})")
        return record

    def _detach_player(self, bus_name: str) -> Optional[PlayerRecord]:
        record = self._players.pop(bus_name, None)
        signals = self._player_signals.pop(bus_name, None)
        if signals is not None:
            signals.disconnect_all()
        if record is None:
            return None
        record.destroy()
        logger.info(f"Player removed: {bus_name}")
        return record

    def _on_status_changed(self, record: PlayerRecord) -> None:
        self._update_active()

    def _on_icon_changed(self, record: PlayerRecord) -> None:
        self.icon_changed.emit(record)

    def _on_destruct_requested(self, record: PlayerRecord) -> None:
        if self._players.get(record.bus_name) is record:
            self.source_vanished(record.bus_name)

    def _update_active(self) -> None:
        self._set_active(self.pick_active())

    def _set_active(self, record: Optional[PlayerRecord]) -> None:
        if record is self._active:
            return
        self._active = record
        logger.debug(f"Active player: {record.bus_name if record else None}")
        self.active_changed.emit(record)
