"""
Base classes for player sources.

A source is split in two:

* a watcher (BasePlayerWatcher) that notices MPRIS players appearing,
  vanishing and changing owner, and creates proxies for them;
* a proxy (BasePlayerProxy) per player that mirrors the player's properties
  and forwards transport commands.

To add a new backend, subclass both and pass the watcher to PlayerRegistry.
"""
from __future__ import annotations
import itertools
from abc import ABC, abstractmethod
from enum import Flag, IntEnum, auto
from typing import Any, Dict, Optional, Set

from ..signals import Signal
from logging_config import get_logger

logger = get_logger(__name__)


class PlayerProxyError(Exception):
    """A property read or command failed on the remote player."""


class PlaybackStatus(IntEnum):
    """Ordered by relevance: a playing player outranks a paused one."""
    STOPPED = 0
    PAUSED = 1
    PLAYING = 2

    @classmethod
    def from_string(cls, value: Optional[str]) -> "PlaybackStatus":
        """MPRIS PlaybackStatus string -> enum. Anything unknown counts as stopped."""
        if not value:
            return cls.STOPPED
        return {
            "playing": cls.PLAYING,
            "paused": cls.PAUSED,
        }.get(value.strip().lower(), cls.STOPPED)


class PlayerCapability(Flag):
    """
    Commands a player currently accepts.

    Use bitwise OR to combine: PREVIOUS | NEXT
    Check with bitwise AND: if proxy.capabilities & PlayerCapability.NEXT
    """
    NONE = 0
    PREVIOUS = auto()
    PLAY_PAUSE_STOP = auto()
    NEXT = auto()
    RAISE = auto()


class BasePlayerProxy(ABC):
    """
    Mirror of one remote MPRIS player.

    Properties are plain attributes. Backends change them through update(),
    which emits ``changed(name)`` once per property whose value actually
    changed. ``self_destruct()`` is emitted when the backend decides the
    player is gone for good (e.g. it stopped answering).

    Required methods:
        previous(), play_pause_stop(), next(), raise_()
        Each returns True if the command was sent and may raise
        PlayerProxyError.
    """

    PROPERTIES = (
        "playback_status",
        "artist",
        "title",
        "player_name",
        "desktop_entry",
        "mimetype_icon_name",
        "cover_url",
        "capabilities",
        "name_owner",
    )

    def __init__(self, bus_name: str, name_owner: str = ""):
        self.bus_name = bus_name
        self.name_owner = name_owner
        self.playback_status = PlaybackStatus.STOPPED
        self.artist = ""
        self.title = ""
        self.player_name = ""      # MPRIS Identity
        self.desktop_entry = ""    # MPRIS DesktopEntry, without ".desktop"
        self.mimetype_icon_name = ""
        self.cover_url: Optional[str] = None
        self.capabilities = PlayerCapability.NONE
        self.changed = Signal("changed")
        self.self_destruct = Signal("self-destruct")

    def update(self, **properties: Any) -> Set[str]:
        """
        Apply new property values and notify about the ones that changed.

        Returns:
            Names of the properties that changed
        """
        changed = set()
        for name, value in properties.items():
            if name not in self.PROPERTIES:
                raise AttributeError(f"Unknown player property: {name}")
            if getattr(self, name) != value:
                setattr(self, name, value)
                changed.add(name)
        # Emit in declaration order so listeners see a stable sequence
        for name in self.PROPERTIES:
            if name in changed:
                self.changed.emit(name)
        return changed

    @abstractmethod
    def previous(self) -> bool:
        pass

    @abstractmethod
    def play_pause_stop(self) -> bool:
        """Play/pause, or stop for players that can't pause (live streams)."""
        pass

    @abstractmethod
    def next(self) -> bool:
        pass

    @abstractmethod
    def raise_(self) -> bool:
        """Ask the player to bring its own window to the front."""
        pass

    def destroy(self) -> None:
        self.changed.clear()
        self.self_destruct.clear()


class BasePlayerWatcher(ABC):
    """
    Announces MPRIS players to the registry.

    Signals:
        player_added(bus_name, pid)
        player_removed(bus_name)
        owner_changed(bus_name, pid)

    Backends that need asynchronous work between seeing a name and knowing
    its pid use the generation helpers: _name_appeared() hands out a
    generation, _announce() drops the announcement if the name vanished or
    changed owner in the meantime. That way a late "appeared" can never
    bring back a player after its "vanished" was delivered.
    """

    def __init__(self):
        self.player_added = Signal("player-added")
        self.player_removed = Signal("player-removed")
        self.owner_changed = Signal("owner-changed")
        self._generation_counter = itertools.count(1)
        self._generations: Dict[str, int] = {}
        self._announced: Set[str] = set()

    @abstractmethod
    def create_proxy(self, bus_name: str) -> BasePlayerProxy:
        pass

    @property
    def announced(self) -> Set[str]:
        return set(self._announced)

    def _name_appeared(self, bus_name: str) -> int:
        """A (new) owner showed up for bus_name. Returns its generation."""
        generation = next(self._generation_counter)
        self._generations[bus_name] = generation
        return generation

    def _announce(self, bus_name: str, generation: int, pid: int) -> bool:
        if self._generations.get(bus_name) != generation:
            logger.debug(f"Dropping stale announcement for {bus_name}")
            return False
        if bus_name in self._announced:
            self.owner_changed.emit(bus_name, pid)
        else:
            self._announced.add(bus_name)
            self.player_added.emit(bus_name, pid)
        return True

    def _name_vanished(self, bus_name: str) -> None:
        self._generations.pop(bus_name, None)
        if bus_name in self._announced:
            self._announced.discard(bus_name)
            self.player_removed.emit(bus_name)

    def destroy(self) -> None:
        self.player_added.clear()
        self.player_removed.clear()
        self.owner_changed.clear()
        self._generations.clear()
        self._announced.clear()
