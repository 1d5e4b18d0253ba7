"""
One MPRIS player as the indicator sees it.

A PlayerRecord joins the remote player's state (via its proxy) with the
window of the application instance behind it (via InstanceTracker), and
exposes what the presentation layer and the arbiter need.

Dependencies: helpers, icons, image, signals, windowing, windows, sources.base
"""
from __future__ import annotations
from typing import Callable, Optional

from .helpers import monotonic_ticks
from .icons import Icon, IconTheme, fallback_icon, mimetype_icon, symbolic_icon_for
from .image import CoverArtFetcher
from .signals import Signal, SignalTracker
from .sources.base import BasePlayerProxy, PlayerCapability, PlayerProxyError
from .windowing import WindowManager, resolve_application
from .windows import InstanceTracker
from logging_config import get_logger

logger = get_logger(__name__)


class PlayerRecord:
    """
    Signals:
        status_changed(record)            playback status or window focus changed
        icon_changed(record)              refresh_icon() picked a different icon
        metadata_changed(record, name)    artist, title, capabilities, identity
        destruct_requested(record)        the proxy gave up on the player
    """

    def __init__(
        self,
        bus_name: str,
        pid: int,
        proxy: BasePlayerProxy,
        window_manager: WindowManager,
        icon_theme: IconTheme,
    ):
        self.bus_name = bus_name
        self.pid = pid
        self.status_changed = Signal("status-changed")
        self.icon_changed = Signal("icon-changed")
        self.metadata_changed = Signal("metadata-changed")
        self.destruct_requested = Signal("destruct-requested")

        self._proxy = proxy
        self._wm = window_manager
        self._theme = icon_theme
        self._tracker: Optional[InstanceTracker] = None
        self._tracker_focus_id: Optional[int] = None
        # Activation time survives tracker replacement so it never goes backwards
        self._activated_floor = 0
        self._icon = fallback_icon()
        self._status_changed_at = monotonic_ticks()
        self._destroyed = False
        self.cover = CoverArtFetcher(self._icon)

        self._signals = SignalTracker()
        self._signals.push(proxy.changed, self._on_property_changed)
        self._signals.push(proxy.self_destruct, self._on_self_destruct)

        # Pick up whatever the proxy already knows
        if proxy.desktop_entry or proxy.player_name:
            self._resolve_application()
        self.refresh_icon()
        self.cover.set_target(proxy.cover_url)

    # === Derived fields ===

    @property
    def proxy(self) -> BasePlayerProxy:
        return self._proxy

    @property
    def tracker(self) -> Optional[InstanceTracker]:
        return self._tracker

    @property
    def icon(self) -> Icon:
        return self._icon

    @property
    def player_name(self) -> str:
        return self._proxy.player_name

    @property
    def desktop_entry(self) -> str:
        return self._proxy.desktop_entry

    @property
    def artist(self) -> str:
        # Tracks without an artist show the player's name instead
        return self._proxy.artist or self._proxy.player_name

    @property
    def title(self) -> str:
        return self._proxy.title

    @property
    def accessible_name(self) -> str:
        # Empty when the artist line already shows the player name
        if self.artist == self.player_name:
            return ""
        return self.player_name

    @property
    def focused(self) -> bool:
        return self._tracker.focused if self._tracker else False

    @property
    def last_activated_time(self) -> int:
        current = self._tracker.user_time if self._tracker else 0
        return max(self._activated_floor, current)

    @property
    def playback_status(self):
        return self._proxy.playback_status

    @property
    def playback_status_rank(self) -> int:
        return int(self._proxy.playback_status)

    @property
    def status_changed_at(self) -> int:
        return self._status_changed_at

    @property
    def can_go_previous(self) -> bool:
        return bool(self._proxy.capabilities & PlayerCapability.PREVIOUS)

    @property
    def can_play_pause_stop(self) -> bool:
        return bool(self._proxy.capabilities & PlayerCapability.PLAY_PAUSE_STOP)

    @property
    def can_go_next(self) -> bool:
        return bool(self._proxy.capabilities & PlayerCapability.NEXT)

    # === Commands ===

    def previous(self) -> bool:
        if not self.can_go_previous:
            return False
        return self._send(self._proxy.previous)

    def play_pause_or_stop(self) -> bool:
        if not self.can_play_pause_stop:
            return False
        return self._send(self._proxy.play_pause_stop)

    def next(self) -> bool:
        if not self.can_go_next:
            return False
        return self._send(self._proxy.next)

    def activate_or_minimize(self, allow_minimize: bool = False) -> bool:
        """
        Bring the player forward, or minimize it if it's already focused.

        Without a known application the player is asked to raise itself.
        Returns whether anything was done.
        """
        if self._tracker is not None:
            return self._tracker.toggle_window(allow_minimize)
        return self._send(self._proxy.raise_)

    def refresh_icon(self) -> bool:
        """
        Re-pick the player icon. Returns True if the icon actually changed,
        so callers can skip repainting otherwise.
        """
        icon = (
            symbolic_icon_for(self._proxy.desktop_entry, self._theme)
            or (self._tracker.get_icon() if self._tracker else None)
            or mimetype_icon(self._proxy.mimetype_icon_name)
        )
        if icon == self._icon:
            return False
        self._icon = icon
        self.cover.set_fallback_icon(icon)
        return True

    def sort_key(self):
        """Arbiter ranking key, compared descending."""
        return (
            self.focused,
            self.playback_status_rank,
            self.last_activated_time,
            self.status_changed_at,
        )

    def destroy(self) -> None:
        if self._destroyed:
            return
        self._destroyed = True
        self._signals.disconnect_all()
        self._drop_tracker()
        self.cover.destroy()
        self._proxy.destroy()
        self.status_changed.clear()
        self.icon_changed.clear()
        self.metadata_changed.clear()
        self.destruct_requested.clear()

    # === Internals ===

    def _send(self, command: Callable[[], bool]) -> bool:
        try:
            return bool(command())
        except PlayerProxyError as e:
            logger.debug(f"{self.bus_name}: {getattr(command, '__name__', 'command')} failed: {e}")
            return False

    def _on_property_changed(self, name: str) -> None:
        if name == "playback_status":
            self._status_changed_at = max(self._status_changed_at, monotonic_ticks())
            self.status_changed.emit(self)
        elif name in ("desktop_entry", "player_name"):
            self._resolve_application()
            self._refresh_and_notify()
            self.metadata_changed.emit(self, name)
            # Focus may have come with the new window
            self.status_changed.emit(self)
        elif name == "mimetype_icon_name":
            self._refresh_and_notify()
        elif name == "cover_url":
            self.cover.set_target(self._proxy.cover_url)
        elif name == "name_owner":
            # GTK windows are matched against the name owner
            if self._tracker is not None:
                self._resolve_application()
                self.status_changed.emit(self)
        else:
            self.metadata_changed.emit(self, name)

    def _on_self_destruct(self, *args) -> None:
        self.destruct_requested.emit(self)

    def _refresh_and_notify(self) -> None:
        if self.refresh_icon():
            self.icon_changed.emit(self)

    def _resolve_application(self) -> None:
        self._drop_tracker()
        app = resolve_application(self._wm, self._proxy.desktop_entry, self._proxy.player_name)
        if app is None:
            return
        logger.debug(f"{self.bus_name} belongs to {app.app_id}")
        self._tracker = InstanceTracker(
            self._wm,
            app,
            self.bus_name,
            self.pid,
            self._proxy.name_owner,
        )
        self._tracker_focus_id = self._tracker.focus_changed.connect(self._on_focus_changed)

    def _drop_tracker(self) -> None:
        if self._tracker is not None:
            self._activated_floor = max(self._activated_floor, self._tracker.user_time)
            self._tracker.focus_changed.disconnect(self._tracker_focus_id)
            self._tracker.destroy()
        self._tracker = None
        self._tracker_focus_id = None

    def _on_focus_changed(self, tracker) -> None:
        self.status_changed.emit(self)

    def __repr__(self) -> str:
        return f"<PlayerRecord {self.bus_name} pid={self.pid} status={self.playback_status.name}>"
