"""
Contract with the window manager / application registry.

The core never owns windows. It holds WindowCandidate snapshots whose
``handle`` indexes into a table the window manager owns, and re-validates a
handle with ``is_alive()`` before acting on it.

Dependencies: helpers, icons, signals
"""
from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Hashable, List, Optional, Sequence

from .helpers import get_numbers_from_end_of
from .icons import Icon
from .signals import Signal
from logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class WindowCandidate:
    """Read-only snapshot of one application window."""
    handle: Hashable
    pid: int
    unique_bus_name: Optional[str] = None  # GTK unique bus name of the owning process
    object_path: Optional[str] = None      # GTK window object path, e.g. /org/app/window/2
    is_normal: bool = True                 # Normal top-level that doesn't skip the taskbar

    @property
    def instance_suffix(self) -> Optional[int]:
        return get_numbers_from_end_of(self.object_path)


@dataclass(frozen=True)
class AppInfo:
    """A running (or installed) application as the window manager knows it."""
    app_id: str   # Desktop id, e.g. "org.gnome.Rhythmbox3.desktop"
    name: str
    icon: Optional[Icon] = None  # Full colour icon from the desktop file


class WindowManager(ABC):
    """
    Everything the core asks of the windowing side.

    Signals returned by windows_changed(), focus_changed() and
    window_removed() must be the same object for the same app/window so
    handlers can be disconnected later.
    """

    # === Application lookup ===

    @abstractmethod
    def lookup_app(self, desktop_id: str) -> Optional[AppInfo]:
        pass

    @abstractmethod
    def lookup_startup_wmclass(self, wmclass: str) -> Optional[AppInfo]:
        pass

    @abstractmethod
    def get_running(self) -> List[AppInfo]:
        pass

    @abstractmethod
    def search(self, keyword: str) -> List[List[str]]:
        """Groups of desktop ids matching a keyword, best group first."""
        pass

    # === Windows ===

    @abstractmethod
    def list_windows(self, app: AppInfo) -> Sequence[WindowCandidate]:
        pass

    @abstractmethod
    def is_alive(self, window: WindowCandidate) -> bool:
        pass

    @abstractmethod
    def has_focus(self, window: WindowCandidate) -> bool:
        pass

    @abstractmethod
    def user_time(self, window: WindowCandidate) -> int:
        """Timestamp of the last user interaction with the window."""
        pass

    @abstractmethod
    def can_minimize(self, window: WindowCandidate) -> bool:
        pass

    @abstractmethod
    def minimize(self, window: WindowCandidate) -> None:
        pass

    @abstractmethod
    def activate_window(self, window: WindowCandidate) -> None:
        pass

    @abstractmethod
    def activate_app(self, app: AppInfo) -> None:
        pass

    # === Notifications ===

    @abstractmethod
    def windows_changed(self, app: AppInfo) -> Signal:
        pass

    @abstractmethod
    def focus_changed(self, window: WindowCandidate) -> Signal:
        pass

    @abstractmethod
    def window_removed(self, window: WindowCandidate) -> Signal:
        pass


class NullWindowManager(WindowManager):
    """
    A session without window information (headless, or an unsupported
    compositor). Every identity lookup fails, so records degrade to the
    no-window path and raise their player over MPRIS instead.
    """

    def __init__(self):
        self._signals: Dict[Any, Signal] = {}

    def _signal(self, key) -> Signal:
        if key not in self._signals:
            self._signals[key] = Signal(str(key[0]))
        return self._signals[key]

    def lookup_app(self, desktop_id):
        return None

    def lookup_startup_wmclass(self, wmclass):
        return None

    def get_running(self):
        return []

    def search(self, keyword):
        return []

    def list_windows(self, app):
        return []

    def is_alive(self, window):
        return False

    def has_focus(self, window):
        return False

    def user_time(self, window):
        return 0

    def can_minimize(self, window):
        return False

    def minimize(self, window):
        pass

    def activate_window(self, window):
        pass

    def activate_app(self, app):
        pass

    def windows_changed(self, app):
        return self._signal(("windows-changed", app.app_id))

    def focus_changed(self, window):
        return self._signal(("focus-changed", window.handle))

    def window_removed(self, window):
        return self._signal(("window-removed", window.handle))


def resolve_application(
    window_manager: WindowManager,
    desktop_entry: Optional[str],
    identity: Optional[str],
) -> Optional[AppInfo]:
    """
    Find the application behind an MPRIS player.

    The desktop id lookup covers most apps. Flatpak and snap players often
    publish a DesktopEntry that differs from their installed .desktop file,
    hence the extra steps. In
    order: exact desktop id, startup WM class, running app whose name equals
    the identity (case-insensitive), then a keyword search whose hits must
    also match the identity by name.

    Returns None when nothing matches; the player then simply has no window.
    """
    lc_identity = identity.lower() if identity else ""

    app = None
    if desktop_entry:
        app = window_manager.lookup_app(f"{desktop_entry}.desktop")
    if app is None and identity:
        app = window_manager.lookup_startup_wmclass(identity)
    if app is None and lc_identity:
        app = next((a for a in window_manager.get_running() if a.name.lower() == lc_identity), None)
    if app is None and desktop_entry and lc_identity:
        # Exact name equality on search hits. A substring match would find
        # more apps but also more wrong ones.
        for group in window_manager.search(desktop_entry):
            if not group:
                continue
            candidate = window_manager.lookup_app(group[0])
            if candidate and candidate.name.lower() == lc_identity:
                app = candidate
                break

    if app is None:
        logger.debug(f"No application found for desktop entry '{desktop_entry}' / identity '{identity}'")
    return app
