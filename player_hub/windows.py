"""
Window matching and per-instance focus tracking.

Several instances of one player share a single application entry in the
window manager. Each instance's window is picked out by object path number,
GTK unique bus name, or pid.

Dependencies: helpers, icons, signals, windowing
"""
from __future__ import annotations
from typing import Optional, Sequence

from .helpers import get_numbers_from_end_of
from .icons import Icon
from .signals import Signal
from .windowing import AppInfo, WindowCandidate, WindowManager
from logging_config import get_logger

logger = get_logger(__name__)


def match_window(
    candidates: Sequence[WindowCandidate],
    pid: int,
    unique_bus_name: Optional[str],
    instance_suffix: Optional[int],
) -> Optional[WindowCandidate]:
    """
    Pick the window that most plausibly belongs to one player instance.

    Dialogs and taskbar-skipping windows are ignored. Each remaining window is
    checked with the first rule it has data for:

    1. Multi-window GApplications: the MPRIS instance number matches the
       number at the end of the window object path
       (org.mpris.MediaPlayer2.GnomeMpv.instance-1 = /io/github/GnomeMpv/window/1).
    2. Single instance GApplications: window and MPRIS interface share the
       same unique bus name.
    3. True multi-process players (VLC for example): same pid.

    The first window that matches wins. If none does, the app's first normal
    window is the best guess, since most players only have one.
    """
    eligible = [w for w in candidates if w.is_normal]
    for window in eligible:
        window_suffix = window.instance_suffix
        if instance_suffix is not None and window_suffix is not None:
            if window_suffix == instance_suffix:
                return window
        elif window.unique_bus_name:
            if window.unique_bus_name == unique_bus_name:
                return window
        elif window.pid == pid:
            return window
    return eligible[0] if eligible else None


class InstanceTracker:
    """
    Follows the window of one player instance and whether it has focus.

    Emits ``focus_changed(tracker)`` whenever ``focused`` flips.
    """

    def __init__(
        self,
        window_manager: WindowManager,
        app: AppInfo,
        bus_name: str,
        pid: int,
        name_owner: Optional[str],
    ):
        self.focus_changed = Signal("focus-changed")
        self._wm = window_manager
        self._app = app
        self._pid = pid
        self._instance_suffix = get_numbers_from_end_of(bus_name)
        self._name_owner = name_owner
        self._focused = False
        self._user_time = 0
        self._window: Optional[WindowCandidate] = None
        self._focus_id: Optional[int] = None
        self._removed_id: Optional[int] = None
        self._destroyed = False
        self._windows_changed_id = window_manager.windows_changed(app).connect(self._on_windows_changed)
        self._on_windows_changed()

    @property
    def app(self) -> AppInfo:
        return self._app

    @property
    def window(self) -> Optional[WindowCandidate]:
        return self._window

    @property
    def focused(self) -> bool:
        return self._focused

    @property
    def user_time(self) -> int:
        return self._user_time

    def get_icon(self) -> Optional[Icon]:
        """The application's full colour icon, if its desktop file has one."""
        icon = self._app.icon
        if icon is not None and icon.symbolic:
            return Icon(icon.name, symbolic=False, kind=icon.kind, data=icon.data)
        return icon

    def toggle_window(self, minimize: bool) -> bool:
        window = self._live_window()
        if not self._focused:
            if window is not None:
                self._wm.activate_window(window)
            else:
                self._wm.activate_app(self._app)
            return True
        if minimize and window is not None and self._wm.can_minimize(window):
            self._wm.minimize(window)
            return True
        return False

    def destroy(self) -> None:
        if self._destroyed:
            return
        self._destroyed = True
        self._wm.windows_changed(self._app).disconnect(self._windows_changed_id)
        self._release_window(notify=False)
        self.focus_changed.clear()

    def _live_window(self) -> Optional[WindowCandidate]:
        if self._window is not None and not self._wm.is_alive(self._window):
            logger.debug(f"Window {self._window.handle} of {self._app.name} went away")
            self._release_window()
        return self._window

    def _on_windows_changed(self, *args) -> None:
        # Windows opened or closed, e.g. a player restored from the tray
        window = match_window(
            self._wm.list_windows(self._app),
            self._pid,
            self._name_owner,
            self._instance_suffix,
        )
        if window != self._window:
            self._grab_window(window)

    def _grab_window(self, window: Optional[WindowCandidate]) -> None:
        if window is None:
            self._release_window()
            return
        # Keep the old focus value so the recheck below notices a change
        self._release_window(reset_focus=False)
        self._window = window
        self._focus_id = self._wm.focus_changed(window).connect(self._on_focus_changed)
        self._removed_id = self._wm.window_removed(window).connect(self._on_window_removed)
        self._on_focus_changed()

    def _on_focus_changed(self, *args) -> None:
        focused = self._window is not None and self._wm.has_focus(self._window)
        if focused != self._focused:
            if self._window is not None:
                self._user_time = max(self._user_time, self._wm.user_time(self._window))
            self._focused = focused
            self.focus_changed.emit(self)

    def _on_window_removed(self, *args) -> None:
        # Removed windows are either hidden or about to be destroyed
        self._release_window()

    def _release_window(self, notify: bool = True, reset_focus: bool = True) -> None:
        window = self._window
        if window is not None:
            if self._focus_id is not None:
                self._wm.focus_changed(window).disconnect(self._focus_id)
            if self._removed_id is not None:
                self._wm.window_removed(window).disconnect(self._removed_id)
        self._window = None
        self._focus_id = None
        self._removed_id = None
        if reset_focus and self._focused:
            self._focused = False
            if notify:
                self.focus_changed.emit(self)
