"""Pytest configuration, shared fixtures and fake collaborators"""
import itertools
import os
import sys
import tempfile

# Keep settings.json and logs out of the repo while testing.
# Must happen before config/settings are imported anywhere.
_TMP_DIR = tempfile.mkdtemp(prefix="mpris_indicator_tests_")
os.environ.setdefault("MPRIS_INDICATOR_SETTINGS_FILE", os.path.join(_TMP_DIR, "settings.json"))
os.environ.setdefault("MPRIS_INDICATOR_LOGS_DIR", os.path.join(_TMP_DIR, "logs"))

# Add parent directory to path to import the app modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest

from player_hub.icons import Icon, StaticIconTheme
from player_hub.signals import Signal
from player_hub.sources.base import (
    BasePlayerProxy,
    BasePlayerWatcher,
    PlayerCapability,
)
from player_hub.windowing import AppInfo, WindowCandidate, WindowManager

ALL_CAPABILITIES = (
    PlayerCapability.PREVIOUS
    | PlayerCapability.PLAY_PAUSE_STOP
    | PlayerCapability.NEXT
    | PlayerCapability.RAISE
)


class FakeWindowManager(WindowManager):
    """In-memory window manager. Tests drive it with add_window/set_focus/..."""

    def __init__(self):
        self.apps = {}           # desktop id -> AppInfo
        self.wmclasses = {}      # startup wm class -> AppInfo
        self.running = []
        self.search_results = {}
        self.windows = {}        # app_id -> [WindowCandidate]
        self.alive = set()       # handles
        self.focused_handle = None
        self.user_times = {}
        self.minimizable = set()
        self.calls = []
        self._signals = {}

    def _signal(self, key):
        if key not in self._signals:
            self._signals[key] = Signal(key[0])
        return self._signals[key]

    # --- test helpers ---

    def add_app(self, app_id, name, icon=None, running=True):
        app = AppInfo(app_id, name, icon)
        self.apps[app_id] = app
        if running:
            self.running.append(app)
        return app

    def add_window(self, app, window, user_time=0, minimizable=True):
        self.windows.setdefault(app.app_id, []).append(window)
        self.alive.add(window.handle)
        self.user_times[window.handle] = user_time
        if minimizable:
            self.minimizable.add(window.handle)
        self.windows_changed(app).emit(app)
        return window

    def remove_window(self, app, window):
        self.windows[app.app_id] = [w for w in self.windows.get(app.app_id, []) if w != window]
        self.alive.discard(window.handle)
        if self.focused_handle == window.handle:
            self.focused_handle = None
        self.window_removed(window).emit(window)
        self.windows_changed(app).emit(app)

    def set_focus(self, window, user_time=None):
        old = self.focused_handle
        self.focused_handle = window.handle if window is not None else None
        if window is not None and user_time is not None:
            self.user_times[window.handle] = user_time
        for handle in {old, self.focused_handle} - {None}:
            self._signal(("focus-changed", handle)).emit()

    def handler_count(self):
        return sum(len(s) for s in self._signals.values())

    # --- WindowManager ---

    def lookup_app(self, desktop_id):
        return self.apps.get(desktop_id)

    def lookup_startup_wmclass(self, wmclass):
        return self.wmclasses.get(wmclass)

    def get_running(self):
        return list(self.running)

    def search(self, keyword):
        return self.search_results.get(keyword, [])

    def list_windows(self, app):
        return list(self.windows.get(app.app_id, []))

    def is_alive(self, window):
        return window.handle in self.alive

    def has_focus(self, window):
        return window.handle == self.focused_handle

    def user_time(self, window):
        return self.user_times.get(window.handle, 0)

    def can_minimize(self, window):
        return window.handle in self.minimizable

    def minimize(self, window):
        self.calls.append(("minimize", window.handle))

    def activate_window(self, window):
        self.calls.append(("activate_window", window.handle))

    def activate_app(self, app):
        self.calls.append(("activate_app", app.app_id))

    def windows_changed(self, app):
        return self._signal(("windows-changed", app.app_id))

    def focus_changed(self, window):
        return self._signal(("focus-changed", window.handle))

    def window_removed(self, window):
        return self._signal(("window-removed", window.handle))


class FakeProxy(BasePlayerProxy):
    """Records commands instead of sending them."""

    def __init__(self, bus_name, name_owner=""):
        super().__init__(bus_name, name_owner)
        self.capabilities = ALL_CAPABILITIES
        self.commands = []
        self.result = True
        self.error = None
        self.destroyed = False

    def _command(self, name):
        self.commands.append(name)
        if self.error is not None:
            raise self.error
        return self.result

    def previous(self):
        return self._command("previous")

    def play_pause_stop(self):
        return self._command("play_pause_stop")

    def next(self):
        return self._command("next")

    def raise_(self):
        return self._command("raise")

    def destroy(self):
        self.destroyed = True
        super().destroy()


class FakeWatcher(BasePlayerWatcher):
    """Watcher whose events are fired by the test."""

    def __init__(self):
        super().__init__()
        self.proxies = {}
        self.created = []
        self.initial = {}  # bus name -> properties for the next proxy

    def create_proxy(self, bus_name):
        proxy = FakeProxy(bus_name)
        props = self.initial.get(bus_name)
        if props:
            proxy.update(**props)
        self.proxies[bus_name] = proxy
        self.created.append(proxy)
        return proxy

    def appear(self, bus_name, pid=0):
        generation = self._name_appeared(bus_name)
        self._announce(bus_name, generation, pid)
        return generation

    def vanish(self, bus_name):
        self._name_vanished(bus_name)


@pytest.fixture
def wm():
    return FakeWindowManager()


@pytest.fixture
def theme():
    return StaticIconTheme()


@pytest.fixture
def watcher():
    return FakeWatcher()


@pytest.fixture
def registry(watcher, wm, theme):
    from player_hub.registry import PlayerRegistry

    reg = PlayerRegistry(watcher, wm, theme)
    reg.start()
    yield reg
    reg.stop()


@pytest.fixture
def make_record(wm, theme):
    """Build PlayerRecords over FakeProxies; all are destroyed at teardown."""
    from player_hub.player import PlayerRecord

    records = []

    def _make(bus_name="org.mpris.MediaPlayer2.test", pid=100, **props):
        proxy = FakeProxy(bus_name)
        if props:
            proxy.update(**props)
        record = PlayerRecord(bus_name, pid, proxy, wm, theme)
        records.append(record)
        return record

    yield _make
    for record in records:
        record.destroy()


def window(handle, pid=100, unique_bus_name=None, object_path=None, is_normal=True):
    return WindowCandidate(handle, pid, unique_bus_name, object_path, is_normal)


def app_icon(name="rhythmbox"):
    return Icon(name, symbolic=False)


@pytest.fixture(autouse=True)
def ticks(monkeypatch):
    """Deterministic status change timestamps: every call is one tick later."""
    counter = itertools.count(1000)
    monkeypatch.setattr("player_hub.player.monotonic_ticks", lambda: next(counter))
    return counter
