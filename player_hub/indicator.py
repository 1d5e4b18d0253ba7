"""
Presentation-facing controller for the panel indicator.

Turns registry state into what the status icon shows and routes pointer and
keyboard input to the active player. Every handle_* method returns True when
the event was consumed; False means the shell should apply its default
behaviour (usually opening the menu).
"""
from __future__ import annotations
from enum import Enum
from typing import Optional

import config
from .icons import Icon
from .player import PlayerRecord
from .registry import PlayerRegistry
from .signals import Signal, SignalTracker
from logging_config import get_logger

logger = get_logger(__name__)

MIDDLE_BUTTON = 2
RIGHT_BUTTON = 3


class ScrollDirection(Enum):
    UP = "up"
    DOWN = "down"
    LEFT = "left"
    RIGHT = "right"
    SMOOTH = "smooth"


class Key(Enum):
    SPACE = "space"
    LEFT = "Left"
    RIGHT = "Right"


def route_player_key(record: PlayerRecord, key: Key, ctrl: bool) -> bool:
    """Ctrl+Space play/pause, Ctrl+Left previous, Ctrl+Right next."""
    if not ctrl:
        return False
    if key == Key.SPACE:
        return record.play_pause_or_stop()
    if key == Key.LEFT:
        return record.previous()
    if key == Key.RIGHT:
        return record.next()
    return False


class IndicatorController:
    """
    Signals:
        icon_changed(icon or None)   repaint the status icon
        visibility_changed(bool)     show/hide the indicator
        close_menu()                 a player window was brought forward
    """

    def __init__(
        self,
        registry: PlayerRegistry,
        minimize_on_right_click: Optional[bool] = None,
        scroll_controls: Optional[bool] = None,
    ):
        self.icon_changed = Signal("icon-changed")
        self.visibility_changed = Signal("visibility-changed")
        self.close_menu = Signal("close-menu")

        if minimize_on_right_click is None:
            minimize_on_right_click = config.INDICATOR["minimize_on_right_click"]
        if scroll_controls is None:
            scroll_controls = config.INDICATOR["scroll_controls"]
        self.minimize_on_right_click = minimize_on_right_click
        self.scroll_controls = scroll_controls

        self._registry = registry
        self.icon: Optional[Icon] = None
        self.visible = False
        self._signals = SignalTracker()
        self._signals.push(registry.active_changed, self._on_active_changed)
        self._signals.push(registry.icon_changed, self._on_player_icon_changed)
        self._signals.push(registry.player_added, self._on_players_changed)
        self._signals.push(registry.player_removed, self._on_players_changed)
        self._sync()

    @property
    def active(self) -> Optional[PlayerRecord]:
        return self._registry.active

    # === Input ===

    def handle_button_press(self, button: int) -> bool:
        """Middle click play/pause, right click raise (or minimize)."""
        player = self.active
        if player is None:
            return False
        if button == MIDDLE_BUTTON:
            return player.play_pause_or_stop()
        if button == RIGHT_BUTTON:
            was_focused = player.focused
            if player.activate_or_minimize(self.minimize_on_right_click):
                if not was_focused:
                    self.close_menu.emit()
                return True
        return False

    def handle_scroll(self, direction: ScrollDirection) -> bool:
        """
        Scroll up previous, scroll down next. Other directions have no
        meaning here and are passed through.
        """
        if not self.scroll_controls:
            return False
        player = self.active
        if player is None:
            return False
        if direction == ScrollDirection.UP:
            return player.previous()
        if direction == ScrollDirection.DOWN:
            return player.next()
        return False

    def handle_key_press(self, key: Key, ctrl: bool) -> bool:
        player = self.active
        if player is None:
            return False
        return route_player_key(player, key, ctrl)

    def destroy(self) -> None:
        self._signals.disconnect_all()
        self.icon_changed.clear()
        self.visibility_changed.clear()
        self.close_menu.clear()
        self.icon = None

    # === Registry events ===

    def _on_active_changed(self, record: Optional[PlayerRecord]) -> None:
        self._sync()

    def _on_player_icon_changed(self, record: PlayerRecord) -> None:
        if record is self.active:
            self._sync()

    def _on_players_changed(self, record: PlayerRecord) -> None:
        self._sync()

    def _sync(self) -> None:
        visible = len(self._registry) > 0
        player = self.active
        icon = player.icon if player is not None else None
        if icon != self.icon:
            self.icon = icon
            self.icon_changed.emit(icon)
        if visible != self.visible:
            self.visible = visible
            self.visibility_changed.emit(visible)
