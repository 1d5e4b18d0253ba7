"""
Player sources.

Usage:
    from player_hub.sources import PlayerctlWatcher

    watcher = PlayerctlWatcher()
    registry = PlayerRegistry(watcher, window_manager, icon_theme)
"""
from .base import (
    BasePlayerProxy,
    BasePlayerWatcher,
    PlaybackStatus,
    PlayerCapability,
    PlayerProxyError,
)
from .playerctl import PlayerctlProxy, PlayerctlWatcher

__all__ = [
    "BasePlayerProxy",
    "BasePlayerWatcher",
    "PlaybackStatus",
    "PlayerCapability",
    "PlayerProxyError",
    "PlayerctlProxy",
    "PlayerctlWatcher",
]
