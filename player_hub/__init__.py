"""
player_hub package - MPRIS player tracking for a panel indicator.

External code can use:
    from player_hub import PlayerRegistry, IndicatorController, PlayerctlWatcher

The internal structure is:
    state.py      - Constants and the background task registry
    helpers.py    - Executor, task tracking and small utilities
    signals.py    - Signal / SignalTracker observer primitives
    icons.py      - Icon values and icon theme lookups
    windowing.py  - Window manager contract and application lookup
    windows.py    - Window matching and per-instance focus tracking
    image.py      - Asynchronous cover art loading
    player.py     - PlayerRecord, one MPRIS player
    registry.py   - Player registry and active player arbitration
    indicator.py  - Input routing and indicator state
    sources/      - Player watchers and proxies (playerctl)
"""

# --- Level 0: State ---
from .state import (
    FALLBACK_ICON_NAME,
    VIDEO_ICON_NAME,
    FULL_OPACITY,
    HOVER_OPACITY,
    BASE_OPACITY,
    MPRIS_BUS_PREFIX,
)

# --- Level 1: Helpers and primitives ---
from .helpers import (
    create_tracked_task,
    run_in_daemon_executor,
    shutdown_daemon_executor,
    get_numbers_from_end_of,
)
from .signals import Signal, SignalTracker
from .icons import Icon, IconTheme, StaticIconTheme, fallback_icon, symbolic_icon_for, mimetype_icon

# --- Level 2: Windowing ---
from .windowing import (
    AppInfo,
    NullWindowManager,
    WindowCandidate,
    WindowManager,
    resolve_application,
)
from .windows import InstanceTracker, match_window

# --- Level 2: Sources ---
from .sources import (
    BasePlayerProxy,
    BasePlayerWatcher,
    PlaybackStatus,
    PlayerCapability,
    PlayerProxyError,
    PlayerctlProxy,
    PlayerctlWatcher,
)

# --- Level 3: Players ---
from .image import CoverArtError, CoverArtFetcher, load_image_bytes
from .player import PlayerRecord
from .registry import PlayerRegistry, rank_players

# --- Level 4: Presentation ---
from .indicator import IndicatorController, Key, ScrollDirection, route_player_key
