"""
Shared State Module for player_hub package.
Contains constants and the background task registry.

CRITICAL: This module imports NOTHING from the player_hub package to prevent
circular imports.
"""
from __future__ import annotations

# ==========================================
# ICON NAMES
# ==========================================

# Last resort for every icon fallback chain
FALLBACK_ICON_NAME = "audio-x-generic-symbolic"
VIDEO_ICON_NAME = "video-x-generic-symbolic"

# Some players ship an icon named after their binary rather than their
# desktop entry (spotify -> spotify-client)
CLIENT_ICON_SUFFIX_PLAYERS = ("spotify",)

# ==========================================
# COVER ICON OPACITY
# ==========================================

FULL_OPACITY = 255   # Real cover art and full colour app icons
HOVER_OPACITY = 204  # Symbolic icon while the parent row is hovered
BASE_OPACITY = 153   # Symbolic icon at rest

# ==========================================
# MPRIS
# ==========================================

MPRIS_BUS_PREFIX = "org.mpris.MediaPlayer2."

# ==========================================
# TASK TRACKING
# ==========================================

# Global set to track background tasks and prevent garbage collection
_background_tasks: set = set()
