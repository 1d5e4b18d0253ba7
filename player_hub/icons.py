"""
Icon values and theme lookups.

Dependencies: state
"""
from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable, Optional

from .state import FALLBACK_ICON_NAME, CLIENT_ICON_SUFFIX_PLAYERS

THEMED = "themed"
BYTES = "bytes"


@dataclass(frozen=True)
class Icon:
    """
    Something the presentation layer can draw.

    Themed icons are looked up by name in the current icon theme. Bytes icons
    carry decoded-and-validated image data (cover art) and use the source URI
    as their name. Two icons are equal when every field matches, which is what
    refresh_icon() uses to skip redundant repaints.
    """
    name: str
    symbolic: bool = False
    kind: str = THEMED
    data: Optional[bytes] = None

    @property
    def is_photo(self) -> bool:
        return self.kind == BYTES


class IconTheme(ABC):
    """The subset of an icon theme the core needs."""

    @abstractmethod
    def has_icon(self, name: str) -> bool:
        pass


class StaticIconTheme(IconTheme):
    """A fixed set of icon names. Used headless and in tests."""

    def __init__(self, names: Iterable[str] = ()):
        self.names = set(names)

    def has_icon(self, name: str) -> bool:
        return name in self.names


def fallback_icon() -> Icon:
    return Icon(FALLBACK_ICON_NAME, symbolic=True)


def symbolic_icon_for(desktop_entry: Optional[str], theme: IconTheme) -> Optional[Icon]:
    """
    The player's own symbolic icon, if the theme has one.

    Icons are named after the desktop entry, except for players listed in
    CLIENT_ICON_SUFFIX_PLAYERS ("spotify" ships "spotify-client"), for which
    both spellings are tried.
    """
    if not desktop_entry:
        return None
    names = [f"{desktop_entry}-symbolic"]
    if desktop_entry.lower() in CLIENT_ICON_SUFFIX_PLAYERS:
        names.append(f"{desktop_entry}-client-symbolic")
    name = next((n for n in names if theme.has_icon(n)), None)
    return Icon(name, symbolic=True) if name else None


def mimetype_icon(icon_name: Optional[str]) -> Icon:
    """Symbolic icon loosely representing the track's media type."""
    return Icon(icon_name or FALLBACK_ICON_NAME, symbolic=True)
