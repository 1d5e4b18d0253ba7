"""
Cover art loading for player_hub package.

What the cover slot shows, best first:
1. The actual cover art (fetched here)
2. The player's symbolic icon
3. The player's full colour icon
4. A symbolic icon loosely representing the track's media type
5. If all else fails the audio mimetype symbolic icon
Levels 2-5 are chosen by PlayerRecord.refresh_icon() and handed in with
set_fallback_icon().

Dependencies: state, helpers, icons, signals
"""
from __future__ import annotations
import asyncio
from io import BytesIO
from pathlib import Path
from typing import Optional
from urllib.parse import unquote, urlparse

import requests
from PIL import Image, UnidentifiedImageError

import config
from .helpers import create_tracked_task, has_running_loop, run_in_daemon_executor
from .icons import BYTES, Icon, fallback_icon
from .signals import Signal
from .state import BASE_OPACITY, FULL_OPACITY, HOVER_OPACITY
from logging_config import get_logger

logger = get_logger(__name__)


class CoverArtError(Exception):
    """The cover could not be loaded or is not an image."""


def _download(uri: str, timeout: float, max_bytes: int) -> bytes:
    response = requests.get(uri, timeout=timeout, stream=True)
    try:
        response.raise_for_status()
        length = response.headers.get("Content-Length")
        if length and length.isdigit() and int(length) > max_bytes:
            raise CoverArtError(f"Cover too large ({length} bytes)")

        chunks = []
        received = 0
        for chunk in response.iter_content(chunk_size=64 * 1024):
            received += len(chunk)
            if received > max_bytes:
                raise CoverArtError(f"Cover too large (over {max_bytes} bytes)")
            chunks.append(chunk)
        return b"".join(chunks)
    finally:
        response.close()


def load_image_bytes(uri: str, timeout: float, max_bytes: int) -> bytes:
    """
    Blocking cover loader (run in executor).

    Supports http(s) URLs and local files (file:// URIs or bare paths), then
    checks with Pillow that the bytes really are an image. Downloads are
    streamed and abandoned once they pass max_bytes. Raises CoverArtError on
    any failure.
    """
    parsed = urlparse(uri)
    scheme = parsed.scheme.lower()
    try:
        if scheme in ("http", "https"):
            data = _download(uri, timeout, max_bytes)
        elif scheme == "file":
            data = Path(unquote(parsed.path)).read_bytes()
        elif scheme == "":
            data = Path(uri).read_bytes()
        else:
            raise CoverArtError(f"Unsupported cover URI scheme: {scheme}")
    except requests.exceptions.RequestException as e:
        raise CoverArtError(f"Cover download failed: {e}") from e
    except (OSError, ValueError) as e:
        # ValueError: paths with embedded null bytes
        raise CoverArtError(f"Cover file unreadable: {e}") from e

    if not data:
        raise CoverArtError("Cover is empty")
    if len(data) > max_bytes:
        raise CoverArtError(f"Cover too large ({len(data)} bytes)")

    try:
        with Image.open(BytesIO(data)) as img:
            img.verify()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError, ValueError) as e:
        raise CoverArtError(f"Cover is not a valid image: {e}") from e
    return data


class CoverArtFetcher:
    """
    Shows a track's cover art, falling back gracefully.

    Only the most recent set_target() can ever change what is displayed:
    each call cancels the previous fetch and bumps a generation counter, and
    a fetch whose generation is no longer current throws its result away even
    if the cancellation arrived too late to stop the download.

    Emits ``changed(fetcher)`` when the displayed icon changes.
    """

    def __init__(self, fallback: Optional[Icon] = None):
        self.changed = Signal("changed")
        self._fallback_icon = fallback or fallback_icon()
        self._parent_hover = False
        self._generation = 0
        self._task: Optional[asyncio.Task] = None
        self._is_fallback = True
        self._target: Optional[str] = None
        self.icon = self._fallback_icon
        self.opacity = BASE_OPACITY
        self._update_opacity()

    @property
    def target(self) -> Optional[str]:
        return self._target

    @property
    def is_fallback(self) -> bool:
        return self._is_fallback

    @property
    def in_flight(self) -> bool:
        return self._task is not None and not self._task.done()

    def on_parent_hover(self, hover: bool) -> None:
        self._parent_hover = hover
        self._update_opacity()

    def set_fallback_icon(self, icon: Icon) -> None:
        self._fallback_icon = icon
        if self._is_fallback:
            self._fallback()

    def set_target(self, uri: Optional[str]) -> None:
        self._cancel()
        self._generation += 1
        self._target = uri

        if not uri:
            self._fallback()
            return

        if not has_running_loop():
            logger.warning(f"No event loop to fetch cover {uri}, using fallback icon")
            self._fallback()
            return

        self._is_fallback = False
        self._task = create_tracked_task(self._fetch(uri, self._generation))

    def destroy(self) -> None:
        self._cancel()
        self._generation += 1
        self.changed.clear()

    async def _fetch(self, uri: str, generation: int) -> None:
        # CancelledError propagates: a superseded fetch ends without touching
        # the display.
        try:
            data = await run_in_daemon_executor(
                load_image_bytes,
                uri,
                config.COVER_ART["timeout"],
                config.COVER_ART["max_size_kb"] * 1024,
            )
        except CoverArtError as e:
            if generation == self._generation:
                logger.debug(f"Cover art unavailable ({e}), using fallback icon")
                self._task = None
                self._fallback()
            return
        except Exception as e:
            if generation == self._generation:
                logger.warning(f"Cover fetch for {uri} failed unexpectedly: {e}", exc_info=True)
                self._task = None
                self._fallback()
            return

        if generation != self._generation:
            logger.debug(f"Discarding stale cover for {uri}")
            return
        self._task = None
        self._show(Icon(uri, symbolic=False, kind=BYTES, data=data))

    def _cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    def _fallback(self) -> None:
        self._is_fallback = True
        self._show(self._fallback_icon)

    def _show(self, icon: Icon) -> None:
        changed = icon != self.icon
        self.icon = icon
        self._update_opacity()
        if changed:
            self.changed.emit(self)

    def _update_opacity(self) -> None:
        if not self.icon.symbolic:
            self.opacity = FULL_OPACITY
        else:
            self.opacity = HOVER_OPACITY if self._parent_hover else BASE_OPACITY
