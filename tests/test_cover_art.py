"""Tests for cover art loading and the single-flight fetcher"""
import asyncio
from io import BytesIO
from unittest.mock import Mock, patch

import pytest
import requests
from PIL import Image

from player_hub.icons import Icon
from player_hub.image import CoverArtError, CoverArtFetcher, load_image_bytes
from player_hub.state import BASE_OPACITY, FULL_OPACITY, HOVER_OPACITY

FALLBACK = Icon("rhythmbox-symbolic", symbolic=True)
URI_A = "https://example.com/a.png"
URI_B = "https://example.com/b.png"


def png_bytes(color=(255, 0, 0)):
    buf = BytesIO()
    Image.new("RGB", (4, 4), color).save(buf, format="PNG")
    return buf.getvalue()


class GatedLoader:
    """Stands in for the executor: each URI completes only when released."""

    def __init__(self):
        self.gates = {}
        self.results = {}
        self.calls = []

    def _gate(self, uri):
        if uri not in self.gates:
            self.gates[uri] = asyncio.Event()
        return self.gates[uri]

    async def __call__(self, func, uri, *args):
        self.calls.append(uri)
        await self._gate(uri).wait()
        result = self.results[uri]
        if isinstance(result, Exception):
            raise result
        return result

    def release(self, uri, result):
        self.results[uri] = result
        self._gate(uri).set()


@pytest.fixture
def loader():
    gated = GatedLoader()
    with patch("player_hub.image.run_in_daemon_executor", gated):
        yield gated


# === load_image_bytes ===

def test_load_local_file(tmp_path):
    data = png_bytes()
    path = tmp_path / "cover art.png"
    path.write_bytes(data)

    assert load_image_bytes(str(path), 5, 1024 * 1024) == data
    assert load_image_bytes(path.as_uri(), 5, 1024 * 1024) == data


def streamed_response(chunks, headers=None):
    response = Mock(headers=headers or {})
    response.iter_content.return_value = iter(chunks)
    return response


def test_load_http(tmp_path):
    data = png_bytes()
    response = streamed_response([data[:10], data[10:]])
    with patch("player_hub.image.requests.get", return_value=response) as get:
        assert load_image_bytes(URI_A, 3, 1024 * 1024) == data
    get.assert_called_once_with(URI_A, timeout=3, stream=True)
    response.close.assert_called_once()


def test_oversized_download_stops_early():
    consumed = []

    def endless_body():
        while True:
            consumed.append(1)
            yield b"x" * 512

    response = Mock(headers={})
    response.iter_content.return_value = endless_body()
    with patch("player_hub.image.requests.get", return_value=response):
        with pytest.raises(CoverArtError):
            load_image_bytes(URI_A, 3, 2048)
    # 2048 bytes fit in four chunks, the fifth goes over the limit
    assert len(consumed) == 5
    response.close.assert_called_once()


def test_declared_length_over_limit_is_rejected_unread():
    response = streamed_response([b"x" * 4096], headers={"Content-Length": "4096"})
    with patch("player_hub.image.requests.get", return_value=response):
        with pytest.raises(CoverArtError):
            load_image_bytes(URI_A, 3, 2048)
    response.iter_content.assert_not_called()


def test_null_byte_in_file_uri_is_a_cover_art_error():
    with pytest.raises(CoverArtError):
        load_image_bytes("file:///tmp/cover%00.png", 1, 1024)


def test_decompression_bomb_is_a_cover_art_error(tmp_path):
    path = tmp_path / "bomb.png"
    path.write_bytes(png_bytes())
    with patch("player_hub.image.Image.open", side_effect=Image.DecompressionBombError("too many pixels")):
        with pytest.raises(CoverArtError):
            load_image_bytes(str(path), 1, 1024 * 1024)


def test_http_errors_become_cover_art_errors():
    with patch("player_hub.image.requests.get", side_effect=requests.exceptions.ConnectionError("down")):
        with pytest.raises(CoverArtError):
            load_image_bytes(URI_A, 3, 1024)


def test_rejects_bad_input(tmp_path):
    junk = tmp_path / "junk.png"
    junk.write_bytes(b"definitely not an image")
    empty = tmp_path / "empty.png"
    empty.write_bytes(b"")
    big = tmp_path / "big.png"
    big.write_bytes(png_bytes())

    for uri, limit in (
        (str(junk), 1024),
        (str(empty), 1024),
        (str(big), 10),
        (str(tmp_path / "missing.png"), 1024),
        ("ftp://example.com/a.png", 1024),
    ):
        with pytest.raises(CoverArtError):
            load_image_bytes(uri, 1, limit)


# === CoverArtFetcher ===

def test_starts_in_fallback_mode():
    fetcher = CoverArtFetcher(FALLBACK)
    assert fetcher.is_fallback
    assert fetcher.icon == FALLBACK
    assert fetcher.opacity == BASE_OPACITY


def test_without_event_loop_uses_fallback():
    fetcher = CoverArtFetcher(FALLBACK)
    fetcher.set_target(URI_A)
    assert fetcher.is_fallback
    assert not fetcher.in_flight


def test_opacity_follows_hover():
    fetcher = CoverArtFetcher(FALLBACK)
    fetcher.on_parent_hover(True)
    assert fetcher.opacity == HOVER_OPACITY
    fetcher.on_parent_hover(False)
    assert fetcher.opacity == BASE_OPACITY

    fetcher.set_fallback_icon(Icon("rhythmbox", symbolic=False))
    assert fetcher.opacity == FULL_OPACITY


async def test_successful_fetch_shows_cover(loader):
    fetcher = CoverArtFetcher(FALLBACK)
    events = []
    fetcher.changed.connect(events.append)

    fetcher.set_target(URI_A)
    task = fetcher._task
    loader.release(URI_A, b"cover")
    await task

    assert fetcher.icon == Icon(URI_A, symbolic=False, kind="bytes", data=b"cover")
    assert fetcher.icon.is_photo
    assert fetcher.opacity == FULL_OPACITY
    assert not fetcher.is_fallback
    assert events == [fetcher]


async def test_failed_fetch_shows_fallback(loader):
    fetcher = CoverArtFetcher(FALLBACK)
    fetcher.set_target(URI_A)
    task = fetcher._task
    loader.release(URI_A, CoverArtError("404"))
    await task

    assert fetcher.is_fallback
    assert fetcher.icon == FALLBACK


async def test_only_latest_target_is_shown(loader):
    fetcher = CoverArtFetcher(FALLBACK)
    fetcher.set_target(URI_A)
    first = fetcher._task
    await asyncio.sleep(0)  # let A reach the loader
    fetcher.set_target(URI_B)
    second = fetcher._task

    loader.release(URI_B, b"B")
    loader.release(URI_A, b"A")
    await second
    await asyncio.gather(first, return_exceptions=True)

    assert first.cancelled()
    assert fetcher.icon.data == b"B"


async def test_stale_success_is_discarded(loader):
    fetcher = CoverArtFetcher(FALLBACK)
    fetcher.set_target(URI_A)
    stale = fetcher._generation
    fetcher.set_target(None)
    events = []
    fetcher.changed.connect(events.append)

    # The cancellation came too late: the old fetch still completes
    loader.release(URI_A, b"A")
    await fetcher._fetch(URI_A, stale)

    assert fetcher.is_fallback
    assert fetcher.icon == FALLBACK
    assert events == []


async def test_stale_failure_is_discarded(loader):
    fetcher = CoverArtFetcher(FALLBACK)
    fetcher.set_target(URI_A)
    stale = fetcher._generation
    fetcher.set_target(URI_B)
    current = fetcher._task
    loader.release(URI_B, b"B")
    await current

    loader.release(URI_A, CoverArtError("timeout"))
    await fetcher._fetch(URI_A, stale)

    assert fetcher.icon.data == b"B"


async def test_destroy_cancels_in_flight_fetch(loader):
    fetcher = CoverArtFetcher(FALLBACK)
    fetcher.set_target(URI_A)
    task = fetcher._task
    fetcher.destroy()

    loader.release(URI_A, b"A")
    with pytest.raises(asyncio.CancelledError):
        await task
    assert fetcher.icon == FALLBACK


async def test_fallback_update_applies_only_in_fallback_mode(loader):
    fetcher = CoverArtFetcher(FALLBACK)
    other = Icon("vlc-symbolic", symbolic=True)
    fetcher.set_fallback_icon(other)
    assert fetcher.icon == other

    fetcher.set_target(URI_A)
    task = fetcher._task
    loader.release(URI_A, b"A")
    await task
    fetcher.set_fallback_icon(FALLBACK)
    assert fetcher.icon.data == b"A"


async def test_unreadable_uri_after_cover_shows_fallback(tmp_path):
    path = tmp_path / "a.png"
    path.write_bytes(png_bytes())
    fetcher = CoverArtFetcher(FALLBACK)

    fetcher.set_target(path.as_uri())
    await fetcher._task
    assert not fetcher.is_fallback

    fetcher.set_target("file:///tmp/cover%00.png")
    await fetcher._task

    assert fetcher.is_fallback
    assert fetcher.icon == FALLBACK


async def test_unexpected_loader_error_shows_fallback(loader):
    fetcher = CoverArtFetcher(FALLBACK)
    fetcher.set_target(URI_A)
    task = fetcher._task
    loader.release(URI_A, RuntimeError("cannot schedule new futures after shutdown"))
    await task

    assert fetcher.is_fallback
    assert fetcher.icon == FALLBACK
    assert not fetcher.in_flight

    # Fallback mode again, so later fallback updates are shown
    other = Icon("vlc-symbolic", symbolic=True)
    fetcher.set_fallback_icon(other)
    assert fetcher.icon == other
