"""Tests for PlayerRecord"""
from conftest import app_icon, window

from player_hub.icons import Icon
from player_hub.sources.base import PlaybackStatus, PlayerCapability, PlayerProxyError
from player_hub.state import FALLBACK_ICON_NAME

BUS_NAME = "org.mpris.MediaPlayer2.rhythmbox"


def test_defaults_without_application(make_record):
    record = make_record(BUS_NAME)
    assert record.tracker is None
    assert record.focused is False
    assert record.last_activated_time == 0
    assert record.icon == Icon(FALLBACK_ICON_NAME, symbolic=True)
    assert record.playback_status == PlaybackStatus.STOPPED


def test_artist_falls_back_to_player_name(make_record):
    record = make_record(BUS_NAME, player_name="Rhythmbox")
    assert record.artist == "Rhythmbox"
    assert record.accessible_name == ""

    record.proxy.update(artist="Boards of Canada")
    assert record.artist == "Boards of Canada"
    assert record.accessible_name == "Rhythmbox"


def test_commands_forward_to_proxy(make_record):
    record = make_record(BUS_NAME)
    assert record.previous() is True
    assert record.play_pause_or_stop() is True
    assert record.next() is True
    assert record.proxy.commands == ["previous", "play_pause_stop", "next"]


def test_missing_capability_skips_proxy(make_record):
    record = make_record(BUS_NAME, capabilities=PlayerCapability.NEXT)
    assert record.previous() is False
    assert record.play_pause_or_stop() is False
    assert record.next() is True
    assert record.proxy.commands == ["next"]


def test_proxy_errors_return_false(make_record):
    record = make_record(BUS_NAME)
    record.proxy.error = PlayerProxyError("no reply")
    assert record.next() is False
    assert record.activate_or_minimize(True) is False


def test_activate_without_tracker_raises_player(make_record):
    record = make_record(BUS_NAME)
    assert record.activate_or_minimize() is True
    assert record.proxy.commands == ["raise"]


def test_desktop_entry_change_resolves_application(wm, make_record):
    app = wm.add_app("rhythmbox.desktop", "Rhythmbox", icon=app_icon())
    win = wm.add_window(app, window(1, pid=100))
    record = make_record(BUS_NAME, pid=100)
    events = []
    record.metadata_changed.connect(lambda r, name: events.append(name))

    record.proxy.update(desktop_entry="rhythmbox")

    assert record.tracker is not None
    assert record.tracker.window == win
    assert "desktop_entry" in events
    assert record.activate_or_minimize() is True
    assert wm.calls == [("activate_window", 1)]
    assert record.proxy.commands == []


def test_focus_change_emits_status_changed(wm, make_record):
    app = wm.add_app("rhythmbox.desktop", "Rhythmbox")
    win = wm.add_window(app, window(1, pid=100))
    record = make_record(BUS_NAME, pid=100, desktop_entry="rhythmbox")
    events = []
    record.status_changed.connect(events.append)

    wm.set_focus(win, user_time=42)

    assert events == [record]
    assert record.focused
    assert record.last_activated_time == 42


def test_last_activated_time_survives_tracker_replacement(wm, make_record):
    app = wm.add_app("rhythmbox.desktop", "Rhythmbox")
    win = wm.add_window(app, window(1, pid=100))
    record = make_record(BUS_NAME, pid=100, desktop_entry="rhythmbox")
    wm.set_focus(win, user_time=42)

    record.proxy.update(desktop_entry="unknown-player")

    assert record.tracker is None
    assert record.last_activated_time == 42


def test_status_change_updates_timestamp(make_record):
    record = make_record(BUS_NAME)
    before = record.status_changed_at
    events = []
    record.status_changed.connect(events.append)

    record.proxy.update(playback_status=PlaybackStatus.PLAYING)

    assert events == [record]
    assert record.status_changed_at >= before
    assert record.playback_status_rank == 2


def test_refresh_icon_reports_changes_once(theme, make_record):
    record = make_record(BUS_NAME, desktop_entry="rhythmbox")
    assert record.refresh_icon() is False

    theme.names.add("rhythmbox-symbolic")
    assert record.refresh_icon() is True
    assert record.icon == Icon("rhythmbox-symbolic", symbolic=True)
    assert record.refresh_icon() is False


def test_icon_chain_order(wm, theme, make_record):
    wm.add_app("spotify.desktop", "Spotify", icon=app_icon("spotify"))
    record = make_record("org.mpris.MediaPlayer2.spotify", desktop_entry="spotify")
    # No symbolic icon: the app's full colour icon
    assert record.icon == Icon("spotify", symbolic=False)

    theme.names.add("spotify-client-symbolic")
    record.refresh_icon()
    assert record.icon == Icon("spotify-client-symbolic", symbolic=True)


def test_mimetype_icon_hint(make_record):
    record = make_record(BUS_NAME)
    events = []
    record.icon_changed.connect(events.append)

    record.proxy.update(mimetype_icon_name="video-x-generic-symbolic")

    assert record.icon == Icon("video-x-generic-symbolic", symbolic=True)
    assert events == [record]
    # The cover fetcher falls back to the same icon
    assert record.cover.icon == record.icon


def test_self_destruct_is_forwarded(make_record):
    record = make_record(BUS_NAME)
    events = []
    record.destruct_requested.connect(events.append)
    record.proxy.self_destruct.emit()
    assert events == [record]


def test_destroy_is_idempotent_and_releases_everything(wm, make_record):
    app = wm.add_app("rhythmbox.desktop", "Rhythmbox")
    wm.add_window(app, window(1, pid=100))
    record = make_record(BUS_NAME, pid=100, desktop_entry="rhythmbox")
    proxy = record.proxy

    record.destroy()
    record.destroy()

    assert proxy.destroyed
    assert len(proxy.changed) == 0
    assert wm.handler_count() == 0
    assert record.tracker is None
