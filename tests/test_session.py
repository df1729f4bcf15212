import os

import pytest
from websockets.exceptions import ConnectionClosed
from websockets.sync.client import connect

from mdlive.configs import PreviewConfig, RelayConfig
from mdlive.relay import parse_envelope
from mdlive.session import FileBuffer, MemoryBuffer, PreviewSession


class RecordingOpener:
    def __init__(self):
        self.urls = []

    def __call__(self, url):
        self.urls.append(url)
        return True


@pytest.fixture
def opener():
    return RecordingOpener()


@pytest.fixture
def make_session(tmp_path, opener):
    sessions = []

    def _make(buffer, **overrides):
        options = {
            "relay": RelayConfig(host="127.0.0.1", port=0),
            "style": "theme.css",
            "update_interval": 10.0,
            "viewer_path": str(tmp_path / "viewer.html"),
        }
        options.update(overrides)
        session = PreviewSession(buffer, PreviewConfig(**options), open_url=opener)
        sessions.append(session)
        return session

    yield _make

    for session in sessions:
        session.cleanup()


@pytest.fixture
def viewers(wait_for):
    opened = []

    def _open(session):
        before = session.server.num_clients
        connection = connect(session.server.url, open_timeout=5)
        opened.append(connection)
        assert wait_for(lambda: session.server.num_clients > before)
        return connection

    yield _open

    for connection in opened:
        connection.close()


def receive_envelope(viewer):
    return parse_envelope(viewer.recv(timeout=5))


def save_file(path, data):
    """Replace the file in one step with a strictly newer mtime."""
    mtime = path.stat().st_mtime_ns + 1_000_000_000
    staged = path.with_suffix(".tmp")
    staged.write_bytes(data)
    os.utime(staged, ns=(mtime, mtime))
    os.replace(staged, path)


def test_start_preview_pushes_initial_snapshot(make_session, viewers, opener):
    session = make_session(MemoryBuffer("# Title"))

    session.start_preview()
    viewer = viewers(session)

    envelope = receive_envelope(viewer)
    assert envelope.content == "<h1>Title</h1>\n"
    assert envelope.style == "theme.css"
    assert len(opener.urls) == 1
    assert opener.urls[0].startswith("file://")


def test_viewer_page_points_at_bound_port(make_session, tmp_path):
    session = make_session(MemoryBuffer())

    session.start_preview()

    page = (tmp_path / "viewer.html").read_text(encoding="utf-8")
    assert f"ws://127.0.0.1:{session.server.port}" in page


def test_save_pushes_update(make_session, viewers):
    buffer = MemoryBuffer("one")
    session = make_session(buffer)
    session.start_preview()
    viewer = viewers(session)
    receive_envelope(viewer)

    buffer.set_text("two")
    buffer.save()

    assert receive_envelope(viewer).content == "<p>two</p>\n"


def test_start_preview_twice_keeps_one_relay_and_producer(make_session, wait_for):
    session = make_session(MemoryBuffer("x"), auto_open_browser=False)

    session.start_preview()
    port = session.server.port
    session.start_preview()

    assert session.server.port == port
    assert wait_for(lambda: session.server.num_clients == 1)
    assert not wait_for(lambda: session.server.num_clients > 1, timeout=0.2)


def test_stop_preview_keeps_relay_and_viewers(make_session, viewers):
    buffer = MemoryBuffer("before")
    session = make_session(buffer, auto_open_browser=False)
    session.start_preview()
    viewer = viewers(session)
    receive_envelope(viewer)

    session.stop_preview()
    buffer.set_text("after")
    buffer.save()

    assert not session.previewing
    assert session.server.is_running
    with pytest.raises(TimeoutError):
        viewer.recv(timeout=0.3)

    session.start_preview()
    assert receive_envelope(viewer).content == "<p>after</p>\n"


def test_idle_tick_pushes_only_changes(make_session, viewers):
    buffer = MemoryBuffer("start")
    session = make_session(buffer, update_interval=0.05, auto_open_browser=False)
    session.start_preview()
    viewer = viewers(session)
    receive_envelope(viewer)

    buffer.set_text("typed without saving")

    assert receive_envelope(viewer).content == "<p>typed without saving</p>\n"
    with pytest.raises(TimeoutError):
        viewer.recv(timeout=0.3)

    buffer.move_cursor(5, visible_lines=10)
    receive_envelope(viewer)


def test_update_reconnects_dropped_producer(make_session, viewers, wait_for):
    buffer = MemoryBuffer("v1")
    session = make_session(buffer, auto_open_browser=False)
    session.start_preview()
    viewer = viewers(session)
    receive_envelope(viewer)

    session.producer.close()
    assert not session.producer.connected

    buffer.set_text("v2")
    buffer.save()

    assert receive_envelope(viewer).content == "<p>v2</p>\n"
    assert session.producer.connected


def test_position_follows_cursor(make_session, viewers):
    buffer = MemoryBuffer("\n".join(f"line {i}" for i in range(100)))
    session = make_session(buffer, auto_open_browser=False)
    session.start_preview()
    viewer = viewers(session)
    receive_envelope(viewer)

    buffer.move_cursor(100, visible_lines=0)
    buffer.save()

    assert receive_envelope(viewer).position == 100


def test_cleanup_tears_everything_down(make_session, viewers):
    session = make_session(MemoryBuffer("x"), auto_open_browser=False)
    session.start_preview()
    viewer = viewers(session)
    receive_envelope(viewer)

    session.cleanup()

    assert not session.previewing
    assert not session.server.is_running
    assert session.producer is None
    with pytest.raises(ConnectionClosed):
        viewer.recv(timeout=5)


def test_cleanup_and_stop_without_start_are_noops(make_session):
    session = make_session(MemoryBuffer())

    session.stop_preview()
    session.cleanup()
    session.cleanup()


def test_push_update_before_start_is_skipped(make_session):
    session = make_session(MemoryBuffer("x"))

    assert not session.push_update()


def test_render_errors_propagate(make_session):
    def broken_render(text):
        raise ValueError("bad markdown")

    session = make_session(MemoryBuffer("x"), auto_open_browser=False)
    session.render = broken_render

    with pytest.raises(ValueError):
        session.start_preview()


def test_open_browser_without_relay(make_session, opener, tmp_path):
    session = make_session(MemoryBuffer(), relay=RelayConfig(port=7379))

    assert session.open_browser()

    assert opener.urls == [(tmp_path / "viewer.html").resolve().as_uri()]
    assert "ws://localhost:7379" in (tmp_path / "viewer.html").read_text(encoding="utf-8")
    assert not session.server.is_running


def test_undecodable_save_keeps_session_running(make_session, viewers, tmp_path):
    path = tmp_path / "doc.md"
    path.write_text("# cafe", encoding="utf-8")
    buffer = FileBuffer(path)
    session = make_session(buffer, auto_open_browser=False)
    session.start_preview()
    viewer = viewers(session)
    receive_envelope(viewer)

    save_file(path, b"# caf\xe9")

    assert buffer.poll()
    assert session.previewing
    assert session.server.is_running
    with pytest.raises(TimeoutError):
        viewer.recv(timeout=0.3)

    save_file(path, b"# fixed")

    assert buffer.poll()
    assert receive_envelope(viewer).content == "<h1>fixed</h1>\n"


def test_disk_save_is_pushed_once(make_session, viewers, tmp_path):
    path = tmp_path / "doc.md"
    path.write_text("one", encoding="utf-8")
    buffer = FileBuffer(path)
    session = make_session(buffer, update_interval=0.05, auto_open_browser=False)
    session.start_preview()
    viewer = viewers(session)
    receive_envelope(viewer)

    save_file(path, b"two")
    # The idle tick may see the new mtime before poll() does
    buffer.poll()

    assert receive_envelope(viewer).content == "<p>two</p>\n"
    with pytest.raises(TimeoutError):
        viewer.recv(timeout=0.3)


def test_unchanged_save_is_not_pushed_again(make_session, viewers):
    buffer = MemoryBuffer("same")
    session = make_session(buffer, auto_open_browser=False)
    session.start_preview()
    viewer = viewers(session)
    receive_envelope(viewer)

    buffer.save()

    with pytest.raises(TimeoutError):
        viewer.recv(timeout=0.3)
