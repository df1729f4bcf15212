from mdlive.relay import create_viewer_html, save_viewer_html


def test_viewer_connects_to_relay_url():
    html = create_viewer_html("ws://localhost:7379", reconnect_ms=250)

    assert 'const WS_URL = "ws://localhost:7379";' in html
    assert "const RECONNECT_MS = 250;" in html
    assert "Math.max(0, Math.min(100" in html


def test_save_viewer_html(tmp_path):
    path = save_viewer_html(tmp_path / "nested" / "viewer.html", "ws://host:1")

    assert path.is_file()
    assert "ws://host:1" in path.read_text(encoding="utf-8")
