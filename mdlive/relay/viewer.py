"""
Browser viewer page for the relay.

The page connects to the relay, applies every envelope it receives and
reconnects after the relay goes away.
"""

from pathlib import Path
from typing import Union

VIEWER_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <title>mdlive preview</title>
  <link id="mdlive-style" rel="stylesheet" href="">
  <style>
    body { box-sizing: border-box; max-width: 980px; margin: 0 auto; padding: 45px; }
    #mdlive-status { position: fixed; top: 4px; right: 8px; font: 12px sans-serif; color: #888; }
  </style>
</head>
<body>
  <div id="mdlive-status">connecting</div>
  <article id="mdlive-content" class="markdown-body"></article>
  <script>
    const WS_URL = "__WS_URL__";
    const RECONNECT_MS = __RECONNECT_MS__;

    const status = document.getElementById("mdlive-status");
    const styleLink = document.getElementById("mdlive-style");
    const target = document.getElementById("mdlive-content");

    function clampPercentage(value) {
      const n = parseInt(value, 10);
      if (isNaN(n)) { return 0; }
      return Math.max(0, Math.min(100, n));
    }

    function apply(payload) {
      const envelope = document.createElement("div");
      envelope.innerHTML = payload;
      const style = envelope.querySelector("#style");
      const position = envelope.querySelector("#position-percentage");
      const content = envelope.querySelector("#content");
      if (!content) { return; }

      if (style && styleLink.getAttribute("href") !== style.textContent) {
        styleLink.setAttribute("href", style.textContent);
      }
      target.innerHTML = content.innerHTML;

      const percentage = clampPercentage(position ? position.textContent : 0);
      const scrollable = document.documentElement.scrollHeight - window.innerHeight;
      window.scrollTo(0, scrollable * percentage / 100);
    }

    function connect() {
      const socket = new WebSocket(WS_URL);
      socket.onopen = () => { status.textContent = ""; };
      socket.onmessage = (event) => { apply(event.data); };
      socket.onclose = () => {
        status.textContent = "disconnected";
        setTimeout(connect, RECONNECT_MS);
      };
      socket.onerror = () => { socket.close(); };
    }

    connect();
  </script>
</body>
</html>
"""


def create_viewer_html(ws_url: str, reconnect_ms: int = 1000) -> str:
    """
    Build the viewer page.

    Args:
        ws_url: Websocket URL of the relay
        reconnect_ms: Delay before reconnecting after a drop

    Returns:
        HTML document as a string
    """
    return (
        VIEWER_TEMPLATE
        .replace("__WS_URL__", ws_url)
        .replace("__RECONNECT_MS__", str(int(reconnect_ms)))
    )


def save_viewer_html(path: Union[str, Path], ws_url: str) -> Path:
    """Write the viewer page to ``path`` and return its resolved location."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(create_viewer_html(ws_url), encoding="utf-8")
    return path.resolve()
