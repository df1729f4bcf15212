"""
Live preview session.

Wires an editor buffer to the relay: renders the buffer on save events
and idle ticks and pushes the result through the producer connection.
"""

import logging
import threading
import webbrowser
from typing import Callable, Optional, Tuple

from ..configs.preview_config import PreviewConfig
from ..relay.producer import ProducerClient
from ..relay.protocol import SnapshotEnvelope, position_percentage
from ..relay.server import RelayServer
from ..relay.viewer import save_viewer_html
from .buffer import EditorBuffer
from .render import render_markdown
from .timer import IdleTimer

logger = logging.getLogger(__name__)


class PreviewSession:
    """
    One editing session's live preview.

    Owns the relay, the producer connection and the idle timer. Handlers
    for save events, idle ticks and the session commands are serialized,
    so each runs to completion before the next starts.

    Usage:
        buffer = FileBuffer("README.md")
        session = PreviewSession(buffer, PreviewConfig())

        # Start relay, connect producer, open the viewer page
        session.start_preview()

        # Edits are pushed on save and on idle ticks
        ...

        # Detach from the buffer but keep the relay and viewers
        session.stop_preview()

        # Tear everything down
        session.cleanup()
    """

    def __init__(
        self,
        buffer: EditorBuffer,
        config: Optional[PreviewConfig] = None,
        render: Callable[[str], str] = render_markdown,
        open_url: Callable[[str], bool] = webbrowser.open,
    ):
        """
        Initialize the session.

        Args:
            buffer: Document to preview
            config: Preview configuration
            render: Markdown to HTML renderer
            open_url: Opens a URL in the browser
        """
        self.buffer = buffer
        self.config = config or PreviewConfig()
        self.render = render
        self._open_url = open_url

        self.server = RelayServer(self.config.relay)
        self.producer: Optional[ProducerClient] = None
        self._timer = IdleTimer(self.config.update_interval, self._on_idle)

        self._lock = threading.RLock()
        self._previewing = False
        self._last_pushed: Optional[Tuple[int, int]] = None

    @property
    def previewing(self) -> bool:
        """Whether save events and idle ticks are being pushed."""
        return self._previewing

    def start_preview(self):
        """
        Start (or resume) the preview.

        Starts the relay unless running, connects the producer, arms the
        idle timer, hooks save events, pushes the current buffer and opens
        the viewer page. If the port is already taken, the producer still
        connects to whichever relay owns it.
        """
        with self._lock:
            if not self.server.start():
                logger.warning(
                    "Relay not started here; connecting to %s", self.server.url
                )

            if self.producer is None:
                self.producer = ProducerClient(
                    self.server.url, open_timeout=self.config.relay.open_timeout
                )
            self.producer.connect()

            if not self._previewing:
                self.buffer.add_save_listener(self._on_save)
                self._previewing = True
            self._timer.start()

            self.push_update()

        if self.config.auto_open_browser:
            self.open_browser()

    def stop_preview(self):
        """Stop pushing updates; the relay and its viewers stay up."""
        with self._lock:
            self._timer.cancel()
            self.buffer.remove_save_listener(self._on_save)
            self._previewing = False

    def cleanup(self):
        """Stop the preview, close the producer and shut the relay down."""
        with self._lock:
            self.stop_preview()
            if self.producer is not None:
                self.producer.close()
                self.producer = None
            self.server.stop()
            self._last_pushed = None

    def open_browser(self) -> bool:
        """Write the viewer page and open it in the default browser."""
        path = save_viewer_html(self.config.viewer_path, self.server.url)
        url = path.as_uri()
        logger.info("Opening viewer %s", url)
        return bool(self._open_url(url))

    def snapshot(self) -> SnapshotEnvelope:
        """Render the buffer into an envelope."""
        position = position_percentage(
            self.buffer.cursor_line(),
            self.buffer.visible_lines(),
            self.buffer.line_count(),
        )
        return SnapshotEnvelope(
            style=self.config.style,
            position=position,
            content=self.render(self.buffer.text()),
        )

    def push_update(self) -> bool:
        """
        Render the buffer and send it to the relay.

        Reconnects the producer first if its connection dropped. Render
        errors propagate; transport problems only skip this update.

        Returns:
            True if the envelope was sent
        """
        with self._lock:
            if self.producer is None:
                logger.info("Preview not started; skipping update")
                return False

            state = (self.buffer.revision(), self.buffer.cursor_line())
            envelope = self.snapshot()

            self.producer.connect()
            sent = self.producer.send(envelope)
            if sent:
                self._last_pushed = state
            return sent

    def _on_save(self):
        self._push_if_changed()

    def _on_idle(self):
        self._push_if_changed()

    def _push_if_changed(self):
        """Push only when the text or cursor moved since the last push."""
        with self._lock:
            if not self._previewing:
                return
            state = (self.buffer.revision(), self.buffer.cursor_line())
            if state != self._last_pushed:
                self.push_update()

    def __enter__(self):
        self.start_preview()
        return self

    def __exit__(self, *args):
        self.cleanup()
        return False
