"""Editor buffers the preview session reads from."""

import logging
import os
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, List, Optional, Union

logger = logging.getLogger(__name__)

SaveListener = Callable[[], None]


class EditorBuffer(ABC):
    """
    Abstract base class for a document being previewed.

    Editor integrations subclass this to expose the buffer text, the
    cursor and window geometry, and to fire save events through
    notify_saved().
    """

    def __init__(self):
        self._save_listeners: List[SaveListener] = []
        self._listeners_lock = threading.Lock()

    @abstractmethod
    def text(self) -> str:
        """Return the full markdown source."""
        pass

    @abstractmethod
    def revision(self) -> int:
        """Return a value that changes whenever the text changes."""
        pass

    def cursor_line(self) -> int:
        """1-based line the cursor is on."""
        return 1

    def visible_lines(self) -> int:
        """Number of lines shown in the editor window."""
        return 0

    def line_count(self) -> int:
        """Number of lines in the document."""
        return len(self.text().splitlines())

    def add_save_listener(self, listener: SaveListener):
        """Call ``listener`` on every save; no-op if already registered."""
        with self._listeners_lock:
            if listener not in self._save_listeners:
                self._save_listeners.append(listener)

    def remove_save_listener(self, listener: SaveListener):
        """Stop calling ``listener``; no-op if not registered."""
        with self._listeners_lock:
            if listener in self._save_listeners:
                self._save_listeners.remove(listener)

    def notify_saved(self):
        """Fire the save event; a failing listener does not stop the others."""
        with self._listeners_lock:
            listeners = list(self._save_listeners)
        for listener in listeners:
            try:
                listener()
            except Exception:
                logger.exception("Save listener %r failed", listener)


class MemoryBuffer(EditorBuffer):
    """
    In-memory buffer driven directly by an editor integration.

    Usage:
        buffer = MemoryBuffer("# Title")
        buffer.set_text("# New title")
        buffer.move_cursor(1, visible_lines=40)
        buffer.save()
    """

    def __init__(self, text: str = ""):
        super().__init__()
        self._text = text
        self._revision = 0
        self._cursor_line = 1
        self._visible_lines = 0

    def text(self) -> str:
        return self._text

    def revision(self) -> int:
        return self._revision

    def cursor_line(self) -> int:
        return self._cursor_line

    def visible_lines(self) -> int:
        return self._visible_lines

    def set_text(self, text: str):
        """Replace the buffer contents."""
        if text != self._text:
            self._text = text
            self._revision += 1

    def move_cursor(self, line: int, visible_lines: Optional[int] = None):
        """Move the cursor, optionally updating the window height."""
        self._cursor_line = line
        if visible_lines is not None:
            self._visible_lines = visible_lines

    def save(self):
        """Simulate an editor save."""
        self.notify_saved()


class FileBuffer(EditorBuffer):
    """
    Markdown file on disk.

    A change in modification time observed by poll() counts as a save.
    """

    def __init__(self, path: Union[str, Path], encoding: str = "utf-8"):
        """
        Initialize the buffer.

        Args:
            path: Markdown file to preview
            encoding: File encoding
        """
        super().__init__()
        self.path = Path(path)
        self.encoding = encoding
        self._seen_mtime: Optional[int] = self._mtime()

    def text(self) -> str:
        return self.path.read_text(encoding=self.encoding)

    def revision(self) -> int:
        mtime = self._mtime()
        return -1 if mtime is None else mtime

    def poll(self) -> bool:
        """
        Fire the save event if the file changed since the last poll.

        Returns:
            True if a save was detected
        """
        mtime = self._mtime()
        if mtime is None:
            # Editors that save by rename leave a brief gap
            logger.debug("%s is missing; waiting for it to reappear", self.path)
            return False
        if mtime == self._seen_mtime:
            return False

        self._seen_mtime = mtime
        logger.debug("Detected save of %s", self.path)
        self.notify_saved()
        return True

    def _mtime(self) -> Optional[int]:
        try:
            return os.stat(self.path).st_mtime_ns
        except FileNotFoundError:
            return None
