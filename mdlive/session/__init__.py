"""
Editor-side glue for live preview.

Provides:
- Editor buffer abstraction with in-memory and file-backed buffers
- Idle timer
- Default markdown renderer
- PreviewSession exposing the start/stop/cleanup/open-browser commands
"""

from .buffer import EditorBuffer, MemoryBuffer, FileBuffer
from .timer import IdleTimer
from .render import render_markdown
from .preview import PreviewSession

__all__ = [
    "EditorBuffer",
    "MemoryBuffer",
    "FileBuffer",
    "IdleTimer",
    "render_markdown",
    "PreviewSession",
]
