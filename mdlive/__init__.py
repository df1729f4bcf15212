"""
Live markdown preview broadcaster.

This package provides:
- A websocket relay fanning rendered snapshots out to browser viewers
- The producer connection the editor pushes snapshots through
- The snapshot envelope wire format and viewer page
- A preview session tying an editor buffer to the relay
"""

from .configs import DEFAULT_PORT, DEFAULT_STYLE, RelayConfig, PreviewConfig
from .relay import (
    SnapshotEnvelope,
    clamp_percentage,
    parse_envelope,
    position_percentage,
    ConnectionRegistry,
    RelayServer,
    ProducerClient,
    create_viewer_html,
    save_viewer_html,
)
from .session import (
    EditorBuffer,
    MemoryBuffer,
    FileBuffer,
    IdleTimer,
    render_markdown,
    PreviewSession,
)

__version__ = "0.1.0"

__all__ = [
    # Config
    "DEFAULT_PORT",
    "DEFAULT_STYLE",
    "RelayConfig",
    "PreviewConfig",
    # Relay
    "SnapshotEnvelope",
    "clamp_percentage",
    "parse_envelope",
    "position_percentage",
    "ConnectionRegistry",
    "RelayServer",
    "ProducerClient",
    "create_viewer_html",
    "save_viewer_html",
    # Session
    "EditorBuffer",
    "MemoryBuffer",
    "FileBuffer",
    "IdleTimer",
    "render_markdown",
    "PreviewSession",
]
