"""
WebSocket broadcast relay for live preview.

Fans rendered snapshots from one producer out to every connected viewer.
"""

from .protocol import (
    SnapshotEnvelope,
    clamp_percentage,
    parse_envelope,
    position_percentage,
)
from .registry import ConnectionRegistry
from .server import RelayServer
from .producer import ProducerClient
from .viewer import create_viewer_html, save_viewer_html

__all__ = [
    "SnapshotEnvelope",
    "clamp_percentage",
    "parse_envelope",
    "position_percentage",
    "ConnectionRegistry",
    "RelayServer",
    "ProducerClient",
    "create_viewer_html",
    "save_viewer_html",
]
