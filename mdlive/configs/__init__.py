"""Relay and preview configuration dataclasses."""

from .preview_config import (
    DEFAULT_PORT,
    DEFAULT_STYLE,
    RelayConfig,
    PreviewConfig,
)

__all__ = [
    "DEFAULT_PORT",
    "DEFAULT_STYLE",
    "RelayConfig",
    "PreviewConfig",
]
