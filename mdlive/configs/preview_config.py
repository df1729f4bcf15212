"""Configuration dataclasses for the relay and the preview session."""

import os
import tempfile
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Optional

DEFAULT_PORT = 7379
DEFAULT_STYLE = (
    "https://cdnjs.cloudflare.com/ajax/libs/github-markdown-css/5.5.1/"
    "github-markdown.min.css"
)


@dataclass
class RelayConfig:
    """Configuration for the broadcast relay."""
    host: str = "localhost"
    port: int = DEFAULT_PORT  # 0 = pick a free port
    
    # Inbound frame limit; rendered documents can be large
    max_message_size: int = 16 * 2**20
    
    # Timeouts (seconds)
    startup_timeout: float = 5.0
    open_timeout: float = 5.0  # Producer handshake
    
    def __post_init__(self):
        """Validate configuration."""
        if not 0 <= self.port <= 65535:
            raise ValueError(f"port must be in [0, 65535], got {self.port}")
        if self.max_message_size <= 0:
            raise ValueError("max_message_size must be positive")
        if self.startup_timeout <= 0 or self.open_timeout <= 0:
            raise ValueError("timeouts must be positive")
    
    @property
    def url(self) -> str:
        """Websocket URL of the relay."""
        return f"ws://{self.host}:{self.port}"


@dataclass
class PreviewConfig:
    """Configuration for a live preview session."""
    
    relay: RelayConfig = field(default_factory=RelayConfig)
    
    # Stylesheet URI injected into every envelope
    style: str = DEFAULT_STYLE
    
    # Idle timer period in seconds
    update_interval: float = 1.0
    
    # Viewer page
    auto_open_browser: bool = True
    viewer_path: Optional[str] = None  # None = system temp directory
    
    def __post_init__(self):
        """Validate configuration and fill in the viewer path."""
        if self.update_interval <= 0:
            raise ValueError(
                f"update_interval must be positive, got {self.update_interval}"
            )
        if self.viewer_path is None:
            self.viewer_path = os.path.join(
                tempfile.gettempdir(), "mdlive-viewer.html"
            )
    
    @classmethod
    def from_dict(cls, options: Dict[str, Any]) -> "PreviewConfig":
        """
        Build a config from flat editor-style options.
        
        Recognized keys are ``port`` and ``host`` (relay) plus every
        top-level field of this class. Unknown keys are ignored.
        
        Args:
            options: Option mapping, e.g. ``{"port": 7379, "style": "..."}``
            
        Returns:
            A validated PreviewConfig
        """
        relay_names = {f.name for f in fields(RelayConfig)}
        own_names = {f.name for f in fields(cls)} - {"relay"}
        
        relay_kwargs = {k: v for k, v in options.items() if k in relay_names}
        own_kwargs = {k: v for k, v in options.items() if k in own_names}
        
        return cls(relay=RelayConfig(**relay_kwargs), **own_kwargs)
