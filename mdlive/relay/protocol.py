"""
Snapshot envelope wire format.

Every message on the relay is one self-contained envelope: the stylesheet
URI, a scroll position hint and the full rendered document. A receiver
that missed earlier updates is fully caught up by the latest one.
"""

import math
import re
from dataclasses import dataclass
from typing import Optional

ENVELOPE_TEMPLATE = (
    "<div>\n"
    '  <span id="style">{style}</span>\n'
    '  <span id="position-percentage">{position}</span>\n'
    '  <div id="content">{content}</div>\n'
    "</div>"
)

_ENVELOPE_RE = re.compile(
    r'^\s*<div>\s*'
    r'<span id="style">(?P<style>.*?)</span>\s*'
    r'<span id="position-percentage">(?P<position>-?\d+)</span>\s*'
    r'<div id="content">(?P<content>.*)</div>\s*'
    r'</div>\s*$',
    re.DOTALL,
)


@dataclass(frozen=True)
class SnapshotEnvelope:
    """One preview update as carried over the wire."""
    style: str
    position: int
    content: str

    def to_html(self) -> str:
        """Encode the envelope as the HTML fragment sent to viewers."""
        return ENVELOPE_TEMPLATE.format(
            style=self.style,
            position=int(self.position),
            content=self.content,
        )


def position_percentage(
    current_line: int,
    visible_lines: int,
    total_lines: int,
) -> int:
    """
    Estimate the scroll position of the cursor within the document.

    Computed as ``round(100 * (current_line - visible_lines / 2) / total_lines)``
    with halves rounded away from zero. The result is not clamped and can
    leave [0, 100] near the edges of the document.

    Args:
        current_line: 1-based cursor line
        visible_lines: Number of lines visible in the editor window
        total_lines: Number of lines in the document

    Returns:
        Integer percentage, 0 for an empty document
    """
    if total_lines <= 0:
        return 0

    value = 100.0 * (current_line - visible_lines / 2.0) / total_lines
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def clamp_percentage(value: int) -> int:
    """Clamp a position hint to [0, 100]."""
    return max(0, min(100, int(value)))


def parse_envelope(payload: str) -> Optional[SnapshotEnvelope]:
    """
    Decode an envelope received from the relay.

    Returns None when the payload is not an envelope.
    """
    match = _ENVELOPE_RE.match(payload)
    if match is None:
        return None
    return SnapshotEnvelope(
        style=match.group("style"),
        position=int(match.group("position")),
        content=match.group("content"),
    )
