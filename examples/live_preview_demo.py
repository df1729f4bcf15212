#!/usr/bin/env python3
"""
Demo script for the live preview relay.

This script:
1. Starts a relay and a preview session over an in-memory buffer
2. Opens the viewer page in a browser
3. "Types" a markdown document line by line, saving after each line

Usage:
    python live_preview_demo.py

Then watch the viewer tab update as the document grows.
"""

import logging
import sys
import time
from pathlib import Path

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from mdlive import MemoryBuffer, PreviewConfig, PreviewSession, RelayConfig


DOCUMENT = """\
# mdlive demo

Every save pushes a **full snapshot** to all open viewers.

| Viewer | Receives |
|--------|----------|
| A      | every update |
| B      | join snapshot, then every update |

- Open a second tab: it shows the current text immediately
- Close a tab: the others keep updating

~~Diffs~~ are never sent.
"""


def main():
    logging.basicConfig(level=logging.INFO)

    print("=" * 60)
    print("Live Preview Demo")
    print("=" * 60)

    config = PreviewConfig(
        relay=RelayConfig(host="localhost", port=7379),
        update_interval=0.5,
    )
    buffer = MemoryBuffer()

    session = PreviewSession(buffer, config)
    session.start_preview()

    print(f"\nRelay URL: {session.server.url}")
    print(f"Viewer page: {config.viewer_path}")
    print("\nPress Ctrl+C to stop\n")

    try:
        lines = DOCUMENT.splitlines()
        for i in range(1, len(lines) + 1):
            buffer.set_text("\n".join(lines[:i]))
            buffer.move_cursor(i, visible_lines=20)
            buffer.save()
            print(f"  pushed {i}/{len(lines)} lines "
                  f"({session.server.num_clients} connections)")
            time.sleep(0.5)

        # Keep serving so new tabs get the join snapshot
        while True:
            time.sleep(1.0)

    except KeyboardInterrupt:
        print("\n\nStopping...")
    finally:
        session.cleanup()
        print("Preview closed.")


if __name__ == "__main__":
    main()
