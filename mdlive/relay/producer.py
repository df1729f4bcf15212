"""
Producer side of the relay: the editor's outbound connection.
"""

import logging
import threading
from typing import Optional, Union

from websockets.exceptions import ConnectionClosed, InvalidHandshake, InvalidURI
from websockets.sync.client import ClientConnection, connect

from .protocol import SnapshotEnvelope

logger = logging.getLogger(__name__)


class ProducerClient:
    """
    Client connection used to push snapshot envelopes into the relay.

    The relay echoes every broadcast back to its sender; a background
    reader drains and ignores that traffic and notices when the
    connection drops. There is no automatic reconnect: callers reconnect
    lazily before the next update.

    Usage:
        producer = ProducerClient("ws://localhost:7379")
        producer.connect()
        producer.send(envelope)
        producer.close()
    """

    def __init__(self, url: str, open_timeout: float = 5.0):
        """
        Initialize the producer.

        Args:
            url: Websocket URL of the relay
            open_timeout: Handshake timeout in seconds
        """
        self.url = url
        self.open_timeout = open_timeout

        self._lock = threading.Lock()
        self._connection: Optional[ClientConnection] = None
        self._reader: Optional[threading.Thread] = None

    @property
    def connected(self) -> bool:
        """Whether an open connection to the relay is held."""
        return self._connection is not None

    def connect(self) -> bool:
        """
        Open the connection to the relay; no-op if already connected.

        Returns:
            True if connected
        """
        with self._lock:
            if self._connection is not None:
                return True

            try:
                connection = connect(
                    self.url,
                    open_timeout=self.open_timeout,
                    max_size=None,
                )
            except (OSError, TimeoutError, InvalidHandshake, InvalidURI) as exc:
                logger.warning("Producer could not connect to %s: %s", self.url, exc)
                return False

            self._connection = connection
            self._reader = threading.Thread(
                target=self._drain,
                args=(connection,),
                name="mdlive-producer",
                daemon=True,
            )
            self._reader.start()

        logger.info("Producer connected to %s", self.url)
        return True

    def send(self, envelope: Union[SnapshotEnvelope, str]) -> bool:
        """
        Send one envelope to the relay.

        Never raises: a send while disconnected, or on a connection that
        has just dropped, is logged and skipped.

        Args:
            envelope: Envelope, or an already encoded payload

        Returns:
            True if the payload was handed to the connection
        """
        payload = (
            envelope.to_html() if isinstance(envelope, SnapshotEnvelope) else envelope
        )

        connection = self._connection
        if connection is None:
            logger.info("Producer not connected; skipping update")
            return False

        try:
            connection.send(payload)
        except ConnectionClosed as exc:
            logger.warning("Producer connection lost while sending: %s", exc)
            self._on_close(connection)
            return False

        logger.debug("Producer sent %d bytes", len(payload))
        return True

    def close(self):
        """Close the connection if open."""
        with self._lock:
            connection, self._connection = self._connection, None
            reader, self._reader = self._reader, None

        if connection is None:
            return
        connection.close()
        if reader is not None and reader is not threading.current_thread():
            reader.join(timeout=self.open_timeout)
        logger.info("Producer closed")

    def _drain(self, connection: ClientConnection):
        """Discard echoed broadcasts until the connection closes."""
        try:
            for _ in connection:
                pass
        except ConnectionClosed as exc:
            logger.warning("Producer connection dropped: %s", exc)
        finally:
            self._on_close(connection)

    def _on_close(self, connection: ClientConnection):
        """Forget a dead connection so the next update can reconnect."""
        with self._lock:
            if self._connection is not connection:
                return
            self._connection = None
            self._reader = None
        logger.info("Producer connection to %s closed", self.url)

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, *args):
        self.close()
        return False
