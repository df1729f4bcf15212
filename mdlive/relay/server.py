"""
WebSocket relay that fans producer updates out to preview viewers.
"""

import asyncio
import logging
import threading
import time
from concurrent.futures import Future
from typing import Any, Dict, Optional, Union

from websockets.asyncio.server import Server, ServerConnection, broadcast, serve
from websockets.exceptions import ConnectionClosedError, ConnectionClosedOK

from ..configs.preview_config import RelayConfig
from .registry import ConnectionRegistry

logger = logging.getLogger(__name__)

Payload = Union[str, bytes]


def deliver(connection: ServerConnection, payload: Payload):
    """
    Queue a payload on one connection without waiting for the peer.

    A peer that stops reading only grows its own write buffer until the
    keepalive timeout closes it; nobody else waits on it.
    """
    broadcast([connection], payload, raise_exceptions=True)


class RelayServer:
    """
    Broadcast relay for live preview snapshots.

    Runs an asyncio event loop in a background thread. Every message
    received on any connection is cached and forwarded unmodified to all
    registered connections, the sender included. A connection that joins
    after something has been relayed is immediately sent the last payload.

    Usage:
        relay = RelayServer(RelayConfig(port=7379))
        relay.start()

        # Producers connect to relay.url and send envelopes;
        # viewers connect to the same URL and receive them.

        relay.stop()
    """

    def __init__(self, config: Optional[RelayConfig] = None):
        """
        Initialize the relay.

        Args:
            config: Relay configuration
        """
        self.config = config or RelayConfig()

        # Server state; only mutated on the loop thread once running
        self._registry = ConnectionRegistry()
        self._server: Optional[Server] = None
        self._port: Optional[int] = None
        self._thread: Optional[threading.Thread] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._ready = threading.Event()
        self._stop_event: Optional[asyncio.Event] = None

        # Join snapshot
        self._last_payload: Optional[Payload] = None

        # Stats
        self._messages_relayed = 0
        self._bytes_sent = 0
        self._start_time = 0.0

    def start(self) -> bool:
        """
        Start the relay in a background thread.

        Starting a running relay is a no-op. A bind failure is logged and
        reported through the return value.

        Returns:
            True if the relay is listening
        """
        if self.is_running:
            return True

        self._ready.clear()
        self._last_payload = None
        self._messages_relayed = 0
        self._bytes_sent = 0

        self._thread = threading.Thread(
            target=self._run_server, name="mdlive-relay", daemon=True
        )
        self._thread.start()

        if not self._ready.wait(self.config.startup_timeout):
            logger.error(
                "Relay did not start within %.1fs", self.config.startup_timeout
            )
        if self._server is None:
            self.stop()
            return False

        self._start_time = time.time()
        logger.info("Relay listening at %s", self.url)
        return True

    def stop(self):
        """Close every connection and the listening socket."""
        if self._thread is None:
            return

        loop, stop_event = self._loop, self._stop_event
        if loop is not None and stop_event is not None and not loop.is_closed():
            loop.call_soon_threadsafe(stop_event.set)
        self._thread.join(timeout=self.config.startup_timeout)

        self._thread = None
        self._port = None
        self._registry.clear()
        logger.info("Relay stopped")

    def publish(self, payload: Payload) -> Optional[Future]:
        """
        Relay a payload from this process, as if a connection had sent it.

        Safe to call from any thread.

        Args:
            payload: Encoded envelope

        Returns:
            Future completing with the number of deliveries, or None when
            the relay is not running
        """
        loop = self._loop
        if not self.is_running or loop is None:
            logger.debug("Relay not running; dropping published payload")
            return None
        return asyncio.run_coroutine_threadsafe(self._relay(payload), loop)

    async def _relay(self, payload: Payload) -> int:
        """Cache a payload and broadcast it to every registered connection."""
        # Runs without yielding, so one update is one uninterrupted pass
        self._last_payload = payload
        delivered = self._registry.for_each(
            lambda connection: deliver(connection, payload)
        )

        self._messages_relayed += 1
        self._bytes_sent += len(payload) * delivered
        logger.debug("Relayed %d bytes to %d connections", len(payload), delivered)
        return delivered

    async def _handle_connection(self, connection: ServerConnection):
        """Register a connection, send the join snapshot, relay its messages."""
        client_id = id(connection)

        try:
            # No broadcast may land between registering and the join snapshot
            self._registry.add(connection)
            logger.info(
                "Client %s connected from %s (%d total)",
                client_id, connection.remote_address, len(self._registry),
            )
            if self._last_payload is not None:
                deliver(connection, self._last_payload)

            async for message in connection:
                await self._relay(message)

        except ConnectionClosedOK:
            pass
        except ConnectionClosedError as exc:
            logger.warning("Client %s dropped: %s", client_id, exc)
        finally:
            self._registry.remove(connection)
            logger.info(
                "Client %s disconnected (%d total)", client_id, len(self._registry)
            )

    def _run_server(self):
        """Run the relay's event loop until stopped."""
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        self._loop = loop

        try:
            loop.run_until_complete(self._serve())
        finally:
            self._ready.set()
            loop.close()
            self._loop = None

    async def _serve(self):
        """Bind the listening socket and serve until the stop event fires."""
        self._stop_event = asyncio.Event()

        try:
            server = await serve(
                self._handle_connection,
                self.config.host,
                self.config.port,
                max_size=self.config.max_message_size,
            )
        except OSError as exc:
            logger.error(
                "Could not bind relay to %s:%s: %s",
                self.config.host, self.config.port, exc,
            )
            return

        self._port = next(iter(server.sockets)).getsockname()[1]
        self._server = server
        self._ready.set()

        try:
            await self._stop_event.wait()
        finally:
            self._server = None
            server.close()
            await server.wait_closed()
            self._registry.clear()
            self._stop_event = None

    @property
    def is_running(self) -> bool:
        """Whether the relay is listening."""
        return (
            self._server is not None
            and self._thread is not None
            and self._thread.is_alive()
        )

    @property
    def port(self) -> Optional[int]:
        """Port actually bound, or None when not running."""
        return self._port

    @property
    def url(self) -> str:
        """Websocket URL viewers and producers connect to."""
        port = self._port if self._port is not None else self.config.port
        return f"ws://{self.config.host}:{port}"

    @property
    def last_payload(self) -> Optional[Payload]:
        """Payload sent to newly joined connections."""
        return self._last_payload

    @property
    def num_clients(self) -> int:
        """Number of registered connections, producer included."""
        return len(self._registry)

    @property
    def stats(self) -> Dict[str, Any]:
        """Get relay statistics."""
        elapsed = time.time() - self._start_time if self.is_running else 0
        return {
            "clients": len(self._registry),
            "messages_relayed": self._messages_relayed,
            "bytes_sent": self._bytes_sent,
            "uptime": elapsed,
        }

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, *args):
        self.stop()
        return False
