"""Set of open viewer connections tracked by the relay."""

import logging
from typing import Any, Callable, Iterator, Optional, Set

from websockets.protocol import State

logger = logging.getLogger(__name__)


def connection_closed(connection: Any) -> bool:
    """True once a websocket connection has started or finished closing."""
    return connection.state in (State.CLOSING, State.CLOSED)


class ConnectionRegistry:
    """
    Membership set of viewer connections.

    A connection appears at most once. Closed connections are not removed
    the moment the peer goes away; they are pruned on the next broadcast,
    on a failed send, or when the relay sees the close event.

    The registry has no locking of its own: the relay only touches it
    from its event loop thread.

    Usage:
        registry = ConnectionRegistry()
        registry.add(connection)
        delivered = registry.for_each(lambda c: deliver(c, payload))
    """

    def __init__(self, is_closed: Optional[Callable[[Any], bool]] = None):
        """
        Initialize an empty registry.

        Args:
            is_closed: Predicate reporting whether a connection is closed.
                Defaults to checking the websocket connection state.
        """
        self._connections: Set[Any] = set()
        self._is_closed = is_closed or connection_closed

    def add(self, connection: Any):
        """Register a connection; no-op if already present."""
        self._connections.add(connection)

    def remove(self, connection: Any):
        """Unregister a connection; no-op if absent."""
        self._connections.discard(connection)

    def prune_closed(self) -> int:
        """
        Drop every connection that reports itself closed.

        Returns:
            Number of connections removed
        """
        closed = {c for c in self._connections if self._is_closed(c)}
        self._connections -= closed
        return len(closed)

    def for_each(self, fn: Callable[[Any], Any]) -> int:
        """
        Apply ``fn`` to every open connection.

        ``fn`` must not block: the whole pass runs without yielding to the
        event loop. A connection whose call fails is logged and removed;
        the remaining connections are still visited.

        Args:
            fn: Callable taking a connection

        Returns:
            Number of connections ``fn`` succeeded on
        """
        self.prune_closed()

        succeeded = 0
        for connection in list(self._connections):
            try:
                fn(connection)
            except Exception as exc:
                logger.warning(
                    "Dropping connection %s after failed delivery: %r",
                    id(connection), exc,
                )
                self.remove(connection)
            else:
                succeeded += 1
        return succeeded

    def clear(self):
        """Forget every connection."""
        self._connections.clear()

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, connection: Any) -> bool:
        return connection in self._connections

    def __iter__(self) -> Iterator[Any]:
        return iter(list(self._connections))
