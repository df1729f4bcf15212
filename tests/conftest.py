import time

import pytest
from websockets.sync.client import connect

from mdlive.configs import RelayConfig
from mdlive.relay import RelayServer


def _wait_for(predicate, timeout=5.0, interval=0.01):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture
def wait_for():
    """Poll a predicate until it holds or the timeout expires."""
    return _wait_for


@pytest.fixture
def relay():
    """Relay listening on a free port."""
    server = RelayServer(RelayConfig(host="127.0.0.1", port=0))
    assert server.start()
    yield server
    server.stop()


@pytest.fixture
def open_viewer(relay):
    """Connect a viewer and wait until the relay has registered it."""
    opened = []

    def _open(url=None):
        before = relay.num_clients
        connection = connect(url or relay.url, open_timeout=5)
        opened.append(connection)
        assert _wait_for(lambda: relay.num_clients > before)
        return connection

    yield _open

    for connection in opened:
        connection.close()
