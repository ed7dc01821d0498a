from __future__ import annotations
import socket
import threading
import time

import pytest

from models import PortState


class CountingProber:
    """Fake prober that records how many calls overlap."""

    def __init__(self, open_ports=(), delay: float = 0.01):
        self.open_ports = set(open_ports)
        self.delay = delay
        self.calls = []
        self.active = 0
        self.peak = 0
        self._lock = threading.Lock()

    def __call__(self, target, port, timeout):
        with self._lock:
            self.calls.append(port)
            self.active += 1
            self.peak = max(self.peak, self.active)
        try:
            time.sleep(self.delay)
            return PortState.OPEN if port in self.open_ports else PortState.CLOSED_OR_FILTERED
        finally:
            with self._lock:
                self.active -= 1


@pytest.fixture
def counting_prober():
    return CountingProber


@pytest.fixture
def listener():
    srv = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    srv.bind(("127.0.0.1", 0))
    srv.listen(16)
    yield srv.getsockname()[1]
    srv.close()


@pytest.fixture
def closed_port():
    # Bind then release to get a port nothing is listening on
    s = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    s.bind(("127.0.0.1", 0))
    port = s.getsockname()[1]
    s.close()
    return port
