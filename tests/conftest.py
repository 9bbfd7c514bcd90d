"""Shared fixtures for the network tests."""

import socket

import pytest


def _free_udp_port() -> int:
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return port


@pytest.fixture
def query_port():
    """A free UDP port for discovery queries."""
    return _free_udp_port()


@pytest.fixture
def reply_port(query_port):
    """A free UDP port for discovery replies, distinct from the query port."""
    port = _free_udp_port()
    while port == query_port:
        port = _free_udp_port()
    return port
