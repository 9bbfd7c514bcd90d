"""Tests for reply records and payload normalization."""

import dataclasses

import pytest

from autodiscovery.records import ServerInformation, normalize_payload


class TestNormalizePayload:
    """Tests for normalize_payload."""

    def test_none_becomes_empty(self):
        """Test None is treated as an empty payload."""
        assert normalize_payload(None) == b""

    def test_bytes_unchanged(self):
        payload = b"Anyone?"
        assert normalize_payload(payload) is payload

    def test_bytearray_copied(self):
        """Test mutable buffers are copied to immutable bytes."""
        buffer = bytearray(b"abc")
        result = normalize_payload(buffer)
        buffer[0] = ord("x")

        assert result == b"abc"
        assert isinstance(result, bytes)

    def test_memoryview_accepted(self):
        assert normalize_payload(memoryview(b"xyz")) == b"xyz"

    def test_text_rejected(self):
        """Test text payloads are not implicitly encoded."""
        with pytest.raises(TypeError):
            normalize_payload("PING")


class TestServerInformation:
    """Tests for the ServerInformation record."""

    def test_fields(self):
        info = ServerInformation(("192.168.1.20", 8757), b"Hello there!")

        assert info.address == ("192.168.1.20", 8757)
        assert info.host == "192.168.1.20"
        assert info.port == 8757
        assert info.data == b"Hello there!"

    def test_text(self):
        info = ServerInformation(("10.0.0.1", 1), "héllo".encode("utf-8"))
        assert info.text() == "héllo"
        assert ServerInformation(("10.0.0.1", 1), b"abc").text("ascii") == "abc"

    def test_immutable(self):
        """Test records cannot be modified after construction."""
        info = ServerInformation(("10.0.0.1", 1), b"abc")

        with pytest.raises(dataclasses.FrozenInstanceError):
            info.data = b"changed"

    def test_equality(self):
        """Test two replies with the same content compare equal."""
        a = ServerInformation(("10.0.0.1", 1), b"abc")
        b = ServerInformation(("10.0.0.1", 1), b"abc")

        assert a == b

    def test_str(self):
        info = ServerInformation(("10.0.0.1", 8757), b"abcd")
        assert str(info) == "10.0.0.1:8757 (4 bytes)"
