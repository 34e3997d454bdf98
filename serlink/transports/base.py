"""Transport interfaces."""

from __future__ import annotations

from typing import Any, Protocol

from serlink.core.model import ConnectionConfig


class PortLister(Protocol):
    def list_ports(self) -> set[str]:
        """Return the identifiers of serial ports currently present."""


class Transport(PortLister, Protocol):
    def open(self, config: ConnectionConfig) -> Any:
        """Open a port and return its handle."""

    def close(self, handle: Any) -> None:
        """Close a handle returned by :meth:`open`."""

    def bytes_available(self, handle: Any) -> int:
        """Number of bytes that can be read without blocking."""

    def read_byte(self, handle: Any) -> int:
        """Read one byte."""

    def write(self, handle: Any, data: bytes) -> None:
        """Write and flush ``data``."""
