"""Stable public API for building tooling on top of serlink.

This module is the supported integration surface for third-party callers.
Avoid importing from private/internal modules unless intentionally depending on
non-stable internals.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from serlink.core.codec import NO_CHARSET, available_charsets
from serlink.core.errors import (
    CommandUnavailableError,
    ConfigParseError,
    ConnectionNotFoundError,
    ConnectionStoreError,
    DuplicateConnectionError,
    EncodeError,
    SerlinkError,
    TransportError,
    TransportIOError,
    TransportOpenError,
)
from serlink.core.framing import FrameAssembler, build_frame
from serlink.core.model import Command, ConnectionConfig, ConnectionStatus, SendResult
from serlink.core.service import SerialLink
from serlink.core.store import ConnectionStore
from serlink.transports.base import Transport

__all__ = [
    "SerlinkError",
    "CommandUnavailableError",
    "ConfigParseError",
    "ConnectionNotFoundError",
    "ConnectionStoreError",
    "DuplicateConnectionError",
    "EncodeError",
    "TransportError",
    "TransportIOError",
    "TransportOpenError",
    "Command",
    "ConnectionConfig",
    "ConnectionStatus",
    "SendResult",
    "FrameAssembler",
    "build_frame",
    "NO_CHARSET",
    "available_charsets",
    "ConnectionInfo",
    "Client",
]


@dataclass(frozen=True)
class ConnectionInfo:
    """Snapshot of one connection as seen by callers."""

    name: str
    config: ConnectionConfig
    status: ConnectionStatus
    value: str | None
    commands: frozenset[Command]


class Client:
    """Public client for interacting with serlink core capabilities.

    A `Client` instance wraps a :class:`SerialLink` so that GUI/TUI/service
    callers can manage connections, subscribe to decoded frames and send
    messages without depending on internals.
    """

    def __init__(
        self,
        *,
        transport: Transport | None = None,
        config_path: Path | None = None,
        persist: bool = True,
        on_status: Callable[[str, ConnectionStatus], None] | None = None,
    ) -> None:
        store = ConnectionStore(config_path) if persist else None
        self._link = SerialLink(transport=transport, store=store, on_status=on_status)

    def restore(self) -> tuple[str, ...]:
        return tuple(self._link.restore())

    def list_connections(self) -> list[ConnectionInfo]:
        return [self.get_connection(conn.name) for conn in self._link.list_connections()]

    def get_connection(self, name: str) -> ConnectionInfo:
        conn = self._link.get(name)
        return ConnectionInfo(
            name=conn.name,
            config=conn.config,
            status=conn.status,
            value=conn.value,
            commands=conn.available_commands(),
        )

    def add_connection(self, name: str, config: ConnectionConfig) -> ConnectionInfo:
        self._link.add_connection(name, config)
        return self.get_connection(name)

    def edit_connection(
        self,
        name: str,
        config: ConnectionConfig,
        *,
        new_name: str | None = None,
    ) -> ConnectionInfo:
        conn = self._link.edit_connection(name, config, new_name=new_name)
        return self.get_connection(conn.name)

    def remove_connection(self, name: str) -> None:
        self._link.remove_connection(name)

    def connect(self, name: str) -> ConnectionStatus:
        return self._link.connect(name)

    def disconnect(self, name: str) -> ConnectionStatus:
        return self._link.disconnect(name)

    def send(
        self,
        name: str,
        message: str,
        *,
        start_code: str | None = None,
        end_code: str | None = None,
    ) -> SendResult:
        return self._link.send(name, message, start_code=start_code, end_code=end_code)

    def subscribe(self, name: str, listener: Callable[[str], None]) -> None:
        self._link.get(name).subscribe(listener)

    def unsubscribe(self, name: str, listener: Callable[[str], None]) -> None:
        self._link.get(name).unsubscribe(listener)

    def rescan_ports(self) -> list[str]:
        return self._link.rescan_ports()

    def port_choices(self, name: str | None = None) -> list[str]:
        return self._link.port_choices(name)

    def close(self) -> None:
        self._link.shutdown()
