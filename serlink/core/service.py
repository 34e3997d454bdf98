"""Service layer used by CLI and future UI frontends."""

from __future__ import annotations

import logging
from collections.abc import Callable, Collection
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from serlink.core.connection import SerialConnection
from serlink.core.errors import (
    CommandUnavailableError,
    ConnectionNotFoundError,
    DuplicateConnectionError,
    SerlinkError,
    TransportOpenError,
)
from serlink.core.model import Command, ConnectionConfig, ConnectionStatus, SendResult
from serlink.core.poller import POLL_INTERVAL_S
from serlink.core.store import ConnectionStore, StoredConnection
from serlink.transports.base import Transport
from serlink.transports.pyserial import PySerialTransport

LOGGER = logging.getLogger(__name__)

StatusCallback = Callable[[str, ConnectionStatus], None]


class SerialLink:
    """Ordered collection of serial connections and the commands acting on them.

    Each connection owns its own lifecycle; the link only keeps the ordered
    collection, persists it, and refreshes the port choices shared by all of
    them.
    """

    def __init__(
        self,
        *,
        transport: Transport | None = None,
        store: ConnectionStore | None = None,
        on_status: StatusCallback | None = None,
        poll_interval_s: float = POLL_INTERVAL_S,
        max_workers: int = 4,
    ) -> None:
        self.transport = transport or PySerialTransport()
        self.store = store
        self._on_status = on_status
        self._poll_interval_s = poll_interval_s
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="serlink-poll")
        self.connections: dict[str, SerialConnection] = {}
        self.ports: set[str] = set()
        self._skipped: list[StoredConnection] = []

    def restore(
        self,
        only: Collection[str] | None = None,
        *,
        connect: bool = True,
    ) -> list[str]:
        """Recreate persisted connections and (unless ``connect`` is false) open them.

        ``only`` limits the restore to the named connections; the others are
        kept aside and written back untouched on the next save. Returns
        warnings for entries that could not be restored or opened.
        """
        if self.store is None:
            return []
        warnings: list[str] = []
        for item in self.store.load():
            if only is not None and item.name not in only:
                self._skipped.append(item)
                continue
            try:
                conn = self._create(item.name, item.config)
            except SerlinkError as exc:
                warning = f"Could not restore connection '{item.name}': {exc}"
                LOGGER.warning(warning)
                warnings.append(warning)
                self._skipped.append(item)
                continue
            if not connect:
                continue
            try:
                conn.connect()
            except TransportOpenError as exc:
                warnings.append(f"Connection '{item.name}' failed to connect: {exc}")
        return warnings

    def list_connections(self) -> list[SerialConnection]:
        return list(self.connections.values())

    def get(self, name: str) -> SerialConnection:
        conn = self.connections.get(name)
        if conn is None:
            raise ConnectionNotFoundError(
                f"Unknown connection '{name}'. Use 'serlink list' to inspect configured connections."
            )
        return conn

    def add_connection(self, name: str, config: ConnectionConfig) -> SerialConnection:
        """Create, persist and open a new connection.

        The connection is kept even when opening fails; its status is then
        ``FAILED_TO_CONNECT`` and ``connect`` may be retried.
        """
        if self._name_taken(name):
            raise DuplicateConnectionError(f"Connection '{name}' already exists")
        conn = self._create(name, config)
        self._save()
        try:
            conn.connect()
        except TransportOpenError:
            pass
        return conn

    def edit_connection(
        self,
        name: str,
        config: ConnectionConfig,
        new_name: str | None = None,
    ) -> SerialConnection:
        conn = self.get(name)
        if new_name is None or new_name == name:
            try:
                conn.reconfigure(config)
            except TransportOpenError:
                pass
            self._save()
            return conn

        if self._name_taken(new_name):
            raise DuplicateConnectionError(f"Connection '{new_name}' already exists")
        config.validate()
        # Rebuild under the new name in the old position.
        conn.close()
        ordered = list(self.connections.items())
        replacement = self._build(new_name, config)
        self.connections = {
            (new_name if key == name else key): (replacement if key == name else value)
            for key, value in ordered
        }
        self._save()
        try:
            replacement.connect()
        except TransportOpenError:
            pass
        return replacement

    def remove_connection(self, name: str) -> None:
        conn = self.get(name)
        conn.close()
        del self.connections[name]
        self._save()

    def connect(self, name: str) -> ConnectionStatus:
        return self.get(name).connect()

    def disconnect(self, name: str) -> ConnectionStatus:
        return self.get(name).disconnect()

    def send(
        self,
        name: str,
        message: str,
        start_code: str | None = None,
        end_code: str | None = None,
    ) -> SendResult:
        return self.get(name).send(message, start_code=start_code, end_code=end_code)

    def rescan_ports(self) -> list[str]:
        self.ports = set(self.transport.list_ports())
        return sorted(self.ports)

    def port_choices(self, name: str | None = None) -> list[str]:
        """Port choices offered when adding (or editing ``name``)."""
        choices = set(self.ports)
        if name is not None:
            choices.add(self.get(name).config.port)
        return sorted(choices)

    def dispatch(self, command: Command, name: str | None = None, **params: Any) -> Any:
        """Run ``command`` against the link or the connection called ``name``."""
        if command == Command.RESCAN:
            return self.rescan_ports()
        if name is None:
            raise CommandUnavailableError(f"Command '{command.value}' requires a connection name")
        if command == Command.ADD:
            return self.add_connection(name, params["config"])

        conn = self.get(name)
        if command not in conn.available_commands():
            raise CommandUnavailableError(
                f"Command '{command.value}' is not available while '{name}' is {conn.status.value}"
            )
        if command == Command.CONNECT:
            return self.connect(name)
        elif command == Command.DISCONNECT:
            return self.disconnect(name)
        elif command == Command.EDIT:
            return self.edit_connection(name, params["config"], new_name=params.get("new_name"))
        elif command == Command.REMOVE:
            return self.remove_connection(name)
        elif command == Command.SEND:
            return self.send(
                name,
                params["message"],
                start_code=params.get("start_code"),
                end_code=params.get("end_code"),
            )
        raise CommandUnavailableError(f"Unsupported command '{command.value}'")

    def shutdown(self) -> None:
        for conn in self.connections.values():
            conn.close()
        self._executor.shutdown(wait=True)

    def _create(self, name: str, config: ConnectionConfig) -> SerialConnection:
        conn = self._build(name, config)
        self.connections[name] = conn
        return conn

    def _build(self, name: str, config: ConnectionConfig) -> SerialConnection:
        return SerialConnection(
            name,
            config,
            self.transport,
            executor=self._executor,
            on_status=self._status_changed,
            poll_interval_s=self._poll_interval_s,
        )

    def _name_taken(self, name: str) -> bool:
        return name in self.connections or any(item.name == name for item in self._skipped)

    def _status_changed(self, conn: SerialConnection, status: ConnectionStatus) -> None:
        if self._on_status is not None:
            self._on_status(conn.name, status)

    def _save(self) -> None:
        if self.store is None:
            return
        current = [StoredConnection(name=conn.name, config=conn.config) for conn in self.connections.values()]
        self.store.save(current + [item for item in self._skipped if item.name not in self.connections])
