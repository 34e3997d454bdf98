from __future__ import annotations

from pathlib import Path

import pytest

from serlink.core.errors import (
    CommandUnavailableError,
    ConfigParseError,
    ConnectionNotFoundError,
    DuplicateConnectionError,
)
from serlink.core.model import Command, ConnectionConfig, ConnectionStatus
from serlink.core.service import SerialLink
from serlink.core.store import ConnectionStore, StoredConnection


@pytest.fixture
def store(tmp_path: Path) -> ConnectionStore:
    return ConnectionStore(tmp_path / "connections.yaml")


@pytest.fixture
def link(transport, store):
    statuses: list[tuple[str, ConnectionStatus]] = []
    service = SerialLink(
        transport=transport,
        store=store,
        on_status=lambda name, status: statuses.append((name, status)),
        poll_interval_s=60.0,
    )
    service.statuses = statuses
    yield service
    service.shutdown()


def test_add_connection_persists_and_connects(link, store, transport) -> None:
    conn = link.add_connection("meter", ConnectionConfig(port="/dev/ttyUSB0"))
    assert conn.status == ConnectionStatus.CONNECTED
    assert [item.name for item in store.load()] == ["meter"]
    assert link.statuses == [("meter", ConnectionStatus.CONNECTED)]


def test_add_connection_that_fails_to_open_is_kept(link, store, transport) -> None:
    transport.fail_open.add("/dev/ttyUSB9")
    conn = link.add_connection("meter", ConnectionConfig(port="/dev/ttyUSB9"))
    assert conn.status == ConnectionStatus.FAILED_TO_CONNECT
    assert [item.name for item in store.load()] == ["meter"]


def test_add_connection_with_bad_code_is_rejected(link, store) -> None:
    with pytest.raises(ConfigParseError):
        link.add_connection("meter", ConnectionConfig(port="/dev/ttyUSB0", end_code="999"))
    assert link.list_connections() == []
    assert store.load() == []


def test_add_connection_with_out_of_range_parity_is_rejected(link, store) -> None:
    with pytest.raises(ConfigParseError, match="Parity"):
        link.add_connection("meter", ConnectionConfig(port="/dev/ttyUSB0", parity=7))
    assert link.list_connections() == []
    assert store.load() == []


def test_edit_with_out_of_range_settings_keeps_saved_config(link, store, transport) -> None:
    link.add_connection("meter", ConnectionConfig(port="/dev/ttyUSB0"))
    with pytest.raises(ConfigParseError):
        link.edit_connection("meter", ConnectionConfig(port="/dev/ttyUSB0", data_bits=9))
    with pytest.raises(ConfigParseError):
        link.edit_connection("meter", ConnectionConfig(port="/dev/ttyUSB0", stop_bits=0), new_name="gauge")
    assert link.get("meter").connected
    assert [item.name for item in store.load()] == ["meter"]
    assert store.load()[0].config.data_bits == 8


def test_add_duplicate_name_rejected(link) -> None:
    link.add_connection("meter", ConnectionConfig(port="/dev/ttyUSB0"))
    with pytest.raises(DuplicateConnectionError):
        link.add_connection("meter", ConnectionConfig(port="/dev/ttyUSB1"))


def test_edit_in_place_reconfigures(link, store, transport) -> None:
    link.add_connection("meter", ConnectionConfig(port="/dev/ttyUSB0"))
    conn = link.edit_connection("meter", ConnectionConfig(port="/dev/ttyUSB1", baud_rate=115200))
    assert conn.status == ConnectionStatus.CONNECTED
    assert transport.handle.port == "/dev/ttyUSB1"
    assert store.load()[0].config.baud_rate == 115200


def test_edit_with_rename_keeps_position(link, store, transport) -> None:
    link.add_connection("a", ConnectionConfig(port="/dev/ttyUSB0"))
    link.add_connection("b", ConnectionConfig(port="/dev/ttyUSB1"))
    old_handle = transport.handles[0]

    renamed = link.edit_connection("a", ConnectionConfig(port="/dev/ttyUSB0"), new_name="c")

    assert renamed.name == "c"
    assert old_handle.closed
    assert [conn.name for conn in link.list_connections()] == ["c", "b"]
    assert [item.name for item in store.load()] == ["c", "b"]
    with pytest.raises(ConnectionNotFoundError):
        link.get("a")


def test_rename_to_existing_name_rejected(link) -> None:
    link.add_connection("a", ConnectionConfig(port="/dev/ttyUSB0"))
    link.add_connection("b", ConnectionConfig(port="/dev/ttyUSB1"))
    with pytest.raises(DuplicateConnectionError):
        link.edit_connection("a", ConnectionConfig(port="/dev/ttyUSB0"), new_name="b")


def test_remove_disconnects_and_persists(link, store, transport) -> None:
    link.add_connection("meter", ConnectionConfig(port="/dev/ttyUSB0"))
    link.remove_connection("meter")
    assert transport.handle.closed
    assert store.load() == []
    with pytest.raises(ConnectionNotFoundError):
        link.remove_connection("meter")


def test_restore_connects_and_reports_failures(transport, store) -> None:
    store.save(
        [
            StoredConnection("ok", ConnectionConfig(port="/dev/ttyUSB0")),
            StoredConnection("missing", ConnectionConfig(port="/dev/ttyUSB7")),
        ]
    )
    transport.fail_open.add("/dev/ttyUSB7")
    link = SerialLink(transport=transport, store=store)
    try:
        warnings = link.restore()
        assert link.get("ok").status == ConnectionStatus.CONNECTED
        assert link.get("missing").status == ConnectionStatus.FAILED_TO_CONNECT
        assert len(warnings) == 1
        assert "missing" in warnings[0]
    finally:
        link.shutdown()


def test_partial_restore_keeps_other_connections_on_save(transport, store) -> None:
    store.save(
        [
            StoredConnection("a", ConnectionConfig(port="/dev/ttyUSB0")),
            StoredConnection("b", ConnectionConfig(port="/dev/ttyUSB1")),
        ]
    )
    link = SerialLink(transport=transport, store=store)
    try:
        link.restore(only={"a"}, connect=False)
        assert [conn.name for conn in link.list_connections()] == ["a"]
        assert transport.opened == []
        link.edit_connection("a", ConnectionConfig(port="/dev/ttyUSB0", baud_rate=4800))
        with pytest.raises(DuplicateConnectionError):
            link.add_connection("b", ConnectionConfig(port="/dev/ttyUSB1"))
        assert [item.name for item in store.load()] == ["a", "b"]
    finally:
        link.shutdown()


def test_send_and_connection_commands(link, transport) -> None:
    link.add_connection("meter", ConnectionConfig(port="/dev/ttyUSB0"))
    result = link.send("meter", "hi")
    assert result.frame_hex == "05 68 69 0d"
    assert link.disconnect("meter") == ConnectionStatus.DISCONNECTED
    assert link.connect("meter") == ConnectionStatus.CONNECTED


def test_dispatch_routes_commands(link, transport) -> None:
    assert link.dispatch(Command.RESCAN) == ["/dev/ttyUSB0", "/dev/ttyUSB1"]
    link.dispatch(Command.ADD, "meter", config=ConnectionConfig(port="/dev/ttyUSB0"))
    link.dispatch(Command.SEND, "meter", message="AB", start_code="0x02")
    assert transport.handle.written == [bytes([0x02, 0x41, 0x42, 0x0D])]

    link.dispatch(Command.DISCONNECT, "meter")
    with pytest.raises(CommandUnavailableError):
        link.dispatch(Command.SEND, "meter", message="AB")
    with pytest.raises(CommandUnavailableError):
        link.dispatch(Command.DISCONNECT, "meter")

    link.dispatch(Command.CONNECT, "meter")
    link.dispatch(Command.REMOVE, "meter")
    assert link.list_connections() == []


def test_dispatch_requires_name(link) -> None:
    with pytest.raises(CommandUnavailableError):
        link.dispatch(Command.CONNECT)


def test_port_choices_include_configured_port(link, transport) -> None:
    link.rescan_ports()
    link.add_connection("meter", ConnectionConfig(port="/dev/ttyACM3"))
    assert link.port_choices() == ["/dev/ttyUSB0", "/dev/ttyUSB1"]
    assert link.port_choices("meter") == ["/dev/ttyACM3", "/dev/ttyUSB0", "/dev/ttyUSB1"]

    transport.ports = {"/dev/ttyUSB2"}
    assert link.rescan_ports() == ["/dev/ttyUSB2"]
