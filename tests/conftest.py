from __future__ import annotations

from concurrent.futures import Executor, Future

import pytest

from serlink.core.errors import TransportIOError, TransportOpenError
from serlink.core.model import ConnectionConfig


class FakeHandle:
    def __init__(self, port: str) -> None:
        self.port = port
        self.inbound = bytearray()
        self.written: list[bytes] = []
        self.closed = False
        self.read_error_after: int | None = None

    def push(self, data: bytes) -> None:
        self.inbound.extend(data)


class FakeSerialTransport:
    """In-memory transport; reading or writing a closed handle fails the test."""

    def __init__(self) -> None:
        self.ports = {"/dev/ttyUSB0", "/dev/ttyUSB1"}
        self.fail_open: set[str] = set()
        self.fail_write = False
        self.fail_close = False
        self.preload: dict[str, bytes] = {}
        self.handles: list[FakeHandle] = []
        self.opened: list[ConnectionConfig] = []

    @property
    def handle(self) -> FakeHandle:
        return self.handles[-1]

    def open(self, config: ConnectionConfig) -> FakeHandle:
        if config.port in self.fail_open:
            raise TransportOpenError(f"Could not open serial port {config.port}")
        self.opened.append(config)
        handle = FakeHandle(config.port)
        handle.push(self.preload.get(config.port, b""))
        self.handles.append(handle)
        return handle

    def close(self, handle: FakeHandle) -> None:
        handle.closed = True
        if self.fail_close:
            raise TransportIOError("close failed")

    def bytes_available(self, handle: FakeHandle) -> int:
        assert not handle.closed, "bytes_available on a closed handle"
        return len(handle.inbound)

    def read_byte(self, handle: FakeHandle) -> int:
        assert not handle.closed, "read on a closed handle"
        if handle.read_error_after is not None:
            if handle.read_error_after == 0:
                handle.read_error_after = None
                raise TransportIOError("read failed")
            handle.read_error_after -= 1
        return handle.inbound.pop(0)

    def write(self, handle: FakeHandle, data: bytes) -> None:
        assert not handle.closed, "write on a closed handle"
        if self.fail_write:
            raise TransportIOError("write failed")
        handle.written.append(data)

    def list_ports(self) -> set[str]:
        return set(self.ports)


class InlineExecutor(Executor):
    """Runs submitted work in the submitting thread."""

    def __init__(self) -> None:
        self.submitted = 0

    def submit(self, fn, /, *args, **kwargs) -> Future:
        self.submitted += 1
        future: Future = Future()
        future.set_result(fn(*args, **kwargs))
        return future


@pytest.fixture
def transport() -> FakeSerialTransport:
    return FakeSerialTransport()


@pytest.fixture
def executor() -> InlineExecutor:
    return InlineExecutor()
