"""A single serial connection: lifecycle, inbound polling, and sending."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import Executor
from typing import Any

from serlink.core import codec
from serlink.core.errors import CommandUnavailableError, TransportIOError, TransportOpenError
from serlink.core.framing import FrameAssembler, build_frame
from serlink.core.model import Command, ConnectionConfig, ConnectionStatus, SendResult
from serlink.core.poller import POLL_INTERVAL_S, PeriodicTask
from serlink.transports.base import Transport

LOGGER = logging.getLogger(__name__)

ValueListener = Callable[[str], None]
StatusListener = Callable[["SerialConnection", ConnectionStatus], None]


class SerialConnection:
    """Owns one port handle and turns its byte stream into published values.

    Transport handle, in-flight message and status are only touched while
    holding ``_lock``. Writes additionally hold ``_write_lock``, which is
    always taken before ``_lock``; the poller never takes it, so a stalled
    write cannot stall reading. Value listeners and the status callback run
    after both locks are released.
    """

    def __init__(
        self,
        name: str,
        config: ConnectionConfig,
        transport: Transport,
        *,
        executor: Executor,
        on_status: StatusListener | None = None,
        poll_interval_s: float = POLL_INTERVAL_S,
    ) -> None:
        start_code, end_code = config.validate()
        self.name = name
        self._config = config
        self._charset = config.charset_mode
        self._transport = transport
        self._executor = executor
        self._on_status = on_status
        self._poll_interval_s = poll_interval_s

        self._lock = threading.RLock()
        self._write_lock = threading.RLock()
        self._handle: Any = None
        self._assembler = FrameAssembler(
            start_code, end_code, max_frame_size=config.max_frame_size
        )
        self._listeners: list[ValueListener] = []
        self._poller: PeriodicTask | None = None
        self._value: str | None = None
        self._status = ConnectionStatus.INITIALIZING
        self._pending_status: list[ConnectionStatus] = []

    @property
    def config(self) -> ConnectionConfig:
        return self._config

    @property
    def status(self) -> ConnectionStatus:
        return self._status

    @property
    def connected(self) -> bool:
        return self._handle is not None

    @property
    def subscribed(self) -> bool:
        return self._poller is not None

    @property
    def value(self) -> str | None:
        return self._value

    def available_commands(self) -> frozenset[Command]:
        if self.connected:
            return frozenset({Command.DISCONNECT, Command.SEND, Command.EDIT, Command.REMOVE})
        return frozenset({Command.CONNECT, Command.EDIT, Command.REMOVE})

    def connect(self) -> ConnectionStatus:
        """Open the port unless it is already open.

        Raises:
            TransportOpenError: The port could not be opened. The status is
                left at ``FAILED_TO_CONNECT`` and ``connect`` may be retried.
        """
        try:
            with self._lock:
                return self._open()
        finally:
            self._emit_status()

    def disconnect(self) -> ConnectionStatus:
        try:
            with self._write_lock, self._lock:
                return self._close_handle()
        finally:
            self._emit_status()

    def reconfigure(self, config: ConnectionConfig) -> ConnectionStatus:
        """Tear down and reopen with ``config``.

        The new settings are validated before anything is torn down, so a
        :class:`ConfigParseError` leaves the connection untouched.
        """
        start_code, end_code = config.validate()
        charset = config.charset_mode
        try:
            with self._write_lock, self._lock:
                self._close_handle()
                self._config = config
                self._charset = charset
                self._assembler = FrameAssembler(
                    start_code, end_code, max_frame_size=config.max_frame_size
                )
                self._set_status(ConnectionStatus.INITIALIZING)
                return self._open()
        finally:
            self._emit_status()

    def send(
        self,
        message: str,
        start_code: str | None = None,
        end_code: str | None = None,
    ) -> SendResult:
        """Encode ``message``, wrap it in start/end codes and write it.

        ``start_code``/``end_code`` override the configured codes for this
        send only. Nothing is written if encoding fails.
        """
        with self._write_lock:
            with self._lock:
                handle = self._handle
                if handle is None:
                    raise CommandUnavailableError(f"Connection '{self.name}' is not connected")
                config, charset = self._config, self._charset

            start = codec.parse_code(start_code, charset) if start_code is not None else None
            end = codec.parse_code(end_code, charset) if end_code is not None else None
            if start is None or end is None:
                default_start, default_end = config.resolve_codes()
                start = default_start if start is None else start
                end = default_end if end is None else end

            payload = codec.encode(message, charset)
            frame = build_frame(payload, start, end)
            try:
                self._transport.write(handle, frame)
            except TransportIOError as exc:
                LOGGER.warning("Send on '%s' failed: %s", self.name, exc)
                raise
        LOGGER.debug("Sent %d bytes on '%s'", len(frame), self.name)
        return SendResult(
            connection=self.name,
            message=message,
            payload_hex=codec.to_hex(payload),
            frame_hex=codec.to_hex(frame),
        )

    def subscribe(self, listener: ValueListener) -> None:
        """Register ``listener``; the first subscriber starts polling."""
        with self._lock:
            self._listeners.append(listener)
            if self._poller is not None:
                return
            task = PeriodicTask(
                lambda: self._poll_cycle(task),
                self._executor,
                delay_s=self._poll_interval_s,
                name=f"poll:{self.name}",
            )
            self._poller = task
        task.start()

    def unsubscribe(self, listener: ValueListener) -> None:
        """Remove ``listener``; when none are left, stop polling.

        The in-flight message is discarded, so a partial frame is never
        completed after a later resubscribe.
        """
        with self._lock:
            try:
                self._listeners.remove(listener)
            except ValueError:
                return
            if self._listeners:
                return
            self._stop_polling()

    def close(self) -> None:
        """Stop polling and disconnect; used when the connection is removed."""
        with self._lock:
            self._listeners.clear()
            self._stop_polling()
        self.disconnect()

    def poll(self) -> list[str]:
        """Drain the bytes currently available and publish completed frames."""
        with self._lock:
            values = self._drain()
            listeners = list(self._listeners)
        self._notify(listeners, values)
        return values

    def _poll_cycle(self, task: PeriodicTask) -> None:
        with self._lock:
            if self._poller is not task:
                return
            values = self._drain()
            listeners = list(self._listeners)
        self._notify(listeners, values)

    def _drain(self) -> list[str]:
        if self._handle is None:
            return []
        values: list[str] = []
        try:
            while self._transport.bytes_available(self._handle) > 0:
                frame = self._assembler.consume(self._transport.read_byte(self._handle))
                if frame is not None:
                    values.append(self._decode(frame))
        except TransportIOError as exc:
            LOGGER.debug("Read on '%s' failed: %s", self.name, exc)
            return values
        if self._config.flush_on_idle:
            frame = self._assembler.flush()
            if frame is not None:
                values.append(self._decode(frame))
        return values

    def _stop_polling(self) -> None:
        if self._poller is not None:
            self._poller.cancel()
            self._poller = None
        self._assembler.reset()

    def _decode(self, frame: bytes) -> str:
        value = codec.decode(frame, self._charset)
        self._value = value
        return value

    def _notify(self, listeners: list[ValueListener], values: list[str]) -> None:
        # Called without the locks held; a listener may send or disconnect.
        for value in values:
            for listener in listeners:
                try:
                    listener(value)
                except Exception:
                    LOGGER.exception("Value listener for '%s' failed", self.name)

    def _open(self) -> ConnectionStatus:
        if self._handle is not None:
            return self._status
        try:
            self._handle = self._transport.open(self._config)
        except TransportOpenError as exc:
            LOGGER.warning("Connection '%s' failed to connect: %s", self.name, exc)
            self._set_status(ConnectionStatus.FAILED_TO_CONNECT)
            raise
        self._set_status(ConnectionStatus.CONNECTED)
        return self._status

    def _close_handle(self) -> ConnectionStatus:
        self._assembler.reset()
        if self._handle is None:
            return self._status
        handle, self._handle = self._handle, None
        try:
            self._transport.close(handle)
        except TransportIOError as exc:
            LOGGER.debug("Error closing '%s': %s", self.name, exc)
        self._set_status(ConnectionStatus.DISCONNECTED)
        return self._status

    def _set_status(self, status: ConnectionStatus) -> None:
        self._status = status
        LOGGER.info("Connection '%s': %s", self.name, status.value)
        self._pending_status.append(status)

    def _emit_status(self) -> None:
        with self._lock:
            pending, self._pending_status = self._pending_status, []
        if self._on_status is None:
            return
        for status in pending:
            self._on_status(self, status)
