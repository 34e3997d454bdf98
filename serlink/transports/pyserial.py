"""Serial port transport implementation using pyserial."""

from __future__ import annotations

import logging

import serial
import serial.tools.list_ports

from serlink.core.errors import TransportIOError, TransportOpenError
from serlink.core.model import ConnectionConfig

LOGGER = logging.getLogger(__name__)

_PARITIES = {
    0: serial.PARITY_NONE,
    1: serial.PARITY_ODD,
    2: serial.PARITY_EVEN,
    3: serial.PARITY_MARK,
    4: serial.PARITY_SPACE,
}
_STOP_BITS = {
    1: serial.STOPBITS_ONE,
    2: serial.STOPBITS_TWO,
    3: serial.STOPBITS_ONE_POINT_FIVE,
}
_READ_TIMEOUT_S = 1.0


class PySerialTransport:
    def open(self, config: ConnectionConfig) -> serial.Serial:
        parity = _PARITIES.get(config.parity)
        if parity is None:
            raise TransportOpenError(f"Unsupported parity {config.parity} (expected 0-4)")
        stop_bits = _STOP_BITS.get(config.stop_bits)
        if stop_bits is None:
            raise TransportOpenError(f"Unsupported stop bits {config.stop_bits} (expected 1-3)")

        try:
            port = serial.Serial(
                port=config.port,
                baudrate=config.baud_rate,
                bytesize=config.data_bits,
                parity=parity,
                stopbits=stop_bits,
                timeout=_READ_TIMEOUT_S,
            )
        except (serial.SerialException, ValueError) as exc:
            raise TransportOpenError(f"Could not open serial port {config.port}: {exc}") from exc
        LOGGER.debug("Opened %s at %d baud", config.port, config.baud_rate)
        return port

    def close(self, handle: serial.Serial) -> None:
        try:
            handle.close()
        except (serial.SerialException, OSError) as exc:
            raise TransportIOError(f"Could not close serial port {handle.port}: {exc}") from exc

    def bytes_available(self, handle: serial.Serial) -> int:
        try:
            return handle.in_waiting
        except (serial.SerialException, OSError) as exc:
            raise TransportIOError(f"Could not query serial port {handle.port}: {exc}") from exc

    def read_byte(self, handle: serial.Serial) -> int:
        try:
            data = handle.read(1)
        except (serial.SerialException, OSError) as exc:
            raise TransportIOError(f"Read failed on {handle.port}: {exc}") from exc
        if not data:
            raise TransportIOError(f"Read timed out on {handle.port}")
        return data[0]

    def write(self, handle: serial.Serial, data: bytes) -> None:
        try:
            handle.write(data)
            handle.flush()
        except (serial.SerialException, OSError) as exc:
            raise TransportIOError(f"Write failed on {handle.port}: {exc}") from exc

    def list_ports(self) -> set[str]:
        return {port.device for port in serial.tools.list_ports.comports()}
