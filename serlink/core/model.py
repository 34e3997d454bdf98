"""Core data models used across connection, service, and CLI."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any

from serlink.core.codec import normalize_charset, parse_code
from serlink.core.errors import ConfigParseError

DEFAULT_BAUD_RATE = 9600
DEFAULT_DATA_BITS = 8
DEFAULT_STOP_BITS = 1
DEFAULT_PARITY = 0
DEFAULT_START_CODE = "0x05"
DEFAULT_END_CODE = "0x0D"
DEFAULT_CHARSET = "UTF-8"
DEFAULT_MAX_FRAME_SIZE = 65536

VALID_DATA_BITS = (5, 6, 7, 8)
VALID_STOP_BITS = (1, 2, 3)
VALID_PARITIES = (0, 1, 2, 3, 4)


class ConnectionStatus(str, Enum):
    INITIALIZING = "Initializing"
    CONNECTED = "Connected"
    DISCONNECTED = "Disconnected"
    FAILED_TO_CONNECT = "Failed to Connect"


class Command(str, Enum):
    ADD = "add"
    CONNECT = "connect"
    DISCONNECT = "disconnect"
    EDIT = "edit"
    REMOVE = "remove"
    SEND = "send"
    RESCAN = "rescan"


@dataclass(frozen=True)
class ConnectionConfig:
    """Snapshot of everything needed to (re)open one serial connection.

    ``start_code`` and ``end_code`` are kept as entered (``"0x05"``, ``"13"``,
    ``"$"``) and resolved against ``charset`` by :meth:`resolve_codes`.
    ``charset`` is a codec name or ``"None"`` for hex rendering.
    """

    port: str
    baud_rate: int = DEFAULT_BAUD_RATE
    data_bits: int = DEFAULT_DATA_BITS
    stop_bits: int = DEFAULT_STOP_BITS
    parity: int = DEFAULT_PARITY
    start_code: str = DEFAULT_START_CODE
    end_code: str = DEFAULT_END_CODE
    charset: str = DEFAULT_CHARSET
    flush_on_idle: bool = False
    max_frame_size: int = DEFAULT_MAX_FRAME_SIZE

    @property
    def charset_mode(self) -> str | None:
        return normalize_charset(self.charset)

    def resolve_codes(self) -> tuple[int, int]:
        mode = self.charset_mode
        return parse_code(self.start_code, mode), parse_code(self.end_code, mode)

    def validate(self) -> tuple[int, int]:
        """Check every field against the persisted schema's limits.

        Returns the resolved ``(start, end)`` codes. Raises
        :class:`ConfigParseError` for the first field that is out of range.
        """
        if not self.port.strip():
            raise ConfigParseError("Port must not be empty")
        if self.baud_rate < 1:
            raise ConfigParseError(f"Baud rate must be positive, got {self.baud_rate}")
        if self.data_bits not in VALID_DATA_BITS:
            raise ConfigParseError(f"Data bits must be one of 5-8, got {self.data_bits}")
        if self.stop_bits not in VALID_STOP_BITS:
            raise ConfigParseError(f"Stop bits must be 1, 2 or 3 (1.5), got {self.stop_bits}")
        if self.parity not in VALID_PARITIES:
            raise ConfigParseError(f"Parity must be 0-4 (none, odd, even, mark, space), got {self.parity}")
        if self.max_frame_size < 1:
            raise ConfigParseError(f"Max frame size must be positive, got {self.max_frame_size}")
        return self.resolve_codes()

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class SendResult:
    connection: str
    message: str
    payload_hex: str
    frame_hex: str
