"""Single-byte sentinel framing for inbound and outbound serial messages.

Inbound bytes are assembled into frames by :class:`FrameAssembler`::

    ... noise ... | START | payload ... | END | ... noise ... | START | ...

Bytes seen between frames are dropped. Outbound messages are wrapped by
:func:`build_frame` with the same layout.
"""

from __future__ import annotations

import logging

from serlink.core.model import DEFAULT_MAX_FRAME_SIZE

LOGGER = logging.getLogger(__name__)


class FrameAssembler:
    """Byte-at-a-time frame state machine.

    While no message is in flight the assembler is *seeking* a start code and
    discards everything else, including stray end codes. Once a start code is
    seen it is *collecting* until the end code, which completes the frame.
    """

    def __init__(
        self,
        start_code: int,
        end_code: int,
        *,
        max_frame_size: int = DEFAULT_MAX_FRAME_SIZE,
    ) -> None:
        self.start_code = start_code
        self.end_code = end_code
        self.max_frame_size = max_frame_size
        self._message: bytearray | None = None

    @property
    def collecting(self) -> bool:
        return self._message is not None

    def consume(self, byte: int) -> bytes | None:
        """Consume one byte; return the completed frame payload, if any."""
        if self._message is None:
            if byte == self.start_code:
                self._message = bytearray()
            return None

        if byte == self.end_code:
            frame = bytes(self._message)
            self._message = None
            return frame

        if len(self._message) >= self.max_frame_size:
            LOGGER.warning(
                "Discarding in-flight message: exceeded %d bytes without end code 0x%02x",
                self.max_frame_size,
                self.end_code,
            )
            self._message = None
            return None

        self._message.append(byte)
        return None

    def feed(self, data: bytes) -> list[bytes]:
        frames: list[bytes] = []
        for byte in data:
            frame = self.consume(byte)
            if frame is not None:
                frames.append(frame)
        return frames

    def flush(self) -> bytes | None:
        """Complete a non-empty in-flight message without an end code."""
        if not self._message:
            return None
        frame = bytes(self._message)
        self._message = None
        return frame

    def reset(self) -> None:
        self._message = None


def build_frame(payload: bytes, start_code: int, end_code: int) -> bytes:
    """Wrap ``payload`` in start/end codes for transmission."""
    return bytes([start_code]) + payload + bytes([end_code])
