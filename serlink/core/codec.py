"""Conversion between frame bytes and their text form.

A charset of ``None`` means no text decoding at all: frames are rendered as
lowercase hex octets (``"41 42 0d"``) and outgoing text is parsed the same way.
"""

from __future__ import annotations

import codecs
import re
from encodings.aliases import aliases

from serlink.core.errors import ConfigParseError, EncodeError

NO_CHARSET = "None"
_HEX_TOKEN_RE = re.compile(r"^(?:0x)?([0-9a-f]{1,2})$", re.IGNORECASE)


def normalize_charset(name: str | None) -> str | None:
    """Return the codec name to use, or ``None`` for hex mode."""
    if name is None or name.strip() == NO_CHARSET:
        return None
    try:
        codecs.lookup(name.strip())
    except LookupError as exc:
        raise ConfigParseError(f"Unknown charset '{name}'") from exc
    if not _is_text_codec(name.strip()):
        raise ConfigParseError(f"Charset '{name}' is not a text encoding")
    return name.strip()


def available_charsets() -> list[str]:
    names = {codecs.lookup(alias).name for alias in set(aliases.values()) if _is_text_codec(alias)}
    return sorted(names) + [NO_CHARSET]


def _is_text_codec(name: str) -> bool:
    try:
        return getattr(codecs.lookup(name), "_is_text_encoding", True)
    except LookupError:
        return False


def to_hex(data: bytes) -> str:
    return data.hex(" ")


def decode(data: bytes, charset: str | None) -> str:
    if charset is None:
        return to_hex(data)
    try:
        return data.decode(charset)
    except (UnicodeDecodeError, LookupError):
        return to_hex(data)


def encode(text: str, charset: str | None) -> bytes:
    if charset is None:
        return _parse_hex(text)
    try:
        return text.encode(charset)
    except (UnicodeEncodeError, LookupError) as exc:
        raise EncodeError(f"Message cannot be encoded as {charset}: {exc}") from exc


def _parse_hex(text: str) -> bytes:
    payload = bytearray()
    for token in text.split():
        match = _HEX_TOKEN_RE.match(token)
        if not match:
            raise EncodeError(
                f"No charset, and '{token}' is not a byte in hex notation"
            )
        payload.append(int(match.group(1), 16))
    return bytes(payload)


def parse_code(text: str, charset: str | None) -> int:
    """Resolve a start or end code to a single byte value.

    Accepts ``0x``-prefixed hex, then decimal, then (when a charset is set)
    the first byte of ``text`` encoded under that charset.
    """
    value = text.strip()
    number: int | None = None
    if value.lower().startswith("0x"):
        try:
            number = int(value[2:], 16)
        except ValueError:
            number = None
    elif value.isdecimal():
        number = int(value, 10)

    if number is not None:
        if not 0 <= number <= 0xFF:
            raise ConfigParseError(f"Code '{text}' is outside the byte range 0-255")
        return number

    if charset is None:
        raise ConfigParseError(f"Failed to parse code '{text}' without a charset")
    if not text:
        raise ConfigParseError("Code must not be empty")
    try:
        encoded = text.encode(charset)
    except (UnicodeEncodeError, LookupError) as exc:
        raise ConfigParseError(f"Failed to parse code '{text}' as {charset}") from exc
    return encoded[0]
