"""
MODULE: SETTINGS_FRAME
PROFILE: PSA COMFORT BUS (BSI 0x260 / HEAD UNIT 0x15B)

DESCRIPTION:
    Typed view over the 8-byte settings record the BSI broadcasts to the
    head unit, plus the encoder the head unit side uses to request changes.

    BYTE 0:    [7] MENU ACTIVE (always 1) | [6:2] LANGUAGE | [1:0] passthrough
    BYTE 1:    [6] CELSIUS | [2] TAIL OVERRIDE (inbound writes only) | rest passthrough
    BYTES 2-7: Opaque vendor configuration (never synthesized here)
"""

from typing import Iterable, Optional

FRAME_LENGTH = 8

# --- BIT LAYOUT ---
MENU_ACTIVE_BIT = 0x80   # byte 0
LANG_UNITS_BIT = 0x80    # byte 0 of an inbound write
LANGUAGE_MASK = 0x7C     # byte 0, bits 6..2
LANGUAGE_SHIFT = 2
LANGUAGE_MAX = 0x1F
CELSIUS_BIT = 0x40       # byte 1
TAIL_PRESENT_BIT = 0x04  # byte 1 of an inbound write

# --- LANGUAGE CODES (as selected on the head unit) ---
LANGUAGES = {
    0: "French",
    1: "English",
    2: "German",
    3: "Spanish",
    4: "Italian",
    5: "Portuguese",
    6: "Dutch",
    7: "Greek",
    8: "Brazilian Portuguese",
    9: "Polish",
    10: "Traditional Chinese",
    11: "Simplified Chinese",
    12: "Turkish",
    13: "Japanese",
    14: "Russian",
}


def language_name(code: int) -> str:
    return LANGUAGES.get(code, f"UNKNOWN_{code}")


class SettingsFrame:
    """
    The broadcast settings record.

    Byte 0 bit 7 is set on construction and re-asserted on every
    serialization, so no caller can emit a frame with the menu flag cleared.
    """

    def __init__(self, data: Iterable[int] = b""):
        raw = bytes(data)[:FRAME_LENGTH]
        self._data = bytearray(FRAME_LENGTH)
        self._data[:len(raw)] = raw
        self._data[0] |= MENU_ACTIVE_BIT

    # --- ACCESSORS ---
    @property
    def menu_active(self) -> bool:
        return True

    @property
    def language(self) -> int:
        return (self._data[0] & LANGUAGE_MASK) >> LANGUAGE_SHIFT

    @language.setter
    def language(self, code: int):
        if not 0 <= code <= LANGUAGE_MAX:
            raise ValueError(f"Language code out of range: {code}")
        self._data[0] = MENU_ACTIVE_BIT | (code << LANGUAGE_SHIFT) | (self._data[0] & 0x03)

    @property
    def celsius(self) -> bool:
        return bool(self._data[1] & CELSIUS_BIT)

    @celsius.setter
    def celsius(self, value: bool):
        if value:
            self._data[1] |= CELSIUS_BIT
        else:
            self._data[1] &= ~CELSIUS_BIT & 0xFF

    @property
    def tail(self) -> bytes:
        return bytes(self._data[1:])

    def override_tail(self, write: bytes):
        """
        Copies bytes [1 .. len(write)) of an inbound write over the stored
        frame. Byte 0 is never touched; bytes past the write keep their value.
        """
        end = min(len(write), FRAME_LENGTH)
        if end > 1:
            self._data[1:end] = write[1:end]

    def to_bytes(self) -> bytes:
        self._data[0] |= MENU_ACTIVE_BIT
        return bytes(self._data)

    def __eq__(self, other) -> bool:
        if not isinstance(other, SettingsFrame):
            return NotImplemented
        return self._data == other._data

    def __repr__(self) -> str:
        return f"SettingsFrame({self._data.hex(' ').upper()})"


def encode_settings_write(language: Optional[int] = None,
                          celsius: Optional[bool] = None,
                          tail: Optional[bytes] = None) -> bytes:
    """
    Builds a head-unit 'write settings' frame.

    Language and units travel together: passing either sets the lang/units
    flag, and the missing one defaults to 0 / Fahrenheit. A tail (bytes 1..n
    of the record) sets the tail-override flag in byte 1.
    """
    data = bytearray(FRAME_LENGTH if tail else 2)
    if tail:
        chunk = bytes(tail)[:FRAME_LENGTH - 1]
        data[1:1 + len(chunk)] = chunk
        data = data[:1 + max(len(chunk), 1)]
        data[1] |= TAIL_PRESENT_BIT

    if language is not None or celsius is not None:
        code = language or 0
        if not 0 <= code <= LANGUAGE_MAX:
            raise ValueError(f"Language code out of range: {code}")
        data[0] = LANG_UNITS_BIT | (code << LANGUAGE_SHIFT)
        if celsius:
            data[1] |= CELSIUS_BIT
        else:
            data[1] &= ~CELSIUS_BIT & 0xFF
    return bytes(data)
