"""
MODULE: COMMAND_DECODERS
PROFILE: PSA COMFORT BUS (HEAD UNIT WRITES)

DESCRIPTION:
    Interprets the two write commands a head unit sends to the BSI and
    mutates the emulator state accordingly.

    1. WRITE SETTINGS (1-8 bytes):
       - B0 bit 7 set  -> language (B0 bits 6..2) and units (B1 bit 6) present
       - B1 bit 2 set  -> bytes 1..n replace the stored tail verbatim
       Neither flag is a legal no-op write.

    2. WRITE DATE/TIME (>= 5 bytes):
       Anchors the live clock at the written calendar time.

    Both return True when the write was accepted (state persisted); the
    caller is responsible for the immediate re-broadcast.
"""

import logging

from bsi_emulator.protocol.datetime_frame import WRITE_MIN_LENGTH, DateTimeDecodeError, decode_time_write
from bsi_emulator.protocol.settings_frame import (
    CELSIUS_BIT, FRAME_LENGTH, LANG_UNITS_BIT, LANGUAGE_MASK, LANGUAGE_SHIFT,
    TAIL_PRESENT_BIT, language_name,
)

logger = logging.getLogger("BSI.PROTOCOL.DECODERS")


def apply_settings_write(settings, data: bytes) -> bool:
    if len(data) == 0:
        logger.debug("Empty settings write ignored.")
        return False

    # 1. NORMALIZE TO 8 BYTES
    buf = bytearray(FRAME_LENGTH)
    length = min(len(data), FRAME_LENGTH)
    buf[:length] = data[:length]

    # 2. FLAGS
    use_lang_units = bool(buf[0] & LANG_UNITS_BIT)
    use_tail = length > 1 and bool(buf[1] & TAIL_PRESENT_BIT)

    # 3. TAIL OVERRIDE (byte 0 untouched)
    if use_tail:
        settings.ensure_baseline()
        settings.frame.override_tail(bytes(buf[:length]))

    # 4. LANGUAGE / UNITS
    if use_lang_units:
        settings.language = (buf[0] & LANGUAGE_MASK) >> LANGUAGE_SHIFT
        settings.celsius = bool(buf[1] & CELSIUS_BIT)

    # 5. RESTORE INVARIANT BITS AND PERSIST
    settings.apply_language_and_units()
    if not settings.save():
        logger.warning("Settings write applied in memory only (persistence failed).")

    logger.info(f"SETTINGS WRITE {bytes(data).hex(' ').upper()} -> "
                f"lang/units={'Y' if use_lang_units else 'N'} tail={'Y' if use_tail else 'N'} | "
                f"LANG={language_name(settings.language)} {'C' if settings.celsius else 'F'}")
    return True


def apply_time_write(clock, settings, data: bytes) -> bool:
    if len(data) < WRITE_MIN_LENGTH:
        logger.debug(f"Short date/time write ignored ({len(data)} bytes).")
        return False

    try:
        fields = decode_time_write(data)
        epoch = fields.to_epoch()
    except DateTimeDecodeError as e:
        logger.warning(f"Date/time write rejected: {e}")
        return False

    if not clock.set_epoch(epoch):
        logger.warning("Clock anchor applied in memory only (persistence failed).")

    settings.clock_24h = fields.clock_24h
    if not settings.save():
        logger.warning("24h flag applied in memory only (persistence failed).")

    logger.info(f"TIME WRITE {bytes(data).hex(' ').upper()} -> "
                f"{fields.to_datetime().isoformat()} ({'24H' if fields.clock_24h else '12H'})")
    return True
