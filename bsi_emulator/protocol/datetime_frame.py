"""
MODULE: DATETIME_FRAME_CODEC
PROFILE: PSA COMFORT BUS (HEAD UNIT 0x39B / BSI 0x276)

DESCRIPTION:
    Bit-level codec for the two date/time frames.

    WRITE (HEAD UNIT -> BSI), >= 5 BYTES:
        B0: [7] 24H FLAG | [6:0] YEAR - 2000
        B1: [3:0] MONTH   B2: [4:0] DAY   B3: [4:0] HOUR   B4: [5:0] MINUTE
        Seconds are not transmitted.

    BROADCAST (BSI -> HEAD UNIT), 7 BYTES:
        B0: [7] 24H FLAG | [6:0] YEAR - 2000
        B1: MONTH  B2: DAY  B3: HOUR  B4: MINUTE
        B5: 0x3F (filler)  B6: 0xFE (no seconds)

    Calendar values are naive: no timezone is applied in either direction.
"""

import calendar
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

WRITE_MIN_LENGTH = 5
BROADCAST_LENGTH = 7

YEAR_BASE = 2000
CLOCK_24H_BIT = 0x80
YEAR_MASK = 0x7F
FILLER = 0x3F
NO_SECONDS_MARKER = 0xFE


class DateTimeDecodeError(ValueError):
    """Raised when a frame does not describe a valid calendar time."""


@dataclass
class CalendarFields:
    year: int
    month: int
    day: int
    hour: int
    minute: int
    clock_24h: bool = True

    def to_epoch(self) -> int:
        try:
            moment = datetime(self.year, self.month, self.day, self.hour, self.minute)
        except ValueError as e:
            raise DateTimeDecodeError(f"Invalid calendar time {self}: {e}") from e
        return calendar.timegm(moment.timetuple())

    def to_datetime(self) -> datetime:
        return datetime(self.year, self.month, self.day, self.hour, self.minute)

    @classmethod
    def from_epoch(cls, epoch: int, clock_24h: bool) -> "CalendarFields":
        t = time.gmtime(epoch)
        return cls(t.tm_year, t.tm_mon, t.tm_mday, t.tm_hour, t.tm_min, clock_24h)

    @classmethod
    def from_datetime(cls, moment: datetime, clock_24h: bool = True) -> "CalendarFields":
        return cls(moment.year, moment.month, moment.day, moment.hour, moment.minute, clock_24h)


def decode_time_write(data: bytes) -> CalendarFields:
    """
    Extracts the calendar fields of a head-unit write. Month/day of zero are
    clamped to 1; anything else out of range is rejected by to_epoch().
    """
    if len(data) < WRITE_MIN_LENGTH:
        raise DateTimeDecodeError(f"Date/time write too short ({len(data)} bytes)")

    return CalendarFields(
        year=YEAR_BASE + (data[0] & YEAR_MASK),
        month=max(1, data[1] & 0x0F),
        day=max(1, data[2] & 0x1F),
        hour=data[3] & 0x1F,
        minute=data[4] & 0x3F,
        clock_24h=bool(data[0] & CLOCK_24H_BIT),
    )


def encode_time_write(fields: CalendarFields) -> bytes:
    year = min(max(fields.year - YEAR_BASE, 0), YEAR_MASK)
    b0 = year | (CLOCK_24H_BIT if fields.clock_24h else 0)
    return bytes([b0, fields.month & 0x0F, fields.day & 0x1F, fields.hour & 0x1F, fields.minute & 0x3F])


def encode_time_broadcast(epoch: Optional[int], clock_24h: bool) -> bytes:
    """
    Serializes the live clock. With no clock set, the date fields stay zero
    so the head unit never sees an invented time.
    """
    flag = CLOCK_24H_BIT if clock_24h else 0
    if epoch is None:
        return bytes([flag, 0, 0, 0, 0, FILLER, NO_SECONDS_MARKER])

    fields = CalendarFields.from_epoch(epoch, clock_24h)
    year = min(max(fields.year - YEAR_BASE, 0), YEAR_MASK)
    return bytes([flag | year, fields.month, fields.day, fields.hour, fields.minute,
                  FILLER, NO_SECONDS_MARKER])


def decode_time_broadcast(data: bytes) -> Optional[CalendarFields]:
    """Reads a 0x276 frame back. Returns None for the 'clock not set' frame."""
    if len(data) < WRITE_MIN_LENGTH:
        raise DateTimeDecodeError(f"Date/time broadcast too short ({len(data)} bytes)")
    if data[1] == 0 and data[2] == 0:
        return None
    return CalendarFields(
        year=YEAR_BASE + (data[0] & YEAR_MASK),
        month=data[1],
        day=data[2],
        hour=data[3],
        minute=data[4],
        clock_24h=bool(data[0] & CLOCK_24H_BIT),
    )
