"""
MODULE: HEAD_UNIT_EMULATOR
PROFILE: AFTERMARKET HEAD UNIT (VIRTUAL)

DESCRIPTION:
    A stand-in for the head unit on the far side of the bus, used when no
    vehicle harness is available. It sits on its own python-can 'virtual'
    bus instance on the same channel as the BSI emulator and plays a short
    user session:

    0s:   push the host clock (date/time write)
    20s:  user switches the language to English, Celsius
    40s:  user switches to 12h display (date/time write)
    60s+: idle, only listening to the BSI broadcasts

    Every broadcast it hears is decoded so the session log shows what a real
    head unit would display.
"""

import time
import logging
from datetime import datetime
from typing import Dict, Optional

import can

from bsi_emulator.protocol.datetime_frame import (
    CalendarFields, DateTimeDecodeError, decode_time_broadcast, encode_time_write,
)
from bsi_emulator.protocol.messages import MessageIds
from bsi_emulator.protocol.settings_frame import SettingsFrame, encode_settings_write, language_name

logger = logging.getLogger("BSI.HARDWARE.HEAD_UNIT")


class VirtualHeadUnit:
    def __init__(self, channel: str = "bsi-sim", message_ids: Optional[MessageIds] = None,
                 interface: str = "virtual"):
        self.channel = channel
        self.interface = interface
        self.ids = message_ids or MessageIds()
        self.bus: Optional[can.BusABC] = None
        self.start_time = time.monotonic()
        self.step_done = set()

        # What the head unit would currently display
        self.displayed_settings: Optional[Dict] = None
        self.displayed_time: Optional[CalendarFields] = None
        self.broadcasts_seen = 0

    def open(self):
        self.bus = can.Bus(interface=self.interface, channel=self.channel)
        self.start_time = time.monotonic()
        logger.info(f"[SIM] Virtual head unit attached to {self.channel}")

    def close(self):
        if self.bus:
            self.bus.shutdown()
            self.bus = None

    # --- WRITES ---
    def _send(self, arbitration_id: int, data: bytes) -> bool:
        if self.bus is None:
            return False
        try:
            self.bus.send(can.Message(arbitration_id=arbitration_id, data=data, is_extended_id=False))
            return True
        except can.CanError as e:
            logger.warning(f"[SIM] Head unit TX failed: {e}")
            return False

    def send_settings_write(self, language: Optional[int] = None, celsius: Optional[bool] = None,
                            tail: Optional[bytes] = None) -> bool:
        return self._send(self.ids.settings_write, encode_settings_write(language, celsius, tail))

    def send_time_write(self, moment: datetime, clock_24h: bool = True) -> bool:
        return self._send(self.ids.time_write,
                          encode_time_write(CalendarFields.from_datetime(moment, clock_24h)))

    # --- LISTENING ---
    def poll(self) -> int:
        """Drains the broadcasts buffered on the virtual bus."""
        if self.bus is None:
            return 0

        count = 0
        while True:
            msg = self.bus.recv(timeout=0.0)
            if msg is None:
                break
            count += 1
            data = bytes(msg.data)
            if msg.arbitration_id == self.ids.settings_broadcast:
                frame = SettingsFrame(data)
                self.displayed_settings = {
                    "language": language_name(frame.language),
                    "celsius": frame.celsius,
                }
            elif msg.arbitration_id == self.ids.time_broadcast:
                try:
                    self.displayed_time = decode_time_broadcast(data)
                except DateTimeDecodeError as e:
                    logger.warning(f"[SIM] Bad time broadcast: {e}")

        self.broadcasts_seen += count
        return count

    # --- SCENARIO ---
    def step(self):
        t = time.monotonic() - self.start_time

        if "clock" not in self.step_done:
            self.step_done.add("clock")
            logger.info("[SIM] Head unit pushes host clock.")
            self.send_time_write(datetime.now())
        elif t >= 20 and "language" not in self.step_done:
            self.step_done.add("language")
            logger.info("[SIM] User selects English / Celsius.")
            self.send_settings_write(language=1, celsius=True)
        elif t >= 40 and "12h" not in self.step_done:
            self.step_done.add("12h")
            logger.info("[SIM] User selects 12h clock.")
            self.send_time_write(datetime.now(), clock_24h=False)

        self.poll()
