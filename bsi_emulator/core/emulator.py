"""
MODULE: BSI_EMULATOR
PROFILE: PSA COMFORT BUS (BSI -> AFTERMARKET HEAD UNIT)

DESCRIPTION:
    The single context object that owns all emulator state and exposes the
    entry points the outer layers (service loop, HTTP handlers, display) use.

    LOOP CONTRACT:
        emulator.boot()
        emulator.start(profile)
        while running:
            emulator.tick()     # drain inbound frames, then broadcast what is due

    Every public method takes the same re-entrant lock, so a control-surface
    thread may call the setters or force a re-broadcast while the service
    loop is ticking.
"""

import logging
import threading
from datetime import datetime
from typing import Any, Dict, Optional

from bsi_emulator.core.clock import MonotonicTicks
from bsi_emulator.core.lifecycle import BusLifecycleController
from bsi_emulator.core.scheduler import BroadcastScheduler
from bsi_emulator.core.state import ClockState, SettingsState
from bsi_emulator.hardware.can_bus.monitor import BusMonitor
from bsi_emulator.hardware.can_bus.transport import BusProfile
from bsi_emulator.protocol import decoders
from bsi_emulator.protocol.datetime_frame import (
    YEAR_BASE, YEAR_MASK, CalendarFields, encode_time_write,
)
from bsi_emulator.protocol.messages import MessageIds
from bsi_emulator.protocol.settings_frame import LANGUAGE_MAX, encode_settings_write

logger = logging.getLogger("BSI.CORE.EMULATOR")


class BSIEmulator:
    """
    Body System Interface emulator context.
    """

    # Upper bound on frames handled per tick so a flooded bus cannot starve the scheduler.
    MAX_FRAMES_PER_TICK = 256

    def __init__(self, transport, store, tick_source=None,
                 message_ids: Optional[MessageIds] = None,
                 baseline: Optional[bytes] = None,
                 settings_period_ms: int = 500,
                 time_period_ms: int = 1000,
                 send_timeout: float = 0.02):
        self._lock = threading.RLock()
        self.transport = transport
        self.ticks = tick_source or MonotonicTicks()
        self.ids = message_ids or MessageIds()

        self.settings = SettingsState(store, baseline)
        self.clock = ClockState(store, self.ticks)
        self.monitor = BusMonitor()
        self.scheduler = BroadcastScheduler(
            transport, self.settings, self.clock, self.ticks, self.ids,
            settings_period_ms=settings_period_ms,
            time_period_ms=time_period_ms,
            send_timeout=send_timeout,
        )
        self.lifecycle = BusLifecycleController(transport, self.scheduler, self.monitor)

    # --- LIFECYCLE ---
    def boot(self):
        """Loads persisted settings and rebuilds the clock."""
        with self._lock:
            self.settings.load()
            self.clock.load()

    def start(self, profile: BusProfile) -> bool:
        with self._lock:
            return self.lifecycle.start(profile)

    def reconfigure_bus(self, profile: BusProfile) -> bool:
        with self._lock:
            return self.lifecycle.reconfigure(profile)

    def shutdown(self):
        with self._lock:
            self.lifecycle.stop()

    # --- MAIN LOOP STEP ---
    def tick(self) -> int:
        """
        One loop iteration: handle every frame the transport already holds,
        then let the scheduler emit whatever is due. Returns frames handled.
        """
        with self._lock:
            if not self.lifecycle.is_running:
                return 0

            handled = 0
            while handled < self.MAX_FRAMES_PER_TICK:
                frame = self.transport.recv()
                if frame is None:
                    break
                self.handle_frame(*frame)
                handled += 1

            self.scheduler.tick()
            return handled

    def handle_frame(self, arbitration_id: int, data: bytes):
        with self._lock:
            self.monitor.ingest_frame(arbitration_id, data, self.ticks.ticks())
            logger.debug(f"RX {self.ids.describe(arbitration_id)}: {bytes(data).hex(' ').upper()}")

            if arbitration_id == self.ids.settings_write:
                self.apply_settings_write(data)
            elif arbitration_id == self.ids.time_write:
                self.apply_time_write(data)

    # --- HEAD UNIT WRITES ---
    def apply_settings_write(self, data: bytes) -> bool:
        with self._lock:
            if not decoders.apply_settings_write(self.settings, bytes(data)):
                return False
            self.force_rebroadcast_settings()
            return True

    def apply_time_write(self, data: bytes) -> bool:
        with self._lock:
            if not decoders.apply_time_write(self.clock, self.settings, bytes(data)):
                return False
            self.force_rebroadcast_time()
            return True

    # --- FORCED BROADCASTS ---
    def force_rebroadcast_settings(self) -> bool:
        with self._lock:
            if not self.lifecycle.is_running:
                return False
            if self.scheduler.send_settings():
                return True
            self.scheduler.last_settings_sent = None
            return False

    def force_rebroadcast_time(self) -> bool:
        with self._lock:
            if not self.lifecycle.is_running:
                return False
            if self.scheduler.send_time():
                return True
            self.scheduler.last_time_sent = None
            return False

    # --- CONTROL SURFACE ---
    def set_preferences(self, language: Optional[int] = None,
                        celsius: Optional[bool] = None,
                        clock_24h: Optional[bool] = None) -> bool:
        """
        Applies a change requested from the UI through the same path as a
        head-unit write. Unspecified values keep their current setting.
        """
        with self._lock:
            if language is not None and not 0 <= language <= LANGUAGE_MAX:
                raise ValueError(f"Language code out of range: {language}")

            changed = False
            if language is not None or celsius is not None:
                write = encode_settings_write(
                    language=self.settings.language if language is None else language,
                    celsius=self.settings.celsius if celsius is None else celsius,
                )
                changed = self.apply_settings_write(write)

            if clock_24h is not None and clock_24h != self.settings.clock_24h:
                self.settings.clock_24h = clock_24h
                if not self.settings.save():
                    logger.warning("24h flag applied in memory only (persistence failed).")
                self.force_rebroadcast_time()
                changed = True
            return changed

    def set_time(self, moment: datetime, clock_24h: Optional[bool] = None) -> bool:
        with self._lock:
            if not YEAR_BASE <= moment.year <= YEAR_BASE + YEAR_MASK:
                raise ValueError(f"Year out of range: {moment.year}")
            flag = self.settings.clock_24h if clock_24h is None else clock_24h
            return self.apply_time_write(encode_time_write(CalendarFields.from_datetime(moment, flag)))

    # --- READ-ONLY VIEWS ---
    def get_current_settings(self) -> Dict[str, Any]:
        with self._lock:
            return self.settings.snapshot()

    def get_current_time_iso(self) -> Optional[str]:
        with self._lock:
            return self.clock.iso()

    def get_status(self) -> Dict[str, Any]:
        with self._lock:
            profile = self.lifecycle.profile
            return {
                "bus": self.lifecycle.state.value,
                "profile": profile.name if profile else None,
                "last_error": self.lifecycle.last_error,
                "last_settings_sent": self.scheduler.last_settings_sent,
                "last_time_sent": self.scheduler.last_time_sent,
                "settings": self.settings.snapshot(),
                "time": self.clock.iso(),
                "monitor": self.monitor.generate_report(self.ticks.ticks()),
            }
