"""
MODULE: BROADCAST_SCHEDULER
PROFILE: BSI EMULATOR

DESCRIPTION:
    Re-serializes the emulator state onto the bus at fixed cadences,
    independent of inbound traffic.

    Two independent timers, one per outbound message:
    - SETTINGS BROADCAST  (default every 500 ms)
    - DATE/TIME BROADCAST (default every 1000 ms)

    A timer only advances when its frame was actually transmitted, so a
    failed send is retried on the very next tick.
"""

import logging
from typing import Optional

from bsi_emulator.protocol.datetime_frame import encode_time_broadcast

logger = logging.getLogger("BSI.CORE.SCHEDULER")


class BroadcastScheduler:

    def __init__(self, transport, settings, clock, tick_source, message_ids,
                 settings_period_ms: int = 500, time_period_ms: int = 1000,
                 send_timeout: float = 0.02):
        self.transport = transport
        self.settings = settings
        self.clock = clock
        self.ticks = tick_source
        self.ids = message_ids
        self.settings_period = settings_period_ms * tick_source.ticks_per_second // 1000
        self.time_period = time_period_ms * tick_source.ticks_per_second // 1000
        self.send_timeout = send_timeout

        # None == due now
        self.last_settings_sent: Optional[int] = None
        self.last_time_sent: Optional[int] = None

    def reset(self):
        """Marks both broadcasts as due immediately."""
        self.last_settings_sent = None
        self.last_time_sent = None

    @staticmethod
    def _is_due(last_sent: Optional[int], period: int, now: int) -> bool:
        if last_sent is None:
            return True
        # A tick counter that went backwards counts as due.
        return now < last_sent or now - last_sent >= period

    def tick(self) -> int:
        """Sends whatever is due. Returns the number of frames transmitted."""
        now = self.ticks.ticks()
        sent = 0

        if self._is_due(self.last_settings_sent, self.settings_period, now):
            sent += self.send_settings()
        if self._is_due(self.last_time_sent, self.time_period, now):
            sent += self.send_time()
        return sent

    def send_settings(self) -> bool:
        frame = self.settings.to_bytes()
        if not self.transport.send(self.ids.settings_broadcast, frame, self.send_timeout):
            return False
        self.last_settings_sent = self.ticks.ticks()
        return True

    def send_time(self) -> bool:
        # Derived from the live clock at send time, never from the stored anchor.
        frame = encode_time_broadcast(self.clock.now(), self.settings.clock_24h)
        if not self.transport.send(self.ids.time_broadcast, frame, self.send_timeout):
            return False
        self.last_time_sent = self.ticks.ticks()
        return True
