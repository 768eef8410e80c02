"""
MODULE: CAN_BUS_MONITOR (SENSOR CACHE)
PROFILE: PSA COMFORT BUS

DESCRIPTION:
    Passive record of everything the emulator hears on the bus.

    Every inbound frame updates:
    1. PRESENCE:  the set of arbitration IDs seen under the current profile
    2. STALENESS: the last-seen tick per ID
    3. READINGS:  the last payload per ID (for the control surface)
    4. CADENCE:   a short history of inter-frame intervals per ID

    These values only mean something for the bus profile they were captured
    under, so the lifecycle controller clears them on every reconfigure.
"""

import logging
from collections import deque
from typing import Deque, Dict, Optional, Set

# Configure module-level logger
logger = logging.getLogger("BSI.HARDWARE.MONITOR")


class BusMonitor:
    """
    Volatile per-profile cache of inbound traffic.
    """

    INTERVAL_HISTORY = 20

    def __init__(self):
        self.seen_ids: Set[int] = set()
        self.last_seen: Dict[int, int] = {}
        self.readings: Dict[int, bytes] = {}
        self.frame_intervals: Dict[int, Deque[int]] = {}
        self.frame_count = 0

    def ingest_frame(self, frame_id: int, data: bytes, ticks: int):
        # 1. TRACK PRESENCE
        self.seen_ids.add(frame_id)
        self.frame_count += 1

        # 2. TRACK CADENCE
        if frame_id in self.last_seen:
            delta = ticks - self.last_seen[frame_id]
            if frame_id not in self.frame_intervals:
                self.frame_intervals[frame_id] = deque(maxlen=self.INTERVAL_HISTORY)
            self.frame_intervals[frame_id].append(delta)

        self.last_seen[frame_id] = ticks
        self.readings[frame_id] = bytes(data)

    def reading(self, frame_id: int) -> Optional[bytes]:
        return self.readings.get(frame_id)

    def is_stale(self, frame_id: int, ticks: int, max_age: int) -> bool:
        seen = self.last_seen.get(frame_id)
        return seen is None or ticks - seen > max_age

    def clear(self):
        if self.seen_ids:
            logger.info(f"Dropping cached readings for {len(self.seen_ids)} IDs.")
        self.seen_ids.clear()
        self.last_seen.clear()
        self.readings.clear()
        self.frame_intervals.clear()
        self.frame_count = 0

    def generate_report(self, ticks: int, stale_after: int = 5000) -> Dict:
        """
        Summary for the status endpoint: what is on the bus and what went quiet.
        """
        report = {
            "frames": self.frame_count,
            "seen_ids": [hex(i) for i in sorted(self.seen_ids)],
            "stale_ids": [],
            "periods_ms": {},
        }

        for frame_id in sorted(self.seen_ids):
            if self.is_stale(frame_id, ticks, stale_after):
                report["stale_ids"].append(hex(frame_id))

        for frame_id, intervals in self.frame_intervals.items():
            if intervals:
                report["periods_ms"][hex(frame_id)] = round(sum(intervals) / len(intervals), 1)

        return report
