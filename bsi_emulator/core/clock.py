"""
MODULE: ANCHORED_CLOCK
PROFILE: BSI EMULATOR (NO BATTERY-BACKED RTC)

DESCRIPTION:
    The emulator has no real-time clock of its own. Wall-clock time is
    derived from the last calendar time the head unit wrote (the 'anchor')
    plus the monotonic ticks elapsed since that write:

        now = anchor_epoch + (ticks - anchor_ticks) // TICKS_PER_SECOND

    After a restart the persisted (epoch, reference ticks) pair is replayed
    the same way. The result drifts by however long the unit was powered
    off; it is a best-effort bridge until the head unit writes the time again.
"""

import time
import logging
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger("BSI.CORE.CLOCK")

TICKS_PER_SECOND = 1000


class MonotonicTicks:
    """Millisecond tick source backed by time.monotonic()."""

    ticks_per_second = TICKS_PER_SECOND

    def ticks(self) -> int:
        return int(time.monotonic() * TICKS_PER_SECOND)


@dataclass
class AnchoredClock:
    anchor_epoch: int = 0
    anchor_ticks: int = 0
    ticks_per_second: int = TICKS_PER_SECOND

    @property
    def is_set(self) -> bool:
        return self.anchor_epoch != 0

    def now(self, ticks: int) -> Optional[int]:
        """Derived epoch seconds at `ticks`, or None if never anchored."""
        if not self.is_set:
            return None
        # A reference in the future means the tick counter restarted.
        elapsed = max(0, ticks - self.anchor_ticks)
        return self.anchor_epoch + elapsed // self.ticks_per_second

    def anchor(self, epoch: int, ticks: int):
        self.anchor_epoch = epoch
        self.anchor_ticks = ticks

    @classmethod
    def restore(cls, epoch: int, reference_ticks: int, ticks: int,
                ticks_per_second: int = TICKS_PER_SECOND) -> "AnchoredClock":
        """
        Rebuilds the live clock from a persisted pair, re-anchored at `ticks`.
        """
        if epoch == 0:
            return cls(ticks_per_second=ticks_per_second)

        elapsed = max(0, ticks - reference_ticks)
        return cls(epoch + elapsed // ticks_per_second, ticks, ticks_per_second)
