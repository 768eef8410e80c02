"""
MODULE: EMULATOR_STATE
PROFILE: BSI EMULATOR

DESCRIPTION:
    The two pieces of state the BSI owns toward the head unit:

    1. SETTINGS STATE: the 8-byte settings frame plus the decoded
       convenience fields (language code, Celsius flag, 24h flag).
    2. CLOCK STATE: the anchored wall clock.

    Both are loaded once at boot from the persistence store and written back
    immediately after every mutation. A failed write is logged and the
    in-memory copy stays authoritative for the session.
"""

import logging
import time
from typing import Dict, Optional

from bsi_emulator.core.clock import AnchoredClock
from bsi_emulator.protocol.settings_frame import LANGUAGE_MAX, SettingsFrame, language_name

logger = logging.getLogger("BSI.CORE.STATE")

# --- PERSISTED KEY SCHEMA ---
KEY_LANGUAGE = "language"
KEY_CLOCK_24H = "clock_24h"
KEY_CELSIUS = "celsius"
KEY_SETTINGS_FRAME = "settings_frame"
KEY_TIME_EPOCH = "time_epoch"
KEY_TIME_REFERENCE = "time_reference_ticks"


class SettingsState:
    """
    Owner of the broadcast settings frame.
    """

    def __init__(self, store, baseline: Optional[bytes] = None):
        self.store = store
        self.baseline = bytes(baseline) if baseline else b""
        self.frame: Optional[SettingsFrame] = None
        self.language = 0
        self.celsius = True
        self.clock_24h = True

    def load(self):
        """
        Pulls the last persisted state. An absent or all-zero frame is treated
        as 'never configured' and replaced by the hardware baseline.
        """
        raw = self.store.get(KEY_SETTINGS_FRAME)
        if raw and any(raw):
            self.frame = SettingsFrame(raw)
        self.ensure_baseline()

        language = int(self.store.get(KEY_LANGUAGE, self.frame.language))
        if not 0 <= language <= LANGUAGE_MAX:
            logger.warning(f"Stored language {language} out of range. Keeping frame language.")
            language = self.frame.language
        self.language = language
        self.celsius = bool(self.store.get(KEY_CELSIUS, self.frame.celsius))
        self.clock_24h = bool(self.store.get(KEY_CLOCK_24H, self.clock_24h))
        self.apply_language_and_units()

        logger.info(f"Settings loaded: {self.frame} | LANG={language_name(self.language)} "
                    f"| {'C' if self.celsius else 'F'} | {'24H' if self.clock_24h else '12H'}")

    def ensure_baseline(self):
        if self.frame is not None:
            return
        self.frame = SettingsFrame(self.baseline)
        self.language = self.frame.language
        self.celsius = self.frame.celsius
        logger.info(f"No stored settings. Using baseline {self.frame}")

    def apply_language_and_units(self) -> SettingsFrame:
        """
        Writes the stored language and Celsius flag back into bytes 0/1,
        leaving every other bit alone.
        """
        self.ensure_baseline()
        self.frame.language = self.language
        self.frame.celsius = self.celsius
        return self.frame

    def to_bytes(self) -> bytes:
        return self.apply_language_and_units().to_bytes()

    def save(self) -> bool:
        return self.store.put_many({
            KEY_LANGUAGE: self.language,
            KEY_CLOCK_24H: self.clock_24h,
            KEY_CELSIUS: self.celsius,
            KEY_SETTINGS_FRAME: self.to_bytes(),
        })

    def snapshot(self) -> Dict:
        return {
            "language": self.language,
            "language_name": language_name(self.language),
            "celsius": self.celsius,
            "clock_24h": self.clock_24h,
            "frame": self.to_bytes().hex(),
        }


class ClockState:
    """
    Live wall clock plus the persisted anchor used to rebuild it on boot.
    """

    def __init__(self, store, tick_source):
        self.store = store
        self.ticks = tick_source
        self.clock = AnchoredClock(ticks_per_second=tick_source.ticks_per_second)

    def load(self):
        epoch = int(self.store.get(KEY_TIME_EPOCH, 0))
        reference = int(self.store.get(KEY_TIME_REFERENCE, 0))
        self.clock = AnchoredClock.restore(epoch, reference, self.ticks.ticks(),
                                           self.ticks.ticks_per_second)
        if self.clock.is_set:
            logger.info(f"Clock restored from anchor {epoch} -> {self.iso()}")
        else:
            logger.info("No stored clock anchor. Time undefined until the head unit writes it.")

    def set_epoch(self, epoch: int) -> bool:
        """Anchors the live clock at `epoch` now and persists the anchor."""
        now_ticks = self.ticks.ticks()
        self.clock.anchor(epoch, now_ticks)
        return self.store.put_many({
            KEY_TIME_EPOCH: epoch,
            KEY_TIME_REFERENCE: now_ticks,
        })

    def now(self) -> Optional[int]:
        return self.clock.now(self.ticks.ticks())

    def iso(self) -> Optional[str]:
        epoch = self.now()
        if epoch is None:
            return None
        return time.strftime("%Y-%m-%dT%H:%M:%S", time.gmtime(epoch))
