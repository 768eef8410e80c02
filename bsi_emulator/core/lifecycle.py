"""
MODULE: BUS_LIFECYCLE_CONTROLLER
PROFILE: BSI EMULATOR

DESCRIPTION:
    Start / stop / reconfigure sequencing for the bus transport.

    STATES:  STOPPED  ->  RUNNING(profile)

    The transport cannot be reprogrammed while active, so a profile change
    is always a full teardown followed by a fresh start:
    1. stop the transport ('already stopped' is harmless)
    2. drop the per-profile sensor cache
    3. start with the new profile (both broadcasts become due immediately)
"""

import logging
from enum import Enum
from typing import Optional

from bsi_emulator.hardware.can_bus.transport import BusProfile, TransportError, TransportStoppedError

logger = logging.getLogger("BSI.CORE.LIFECYCLE")


class BusState(Enum):
    STOPPED = "STOPPED"
    RUNNING = "RUNNING"


class BusLifecycleController:

    def __init__(self, transport, scheduler, monitor):
        self.transport = transport
        self.scheduler = scheduler
        self.monitor = monitor
        self.state = BusState.STOPPED
        self.profile: Optional[BusProfile] = None
        self.last_error: Optional[str] = None

    @property
    def is_running(self) -> bool:
        return self.state is BusState.RUNNING

    def start(self, profile: BusProfile) -> bool:
        """
        Opens the transport. On failure stays STOPPED and returns False;
        retrying is the caller's decision.
        """
        if self.is_running:
            return self.reconfigure(profile)

        try:
            self.transport.start(profile)
        except TransportError as e:
            self.last_error = str(e)
            logger.error(f"Bus start failed ({profile.name}): {e}")
            return False

        self.state = BusState.RUNNING
        self.profile = profile
        self.last_error = None
        self.scheduler.reset()
        logger.info(f"Bus RUNNING ({profile.name}, {profile.bitrate} bit/s)")
        return True

    def stop(self) -> bool:
        """Tears the transport down. Returns False on a real teardown error."""
        was_running = self.is_running
        self.state = BusState.STOPPED
        self.profile = None
        try:
            self.transport.stop()
        except TransportStoppedError:
            logger.debug("Transport was already stopped.")
        except TransportError as e:
            self.last_error = str(e)
            logger.error(f"Bus teardown failed: {e}")
            return False

        if was_running:
            logger.info("Bus STOPPED")
        return True

    def reconfigure(self, new_profile: BusProfile) -> bool:
        if self.is_running and self.profile == new_profile:
            return True

        logger.info(f"Reconfiguring bus -> {new_profile.name}")
        if self.is_running and not self.stop():
            return False

        self.monitor.clear()
        return self.start(new_profile)
