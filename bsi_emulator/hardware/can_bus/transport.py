"""
MODULE: HARDWARE_ABSTRACTION_LAYER (HAL)
DEVICE: COMFORT_BUS_ADAPTER (python-can)
STATUS: PRODUCTION_READY (ISO 11898 CAN, 11-bit IDs)

DESCRIPTION:
    Thin transport between the BSI emulator core and the physical bus.

    The core only needs four primitives:
    - start(profile): open the bus with the profile's bitrate
    - stop():         shut the bus down (raises TransportStoppedError if idle)
    - send(id, data): bounded-timeout transmit, reports success as a bool
    - recv():         non-blocking poll for one inbound frame

    HARDWARE COMPATIBILITY (any python-can interface):
    - SocketCAN (can0; bitrate is set with `ip link`, not here)
    - PCAN-USB / Kvaser / slcan (bitrate programmed on start)
    - 'virtual' (in-process bus used by simulation mode)
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import can

# Configure Module Logger
logger = logging.getLogger("BSI.HAL")


@dataclass(frozen=True)
class BusProfile:
    """Bus timing configuration. Cannot be changed while the bus is open."""
    name: str
    bitrate: int

    @classmethod
    def from_config(cls, name: str, section: Dict) -> "BusProfile":
        return cls(name=name, bitrate=int(section.get("bitrate", 125000)))


class TransportError(Exception):
    """Install/start/stop failure of the underlying bus."""


class TransportStoppedError(TransportError):
    """Stop requested on a transport that is not running."""


class CanTransport:
    """
    python-can backed transport for one channel.
    """

    def __init__(self, interface: str = "socketcan", channel: str = "can0", **bus_kwargs):
        self.interface = interface
        self.channel = channel
        self.bus_kwargs = bus_kwargs
        self.bus: Optional[can.BusABC] = None
        self.profile: Optional[BusProfile] = None

    def start(self, profile: BusProfile):
        if self.bus is not None:
            raise TransportError(f"Transport already running ({self.profile.name})")

        logger.info(f"[HAL] Opening {self.interface}:{self.channel} @ {profile.bitrate} bit/s ({profile.name})")
        try:
            self.bus = can.Bus(interface=self.interface, channel=self.channel,
                               bitrate=profile.bitrate, **self.bus_kwargs)
        except (can.CanError, OSError, ValueError, ImportError, NotImplementedError) as e:
            raise TransportError(f"Cannot open {self.interface}:{self.channel}: {e}") from e

        self.profile = profile
        logger.info(f"[HAL] LINK ESTABLISHED. {self.bus.channel_info}")

    def stop(self):
        if self.bus is None:
            raise TransportStoppedError("Transport already stopped")

        bus, self.bus, self.profile = self.bus, None, None
        try:
            bus.shutdown()
        except (can.CanError, OSError) as e:
            raise TransportError(f"Shutdown failed: {e}") from e
        logger.info("[HAL] Link closed.")

    def send(self, arbitration_id: int, data: bytes, timeout: float = 0.02) -> bool:
        if self.bus is None:
            return False

        msg = can.Message(arbitration_id=arbitration_id, data=data, is_extended_id=False)
        try:
            self.bus.send(msg, timeout=timeout)
            return True
        except can.CanError as e:
            logger.warning(f"[HAL] TX {hex(arbitration_id)} failed: {e}")
            return False

    def recv(self) -> Optional[Tuple[int, bytes]]:
        """
        Returns the next data frame already buffered by the driver, or None.
        Error and remote frames are skipped.
        """
        if self.bus is None:
            return None

        while True:
            try:
                msg = self.bus.recv(timeout=0.0)
            except can.CanError as e:
                logger.warning(f"[HAL] RX failed: {e}")
                return None
            if msg is None:
                return None
            if msg.is_error_frame or msg.is_remote_frame:
                continue
            return msg.arbitration_id, bytes(msg.data)
