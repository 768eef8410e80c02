"""
MODULE: MESSAGE_CATALOGUE
PROFILE: PSA COMFORT BUS (CAN-CONF)

DESCRIPTION:
    Arbitration IDs of the four frames exchanged between the emulated BSI
    and the aftermarket head unit.

    OUTBOUND (BSI -> HEAD UNIT, PERIODIC):
    - 0x260: Settings broadcast (language / units / vendor configuration)
    - 0x276: Date & time broadcast

    INBOUND (HEAD UNIT -> BSI, ON USER ACTION):
    - 0x15B: Write settings
    - 0x39B: Write date & time
"""

from dataclasses import dataclass
from typing import Dict


@dataclass(frozen=True)
class MessageIds:
    settings_broadcast: int = 0x260
    time_broadcast: int = 0x276
    settings_write: int = 0x15B
    time_write: int = 0x39B

    @classmethod
    def from_config(cls, section: Dict) -> "MessageIds":
        """
        Builds the catalogue from the 'messages' section of settings.yaml.
        Accepts ints or hex strings ("0x260").
        """
        values = {}
        for key in ("settings_broadcast", "time_broadcast", "settings_write", "time_write"):
            if key in section:
                raw = section[key]
                values[key] = int(raw, 0) if isinstance(raw, str) else int(raw)
        return cls(**values)

    def describe(self, arbitration_id: int) -> str:
        names = {
            self.settings_broadcast: "SETTINGS_BROADCAST",
            self.time_broadcast: "TIME_BROADCAST",
            self.settings_write: "SETTINGS_WRITE",
            self.time_write: "TIME_WRITE",
        }
        return names.get(arbitration_id, f"FOREIGN [ID: {hex(arbitration_id)}]")
