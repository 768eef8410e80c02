"""
MODULE: HEADLESS_ORCHESTRATOR (SYSTEM SERVICE)
PROFILE: BSI EMULATOR (DEPLOYED)

DESCRIPTION:
    The long-running service that drives the BSI emulator.

    It prioritizes:
    1. RESPONSIVENESS: one cooperative loop; every step returns within tens
       of milliseconds (non-blocking RX, bounded TX).
    2. UPTIME: if the bus cannot be opened, the loop keeps running and
       retries the start on a fixed interval.
    3. INTEGRITY: state is persisted on every head-unit write and the state
       store is closed cleanly on SIGINT/SIGTERM.

    USAGE:
    Run via systemd: 'bsi-emulator /etc/bsi/settings.yaml'
"""

import copy
import time
import logging
import os
import signal
import sys
from typing import Dict, Optional

import yaml

from bsi_emulator.core.database import KeyValueDatabase
from bsi_emulator.core.emulator import BSIEmulator
from bsi_emulator.hardware.can_bus.transport import BusProfile, CanTransport
from bsi_emulator.hardware.emulator import VirtualHeadUnit
from bsi_emulator.protocol.messages import MessageIds

logger = logging.getLogger("BSI.DAEMON")

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
DEFAULT_CONFIG_PATH = os.path.join(PROJECT_ROOT, "config", "settings.yaml")

DEFAULT_CONFIG: Dict = {
    "hardware": {
        "interface": "socketcan",
        "channel": "can0",
        "simulation_mode": False,
        "default_profile": "comfort_125k",
        "send_timeout_s": 0.02,
        "start_retry_s": 10,
    },
    "profiles": {
        "comfort_125k": {"bitrate": 125000},
    },
    "messages": {},
    "broadcast": {
        "settings_period_ms": 500,
        "time_period_ms": 1000,
    },
    "settings": {
        "baseline": "",
    },
    "database": {
        "path": "data/bsi_state.db",
    },
    "logging": {
        "level": "INFO",
        "dir": "data/logs",
    },
}

# Loop period when idle (keeps CPU low while staying well under the broadcast cadence)
LOOP_PERIOD_S = 0.01


def load_config(config_path: Optional[str] = None) -> Dict:
    """
    Reads settings.yaml and overlays it on DEFAULT_CONFIG, section by section.
    """
    config = copy.deepcopy(DEFAULT_CONFIG)
    path = config_path or DEFAULT_CONFIG_PATH
    if not os.path.exists(path):
        logger.warning(f"Config {path} not found. Using built-in defaults.")
        return config

    with open(path, 'r') as f:
        loaded = yaml.safe_load(f) or {}

    for section, values in loaded.items():
        if isinstance(values, dict) and isinstance(config.get(section), dict):
            if section == "profiles":
                config[section] = dict(values)
            else:
                config[section].update(values)
        else:
            config[section] = values
    return config


def parse_baseline(text: str) -> bytes:
    """'84 40 00 ...' -> b'\\x84\\x40\\x00...'"""
    if not text:
        return b""
    return bytes.fromhex(str(text).replace(",", " ").replace("0x", ""))


def _resolve_path(path: str) -> str:
    return path if os.path.isabs(path) else os.path.join(PROJECT_ROOT, path)


def configure_logging(config: Dict):
    # We can't rely on a screen, so file logging must always be on
    log_dir = _resolve_path(config["logging"].get("dir", "data/logs"))
    os.makedirs(log_dir, exist_ok=True)

    logging.basicConfig(
        level=getattr(logging, str(config["logging"].get("level", "INFO")).upper(), logging.INFO),
        format="%(asctime)s | %(levelname)-8s | %(name)-20s | %(message)s",
        handlers=[
            logging.FileHandler(os.path.join(log_dir, "bsi_service.log")),
            logging.StreamHandler(sys.stdout)  # For systemctl status viewing
        ]
    )


class HeadlessOrchestrator:
    """
    The long-running service manager.
    """

    def __init__(self, config: Dict):
        self.running = True
        self.config = config
        hw = config["hardware"]

        logger.info("--- STARTING BSI EMULATOR DAEMON ---")

        # Bus profiles (single or dual bitrate hardware variants)
        self.profiles = {name: BusProfile.from_config(name, section or {})
                         for name, section in config["profiles"].items()}
        self.profile = self.profiles[hw["default_profile"]]

        # Transport (real adapter or in-process virtual bus)
        self.head_unit: Optional[VirtualHeadUnit] = None
        ids = MessageIds.from_config(config.get("messages") or {})
        if hw.get("simulation_mode"):
            logger.info("[HAL] Config forces SIMULATION_MODE.")
            self.transport = CanTransport(interface="virtual", channel=hw.get("channel", "bsi-sim"))
            self.head_unit = VirtualHeadUnit(channel=hw.get("channel", "bsi-sim"), message_ids=ids)
        else:
            self.transport = CanTransport(interface=hw["interface"], channel=hw["channel"])

        # Persistence
        self.db = KeyValueDatabase(_resolve_path(config["database"]["path"]))
        self.db.open()

        self.emulator = BSIEmulator(
            self.transport, self.db,
            message_ids=ids,
            baseline=parse_baseline(config["settings"].get("baseline", "")),
            settings_period_ms=int(config["broadcast"]["settings_period_ms"]),
            time_period_ms=int(config["broadcast"]["time_period_ms"]),
            send_timeout=float(hw.get("send_timeout_s", 0.02)),
        )
        self.start_retry_s = float(hw.get("start_retry_s", 10))
        self.last_start_attempt = 0.0

        # Signal Handlers (for graceful shutdown via systemctl stop)
        signal.signal(signal.SIGINT, self._shutdown)
        signal.signal(signal.SIGTERM, self._shutdown)

    def _shutdown(self, signum, frame):
        logger.warning("SHUTDOWN SIGNAL RECEIVED. CLOSING BUS...")
        self.running = False

    def _ensure_bus(self) -> bool:
        """
        Starts the bus if it is down, at most once per retry interval.
        """
        if self.emulator.lifecycle.is_running:
            return True
        if time.monotonic() - self.last_start_attempt < self.start_retry_s:
            return False

        self.last_start_attempt = time.monotonic()
        if self.emulator.start(self.profile):
            return True
        logger.error(f"Bus start failed. Retrying in {self.start_retry_s:.0f}s...")
        return False

    def switch_profile(self, name: str) -> bool:
        """Operator-requested bitrate change (e.g. dual-bitrate harness)."""
        profile = self.profiles.get(name)
        if profile is None:
            logger.error(f"Unknown bus profile: {name}")
            return False
        self.profile = profile
        return self.emulator.reconfigure_bus(profile)

    def run(self):
        """
        The Infinite Loop.
        """
        self.emulator.boot()
        self.last_start_attempt = -self.start_retry_s

        while self.running:
            try:
                loop_start = time.monotonic()

                # 1. BUS UP?
                if self._ensure_bus():
                    # 2. DRAIN INBOUND + BROADCAST
                    self.emulator.tick()

                    # 3. SIMULATED HEAD UNIT
                    if self.head_unit:
                        if self.head_unit.bus is None:
                            self.head_unit.open()
                        self.head_unit.step()

                # 4. RATE LIMITING
                elapsed = time.monotonic() - loop_start
                if elapsed < LOOP_PERIOD_S:
                    time.sleep(LOOP_PERIOD_S - elapsed)

            except Exception as e:
                logger.error(f"CRASH IN LOOP: {e}", exc_info=True)
                time.sleep(1)

        # Cleanup
        if self.head_unit:
            self.head_unit.close()
        self.emulator.shutdown()
        self.db.close()
        logger.info("Daemon Stopped Gracefully.")


def main():
    config = load_config(sys.argv[1] if len(sys.argv) > 1 else None)
    configure_logging(config)
    daemon = HeadlessOrchestrator(config)
    daemon.run()


if __name__ == "__main__":
    main()
