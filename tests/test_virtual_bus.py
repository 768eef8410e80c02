"""
INTEGRATION TEST: VIRTUAL COMFORT BUS
PROFILE: python-can 'virtual' INTERFACE

DESCRIPTION:
    Runs the emulator over a real python-can bus object (in-process virtual
    channel) with the virtual head unit on the other end, so the transport,
    decoders and scheduler are exercised together.
"""

import unittest
import logging
import sys
import os
import uuid
from datetime import datetime

# Add project root to path
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
sys.path.append(os.path.abspath(os.path.dirname(__file__)))

from bsi_emulator.core.database import MemoryStore
from bsi_emulator.core.emulator import BSIEmulator
from bsi_emulator.hardware.can_bus.transport import (
    BusProfile, CanTransport, TransportError, TransportStoppedError,
)
from bsi_emulator.hardware.emulator import VirtualHeadUnit
from bsi_emulator.protocol.datetime_frame import CalendarFields
from fakes import FakeTicks

PROFILE = BusProfile("comfort_125k", 125000)


class TestVirtualBus(unittest.TestCase):

    def setUp(self):
        logging.disable(logging.CRITICAL)
        self.channel = f"bsi-test-{uuid.uuid4().hex[:8]}"
        self.transport = CanTransport(interface="virtual", channel=self.channel)
        self.ticks = FakeTicks(1000)
        self.emulator = BSIEmulator(self.transport, MemoryStore(), tick_source=self.ticks,
                                    baseline=bytes([0x84, 0x40]))
        self.emulator.boot()
        self.head_unit = VirtualHeadUnit(channel=self.channel)
        self.head_unit.open()

    def tearDown(self):
        self.head_unit.close()
        self.emulator.shutdown()

    def test_head_unit_sees_broadcasts(self):
        self.assertTrue(self.emulator.start(PROFILE))
        self.emulator.tick()
        self.assertEqual(self.head_unit.poll(), 2)
        self.assertEqual(self.head_unit.displayed_settings, {"language": "English", "celsius": True})
        self.assertIsNone(self.head_unit.displayed_time)

    def test_head_unit_writes_are_applied(self):
        self.emulator.start(PROFILE)
        self.head_unit.send_settings_write(language=2, celsius=False)
        self.head_unit.send_time_write(datetime(2024, 3, 15, 14, 30), clock_24h=True)
        self.assertEqual(self.emulator.tick(), 2)

        self.head_unit.poll()
        self.assertEqual(self.head_unit.displayed_settings, {"language": "German", "celsius": False})
        self.assertEqual(self.head_unit.displayed_time, CalendarFields(2024, 3, 15, 14, 30, True))
        self.assertEqual(self.emulator.get_current_time_iso(), "2024-03-15T14:30:00")

    def test_scenario_first_step_pushes_clock(self):
        self.emulator.start(PROFILE)
        self.head_unit.step()
        self.emulator.tick()
        self.assertIsNotNone(self.emulator.get_current_time_iso())

    def test_transport_stop_twice(self):
        self.transport.start(PROFILE)
        with self.assertRaises(TransportError):
            self.transport.start(PROFILE)
        self.transport.stop()
        with self.assertRaises(TransportStoppedError):
            self.transport.stop()
        self.assertFalse(self.transport.send(0x260, b"\x80"))
        self.assertIsNone(self.transport.recv())

    def test_unknown_interface_fails_start(self):
        transport = CanTransport(interface="no-such-interface", channel="x")
        self.assertFalse(BSIEmulator(transport, MemoryStore()).start(PROFILE))


if __name__ == '__main__':
    unittest.main()
