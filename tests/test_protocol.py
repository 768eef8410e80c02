"""
UNIT TEST: FRAME CODECS
PROFILE: PSA COMFORT BUS

DESCRIPTION:
    Bit-level checks of the settings record and the date/time frames.
"""

import unittest
import logging
import sys
import os

# Add project root to path
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from bsi_emulator.protocol.datetime_frame import (
    CalendarFields, DateTimeDecodeError, decode_time_broadcast, decode_time_write,
    encode_time_broadcast, encode_time_write,
)
from bsi_emulator.protocol.messages import MessageIds
from bsi_emulator.protocol.settings_frame import SettingsFrame, encode_settings_write, language_name


class TestSettingsFrame(unittest.TestCase):

    def setUp(self):
        logging.disable(logging.CRITICAL)

    def test_menu_bit_forced_on_blank_frame(self):
        frame = SettingsFrame()
        self.assertEqual(frame.to_bytes(), bytes([0x80, 0, 0, 0, 0, 0, 0, 0]))
        self.assertTrue(frame.menu_active)

    def test_short_input_is_zero_padded(self):
        frame = SettingsFrame(b"\x04\x40")
        self.assertEqual(frame.to_bytes(), bytes([0x84, 0x40, 0, 0, 0, 0, 0, 0]))
        self.assertEqual(frame.language, 1)
        self.assertTrue(frame.celsius)

    def test_language_setter_keeps_passthrough_bits(self):
        frame = SettingsFrame(bytes([0x83, 0x00]))
        frame.language = 5
        self.assertEqual(frame.to_bytes()[0], 0x80 | (5 << 2) | 0x03)

    def test_language_out_of_range(self):
        with self.assertRaises(ValueError):
            SettingsFrame().language = 32

    def test_celsius_setter_touches_only_bit6(self):
        frame = SettingsFrame(bytes([0x80, 0xFF]))
        frame.celsius = False
        self.assertEqual(frame.to_bytes()[1], 0xBF)
        frame.celsius = True
        self.assertEqual(frame.to_bytes()[1], 0xFF)

    def test_override_tail_leaves_byte0_and_trailing_bytes(self):
        frame = SettingsFrame(bytes([0x84, 1, 2, 3, 4, 5, 6, 7]))
        frame.override_tail(bytes([0x00, 0xAA, 0xBB]))
        self.assertEqual(frame.to_bytes(), bytes([0x84, 0xAA, 0xBB, 3, 4, 5, 6, 7]))
        self.assertEqual(frame.tail, bytes([0xAA, 0xBB, 3, 4, 5, 6, 7]))

    def test_encode_settings_write_language_and_units(self):
        self.assertEqual(encode_settings_write(language=5, celsius=False), bytes([0x94, 0x00]))
        self.assertEqual(encode_settings_write(language=1, celsius=True), bytes([0x84, 0x40]))

    def test_encode_settings_write_tail_only(self):
        data = encode_settings_write(tail=bytes([0x00, 0x11, 0x22]))
        self.assertEqual(data, bytes([0x00, 0x04, 0x11, 0x22]))

    def test_language_names(self):
        self.assertEqual(language_name(1), "English")
        self.assertEqual(language_name(31), "UNKNOWN_31")


class TestDateTimeFrames(unittest.TestCase):

    def test_decode_write_fields(self):
        fields = decode_time_write(bytes([0x98, 0x03, 0x0F, 0x0E, 0x1E]))
        self.assertEqual(fields, CalendarFields(2024, 3, 15, 14, 30, True))

    def test_decode_write_masks_unused_bits(self):
        fields = decode_time_write(bytes([0x18, 0xF3, 0xEF, 0xEE, 0xDE]))
        self.assertEqual((fields.month, fields.day, fields.hour, fields.minute), (3, 15, 14, 30))
        self.assertFalse(fields.clock_24h)

    def test_decode_write_clamps_zero_month_and_day(self):
        fields = decode_time_write(bytes([0x18, 0x00, 0x00, 0x00, 0x00]))
        self.assertEqual((fields.month, fields.day), (1, 1))

    def test_decode_write_too_short(self):
        with self.assertRaises(DateTimeDecodeError):
            decode_time_write(bytes([0x98, 0x03, 0x0F, 0x0E]))

    def test_invalid_calendar_rejected(self):
        for fields in (CalendarFields(2024, 13, 1, 0, 0),
                       CalendarFields(2024, 2, 30, 0, 0),
                       CalendarFields(2024, 1, 1, 24, 0),
                       CalendarFields(2024, 1, 1, 0, 60)):
            with self.assertRaises(DateTimeDecodeError):
                fields.to_epoch()

    def test_epoch_is_naive(self):
        self.assertEqual(CalendarFields(2024, 3, 15, 14, 30).to_epoch(), 1710513000)

    def test_broadcast_layout(self):
        frame = encode_time_broadcast(1710513000, clock_24h=True)
        self.assertEqual(frame, bytes([0x98, 0x03, 0x0F, 0x0E, 0x1E, 0x3F, 0xFE]))

    def test_broadcast_12h_flag(self):
        frame = encode_time_broadcast(1710513000, clock_24h=False)
        self.assertEqual(frame[0], 0x18)

    def test_broadcast_without_clock_is_zeroed(self):
        self.assertEqual(encode_time_broadcast(None, clock_24h=True),
                         bytes([0x80, 0, 0, 0, 0, 0x3F, 0xFE]))
        self.assertIsNone(decode_time_broadcast(encode_time_broadcast(None, clock_24h=False)))

    def test_write_encoder_matches_decoder_layout(self):
        fields = CalendarFields(2031, 12, 31, 23, 59, False)
        self.assertEqual(encode_time_write(fields), bytes([0x1F, 0x0C, 0x1F, 0x17, 0x3B]))


class TestMessageIds(unittest.TestCase):

    def test_from_config_accepts_hex_strings(self):
        ids = MessageIds.from_config({"settings_broadcast": "0x261", "time_write": 0x39C})
        self.assertEqual(ids.settings_broadcast, 0x261)
        self.assertEqual(ids.time_write, 0x39C)
        self.assertEqual(ids.time_broadcast, 0x276)

    def test_describe(self):
        ids = MessageIds()
        self.assertEqual(ids.describe(0x15B), "SETTINGS_WRITE")
        self.assertIn("FOREIGN", ids.describe(0x123))


if __name__ == '__main__':
    unittest.main()
