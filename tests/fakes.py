"""
Test doubles for the emulator's duck-typed collaborators (tick source,
transport, persistence).
"""

from collections import deque

from bsi_emulator.core.database import MemoryStore
from bsi_emulator.hardware.can_bus.transport import TransportError, TransportStoppedError


class FakeTicks:
    ticks_per_second = 1000

    def __init__(self, now: int = 0):
        self.now = now

    def ticks(self) -> int:
        return self.now

    def advance(self, ms: int):
        self.now += ms


class FakeTransport:
    def __init__(self):
        self.running = False
        self.profile = None
        self.fail_start = False
        self.fail_send = False
        self.stop_error = None
        self.sent = []
        self.inbox = deque()
        self.start_calls = 0
        self.stop_calls = 0

    def start(self, profile):
        self.start_calls += 1
        if self.fail_start:
            raise TransportError("no adapter")
        self.running = True
        self.profile = profile

    def stop(self):
        self.stop_calls += 1
        if self.stop_error is not None:
            raise self.stop_error
        if not self.running:
            raise TransportStoppedError("already stopped")
        self.running = False
        self.profile = None

    def send(self, arbitration_id, data, timeout=0.02):
        if not self.running or self.fail_send:
            return False
        self.sent.append((arbitration_id, bytes(data)))
        return True

    def recv(self):
        if not self.running or not self.inbox:
            return None
        return self.inbox.popleft()

    def frames(self, arbitration_id):
        return [data for frame_id, data in self.sent if frame_id == arbitration_id]


class FailingStore(MemoryStore):
    """Reads work, every write fails."""

    def put_many(self, values):
        return False
