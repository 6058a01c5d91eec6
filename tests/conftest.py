"""Shared fakes: a scripted bootloader that answers like a CH55x, no hardware needed."""

import pytest


class FakeChannel:
    """Answers every V2 command from canned values and records what was sent."""

    def __init__(self, chip_id=0x52, version=(2, 3, 1), cfg_sum=(0x10, 0x20, 0x30, 0x40),
                 key_status=0, erase_status=0, data_status=0, end_status=0,
                 fire_error=None):
        self.chip_id = chip_id
        self.version = version
        self.cfg_sum = cfg_sum
        self.key_status = key_status
        self.erase_status = erase_status
        self.data_status = data_status
        self.end_status = end_status
        self.fire_error = fire_error
        self.sent = []
        self.fired = []
        self.closed = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def close(self):
        self.closed = True

    def exchange(self, command, reply_len):
        command = bytes(command)
        self.sent.append(command)
        op = command[0]
        reply = bytearray(reply_len)
        reply[0] = op
        if op == 0xa1:
            reply[4] = self.chip_id
            reply[5] = 0x11
        elif op == 0xa7:
            reply[19:22] = bytes(self.version)
            reply[22:26] = bytes(self.cfg_sum)
        elif op == 0xa3:
            reply[3] = self.key_status
        elif op == 0xa4:
            reply[3] = self.erase_status
        elif op in (0xa5, 0xa6):
            reply[4] = self.data_status
        elif op == 0xa2:
            reply[4] = self.end_status
        return bytes(reply)

    def fire_and_forget(self, command):
        self.fired.append(bytes(command))
        if self.fire_error is not None:
            raise self.fire_error

    def data_packets(self, opcode):
        return [c for c in self.sent if c[0] == opcode]


@pytest.fixture
def channel():
    return FakeChannel()


@pytest.fixture
def make_channel():
    return FakeChannel
