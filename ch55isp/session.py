"""
CH55x V2 bootloader protocol.

A flashing run is always the same sequence:

    detect -> negotiate_version -> erase -> write -> verify -> end_flash
    -> restart_device (optional)

IspSession keeps what every step learns (chip, checksum key, protocol
variant) and refuses to run a step whose predecessors have not succeeded.
"""

from enum import IntEnum

from . import catalog
from .codec import CHUNK_SIZE, ProtocolVariant, chunks, encode
from .errors import ProtocolError, SequenceError, TransportError
from .txlog import TXT_SEP

DETECT_CMD = b'\xa1\x12\x00\x52\x11' + b'MCU ISP & WCH.CN'
READ_CONFIG_CMD = bytes((0xa7, 0x02, 0x00, 0x1f, 0x00))
ERASE_CMD = bytes((0xa4, 0x01, 0x00, 0x08))
END_FLASH_CMD = bytes((0xa2, 0x01, 0x00, 0x00))
RESET_CMD = bytes((0xa2, 0x01, 0x00, 0x01))

MODE_WRITE = 0xa5
MODE_VERIFY = 0xa6

DETECT_REPLY_LEN = 6
READ_CONFIG_REPLY_LEN = 30
STATUS_REPLY_LEN = 6

VARIANTS = {
    "V2.30": ProtocolVariant.OLD,
    "V2.31": ProtocolVariant.NEW,
    "V2.40": ProtocolVariant.NEW,
}


class State(IntEnum):
    DISCONNECTED = 0
    DETECTED = 1
    KEY_EXCHANGED = 2
    ERASED = 3
    WRITTEN = 4
    VERIFIED = 5
    ENDED = 6


def select_variant(version):
    try:
        return VARIANTS[version]
    except KeyError:
        raise ProtocolError('Version ' + version + ' not supported') from None


def key_command(variant, checksum_key):
    if variant is ProtocolVariant.OLD:
        return bytes((0xa3, 0x30, 0x00)) + bytes([checksum_key]) * 45
    return bytes((0xa3, 0x38, 0x00)) + bytes(53)


def data_command(mode, address, payload):
    """Build one 64 byte write/verify packet for an already encoded chunk."""
    cmd = bytearray(8)
    cmd[0] = mode
    cmd[1] = (len(payload) + 5) & 0xff
    cmd[3] = address & 0xff
    cmd[4] = (address >> 8) & 0xff
    cmd[7] = CHUNK_SIZE
    return bytes(cmd) + bytes(payload)


class IspSession:

    def __init__(self, channel, log=None, show_progress=True):
        self.channel = channel
        self.log = log
        self.show_progress = show_progress
        self.state = State.DISCONNECTED
        self.chip = None
        self.chip_id = None
        self.checksum_key = None
        self.variant = None
        self.version = None
        self.current_address = 0

    def __require(self, operation, *states):
        if self.state not in states:
            raise SequenceError('{}() needs state {}, session is {}'.format(
                operation, '/'.join(s.name for s in states), self.state.name))

    def __send(self, title, cmd, reply_len):
        reply = self.channel.exchange(cmd, reply_len)
        if self.log is not None:
            self.log.section(title + ":")
            self.log.buffers(cmd, reply)
        return reply

    @staticmethod
    def __draw_progressbar(percent, bar_len=20):
        print("\r", end="")
        print("[{:<{}}] {:.0f}% ".format("=" * int(bar_len * percent), bar_len, percent * 100), end="")

    @staticmethod
    def warn(msg):
        print(TXT_SEP)
        print("Warning: " + msg)
        print(TXT_SEP)

    def detect(self):
        self.__require("detect", State.DISCONNECTED)
        reply = self.__send("Chip identification", DETECT_CMD, DETECT_REPLY_LEN)
        chip = catalog.lookup(reply[4])
        if chip is None:
            raise ProtocolError('Chip not found (id 0x{:02x})'.format(reply[4]))
        self.chip = chip
        self.chip_id = chip.chip_id
        self.state = State.DETECTED
        return chip

    def negotiate_version(self):
        self.__require("negotiate_version", State.DETECTED)
        cfg = self.__send("Config read", READ_CONFIG_CMD, READ_CONFIG_REPLY_LEN)
        version = "V{}.{}{}".format(cfg[19], cfg[20], cfg[21])
        checksum_key = sum(cfg[22:26]) & 0xff
        variant = select_variant(version)

        reply = self.__send("Key input", key_command(variant, checksum_key), STATUS_REPLY_LEN)
        if self.log is not None:
            self.log.note("Checksum: " + hex(checksum_key))
            self.log.note("ChipID = " + hex(self.chip_id))
        if reply[3] != 0x00:
            raise ProtocolError('Key exchange rejected (status 0x{:02x})'.format(reply[3]))
        self.version = version
        self.checksum_key = checksum_key
        self.variant = variant
        self.state = State.KEY_EXCHANGED
        return version

    def check_fits(self, firmware):
        if self.chip is None:
            raise SequenceError('detect() must run before check_fits()')
        if len(firmware) > self.chip.flash_size:
            raise ProtocolError('Firmware is {} bytes, {} has only {} bytes of flash'.format(
                len(firmware), self.chip.name, self.chip.flash_size))

    def erase(self):
        self.__require("erase", State.KEY_EXCHANGED)
        reply = self.__send("Erasing flash", ERASE_CMD, STATUS_REPLY_LEN)
        if reply[3] != 0x00:
            raise ProtocolError('Erase Failed')
        self.state = State.ERASED
        print('Flash Erased')

    def write_or_verify(self, firmware, is_verify=False):
        if is_verify:
            self.__require("verify", State.ERASED, State.WRITTEN, State.VERIFIED)
            mode, what = MODE_VERIFY, "Verify"
        else:
            self.__require("write", State.ERASED, State.WRITTEN)
            mode, what = MODE_WRITE, "Writing"
        if self.log is not None:
            self.log.section(what + " " + str(len(firmware)) + " bytes of flash.")
            self.log.note("add=" + ' ' * 24 + '|'.join('{:02x}'.format(x) for x in range(64)))

        total = len(firmware)
        self.current_address = 0
        for chunk in chunks(firmware):
            payload = encode(chunk, self.checksum_key, self.chip_id, self.variant)
            cmd = data_command(mode, self.current_address, payload)
            reply = self.channel.exchange(cmd, STATUS_REPLY_LEN)
            if self.log is not None:
                self.log.packet(self.current_address, chunk, cmd, reply)
            if reply[4] != 0x00:
                self.warn('{} reply status 0x{:02x} at address 0x{:04x}'.format(
                    what, reply[4], self.current_address))
            self.current_address += CHUNK_SIZE
            if self.show_progress:
                self.__draw_progressbar(min(self.current_address, total) / total)
        if self.show_progress and total:
            print()

        self.state = State.VERIFIED if is_verify else State.WRITTEN
        print(what + ' success')

    def write(self, firmware):
        self.write_or_verify(firmware, is_verify=False)

    def verify(self, firmware):
        self.write_or_verify(firmware, is_verify=True)

    def end_flash(self):
        self.__require("end_flash", State.KEY_EXCHANGED, State.ERASED, State.WRITTEN, State.VERIFIED)
        reply = self.__send("End flash", END_FLASH_CMD, STATUS_REPLY_LEN)
        if reply[4] != 0x00:
            raise ProtocolError("Can't fix writing (status 0x{:02x})".format(reply[4]))
        self.state = State.ENDED

    def restart_device(self):
        if self.state is State.DISCONNECTED:
            raise SequenceError('detect() must run before restart_device()')
        print("Starting application...")
        if self.log is not None:
            self.log.section("Starting application:")
            self.log.buffers(RESET_CMD, b'')
        # best effort, never fails the run
        try:
            self.channel.fire_and_forget(RESET_CMD)
        except TransportError as ex:
            self.warn('Reset command not delivered: {}'.format(ex))
            if self.log is not None:
                self.log.note(str(ex))
