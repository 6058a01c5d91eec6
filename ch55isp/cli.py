"""
ch55isp - flash the CH55x series (CH551, CH552, CH553, CH554, CH559) through
the V2 USB bootloader (versions 2.30, 2.31 and 2.40).

to check if the chip is detected and see the bootloader version:
ch55isp

to flash an example blink.bin file, verify it and start it:
ch55isp -f blink.bin

In addition, a log of usb tx and rx packets can be written, simply add --log option:
ch55isp --log=<logfilename> -f blink.bin

you need pyusb (pip install pyusb) and, for the UART bootloader, pyserial.
on linux either run as root or install the udev rule printed when access is denied,
on windows use the zadig tool https://zadig.akeo.ie/ to install the libusb-win32 driver
"""

import argparse
import signal
import sys
from enum import Enum

from .errors import FileError, FlasherError
from .pidfile import PidFile
from .session import IspSession
from .transport import SerialChannel, UsbChannel
from .txlog import TXT_SEP, TransactionLog

VERSION = '1.0'

example_text = '''--------------------------------------------------------------------------------
    Examples:
    ch55isp
    \t\twill detect the chip and print the bootloader version

    ch55isp -f blink.bin
    \t\twill erase, write and verify the blink bin file and start the application

    ch55isp -f blink.bin -n --log write.log
    \t\twill do the same but stay in the bootloader, recording all operations in write.log

    ch55isp -p /dev/ttyUSB0 -f blink.bin
    \t\twill do the same as above using the UART bootloader on ttyUSB0
    '''


class Outcome(Enum):
    IDENTIFIED = "identified"
    FLASHED = "flashed"


def show_info():
    print(TXT_SEP)
    print("CH55x USB bootloader flash tool, version " + VERSION)
    print("Supported chips: CH551, CH552, CH553, CH554 and CH559")
    print("Bootloader versions: V2.30, V2.31, V2.40")
    print(TXT_SEP)


def load_firmware(path):
    try:
        with open(path, 'rb') as f:
            return f.read()
    except OSError as ex:
        raise FileError("Can't open {}: {}".format(path, ex.strerror or ex)) from ex


def flash(session, binary=None, dont_restart=False):
    # the image is read before anything is sent to the chip
    firmware = load_firmware(binary) if binary else None

    chip = session.detect()
    version = session.negotiate_version()
    print("Found {}, version {}; flash size {}".format(chip.name, version, chip.flash_size))
    if firmware is None:
        return Outcome.IDENTIFIED

    session.check_fits(firmware)
    print('Filesize: ' + str(len(firmware)) + ' bytes')
    session.erase()
    print("Try to write " + binary)
    session.write(firmware)
    print("Verify data")
    session.verify(firmware)
    session.end_flash()
    if not dont_restart:
        print("Reset MCU")
        session.restart_device()
    return Outcome.FLASHED


def _terminate(signum, frame):
    signal.signal(signum, signal.SIG_IGN)
    sys.exit(signum)


def install_signal_handlers():
    for name in ('SIGTERM', 'SIGINT', 'SIGQUIT'):
        if hasattr(signal, name):
            signal.signal(getattr(signal, name), _terminate)
    for name in ('SIGHUP', 'SIGTSTP'):
        if hasattr(signal, name):
            signal.signal(getattr(signal, name), signal.SIG_IGN)


def error_banner(errormsg, log=None):
    print(TXT_SEP)
    print('Error: ' + errormsg)
    print(TXT_SEP)
    if log is not None:
        log.separator()
        log.note(errormsg)


def build_parser():
    parser = argparse.ArgumentParser(prog="ch55isp",
                                     description="CH55x USB bootloader flash tool.",
                                     epilog=example_text,
                                     formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument('--version', action='store_true', help="Show version.")
    parser.add_argument('-f', '--file', dest='binary', type=str, default=None,
                        help="Firmware binary to flash. Without it the chip is only identified.")
    parser.add_argument('-p', '--port', type=str, default='',
                        help="Use the UART bootloader on this serial port instead of USB.")
    parser.add_argument('-n', '--dont-restart', action='store_true', default=False,
                        help="Stay in the bootloader after flashing.")
    parser.add_argument('--pidfile', type=str, default=None,
                        help="PID file, refuse to run while another copy holds it.")
    parser.add_argument('--log', type=str, default=None, help="Log usb operations to file.")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    if args.version:
        show_info()
        return 0

    install_signal_handlers()
    log = None
    try:
        with PidFile(args.pidfile):
            if args.log:
                log = TransactionLog.open(args.log)
            channel = SerialChannel(args.port) if args.port else UsbChannel()
            with channel:
                session = IspSession(channel, log=log, show_progress=sys.stdout.isatty())
                flash(session, args.binary, args.dont_restart)
    except FlasherError as ex:
        error_banner(str(ex), log)
        return 1
    finally:
        if log is not None:
            log.close()
    return 0

