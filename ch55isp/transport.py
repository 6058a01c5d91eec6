"""
Byte channels to the CH55x bootloader.

UsbChannel talks to the bootloader's USB interface (bulk endpoints 0x02/0x82),
SerialChannel to its UART. Both open lazily on the first command, and any
transfer error or short transfer raises TransportError. Use them as context
managers so the device is released whatever happens in between.
"""

import platform
from abc import ABC, abstractmethod
from time import sleep

import serial
import usb.core
import usb.util

from .errors import TransportError

VENDOR_ID = 0x4348
PRODUCT_ID = 0x55e0
EP_OUT = 0x02
EP_IN = 0x82
INTERFACE = 0
TIMEOUT_MS = 2000

SERIAL_BAUD = 57600
SERIAL_TX_PREAMBLE = b'\x57\xab'
SERIAL_RX_PREAMBLE = b'\x55\xaa'

UDEV_HINT = '''No access to USB Device, configure udev or execute as root (sudo)
For udev create /etc/udev/rules.d/99-ch55x.rules
with one line:
---
SUBSYSTEM=="usb", ATTR{idVendor}=="4348", ATTR{idProduct}=="55e0", MODE="666"
---
Restart udev: sudo service udev restart
Reconnect device, should work now!'''


class Channel(ABC):
    """Request/response link to the bootloader, released on leaving a `with` block."""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    @abstractmethod
    def open(self):
        """Bind to the device, a no-op when already open."""

    @abstractmethod
    def close(self):
        """Release the device, a no-op when not open."""

    @abstractmethod
    def exchange(self, command, reply_len):
        """Send command and return exactly reply_len reply bytes."""

    @abstractmethod
    def fire_and_forget(self, command):
        """Send command without reading a reply."""


class UsbChannel(Channel):

    def __init__(self):
        self.dev = None

    @property
    def is_open(self):
        return self.dev is not None

    def open(self):
        if self.dev is not None:
            return
        dev = usb.core.find(idVendor=VENDOR_ID, idProduct=PRODUCT_ID)
        if dev is None:
            raise TransportError('No CH55x device found, check driver please')
        try:
            self.__configure(dev)
            usb.util.claim_interface(dev, INTERFACE)
        except usb.core.USBError as ex:
            usb.util.dispose_resources(dev)
            if ex.errno == 13 and platform.system() == 'Linux':
                raise TransportError(UDEV_HINT) from ex
            raise TransportError('Could not access USB Device: {}'.format(ex)) from ex
        self.dev = dev

    @staticmethod
    def __configure(dev):
        try:
            try:
                if dev.is_kernel_driver_active(INTERFACE):
                    dev.detach_kernel_driver(INTERFACE)
            except NotImplementedError:
                pass  # Windows backends have no kernel drivers to detach
            dev.set_configuration()
        except usb.core.USBError as ex:
            if ex.errno == 2 and platform.system() == 'Darwin':
                # Recent mac fails with the error 'Entity not found'.
                # It just works to continue with set_configuration forcibly.
                dev.set_configuration()
            else:
                raise

    def close(self):
        if self.dev is None:
            return
        dev, self.dev = self.dev, None
        try:
            usb.util.release_interface(dev, INTERFACE)
        except usb.core.USBError:
            # the device drops off the bus after a reset command
            pass
        usb.util.dispose_resources(dev)

    def __write(self, command):
        self.open()
        try:
            sent = self.dev.write(EP_OUT, command, timeout=TIMEOUT_MS)
        except usb.core.USBError as ex:
            raise TransportError('USB write failed: {}'.format(ex)) from ex
        if sent != len(command):
            raise TransportError('USB write: sent {} of {} bytes'.format(sent, len(command)))

    def exchange(self, command, reply_len):
        self.__write(command)
        try:
            reply = self.dev.read(EP_IN, reply_len, timeout=TIMEOUT_MS)
        except usb.core.USBError as ex:
            raise TransportError('USB read failed: {}'.format(ex)) from ex
        if len(reply) != reply_len:
            raise TransportError('USB read: expected {} bytes, got {}'.format(reply_len, len(reply)))
        return bytes(reply)

    def fire_and_forget(self, command):
        self.__write(command)


class SerialChannel(Channel):
    """Bootloader UART: 57 AB <cmd> <sum> out, 55 AA <reply> <sum> back."""

    def __init__(self, port, baudrate=SERIAL_BAUD):
        self.port = port
        self.baudrate = baudrate
        self.ser = None

    @property
    def is_open(self):
        return self.ser is not None

    def open(self):
        if self.ser is not None:
            return
        ser = serial.Serial(timeout=TIMEOUT_MS / 1000)
        ser.port = self.port
        ser.baudrate = self.baudrate
        try:
            ser.open()
        except serial.SerialException as ex:
            raise TransportError('Serial port not found: {}'.format(ex)) from ex
        print("Port " + ser.name + " " + str(self.baudrate) + " baud open.")
        print("Attempting to start the bootloader via the DTR line...")
        sleep(0.01)
        ser.dtr = True
        sleep(0.15)
        ser.dtr = False
        sleep(0.1)
        ser.dsrdtr = False
        self.ser = ser

    def close(self):
        if self.ser is None:
            return
        ser, self.ser = self.ser, None
        ser.close()
        print("Closing " + ser.name + " port.")

    @staticmethod
    def frame(command):
        pkt = bytearray(SERIAL_TX_PREAMBLE)
        pkt += command
        pkt.append(sum(command) & 0xff)
        return bytes(pkt)

    def __write(self, command):
        self.open()
        pkt = self.frame(command)
        try:
            sent = self.ser.write(pkt)
        except serial.SerialException as ex:
            raise TransportError('Serial write failed: {}'.format(ex)) from ex
        if sent != len(pkt):
            raise TransportError('Serial write: sent {} of {} bytes'.format(sent, len(pkt)))

    def exchange(self, command, reply_len):
        self.__write(command)
        try:
            raw = self.ser.read(reply_len + 3)
        except serial.SerialException as ex:
            raise TransportError('Serial read failed: {}'.format(ex)) from ex
        if len(raw) != reply_len + 3 or raw[:2] != SERIAL_RX_PREAMBLE:
            raise TransportError('MCU UART not responding. '
                                 'Try to cycle the power with the PROG button held down.')
        body = bytes(raw[2:-1])
        if sum(body) & 0xff != raw[-1]:
            raise TransportError('UART bootloader reply: checksum error')
        return body

    def fire_and_forget(self, command):
        self.__write(command)
