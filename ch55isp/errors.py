class FlasherError(Exception):
    """Base class for every failure that ends a flashing run."""


class TransportError(FlasherError):
    """USB or UART transfer failed or moved the wrong number of bytes."""


class ProtocolError(FlasherError):
    """The bootloader answered, but not with what we need."""


class FileError(FlasherError):
    """The firmware image can't be read."""


class SequenceError(RuntimeError):
    """An operation was called before the session was ready for it."""
