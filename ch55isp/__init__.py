from .catalog import ChipDescriptor, lookup
from .codec import ProtocolVariant, encode
from .errors import FileError, FlasherError, ProtocolError, SequenceError, TransportError
from .session import IspSession, State
from .transport import SerialChannel, UsbChannel

__version__ = '1.0'
