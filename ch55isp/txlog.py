from time import localtime, strftime

from .errors import FileError

TXT_SEP = '---------------------------------------------------------------------------------'


def hexdump(data, sep=':'):
    return sep.join('{:02x}'.format(x) for x in data)


class TransactionLog:
    """Plain text log of every packet sent to and received from the bootloader."""

    def __init__(self, stream):
        self.stream = stream

    @classmethod
    def open(cls, path):
        print("Transaction logger ON: " + path)
        try:
            stream = open(path, "w")
        except OSError as ex:
            raise FileError("Can't open log file {}: {}".format(path, ex.strerror or ex)) from ex
        log = cls(stream)
        log.separator()
        print(strftime("%a, %d %b %Y %X +0000", localtime()), file=log.stream)
        print(TXT_SEP, file=log.stream, end="\r\n")
        return log

    def close(self):
        if self.stream is not None:
            self.stream.close()
            self.stream = None

    def separator(self):
        print(TXT_SEP, file=self.stream)

    def section(self, title):
        self.separator()
        print(title, file=self.stream)

    def note(self, text):
        print(text, file=self.stream)

    def buffers(self, tx, rx):
        rx = rx or b''
        print("add= " + '|'.join('{:02x}'.format(x) for x in range(max(len(tx), len(rx)))),
              file=self.stream)
        if len(tx):
            print("tx = " + hexdump(tx), file=self.stream)
        if len(rx):
            print("rx = " + hexdump(rx), file=self.stream)
        else:
            print("rx = -", file=self.stream)

    # one line per data packet, easier to scan by address
    def packet(self, address, plain, tx, rx):
        msg = "ERR" if rx[4] != 0x00 else "OK "
        print('bin data' + ' ' * 44 + hexdump(plain), file=self.stream)
        print('0x{:>04x}'.format(address) + ":" + msg + hexdump(rx), file=self.stream, end=' ')
        print(hexdump(tx), file=self.stream)
