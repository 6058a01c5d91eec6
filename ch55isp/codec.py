"""
Payload obfuscation for the V2 bootloader write/verify packets.

Every 8th byte of a chunk is xored with (checksum key + chip id), the
bootloader V2.31 and later also xors the remaining bytes with the key.
"""

from enum import Enum

CHUNK_SIZE = 56


class ProtocolVariant(Enum):
    OLD = "V2.30"
    NEW = "V2.31+"


def encode(chunk, checksum_key, chip_id, variant):
    if len(chunk) != CHUNK_SIZE:
        raise ValueError("chunk must be {} bytes, got {}".format(CHUNK_SIZE, len(chunk)))
    out = bytearray(chunk)
    tail_key = (checksum_key + chip_id) & 0xff
    for i in range(CHUNK_SIZE):
        if i % 8 == 7:
            out[i] ^= tail_key
        elif variant is ProtocolVariant.NEW:
            out[i] ^= checksum_key
    return bytes(out)


def chunks(firmware):
    """Yield the image in CHUNK_SIZE pieces, the last one padded with zeros."""
    for start in range(0, len(firmware), CHUNK_SIZE):
        piece = bytes(firmware[start:start + CHUNK_SIZE])
        yield piece + bytes(CHUNK_SIZE - len(piece))
