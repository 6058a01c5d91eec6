from collections import namedtuple

ChipDescriptor = namedtuple("ChipDescriptor", ("name", "flash_size", "chip_id"))

# chips known to the V2 bootloader
CHIPS = (
    ChipDescriptor("CH551", 10240, 0x51),
    ChipDescriptor("CH552", 16384, 0x52),
    ChipDescriptor("CH553", 10240, 0x53),
    ChipDescriptor("CH554", 14336, 0x54),
    ChipDescriptor("CH559", 61440, 0x59),
)


def lookup(id_byte):
    for chip in CHIPS:
        if chip.chip_id == id_byte:
            return chip
    return None
