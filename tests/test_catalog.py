import pytest

from ch55isp import catalog


@pytest.mark.parametrize("chip_id, name, flash_size", [
    (0x51, "CH551", 10240),
    (0x52, "CH552", 16384),
    (0x53, "CH553", 10240),
    (0x54, "CH554", 14336),
    (0x59, "CH559", 61440),
])
def test_lookup_known_chips(chip_id, name, flash_size):
    chip = catalog.lookup(chip_id)
    assert chip.name == name
    assert chip.flash_size == flash_size
    assert chip.chip_id == chip_id


@pytest.mark.parametrize("chip_id", [0x00, 0x50, 0x55, 0x58, 0xff])
def test_lookup_unknown(chip_id):
    assert catalog.lookup(chip_id) is None


def test_descriptors_are_immutable():
    chip = catalog.lookup(0x52)
    with pytest.raises(AttributeError):
        chip.flash_size = 1


def test_catalog_has_five_chips():
    assert len(catalog.CHIPS) == 5
