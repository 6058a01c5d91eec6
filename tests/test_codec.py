import pytest

from ch55isp.codec import CHUNK_SIZE, ProtocolVariant, chunks, encode

KEY = 0x10
CHIP = 0x52


def test_old_variant_touches_only_every_eighth_byte():
    out = encode(bytes(CHUNK_SIZE), KEY, CHIP, ProtocolVariant.OLD)
    for i, b in enumerate(out):
        if i % 8 == 7:
            assert b == 0x62
        else:
            assert b == 0


def test_new_variant_xors_the_rest_with_key():
    out = encode(bytes(CHUNK_SIZE), KEY, CHIP, ProtocolVariant.NEW)
    for i, b in enumerate(out):
        assert b == (0x62 if i % 8 == 7 else KEY)


def test_tail_key_wraps_to_a_byte():
    out = encode(bytes(CHUNK_SIZE), 0xf0, 0x59, ProtocolVariant.OLD)
    assert out[7] == (0xf0 + 0x59) & 0xff


def test_encode_is_deterministic_and_leaves_input_alone():
    chunk = bytes(range(CHUNK_SIZE))
    first = encode(chunk, KEY, CHIP, ProtocolVariant.NEW)
    second = encode(chunk, KEY, CHIP, ProtocolVariant.NEW)
    assert first == second
    assert chunk == bytes(range(CHUNK_SIZE))


def test_encode_applied_twice_restores_chunk():
    chunk = bytes(range(100, 100 + CHUNK_SIZE))
    assert encode(encode(chunk, KEY, CHIP, ProtocolVariant.NEW), KEY, CHIP, ProtocolVariant.NEW) == chunk


def test_encode_rejects_wrong_size():
    with pytest.raises(ValueError):
        encode(bytes(10), KEY, CHIP, ProtocolVariant.OLD)


def test_chunks_pads_last_piece():
    pieces = list(chunks(bytes(range(100))))
    assert len(pieces) == 2
    assert pieces[0] == bytes(range(56))
    assert pieces[1] == bytes(range(56, 100)) + bytes(12)


def test_chunks_exact_multiple_has_no_extra_piece():
    assert len(list(chunks(bytes(112)))) == 2


def test_chunks_of_empty_image():
    assert list(chunks(b'')) == []
