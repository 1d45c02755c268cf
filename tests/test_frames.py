import struct

import pytest

from filesender.errors import FrameError
from filesender.protocol.frames import ChunkFrame, HEADER_SIZE, decode_frame, encode_frame


def test_header_is_twelve_bytes():
    assert HEADER_SIZE == 12


def test_decode_little_endian_header():
    raw = struct.pack('<i', 42) + struct.pack('<q', 9) + b'payload'
    frame = decode_frame(raw)
    assert frame.transfer_id == 42
    assert frame.chunk_index == 9
    assert frame.payload == b'payload'


def test_payload_is_everything_after_header():
    raw = encode_frame(1, 0, bytes(range(200)))
    assert decode_frame(raw).payload == bytes(range(200))


def test_large_chunk_index_and_negative_id():
    raw = encode_frame(-5, 2 ** 40, b'x')
    frame = decode_frame(raw)
    assert frame.transfer_id == -5
    assert frame.chunk_index == 2 ** 40


@pytest.mark.parametrize('length', [0, 1, 4, 11, 12])
def test_short_frames_fail_loudly(length):
    with pytest.raises(FrameError):
        decode_frame(b'\x00' * length)


def test_frame_error_is_value_error():
    with pytest.raises(ValueError):
        decode_frame(b'short')


def test_accepts_memoryview_and_bytearray():
    raw = encode_frame(3, 4, b'abc')
    assert decode_frame(bytearray(raw)).payload == b'abc'
    assert decode_frame(memoryview(raw)).chunk_index == 4


def test_chunk_frame_to_bytes():
    frame = ChunkFrame(transfer_id=7, chunk_index=1, payload=b'data')
    assert decode_frame(frame.to_bytes()) == frame
