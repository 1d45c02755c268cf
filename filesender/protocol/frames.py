"""
Binary Chunk Frames

Design Decision: Frame Layout
=============================

File content arrives as binary WebSocket messages, one chunk per message.
The WebSocket already delimits messages, so no length prefix is needed.

Frame Format:
```
+------------------+---------------------+------------------+
| Handle ID (4B)   | Chunk Index (8B)    | Payload (rest)   |
| int32, LE        | int64, LE           |                  |
+------------------+---------------------+------------------+
```

A frame that is too short to hold the header means the stream is
corrupted. That is the one protocol error that is raised instead of
logged: continuing would misattribute bytes to other transfers.
"""

import struct
from dataclasses import dataclass

from ..errors import FrameError

HEADER_FORMAT = '<iq'
HEADER_SIZE = struct.calcsize(HEADER_FORMAT)  # 12


@dataclass(frozen=True)
class ChunkFrame:
    """One addressed chunk of file content."""
    transfer_id: int
    chunk_index: int
    payload: bytes

    def to_bytes(self) -> bytes:
        return encode_frame(self.transfer_id, self.chunk_index, self.payload)


def decode_frame(data: bytes) -> ChunkFrame:
    """
    Parse a binary chunk frame.

    Raises:
        FrameError: if the frame does not carry a header plus payload
    """
    if len(data) <= HEADER_SIZE:
        raise FrameError(
            f"Invalid binary frame: need more than {HEADER_SIZE} bytes, got {len(data)}"
        )

    transfer_id, chunk_index = struct.unpack_from(HEADER_FORMAT, data)
    return ChunkFrame(
        transfer_id=transfer_id,
        chunk_index=chunk_index,
        payload=bytes(data[HEADER_SIZE:]),
    )


def encode_frame(transfer_id: int, chunk_index: int, payload: bytes) -> bytes:
    """Build a binary chunk frame (the host side of the protocol)."""
    return struct.pack(HEADER_FORMAT, transfer_id, chunk_index) + payload
