"""
Protocol Module - Wire Formats

Binary chunk frames, typed control messages and the dispatcher that
routes them.
"""

from .frames import ChunkFrame, decode_frame, encode_frame, HEADER_SIZE
from .messages import (
    Message, Envelope, FailReason, ServerInfo, FileDescriptor,
    AuthRequest, AuthAccepted, AuthDenied,
    FileShareRequest, FileShareAccept, FileShareDenied,
    FileListUpdate, RequestFileDownload, RequestFileListUpdate,
    MESSAGE_TYPES, encode_message, decode_envelope, decode_message, decode,
)
from .dispatcher import ControlDispatcher

__all__ = [
    'ChunkFrame',
    'decode_frame',
    'encode_frame',
    'HEADER_SIZE',
    'Message',
    'Envelope',
    'FailReason',
    'ServerInfo',
    'FileDescriptor',
    'AuthRequest',
    'AuthAccepted',
    'AuthDenied',
    'FileShareRequest',
    'FileShareAccept',
    'FileShareDenied',
    'FileListUpdate',
    'RequestFileDownload',
    'RequestFileListUpdate',
    'MESSAGE_TYPES',
    'encode_message',
    'decode_envelope',
    'decode_message',
    'decode',
    'ControlDispatcher',
]
