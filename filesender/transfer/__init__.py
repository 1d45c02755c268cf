"""
Transfer Module - Receiving Files

Tracks accepted transfers and reassembles their chunks on disk.
"""

from .sink import FileSink
from .receiver import FileReceiveHandle, ReceiveOptions, ReceivePhase
from .registry import TransferRegistry

__all__ = [
    'FileSink',
    'FileReceiveHandle',
    'ReceiveOptions',
    'ReceivePhase',
    'TransferRegistry',
]
