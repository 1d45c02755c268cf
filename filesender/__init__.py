"""
filesender - client for a WebSocket file sharing host.

Authenticates with the host, mirrors its file catalog and receives shared
files as binary chunk frames.
"""

__version__ = '1.0.0'

from .client import FileShareClient, Transport
from .transfer import FileReceiveHandle, ReceiveOptions, ReceivePhase

__all__ = [
    '__version__',
    'FileShareClient',
    'Transport',
    'FileReceiveHandle',
    'ReceiveOptions',
    'ReceivePhase',
]
