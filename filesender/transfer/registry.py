"""
Transfer Registry

Owns every active FileReceiveHandle, keyed by transfer handle id.

Concurrency contract: the registry is only touched from the client's event
loop, and inbound messages for a connection are handled one at a time, so
lookup, insert and removal never interleave. If delivery is ever spread over
several tasks, lookup+insert+remove must be put under one asyncio.Lock.
"""

import logging
import time
from typing import Callable, Dict, List, Optional

from ..errors import TransferError
from ..protocol.frames import ChunkFrame
from ..protocol.messages import (
    FailReason, FileShareAccept, FileShareDenied, FileShareRequest, Message,
)
from .receiver import FileReceiveHandle, ReceiveOptions, ReceivePhase
from .sink import DEFAULT_QUEUE_SIZE

logger = logging.getLogger(__name__)


class TransferRegistry:
    """
    Creates, routes chunks to, and retires receive handles.

    Args:
        send: Sends a control message to the host
        queue_size: Pending writes per transfer before delivery waits
    """

    def __init__(self, send: Callable[[Message], None],
                 queue_size: int = DEFAULT_QUEUE_SIZE):
        self._send = send
        self.queue_size = queue_size
        self._handles: Dict[int, FileReceiveHandle] = {}

        # Statistics
        self.transfers_completed = 0
        self.transfers_failed = 0
        self.transfers_abandoned = 0
        self.bytes_received = 0
        self.chunks_discarded = 0

    def __contains__(self, handle_id: int) -> bool:
        return handle_id in self._handles

    def __len__(self) -> int:
        return len(self._handles)

    def get(self, handle_id: int) -> Optional[FileReceiveHandle]:
        return self._handles.get(handle_id)

    def get_active(self) -> List[FileReceiveHandle]:
        return list(self._handles.values())

    # === Share requests ===

    def handle_share_request(self, request: FileShareRequest, accept: bool,
                             options: Optional[ReceiveOptions] = None,
                             reason: Optional[FailReason] = None) -> Optional[FileReceiveHandle]:
        """
        Answer a share request from the host.

        Args:
            request: The request being answered
            accept: Whether the application wants the file
            options: Destination and callbacks (required to accept)
            reason: Reason sent with a denial

        Returns:
            The new receive handle, or None if the request was denied
        """
        handle_id = request.file_handle_id

        if accept and (options is None or not options.is_valid):
            logger.warning(f"Cannot accept {request.file_name}: no destination given")
            accept = False
            reason = reason or FailReason.NO_DESTINATION

        if accept and handle_id in self._handles:
            logger.warning(f"Transfer {handle_id} is already active, denying duplicate request")
            accept = False
            reason = FailReason.DUPLICATE_HANDLE

        if not accept:
            reason = reason or FailReason.CLIENT_DENIED
            logger.info(f"Denied file {request.file_name} (transfer {handle_id}): {reason.value}")
            self._send(FileShareDenied(file_handle_id=handle_id, reason=reason))
            return None

        handle = FileReceiveHandle(
            request, options,
            on_finished=self._release,
            on_settled=self._record,
            queue_size=self.queue_size,
        )
        if handle.is_active:
            self._handles[handle_id] = handle

        self._send(FileShareAccept(file_handle_id=handle_id))
        return handle

    # === Chunks ===

    async def on_chunk(self, frame: ChunkFrame) -> bool:
        """
        Route a chunk frame to its transfer.

        Chunks for unknown or finished transfers are late data, not errors,
        and are discarded.

        Returns:
            True if the chunk was applied
        """
        handle = self._handles.get(frame.transfer_id)
        if handle is None:
            self.chunks_discarded += 1
            logger.debug(f"Discarding chunk {frame.chunk_index} for unknown "
                         f"transfer {frame.transfer_id}")
            return False

        return await handle.received_chunk(frame.chunk_index, frame.payload)

    # === Teardown ===

    async def abandon_all(self) -> int:
        """Drop every active transfer (connection closed)."""
        handles = list(self._handles.values())
        for handle in handles:
            await handle.abandon()
        return len(handles)

    async def check_stalled(self, timeout: float) -> List[int]:
        """
        Fail transfers that have not received a chunk for `timeout` seconds.

        Returns:
            Handle ids of the transfers that were failed
        """
        now = time.monotonic()
        stalled = [
            h for h in self._handles.values()
            if now - h.last_activity > timeout
        ]
        for handle in stalled:
            await handle.fail(TransferError(
                handle.handle_id, f"no data for {timeout:.0f}s, giving up"
            ))
        return [h.handle_id for h in stalled]

    def _release(self, handle: FileReceiveHandle):
        """Remove a handle that has left the RECEIVING phase."""
        self._handles.pop(handle.handle_id, None)
        self.bytes_received += handle.bytes_received

    def _record(self, handle: FileReceiveHandle):
        """Count a handle once its outcome is final (after the file is saved)."""
        if handle.phase is ReceivePhase.COMPLETED:
            self.transfers_completed += 1
        elif handle.phase is ReceivePhase.FAILED:
            self.transfers_failed += 1
        elif handle.phase is ReceivePhase.ABANDONED:
            self.transfers_abandoned += 1

    def get_stats(self) -> dict:
        """Get registry statistics."""
        return {
            'active': len(self._handles),
            'completed': self.transfers_completed,
            'failed': self.transfers_failed,
            'abandoned': self.transfers_abandoned,
            'bytes_received': self.bytes_received,
            'chunks_discarded': self.chunks_discarded,
        }
