"""
File Receive Handle

Tracks one accepted transfer from its share request to completion.

Chunk Reception:
1. Drop the chunk if its index was already applied (delivery is idempotent)
2. Drop it if the index or size does not fit the request
3. Record the index and queue a positional write at index * chunk_size
4. Report progress (in arrival order)
5. When every index has arrived: COMPLETED, leave the registry, and fire
   on_completed once the sink has flushed

Phases:
```
RECEIVING --all chunks--> COMPLETED
          --write error--> FAILED
          --stalled------> FAILED
          --disconnect---> ABANDONED (no completion callback)
```
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Set, Union

from ..errors import TransferError
from ..protocol.messages import FileShareRequest
from .sink import DEFAULT_QUEUE_SIZE, FileSink

logger = logging.getLogger(__name__)

HandleCallback = Callable[['FileReceiveHandle'], None]
FailureCallback = Callable[['FileReceiveHandle', Exception], None]


class ReceivePhase(Enum):
    RECEIVING = "receiving"
    COMPLETED = "completed"
    FAILED = "failed"
    ABANDONED = "abandoned"


@dataclass
class ReceiveOptions:
    """Where to put an accepted file and whom to tell about it."""
    destination: Union[str, Path, None]
    on_start: Optional[HandleCallback] = None
    on_progress: Optional[HandleCallback] = None
    on_completed: Optional[HandleCallback] = None
    on_failed: Optional[FailureCallback] = None

    @property
    def is_valid(self) -> bool:
        return bool(self.destination)


def safe_file_name(name: str) -> str:
    """Strip directory parts so a host-supplied name stays in the destination."""
    base = Path(name.replace('\\', '/')).name
    if base in ('', '.', '..'):
        return 'download'
    return base


class FileReceiveHandle:
    """
    Receive state machine for one transfer.

    Must be created and driven from the client's event loop.
    """

    def __init__(self, request: FileShareRequest, options: ReceiveOptions,
                 on_finished: Optional[HandleCallback] = None,
                 on_settled: Optional[HandleCallback] = None,
                 queue_size: int = DEFAULT_QUEUE_SIZE):
        """
        Args:
            request: The accepted share request
            options: Destination directory and callbacks
            on_finished: Called once when the handle leaves RECEIVING
            on_settled: Called once with the final phase, after any flush
            queue_size: Pending writes allowed before delivery waits
        """
        self.handle_id = request.file_handle_id
        self.file_id = request.file_id
        self.file_name = request.file_name
        self.file_size = request.file_size
        self.chunk_size = request.chunk_size
        self.chunk_count = request.chunk_count
        self.path = Path(options.destination) / safe_file_name(request.file_name)

        self.options = options
        self._on_finished = on_finished
        self._on_settled = on_settled

        self.phase = ReceivePhase.RECEIVING
        self.error: Optional[Exception] = None
        self._received: Set[int] = set()
        self.bytes_received = 0
        self.duplicate_chunks = 0
        self.start_time = time.time()
        self.end_time: Optional[float] = None
        self.last_activity = time.monotonic()

        self._done = asyncio.Event()
        self._finish_task: Optional[asyncio.Task] = None

        self._sink = FileSink(self.path, self.file_size, queue_size,
                              on_error=self._on_write_error)
        self._sink.start()

        logger.info(f"Receiving {self.file_name} ({self.file_size:,} bytes, "
                    f"{self.chunk_count} chunks) as transfer {self.handle_id}")
        self._notify(options.on_start)

        if self.chunk_count == 0:
            self._complete()

    # === State ===

    @property
    def received_chunks(self) -> int:
        return len(self._received)

    @property
    def progress(self) -> float:
        """Progress as 0.0 to 1.0."""
        if self.chunk_count == 0:
            return 1.0
        return len(self._received) / self.chunk_count

    @property
    def progress_percent(self) -> float:
        return self.progress * 100

    @property
    def is_active(self) -> bool:
        return self.phase is ReceivePhase.RECEIVING

    def has_chunk(self, index: int) -> bool:
        return index in self._received

    def missing_chunks(self) -> Set[int]:
        return set(range(self.chunk_count)) - self._received

    @property
    def elapsed_seconds(self) -> float:
        return (self.end_time or time.time()) - self.start_time

    @property
    def speed_bytes_per_sec(self) -> float:
        elapsed = self.elapsed_seconds
        if elapsed == 0:
            return 0
        return self.bytes_received / elapsed

    # === Chunk reception ===

    async def received_chunk(self, index: int, payload: bytes) -> bool:
        """
        Apply one chunk.

        Returns:
            True if the chunk was new and accepted
        """
        if self.phase is not ReceivePhase.RECEIVING:
            return False

        if index in self._received:
            self.duplicate_chunks += 1
            logger.debug(f"Duplicate chunk {index} for transfer {self.handle_id}")
            return False

        if not 0 <= index < self.chunk_count:
            logger.warning(f"Chunk index {index} out of range for transfer "
                           f"{self.handle_id} ({self.chunk_count} chunks)")
            return False

        if len(payload) > self.chunk_size:
            logger.warning(f"Chunk {index} for transfer {self.handle_id} is "
                           f"{len(payload)} bytes, expected at most {self.chunk_size}")
            return False

        self._received.add(index)
        self.bytes_received += len(payload)
        self.last_activity = time.monotonic()

        await self._sink.write(index * self.chunk_size, payload)

        # The sink may have failed while we waited for queue space
        if self.phase is not ReceivePhase.RECEIVING:
            return False

        self._notify(self.options.on_progress)

        if len(self._received) == self.chunk_count:
            self._complete()

        return True

    def _complete(self):
        self.phase = ReceivePhase.COMPLETED
        self.end_time = time.time()
        self._release()
        self._finish_task = asyncio.get_running_loop().create_task(self._finish())

    async def _finish(self):
        try:
            await self._sink.close()
        except OSError as e:
            self._fail(TransferError(self.handle_id, f"could not save file: {e}"))
            return

        logger.info(f"Transfer {self.handle_id} complete: {self.path} "
                    f"({self.bytes_received:,} bytes in {self.elapsed_seconds:.1f}s)")
        self._notify(self.options.on_completed)
        self._settle()

    # === Failure / abandonment ===

    def _on_write_error(self, error: Exception):
        if self.phase is ReceivePhase.RECEIVING:
            self._release_with(ReceivePhase.FAILED)
            self._fail(TransferError(self.handle_id, f"write failed: {error}"))

    def _fail(self, error: Exception):
        self.phase = ReceivePhase.FAILED
        self.error = error
        self.end_time = time.time()
        logger.error(str(error))
        if self.options.on_failed:
            try:
                self.options.on_failed(self, error)
            except Exception as e:
                logger.exception(f"Callback error: {e}")
        self._settle()

    async def fail(self, error: Exception):
        """Abort the transfer and report it as failed."""
        if self.phase is not ReceivePhase.RECEIVING:
            return
        self._release_with(ReceivePhase.FAILED)
        await self._sink.abort()
        self._fail(error)

    async def abandon(self):
        """Drop the transfer without any completion callback."""
        if self.phase is not ReceivePhase.RECEIVING:
            return
        self._release_with(ReceivePhase.ABANDONED)
        self.end_time = time.time()
        await self._sink.abort()
        logger.info(f"Abandoned transfer {self.handle_id} at "
                    f"{self.received_chunks}/{self.chunk_count} chunks")
        self._settle()

    def _settle(self):
        if self._on_settled:
            callback, self._on_settled = self._on_settled, None
            callback(self)
        self._done.set()

    def _release_with(self, phase: ReceivePhase):
        self.phase = phase
        self._release()

    def _release(self):
        if self._on_finished:
            callback, self._on_finished = self._on_finished, None
            callback(self)

    async def wait(self) -> ReceivePhase:
        """Wait until the transfer has finished one way or another."""
        await self._done.wait()
        return self.phase

    def _notify(self, callback: Optional[HandleCallback]):
        if callback is None:
            return
        try:
            callback(self)
        except Exception as e:
            logger.exception(f"Callback error: {e}")

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            'handle_id': self.handle_id,
            'file_id': self.file_id,
            'file_name': self.file_name,
            'file_size': self.file_size,
            'chunk_size': self.chunk_size,
            'chunk_count': self.chunk_count,
            'received_chunks': self.received_chunks,
            'bytes_received': self.bytes_received,
            'progress_percent': self.progress_percent,
            'speed_bytes_per_sec': self.speed_bytes_per_sec,
            'phase': self.phase.value,
            'path': str(self.path),
        }
