"""
File Sink

Design Decision: Where Writes Happen
====================================

Options Considered:
1. Write each chunk inline, in the message handler
   - Simple, but a slow disk stalls every other transfer on the connection
2. One writer task per transfer, fed by a bounded queue
   - Delivery only waits when a transfer is far behind
   - Writes for one file stay ordered with respect to each other
3. Shared thread pool for all transfers
   - More moving parts, no ordering per file

Decision: Writer task per transfer with an asyncio.Queue (aiofiles underneath)
- Chunks are written positionally (offset = index * chunk_size), so arrival
  order does not matter
- Data goes to "<name>.part" and is renamed into place once everything is
  flushed (same temp-then-rename approach as chunk storage)
- On a write error the partial file is removed and the owner is told
"""

import asyncio
import logging
from pathlib import Path
from typing import Callable, Optional, Tuple

import aiofiles
import aiofiles.os

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 64

ErrorCallback = Callable[[Exception], None]


def part_path(path: Path) -> Path:
    """Temporary path used while a file is being received."""
    return path.with_name(path.name + '.part')


class FileSink:
    """
    Positional writer for one received file.

    Args:
        path: Final location of the file
        size: Declared file size (the file is pre-sized to it)
        queue_size: Maximum pending writes before write() waits
        on_error: Called once if a write fails
    """

    def __init__(self, path: Path, size: int,
                 queue_size: int = DEFAULT_QUEUE_SIZE,
                 on_error: Optional[ErrorCallback] = None):
        self.path = Path(path)
        self.temp_path = part_path(self.path)
        self.size = size
        self.on_error = on_error

        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._task: Optional[asyncio.Task] = None
        self.error: Optional[Exception] = None
        self.aborted = False
        self.bytes_written = 0

    def start(self):
        """Start the writer task. Must be called from the event loop."""
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(self._run())

    async def write(self, offset: int, data: bytes):
        """
        Queue a positional write.

        Waits only when the queue is full. Writes after a failure or an
        abort are discarded; the failure has already been reported.
        """
        if self.error is not None or self.aborted:
            return
        await self._queue.put((offset, data))

    async def close(self) -> Path:
        """
        Flush all queued writes and move the file into place.

        Returns:
            The final file path

        Raises:
            OSError: the write error, if any write failed
        """
        self.start()
        if self.error is None:
            await self._queue.put(None)
        await self._task

        if self.error is not None:
            raise self.error

        try:
            await aiofiles.os.rename(self.temp_path, self.path)
        except OSError:
            await self._remove_partial()
            raise
        logger.debug(f"Wrote {self.bytes_written:,} bytes to {self.path}")
        return self.path

    async def abort(self):
        """Stop writing and remove the partial file."""
        self.aborted = True
        # Release a delivery blocked on a full queue before waiting on the writer
        self._drain()
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        await self._remove_partial()

    async def _run(self):
        try:
            await aiofiles.os.makedirs(self.path.parent, exist_ok=True)
            async with aiofiles.open(self.temp_path, 'wb') as f:
                if self.size:
                    await f.truncate(self.size)
                while True:
                    item: Optional[Tuple[int, bytes]] = await self._queue.get()
                    if item is None:
                        break
                    offset, data = item
                    await f.seek(offset)
                    await f.write(data)
                    self.bytes_written += len(data)
        except OSError as e:
            logger.error(f"Write to {self.temp_path} failed: {e}")
            self.error = e
            self._drain()
            await self._remove_partial()
            if self.on_error:
                self.on_error(e)

    def _drain(self):
        """Discard pending writes (wakes any writer blocked on a full queue)."""
        while not self._queue.empty():
            self._queue.get_nowait()

    async def _remove_partial(self):
        if await aiofiles.os.path.exists(self.temp_path):
            await aiofiles.os.remove(self.temp_path)
