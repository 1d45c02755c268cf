"""
WebSocket Transport

Design Decision: Connection Handling
====================================

One websockets connection per session. Inbound messages are consumed by a
single `async for` loop and handed to the client one at a time (text ->
text_received, binary -> binary_received). Outbound messages go through an
outbox queue drained by a sender task, so send() can be called from plain
callbacks and messages leave in the order they were sent.

No reconnect: transfers cannot be resumed on a new connection, so a closed
connection ends the session. Reconnect policy belongs to the caller.
"""

import asyncio
import logging
from typing import Optional, Tuple, Union

import websockets
from websockets.exceptions import ConnectionClosed, ConnectionClosedError, InvalidHandshake, InvalidURI

from .client import CLOSE_NORMAL, CLOSE_PROTOCOL_ERROR, FileShareClient
from .errors import FrameError

logger = logging.getLogger(__name__)

CLOSE_ABNORMAL = 1006
DEFAULT_MAX_MESSAGE_SIZE = 16 * 1024 * 1024  # 16MB


class WebSocketTransport:
    """
    Drives a FileShareClient from a websockets connection.

    Args:
        url: ws:// or wss:// address of the host
        client: The client to feed
        open_timeout: Seconds to wait for the opening handshake
        max_message_size: Largest inbound message accepted (bytes)
    """

    def __init__(self, url: str, client: FileShareClient,
                 open_timeout: float = 10.0,
                 max_message_size: int = DEFAULT_MAX_MESSAGE_SIZE):
        self.url = url
        self.client = client
        self.open_timeout = open_timeout
        self.max_message_size = max_message_size

        self._outbox: Optional[asyncio.Queue] = None
        self._close_request: Optional[Tuple[int, str]] = None
        self._closed_by_us = False

        client.attach(self)

    @property
    def is_closing(self) -> bool:
        return self._close_request is not None

    def send(self, data: Union[str, bytes]):
        """Queue a message for sending."""
        if self._outbox is None or self.is_closing:
            raise ConnectionError("Connection closed")
        self._outbox.put_nowait(data)

    def close(self, code: int = CLOSE_NORMAL, reason: str = ''):
        """Close after everything already queued has been sent."""
        if self._outbox is None or self.is_closing:
            return
        self._close_request = (code, reason)
        self._outbox.put_nowait(None)

    async def run(self):
        """
        Connect and process messages until the connection closes.

        Raises:
            FrameError: a corrupt chunk frame ended the session
        """
        logger.info(f"Connecting to {self.url}")
        try:
            ws = await websockets.connect(
                self.url,
                open_timeout=self.open_timeout,
                max_size=self.max_message_size,
            )
        except (OSError, InvalidHandshake, InvalidURI, asyncio.TimeoutError) as e:
            self.client.connection_failed(e)
            await self.client.connection_closed(CLOSE_ABNORMAL, str(e), False)
            return

        self._outbox = asyncio.Queue()
        sender = asyncio.create_task(self._sender(ws))
        frame_error: Optional[FrameError] = None

        try:
            self.client.connection_opened()
            async for message in ws:
                if isinstance(message, str):
                    self.client.text_received(message)
                else:
                    await self.client.binary_received(message)
        except FrameError as e:
            logger.error(f"Corrupt chunk stream, closing connection: {e}")
            frame_error = e
            self._closed_by_us = True
        except ConnectionClosedError as e:
            self.client.connection_failed(e)
        finally:
            sender.cancel()
            try:
                await sender
            except asyncio.CancelledError:
                pass
            self._outbox = None
            if frame_error is not None:
                await ws.close(code=CLOSE_PROTOCOL_ERROR, reason="invalid chunk frame")
            else:
                await ws.close()

        code = ws.close_code if ws.close_code is not None else CLOSE_ABNORMAL
        if frame_error is not None:
            self.client.connection_failed(frame_error)
        await self.client.connection_closed(code, ws.close_reason or '', not self._closed_by_us)

        if frame_error is not None:
            raise frame_error

    async def _sender(self, ws):
        while True:
            data = await self._outbox.get()
            if data is None:
                code, reason = self._close_request
                self._closed_by_us = True
                await ws.close(code=code, reason=reason)
                return
            try:
                await ws.send(data)
            except ConnectionClosed:
                logger.debug("Connection closed while sending")
                return
