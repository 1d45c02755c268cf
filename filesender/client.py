"""
File Share Client

The client endpoint. Combines the protocol pieces behind one object:
- Session: authentication with the host
- Catalog: files the host offers
- TransferRegistry: accepted transfers and their chunk assembly
- ControlDispatcher: routes inbound control messages to the above

The client does not own a socket. A transport (see transport.py) calls the
connection_* / *_received methods and provides send() and close().

Delivery contract: the transport calls text_received() and awaits
binary_received() one message at a time, in arrival order, on a single
event loop. Nothing in the client locks; that contract is what keeps the
session, the catalog and the registry consistent.
"""

import asyncio
import logging
from typing import Callable, List, Optional, Protocol, Union

from .catalog import Catalog, CatalogCallback, Snapshot
from .protocol.dispatcher import ControlDispatcher
from .protocol.frames import decode_frame
from .protocol.messages import (
    AuthAccepted, AuthDenied, FailReason, FileListUpdate, FileShareRequest,
    Message, RequestFileDownload, RequestFileListUpdate, encode_message,
)
from .session import LoginCallback, LoginFailedCallback, Session, SessionPhase
from .transfer.receiver import FileReceiveHandle, ReceiveOptions
from .transfer.registry import TransferRegistry
from .transfer.sink import DEFAULT_QUEUE_SIZE

logger = logging.getLogger(__name__)

CLOSE_NORMAL = 1000
CLOSE_PROTOCOL_ERROR = 1002

ShareReviewer = Callable[[FileShareRequest], None]
CloseCallback = Callable[[int, str, bool], None]
ErrorCallback = Callable[[Exception], None]


class Transport(Protocol):
    """What the client needs from a connection."""

    def send(self, data: Union[str, bytes]) -> None:
        ...

    def close(self, code: int = CLOSE_NORMAL, reason: str = '') -> None:
        ...


class FileShareClient:
    """
    Client side of the file sharing protocol.

    Usage:
        client = FileShareClient("laptop", "1.0.0")
        client.on_login(lambda msg: client.request_file_list_update())
        client.on_share_request(review)
        await WebSocketTransport(url, client).run()
    """

    def __init__(self, name: str, client_version: str,
                 transport: Optional[Transport] = None,
                 legacy_class_names: bool = False,
                 write_queue_size: int = DEFAULT_QUEUE_SIZE,
                 stall_timeout: Optional[float] = None):
        """
        Initialize the client.

        Args:
            name: Display name sent to the host
            client_version: Version string sent to the host
            transport: Connection to send on (can be attached later)
            legacy_class_names: Emit fully-qualified packet class names
            write_queue_size: Pending writes per transfer before delivery waits
            stall_timeout: Fail transfers idle for this many seconds (None = never)
        """
        self.name = name
        self.client_version = client_version
        self.transport = transport
        self.legacy_class_names = legacy_class_names
        self.stall_timeout = stall_timeout

        self.session = Session(name, client_version, self.send_message, self.close)
        self.catalog = Catalog()
        self.transfers = TransferRegistry(self.send_message, write_queue_size)

        self.dispatcher = ControlDispatcher()
        self.dispatcher.set_handler(AuthAccepted, self.session.accepted)
        self.dispatcher.set_handler(AuthDenied, self.session.denied)
        self.dispatcher.set_handler(FileShareRequest, self._file_share_request)
        self.dispatcher.set_handler(FileListUpdate, self._file_list_update)

        self._share_reviewer: Optional[ShareReviewer] = None
        self._close_callbacks: List[CloseCallback] = []
        self._error_callbacks: List[ErrorCallback] = []
        self._stall_task: Optional[asyncio.Task] = None

    def attach(self, transport: Transport):
        """Use `transport` for outbound messages."""
        self.transport = transport

    # === Application callbacks ===

    def on_login(self, callback: LoginCallback):
        self.session.on_login(callback)

    def on_login_failed(self, callback: LoginFailedCallback):
        self.session.on_login_failed(callback)

    def on_file_list_update(self, callback: CatalogCallback):
        self.catalog.on_update(callback)

    def on_share_request(self, reviewer: ShareReviewer):
        """
        Set the reviewer for incoming share requests.

        The reviewer must eventually answer with respond_to_share_request().
        Without a reviewer every request is denied.
        """
        self._share_reviewer = reviewer

    def on_close(self, callback: CloseCallback):
        """Register a callback for connection close (code, reason, remote)."""
        self._close_callbacks.append(callback)

    def on_error(self, callback: ErrorCallback):
        """Register a callback for transport errors."""
        self._error_callbacks.append(callback)

    # === State ===

    @property
    def files(self) -> Snapshot:
        """Current catalog snapshot."""
        return self.catalog.files

    @property
    def is_authenticated(self) -> bool:
        return self.session.is_authenticated

    # === Requests ===

    def download_file(self, file_id: int):
        """Ask the host to start sending a catalog file."""
        self.send_message(RequestFileDownload(file_id=file_id))

    def request_file_list_update(self):
        """Ask the host for a fresh catalog snapshot."""
        self.send_message(RequestFileListUpdate())

    def respond_to_share_request(self, request: FileShareRequest, accept: bool,
                                 options: Optional[ReceiveOptions] = None,
                                 reason: Optional[FailReason] = None) -> Optional[FileReceiveHandle]:
        """
        Accept or deny a share request.

        Accepting requires options with a destination directory; otherwise
        the request is denied. See TransferRegistry.handle_share_request.
        """
        return self.transfers.handle_share_request(request, accept, options, reason)

    def send_message(self, message: Message):
        """Encode a control message and send it."""
        if self.transport is None:
            raise ConnectionError("Not connected")
        logger.debug(f"Send {message.discriminator}")
        self.transport.send(encode_message(message, self.legacy_class_names))

    def close(self, code: int = CLOSE_NORMAL, reason: str = ''):
        """Close the connection."""
        if self.transport is not None:
            self.transport.close(code, reason)

    # === Transport events ===

    def connection_opened(self):
        """The transport is connected: start authenticating."""
        self.session.opened()
        if self.stall_timeout:
            self._stall_task = asyncio.get_running_loop().create_task(self._watch_stalls())

    def text_received(self, message: Union[str, bytes]):
        """A control message arrived."""
        self.dispatcher.dispatch(message)

    async def binary_received(self, data: bytes) -> bool:
        """
        A chunk frame arrived.

        Raises:
            FrameError: the frame is too short (the stream is corrupt)
        """
        frame = decode_frame(data)
        return await self.transfers.on_chunk(frame)

    async def connection_closed(self, code: int, reason: str, remote: bool):
        """The connection is gone: abandon every transfer."""
        logger.info(f"Got closed: {code} {reason}, by server: {remote}")
        self.session.closed()

        if self._stall_task is not None:
            self._stall_task.cancel()
            self._stall_task = None

        abandoned = await self.transfers.abandon_all()
        if abandoned:
            logger.warning(f"Abandoned {abandoned} unfinished transfer(s)")

        for callback in self._close_callbacks:
            try:
                callback(code, reason, remote)
            except Exception as e:
                logger.exception(f"Callback error: {e}")

    def connection_failed(self, error: Exception):
        """The transport reported an error."""
        logger.error(f"Connection error: {error}")
        for callback in self._error_callbacks:
            try:
                callback(error)
            except Exception as e:
                logger.exception(f"Callback error: {e}")

    # === Internal handlers ===

    def _file_list_update(self, message: FileListUpdate):
        self.catalog.apply_update(message.files)

    def _file_share_request(self, message: FileShareRequest):
        logger.info(f"Received file share request: {message.file_name} "
                    f"({message.file_size:,} bytes) as transfer {message.file_handle_id}")
        if self._share_reviewer is None:
            logger.info("No share reviewer set, denying")
            self.respond_to_share_request(message, False)
            return
        self._share_reviewer(message)

    async def _watch_stalls(self):
        interval = max(self.stall_timeout / 4, 0.5)
        while self.session.phase is not SessionPhase.CLOSED:
            await asyncio.sleep(interval)
            await self.transfers.check_stalled(self.stall_timeout)

    def get_stats(self) -> dict:
        """Get client statistics."""
        return {
            'session': self.session.to_dict(),
            'catalog_files': len(self.catalog),
            'catalog_updates': self.catalog.updates,
            'dispatcher': self.dispatcher.get_stats(),
            'transfers': self.transfers.get_stats(),
        }
