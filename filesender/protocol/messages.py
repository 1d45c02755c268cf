"""
Control Messages

Design Decision: Message Encoding
=================================

Control messages travel as WebSocket text frames holding a JSON envelope:

```
{
    "className": "file-share-request",
    "payload": "{\"fileHandleId\": 42, \"fileName\": \"a.bin\", ...}"
}
```

The envelope names the message type; the payload is the message itself,
JSON-encoded a second time. Decoding is two-staged: first the envelope,
then the payload against the model registered for the discriminator.

Options Considered for type lookup:
1. Import the class named in the envelope (dynamic lookup)
   - Lets the host make the client import arbitrary names
2. Static table of known discriminators
   - Closed set, unknown types fall through to a single ignore branch

Decision: Static table (MESSAGE_TYPES). New host-side message types are
ignored until the client learns them.

The Java host names packets by their fully-qualified class name
(me.fabianfg.filesender.model.payloads.AuthPacket, ...). Those names are
accepted on decode and can be emitted on encode for compatibility.
"""

import json
from enum import Enum
from typing import Any, ClassVar, Dict, Optional, Type, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from ..errors import MessageDecodeError

LEGACY_PACKAGE = 'me.fabianfg.filesender.model.payloads'


class FailReason(str, Enum):
    """Why a share request was turned down."""
    CLIENT_DENIED = "CLIENT_DENIED"
    NO_DESTINATION = "NO_DESTINATION"
    DUPLICATE_HANDLE = "DUPLICATE_HANDLE"
    STORAGE_ERROR = "STORAGE_ERROR"


class Message(BaseModel):
    """Base for all control message payloads."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    discriminator: ClassVar[str] = ''
    legacy_name: ClassVar[str] = ''


# === Shared payload parts ===

class ServerInfo(BaseModel):
    """Descriptor the host sends about itself."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    server_name: str
    server_version: str = ""


class FileDescriptor(BaseModel):
    """A file the host offers for download."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    file_name: str
    file_size: int = Field(ge=0)
    chunk_size: int = Field(gt=0)
    chunk_count: int = Field(ge=0)


# === Authentication ===

class AuthRequest(Message):
    discriminator: ClassVar[str] = 'auth-request'
    legacy_name: ClassVar[str] = 'AuthPacket'

    client_name: str
    client_version: str


class AuthAccepted(Message):
    discriminator: ClassVar[str] = 'auth-accepted'
    legacy_name: ClassVar[str] = 'AuthAcceptedPacket'

    received_client_id: int
    client_name: str
    server_info: ServerInfo


class AuthDenied(Message):
    discriminator: ClassVar[str] = 'auth-denied'
    legacy_name: ClassVar[str] = 'AuthDeniedPacket'

    code: int
    message: str = ""
    server_info: Optional[ServerInfo] = None


# === File sharing ===

class FileShareRequest(Message):
    """The host wants to send us a file."""
    discriminator: ClassVar[str] = 'file-share-request'
    legacy_name: ClassVar[str] = 'FileShareRequestPacket'

    file_handle_id: int
    file_id: Optional[int] = None
    file_name: str
    file_size: int = Field(ge=0)
    chunk_size: int = Field(gt=0)
    chunk_count: int = Field(ge=0)


class FileShareAccept(Message):
    discriminator: ClassVar[str] = 'file-share-accept'
    legacy_name: ClassVar[str] = 'FileShareAcceptPacket'

    file_handle_id: int


class FileShareDenied(Message):
    discriminator: ClassVar[str] = 'file-share-denied'
    legacy_name: ClassVar[str] = 'FileShareDeniedPacket'

    file_handle_id: int
    reason: FailReason = FailReason.CLIENT_DENIED


# === Catalog ===

class FileListUpdate(Message):
    """Full snapshot of the files the host offers, keyed by file id."""
    discriminator: ClassVar[str] = 'file-list-update'
    legacy_name: ClassVar[str] = 'FileListUpdatePacket'

    files: Dict[int, FileDescriptor] = Field(default_factory=dict)


class RequestFileDownload(Message):
    discriminator: ClassVar[str] = 'request-file-download'
    legacy_name: ClassVar[str] = 'RequestFileDownloadPacket'

    file_id: int


class RequestFileListUpdate(Message):
    discriminator: ClassVar[str] = 'request-file-list-update'
    legacy_name: ClassVar[str] = 'RequestFileListUpdatePacket'


_ALL_TYPES = (
    AuthRequest,
    AuthAccepted,
    AuthDenied,
    FileShareRequest,
    FileShareAccept,
    FileShareDenied,
    FileListUpdate,
    RequestFileDownload,
    RequestFileListUpdate,
)

# discriminator -> model
MESSAGE_TYPES: Dict[str, Type[Message]] = {t.discriminator: t for t in _ALL_TYPES}

# fully-qualified legacy class name -> model
LEGACY_TYPES: Dict[str, Type[Message]] = {
    f"{LEGACY_PACKAGE}.{t.legacy_name}": t for t in _ALL_TYPES
}


class Envelope(BaseModel):
    """Generic wire wrapper: type discriminator plus opaque payload."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    class_name: str = Field(alias='className')
    payload: Union[str, Dict[str, Any]] = ""


def resolve_message_type(name: str) -> Optional[Type[Message]]:
    """Look up the model for a discriminator (short or legacy form)."""
    return MESSAGE_TYPES.get(name) or LEGACY_TYPES.get(name)


def wire_name(message_type: Type[Message], legacy_class_names: bool = False) -> str:
    """Discriminator to put on the wire for a message type."""
    if legacy_class_names:
        return f"{LEGACY_PACKAGE}.{message_type.legacy_name}"
    return message_type.discriminator


# === Encoding / Decoding ===

def encode_message(message: Message, legacy_class_names: bool = False) -> str:
    """Wrap a message in an envelope and serialize it for the wire."""
    envelope = Envelope(
        class_name=wire_name(type(message), legacy_class_names),
        payload=message.model_dump_json(by_alias=True),
    )
    return envelope.model_dump_json(by_alias=True)


def decode_envelope(raw: Union[str, bytes]) -> Envelope:
    """
    Parse the outer envelope.

    Raises:
        MessageDecodeError: if the text is not a valid envelope
    """
    try:
        return Envelope.model_validate_json(raw)
    except ValidationError as e:
        raise MessageDecodeError(f"Malformed envelope: {e.error_count()} error(s)") from e


def decode_message(envelope: Envelope) -> Optional[Message]:
    """
    Decode an envelope's payload into its concrete message type.

    Returns:
        The typed message, or None if the discriminator is unknown

    Raises:
        MessageDecodeError: if the payload does not fit the message type
    """
    message_type = resolve_message_type(envelope.class_name)
    if message_type is None:
        return None

    try:
        if isinstance(envelope.payload, str):
            # An empty payload is an empty object (RequestFileListUpdate)
            return message_type.model_validate_json(envelope.payload or '{}')
        return message_type.model_validate(envelope.payload)
    except ValidationError as e:
        raise MessageDecodeError(
            f"Invalid {message_type.discriminator} payload: {e.error_count()} error(s)"
        ) from e


def decode(raw: Union[str, bytes]) -> Optional[Message]:
    """Decode raw envelope text straight to a typed message."""
    return decode_message(decode_envelope(raw))


def payload_json(message: Message) -> str:
    """Pretty payload for debug output."""
    return json.dumps(message.model_dump(mode='json', by_alias=True), sort_keys=True)
