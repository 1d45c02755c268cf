"""
Control Message Dispatcher

Routes decoded control messages to the handler registered for their type.

Decode failures never reach the transport: a bad envelope, an unknown
discriminator or a payload that does not validate is logged and dropped,
and the session carries on. The host may add message types at any time.
"""

import logging
from typing import Callable, Dict, Optional, Type, Union

from ..errors import MessageDecodeError
from .messages import Message, decode_envelope, decode_message, payload_json

logger = logging.getLogger(__name__)

# Type for message handlers
MessageHandler = Callable[[Message], None]


class ControlDispatcher:
    """
    Demultiplexes inbound text messages by discriminator.

    Handlers are registered per message type, at most one each.
    """

    def __init__(self):
        self._handlers: Dict[Type[Message], MessageHandler] = {}

        # Statistics
        self.messages_dispatched = 0
        self.messages_dropped = 0

    def on_message(self, message_type: Type[Message]):
        """Decorator to register a message handler."""
        def decorator(handler: MessageHandler):
            self._handlers[message_type] = handler
            return handler
        return decorator

    def set_handler(self, message_type: Type[Message], handler: MessageHandler):
        """Set the handler for a message type."""
        self._handlers[message_type] = handler

    def dispatch(self, raw: Union[str, bytes]) -> Optional[Message]:
        """
        Decode a raw text message and hand it to its handler.

        Returns:
            The decoded message, or None if it was dropped
        """
        try:
            envelope = decode_envelope(raw)
            message = decode_message(envelope)
        except MessageDecodeError as e:
            logger.warning(f"Dropping control message: {e}")
            self.messages_dropped += 1
            return None

        if message is None:
            logger.info(f"Ignoring message of unknown type {envelope.class_name!r}")
            self.messages_dropped += 1
            return None

        logger.debug(f"Receive {message.discriminator}: {payload_json(message)}")

        handler = self._handlers.get(type(message))
        if handler is None:
            logger.debug(f"No handler for {message.discriminator}")
            return message

        self.messages_dispatched += 1
        try:
            handler(message)
        except Exception:
            logger.exception(f"Handler for {message.discriminator} failed")
        return message

    def get_stats(self) -> dict:
        return {
            'messages_dispatched': self.messages_dispatched,
            'messages_dropped': self.messages_dropped,
        }
