"""
Session State Machine

Connection lifecycle as seen by the protocol:

```
CONNECTING --open--> AUTHENTICATING --auth-accepted--> AUTHENTICATED
                                    +--auth-denied---> DENIED (client closes)
any --close--> CLOSED
```

Only auth-accepted and auth-denied move the phase. A denial is final for
the session: it is reported upward and the connection is torn down, with
no automatic retry.
"""

import logging
from enum import Enum
from typing import Callable, List, Optional

from .protocol.messages import AuthAccepted, AuthDenied, AuthRequest, Message, ServerInfo

logger = logging.getLogger(__name__)

LoginCallback = Callable[[AuthAccepted], None]
LoginFailedCallback = Callable[[AuthDenied], None]


class SessionPhase(Enum):
    CONNECTING = "connecting"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    DENIED = "denied"
    CLOSED = "closed"


class Session:
    """
    Authentication state for one connection.

    Args:
        client_name: Display name sent to the host
        client_version: Client version sent to the host
        send: Sends a control message to the host
        close: Closes the connection
    """

    def __init__(self, client_name: str, client_version: str,
                 send: Callable[[Message], None],
                 close: Callable[[], None]):
        self.client_name = client_name
        self.client_version = client_version
        self._send = send
        self._close = close

        self.phase = SessionPhase.CONNECTING
        self.client_id: Optional[int] = None
        self.server_info: Optional[ServerInfo] = None
        self.denial: Optional[AuthDenied] = None

        self._login_callbacks: List[LoginCallback] = []
        self._login_failed_callbacks: List[LoginFailedCallback] = []

    @property
    def is_authenticated(self) -> bool:
        return self.phase is SessionPhase.AUTHENTICATED

    def on_login(self, callback: LoginCallback):
        """Register a callback for a successful login."""
        self._login_callbacks.append(callback)

    def on_login_failed(self, callback: LoginFailedCallback):
        """Register a callback for a denied login."""
        self._login_failed_callbacks.append(callback)

    # === Transitions ===

    def opened(self):
        """Transport is open: ask the host to let us in."""
        if self.phase is not SessionPhase.CONNECTING:
            logger.warning(f"Connection opened in phase {self.phase.value}, ignoring")
            return

        logger.info("Opened connection to host")
        self.phase = SessionPhase.AUTHENTICATING
        self._send(AuthRequest(client_name=self.client_name,
                               client_version=self.client_version))

    def accepted(self, message: AuthAccepted):
        """Handle auth-accepted."""
        if self.phase is not SessionPhase.AUTHENTICATING:
            logger.warning(f"Unexpected auth-accepted in phase {self.phase.value}")
            return

        self.phase = SessionPhase.AUTHENTICATED
        self.client_id = message.received_client_id
        self.server_info = message.server_info

        logger.info(f"Successfully logged in to server '{message.server_info.server_name}', "
                    f"as client {message.client_name} with id {message.received_client_id}")
        self._notify(self._login_callbacks, message)

    def denied(self, message: AuthDenied):
        """Handle auth-denied: report it, then close the connection."""
        if self.phase is not SessionPhase.AUTHENTICATING:
            logger.warning(f"Unexpected auth-denied in phase {self.phase.value}")
            return

        self.phase = SessionPhase.DENIED
        self.denial = message
        if message.server_info is not None:
            self.server_info = message.server_info

        logger.error(f"Failed to log in to server with code {message.code} "
                     f"and message '{message.message}'")
        self._notify(self._login_failed_callbacks, message)
        self._close()

    def closed(self):
        """Transport closed."""
        self.phase = SessionPhase.CLOSED

    def _notify(self, callbacks: list, message: Message):
        for callback in callbacks:
            try:
                callback(message)
            except Exception as e:
                logger.exception(f"Callback error: {e}")

    def to_dict(self) -> dict:
        return {
            'phase': self.phase.value,
            'client_name': self.client_name,
            'client_version': self.client_version,
            'client_id': self.client_id,
            'server_name': self.server_info.server_name if self.server_info else None,
            'server_version': self.server_info.server_version if self.server_info else None,
        }
