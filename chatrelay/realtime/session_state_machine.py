"""
Per-connection session state machine.

Every WebSocket session walks Connecting -> Authenticating -> Active -> Closed.
Closed is terminal and reachable from every other state; the identity is bound
only on the Authenticating -> Active transition.
"""

from datetime import UTC, datetime
from typing import Any

from statemachine import State, StateMachine

from ..logging_config import get_logger

logger = get_logger(__name__)


class ChatSessionStateMachine(StateMachine):
    """
    Lifecycle of one chat connection.

    States:
    - connecting: transport accepted, no identity
    - authenticating: token extracted and being verified
    - active: identity bound, connection registered, frames flowing
    - closed: terminal; reached on auth failure, disconnect, or error

    Transitions:
    - connecting -> authenticating: begin_authentication
    - authenticating -> active: activate (binds identity)
    - any non-terminal -> closed: terminate (records reason)
    """

    connecting = State("Connecting", initial=True)
    authenticating = State("Authenticating")
    active = State("Active")
    closed = State("Closed", final=True)

    begin_authentication = connecting.to(authenticating)
    activate = authenticating.to(active)
    terminate = connecting.to(closed) | authenticating.to(closed) | active.to(closed)

    def __init__(self, connection_id: str):
        # Set attributes BEFORE super().__init__() because on_enter_state runs for the initial state
        self.connection_id = connection_id
        self.identity: str | None = None
        self.close_reason: str | None = None
        self.activated_at: datetime | None = None
        self.closed_at: datetime | None = None
        super().__init__()

    def on_enter_state(self, state: State, event: Any = None, **kwargs) -> None:
        logger.debug(
            "Session state transition",
            connection_id=self.connection_id,
            trigger_event=str(event) if event else "initial",
            to_state=state.id,
            username=self.identity,
        )

    def on_activate(self, identity: str) -> None:
        """Bind the authenticated identity; it never changes afterwards."""
        self.identity = identity
        self.activated_at = datetime.now(UTC)

    def on_terminate(self, reason: str = "closed") -> None:
        self.close_reason = reason
        self.closed_at = datetime.now(UTC)
        logger.info(
            "Session closed",
            connection_id=self.connection_id,
            username=self.identity,
            reason=reason,
        )

    @property
    def is_active(self) -> bool:
        return self.current_state == self.active

    @property
    def is_closed(self) -> bool:
        return self.current_state == self.closed

    def get_stats(self) -> dict[str, Any]:
        """Snapshot of session state for logging and debugging."""
        return {
            "connection_id": self.connection_id,
            "current_state": self.current_state.id,
            "identity": self.identity,
            "close_reason": self.close_reason,
            "activated_at": self.activated_at.isoformat() if self.activated_at else None,
            "closed_at": self.closed_at.isoformat() if self.closed_at else None,
        }
