"""Abstract interfaces for the collaborators the core talks to.

The core ships small concrete implementations (``notifications``,
``transport``), but deployments may plug in their own.

Typical integration flow::

    dispatcher = NotificationDispatcher([LoggingNotificationSink()])
    engine = InterviewEngine(catalogue, dispatcher=dispatcher)

    # on the device
    queue = OfflineActionQueue(path)
    async with HttpActionTransport(base_url, user_id=...) as transport:
        report = await queue.replay(transport)
"""

from abc import ABC, abstractmethod

from tto_protocol.models.events import NotificationEvent
from tto_protocol.models.sync import PendingAction, ReplayResult


class NotificationSink(ABC):
    """Receives notification events.

    Delivery is best effort: the dispatcher logs and swallows whatever a
    sink raises, so a sink never needs to guard its own failures.
    """

    @abstractmethod
    async def send(self, event: NotificationEvent) -> None:
        """Deliver one event."""
        ...


class ActionTransport(ABC):
    """Carries queued actions from the device to the server.

    Implementations must raise ``PersistenceError`` for network or
    server-side write failures (the action stays queued) and the matching
    ``ProtocolError`` subclass for a definitive rejection.
    """

    @abstractmethod
    async def send(self, action: PendingAction) -> ReplayResult:
        """Apply one action remotely and return the server's result.

        Parameters
        ----------
        action:
            The queued action.  Its ``id`` is the idempotency key; sending
            the same action twice must not apply it twice.

        Returns
        -------
        ReplayResult
            ``status="applied"`` on success (``duplicate=True`` if the
            server had already applied this id).
        """
        ...
