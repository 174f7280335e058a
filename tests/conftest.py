import pytest
from unittest.mock import AsyncMock

from tto_protocol import outbox
from tto_protocol.catalogue import ProtocolCatalogue
from tto_protocol.changefeed import ChangeFeed
from tto_protocol.context import ActorContext, ActorRole
from tto_protocol.engine import InterviewEngine
from tto_protocol.interfaces import NotificationSink
from tto_protocol.notifications import NotificationDispatcher

from helpers.mock_repo import MockRepository


class RecordingSink(NotificationSink):
    """Collects every event it receives."""

    def __init__(self):
        self.events = []

    async def send(self, event):
        self.events.append(event)

    def of_type(self, event_type: str):
        return [e for e in self.events if e.event_type.value == event_type]


@pytest.fixture(scope="session")
def catalogue():
    """Load v1/protocol.yaml once for the entire test session."""
    c = ProtocolCatalogue()
    c.load()
    return c


@pytest.fixture
def mock_repo():
    """Fresh MockRepository for each test."""
    return MockRepository()


@pytest.fixture
def mock_db():
    """AsyncMock standing in for AsyncSession.

    ``flush()`` is a no-op.  ``commit()`` delivers the outbox and
    ``rollback()`` drops it, as the ``get_db`` dependency does.
    """
    db = AsyncMock()
    db.info = {}

    async def commit():
        await outbox.deliver(db)

    async def rollback():
        outbox.discard(db)

    db.commit.side_effect = commit
    db.rollback.side_effect = rollback
    return db


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def feed():
    return ChangeFeed()


@pytest.fixture
def engine(catalogue, mock_repo, sink, feed):
    """InterviewEngine with mocked repository and a recording sink."""
    eng = InterviewEngine(
        catalogue, dispatcher=NotificationDispatcher([sink]), change_feed=feed
    )
    eng._repo = mock_repo
    return eng


@pytest.fixture
def interviewer():
    return ActorContext(user_id="int-1")


@pytest.fixture
def other_interviewer():
    return ActorContext(user_id="int-2")


@pytest.fixture
def admin():
    return ActorContext(user_id="admin-1", role=ActorRole.ADMIN)


@pytest.fixture
def second_admin():
    return ActorContext(user_id="admin-2", role=ActorRole.ADMIN)
