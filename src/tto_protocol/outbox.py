"""Post-commit outbox for notifications and change events.

The engine flushes but never commits, so anything it tells the outside
world must wait for the caller's commit.  Deliveries are parked on the
``AsyncSession.info`` dict of the transaction that produced them:

    defer(db, callback)   park a delivery for this transaction
    deliver(db)           run parked deliveries in order (after commit)
    discard(db)           drop them (after rollback)

A rolled-back write therefore never produces a notification or a change
event, and a retried write produces exactly one.
"""

import inspect
import logging
from typing import Awaitable, Callable

from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

OUTBOX_KEY = "tto_protocol.outbox"

Delivery = Callable[[], Awaitable[None] | None]


def defer(db: AsyncSession, delivery: Delivery) -> None:
    db.info.setdefault(OUTBOX_KEY, []).append(delivery)


def pending(db: AsyncSession) -> int:
    return len(db.info.get(OUTBOX_KEY, ()))


async def deliver(db: AsyncSession) -> int:
    """Run every parked delivery once; return how many ran."""
    deliveries = db.info.pop(OUTBOX_KEY, [])
    for delivery in deliveries:
        result = delivery()
        if inspect.isawaitable(result):
            await result
    return len(deliveries)


def discard(db: AsyncSession) -> int:
    deliveries = db.info.pop(OUTBOX_KEY, [])
    if deliveries:
        logger.info("Transaction rolled back; dropped %d pending event(s)", len(deliveries))
    return len(deliveries)
