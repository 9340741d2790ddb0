"""Transaction runner with bounded retry for the booking workflow."""

import asyncio
import logging
import uuid
from collections.abc import Awaitable, Callable
from typing import TypeVar

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ridebook.config import settings
from ridebook.errors import TransactionError
from ridebook.models import Vehicle

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_ERRORS: tuple[type[Exception], ...] = (OperationalError,)
RETRYABLE_WITH_UNIQUE_KEYS: tuple[type[Exception], ...] = (OperationalError, IntegrityError)


async def run_in_transaction(
    session_factory: async_sessionmaker[AsyncSession],
    work: Callable[[AsyncSession], Awaitable[T]],
    *,
    retry_on: tuple[type[Exception], ...] = RETRYABLE_ERRORS,
    max_attempts: int | None = None,
    backoff_seconds: float | None = None,
    label: str = "transaction",
) -> T:
    """Run ``work`` in its own session and transaction, all or nothing.

    Each attempt gets a fresh session. Lock timeouts, deadlocks and (when
    asked) unique-key races are retried with exponential backoff; after the
    last attempt they surface as :class:`TransactionError`. Any other error,
    including every domain error, rolls back and propagates unchanged.
    """
    attempts = max_attempts or settings.transaction_max_attempts
    delay = settings.transaction_backoff_seconds if backoff_seconds is None else backoff_seconds

    for attempt in range(1, attempts + 1):
        try:
            async with session_factory() as db:
                async with db.begin():
                    return await work(db)
        except retry_on as e:
            if attempt == attempts:
                logger.error("%s failed after %d attempts: %s", label, attempts, e)
                raise TransactionError() from e
            wait = delay * 2 ** (attempt - 1)
            logger.warning(
                "%s attempt %d/%d aborted (%s), retrying in %.2fs",
                label,
                attempt,
                attempts,
                type(e).__name__,
                wait,
            )
            await asyncio.sleep(wait)

    raise TransactionError()  # pragma: no cover


async def lock_vehicle(db: AsyncSession, vehicle_id: uuid.UUID) -> Vehicle | None:
    """Take the write lock on a vehicle row and return its current state.

    The version bump is the first write of the transaction, so concurrent
    verifications and cancellations on the same vehicle queue behind each
    other here and every later read sees the winner's committed rows.
    """
    result = await db.execute(
        update(Vehicle)
        .where(Vehicle.id == vehicle_id)
        .values(lock_version=Vehicle.lock_version + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        return None
    return await db.get(Vehicle, vehicle_id, populate_existing=True)
