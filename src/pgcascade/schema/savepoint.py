"""
Savepoint-isolated, best-effort recreation of catalog objects.

Restoring an index or trigger after a cascading drop may fail because the
object no longer fits the new schema. Each attempt runs under its own
savepoint, so a failure rolls back only that attempt and the caller's
transaction stays usable for the next one.
"""

import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, Generic, List, Optional, TypeVar

from ..database.connection import Connection
from ..database.introspection import CatalogIntrospector
from ..exceptions import StatementError
from ..notifier import Notifier, notify


logger = logging.getLogger(__name__)

T = TypeVar("T")


async def with_savepoint(connection: Connection, name: str, statement: str) -> bool:
    """
    Run one statement under a named savepoint.

    Returns True when the statement succeeded and the savepoint was released,
    False when the server rejected it and the savepoint was rolled back.
    Anything other than a rejected statement propagates.
    """
    savepoint = connection.quote_identifier(name)
    await connection.execute(f"SAVEPOINT {savepoint}")

    try:
        await connection.execute(statement)
    except StatementError as e:
        logger.debug(f"Rolling back to savepoint {savepoint}: {e}")
        await connection.execute(f"ROLLBACK TO SAVEPOINT {savepoint}")
        return False

    await connection.execute(f"RELEASE SAVEPOINT {savepoint}")
    return True


class Reapplication(ABC, Generic[T]):
    """
    Snapshot objects attached to a relation, run an operation, put them back.

    Subclasses say how to list the objects and how to describe them in
    outcome messages; the isolation logic lives here.
    """

    kind = "object"

    def __init__(
        self,
        connection: Connection,
        introspector: Optional[CatalogIntrospector] = None,
        notifier: Optional[Notifier] = None,
    ):
        self.connection = connection
        self.introspector = introspector or CatalogIntrospector(connection)
        self.notifier = notifier

    @abstractmethod
    async def snapshot(self, object_name: str) -> List[T]:
        """Objects currently attached to ``object_name``."""

    @abstractmethod
    def savepoint_name(self, item: T) -> str:
        """Savepoint used while recreating ``item``."""

    @abstractmethod
    def statement(self, item: T) -> str:
        """DDL that recreates ``item``."""

    @abstractmethod
    def describe(self, item: T) -> str:
        """Human readable location of ``item`` for outcome messages."""

    async def try_create(self, item: T) -> bool:
        """Attempt to recreate one object, reporting the outcome."""
        success = await with_savepoint(
            self.connection, self.savepoint_name(item), self.statement(item)
        )

        if success:
            logger.info(f"Recreated {self.kind} {self.describe(item)}")
            notify(self.notifier, f"{self.kind} {self.describe(item)} has been recreated")
        else:
            logger.warning(f"Could not recreate {self.kind} {self.describe(item)}")
            notify(
                self.notifier,
                f"{self.kind} {self.describe(item)} is no longer valid and has been dropped.",
            )

        return success

    async def reapply(self, items: List[T]) -> List[T]:
        """Try every item in order and return the ones that could not be restored."""
        lost = []
        for item in items:
            if not await self.try_create(item):
                lost.append(item)
        return lost

    @asynccontextmanager
    async def preserved(self, object_name: str) -> AsyncIterator[List[T]]:
        """Snapshot on entry and restore on a clean exit of the block."""
        items = await self.snapshot(object_name)
        logger.debug(f"Captured {len(items)} {self.kind}(s) on {object_name}")

        yield items

        await self.reapply(items)

    async def on(self, object_name: str, operation: Callable[[], Awaitable[None]]) -> None:
        """Run ``operation`` with the objects on ``object_name`` preserved."""
        async with self.preserved(object_name):
            await operation()
