"""
Trigger preservation around schema changes.
"""

from typing import List

from ..database.introspection import Trigger
from .savepoint import Reapplication


class TriggerReapplication(Reapplication[Trigger]):
    """
    Keeps triggers on a relation across an operation that drops it.

    ``try_create`` is public so a caller holding a wider snapshot (for example
    every trigger on every view before a cascading drop) can restore
    individual triggers without going through ``on``.
    """

    kind = "trigger"

    async def snapshot(self, object_name: str) -> List[Trigger]:
        return await self.introspector.list_triggers(object_name)

    def savepoint_name(self, item: Trigger) -> str:
        return item.name

    def statement(self, item: Trigger) -> str:
        return item.definition

    def describe(self, item: Trigger) -> str:
        return f"'{item.name}' on '{item.qualified_table}'"
