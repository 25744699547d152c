"""
Index preservation around schema changes.
"""

from typing import List

from ..database.introspection import Index
from .savepoint import Reapplication


class IndexReapplication(Reapplication[Index]):
    """
    Keeps indexes on a relation across an operation that drops it.

    Indexes whose definition no longer applies (a column went away, a type
    changed) are skipped and reported as dropped.
    """

    kind = "index"

    async def snapshot(self, object_name: str) -> List[Index]:
        return await self.introspector.list_indexes(object_name)

    def savepoint_name(self, item: Index) -> str:
        return item.name

    def statement(self, item: Index) -> str:
        return item.definition

    def describe(self, item: Index) -> str:
        return f"'{item.name}' on '{item.object_name}'"
