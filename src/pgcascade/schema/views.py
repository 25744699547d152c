"""
View and materialized view DDL for pgcascade.

Updating a view drops and recreates it rather than using ``CREATE OR
REPLACE VIEW``: the drop proves the view existed, and replacing cannot
reorder, remove or retype columns. With ``cascade`` the drop also takes
every dependent view with it, together with their indexes and triggers.
``CascadingViewUpdater`` snapshots all of that before the drop and puts
back whatever went missing, in dependency order.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from ..database.connection import Connection
from ..database.introspection import CatalogIntrospector, Index, Trigger, View, bare_name
from ..exceptions import MaterializedViewsNotSupportedError
from ..notifier import Notifier
from .dependencies import DependencyGraphResolver
from .indexes import IndexReapplication
from .triggers import TriggerReapplication


logger = logging.getLogger(__name__)


@dataclass
class CascadeSnapshot:
    """Everything a cascading drop of one view could take with it."""

    views: List[View] = field(default_factory=list)
    indexes: List[Index] = field(default_factory=list)
    triggers: List[Trigger] = field(default_factory=list)
    order: List[str] = field(default_factory=list)

    def indexes_on(self, view: View) -> List[Index]:
        return [index for index in self.indexes if index.object_name == view.bare_name]

    def triggers_on(self, view: View) -> List[Trigger]:
        return [trigger for trigger in self.triggers if trigger.table == view.bare_name]


class CascadingViewUpdater:
    """Creates, drops and updates views while preserving what depends on them."""

    def __init__(
        self,
        connection: Connection,
        introspector: Optional[CatalogIntrospector] = None,
        resolver: Optional[DependencyGraphResolver] = None,
        notifier: Optional[Notifier] = None,
    ):
        self.connection = connection
        self.introspector = introspector or CatalogIntrospector(connection)
        self.resolver = resolver or DependencyGraphResolver(connection)
        self.index_reapplier = IndexReapplication(connection, self.introspector, notifier)
        self.trigger_reapplier = TriggerReapplication(connection, self.introspector, notifier)

    def _quote(self, name: str) -> str:
        return self.connection.quote_table_name(name)

    def _raise_unless_materialized_views_supported(self) -> None:
        if not self.connection.supports_materialized_views():
            raise MaterializedViewsNotSupportedError()

    async def list_views(self) -> List[View]:
        return await self.introspector.list_views()

    async def create_view(self, name: str, definition: str) -> None:
        await self.connection.execute(f"CREATE VIEW {self._quote(name)} AS {definition};")

    async def replace_view(self, name: str, definition: str) -> None:
        """
        Replace a view in place with ``CREATE OR REPLACE VIEW``.

        Only appending columns is allowed this way, but nothing that depends
        on the view is dropped, which helps with tangled dependency trees.
        """
        await self.connection.execute(
            f"CREATE OR REPLACE VIEW {self._quote(name)} AS {definition};"
        )

    async def drop_view(self, name: str, cascade: bool = False) -> None:
        suffix = " CASCADE" if cascade else ""
        await self.connection.execute(f"DROP VIEW {self._quote(name)}{suffix};")

    async def create_materialized_view(self, name: str, definition: str) -> None:
        self._raise_unless_materialized_views_supported()
        await self.connection.execute(
            f"CREATE MATERIALIZED VIEW {self._quote(name)} AS {definition};"
        )

    async def drop_materialized_view(self, name: str, cascade: bool = False) -> None:
        self._raise_unless_materialized_views_supported()
        suffix = " CASCADE" if cascade else ""
        await self.connection.execute(f"DROP MATERIALIZED VIEW {self._quote(name)}{suffix};")

    async def update_view(self, name: str, definition: str, cascade: bool = False) -> None:
        """
        Drop and recreate a view with a new definition.

        Args:
            name: View to update, optionally schema-qualified
            definition: New SELECT statement
            cascade: Drop dependent views too, then recreate them along with
                their indexes and triggers
        """
        logger.info(f"Updating view {name} (cascade={cascade})")

        own_triggers = await self.introspector.list_triggers(name)
        snapshot = await self._snapshot_dependents(name) if cascade else None

        await self.drop_view(name, cascade)
        await self.create_view(name, definition)

        # dropping a view always drops its own triggers
        await self.trigger_reapplier.reapply(own_triggers)

        if snapshot is not None:
            await self._recreate_dropped_views(snapshot)

    async def update_materialized_view(
        self, name: str, definition: str, cascade: bool = False
    ) -> None:
        """
        Drop and recreate a materialized view with a new definition.

        Indexes on the view itself are restored whether or not ``cascade``
        is set; any that no longer apply are reported and skipped.

        Raises:
            MaterializedViewsNotSupportedError: Before any statement is sent,
                if the server has no materialized views
        """
        self._raise_unless_materialized_views_supported()
        logger.info(f"Updating materialized view {name} (cascade={cascade})")

        own_triggers = await self.introspector.list_triggers(name)
        snapshot = await self._snapshot_dependents(name) if cascade else None

        async with self.index_reapplier.preserved(name):
            await self.drop_materialized_view(name, cascade)
            await self.create_materialized_view(name, definition)

        await self.trigger_reapplier.reapply(own_triggers)

        if snapshot is not None:
            await self._recreate_dropped_views(snapshot)

    async def _snapshot_dependents(self, name: str) -> CascadeSnapshot:
        target = bare_name(name)
        existing_views = [view for view in await self.list_views() if view.bare_name != target]

        indexes: List[Index] = []
        for view in existing_views:
            if view.materialized:
                indexes.extend(await self.introspector.list_indexes(view.name))

        triggers: List[Trigger] = []
        for view in existing_views:
            triggers.extend(await self.introspector.list_triggers(view.name))

        order = await self.resolver.order_for(view.name for view in existing_views)

        logger.debug(
            f"Snapshot before dropping {name}: {len(existing_views)} views, "
            f"{len(indexes)} indexes, {len(triggers)} triggers"
        )
        return CascadeSnapshot(
            views=existing_views, indexes=indexes, triggers=triggers, order=order
        )

    async def _recreate_dropped_views(self, snapshot: CascadeSnapshot) -> None:
        current = {view.name for view in await self.list_views()}
        dropped = {
            view.bare_name: view for view in snapshot.views if view.name not in current
        }
        if not dropped:
            return

        logger.info(f"Recreating {len(dropped)} view(s) dropped by cascade")

        for view_name in snapshot.order:
            view = dropped.pop(view_name, None)
            if view is None:
                continue

            if view.materialized:
                await self.create_materialized_view(view.name, view.definition)
                await self.index_reapplier.reapply(snapshot.indexes_on(view))
            else:
                await self.create_view(view.name, view.definition)

            await self.trigger_reapplier.reapply(snapshot.triggers_on(view))

        for view in dropped.values():
            logger.warning(f"View {view.name} was dropped but has no recreation order")
