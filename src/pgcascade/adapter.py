"""
PostgreSQL adapter for pgcascade.

Bundles the view updater and the refresh cascader over one connection,
for migration tooling that wants a single object to call into.
"""

from typing import List, Optional

from .database.connection import Connection
from .database.introspection import CatalogIntrospector, View
from .notifier import Notifier
from .schema.dependencies import DependencyGraphResolver
from .schema.refresh import RefreshDependencyCascader
from .schema.views import CascadingViewUpdater


class PostgresAdapter:
    """
    View management for one PostgreSQL connection.

    The connection should already be inside a transaction owned by the
    caller; nothing here commits or rolls back.

    Example:
        async with pool.transaction() as connection:
            adapter = PostgresAdapter(connection, notifier=LoggingNotifier())
            await adapter.update_view("recent_orders", sql, cascade=True)
    """

    def __init__(self, connection: Connection, notifier: Optional[Notifier] = None):
        self.connection = connection
        self.introspector = CatalogIntrospector(connection)
        self.resolver = DependencyGraphResolver(connection)
        self.views = CascadingViewUpdater(
            connection,
            introspector=self.introspector,
            resolver=self.resolver,
            notifier=notifier,
        )
        self.refresher = RefreshDependencyCascader(connection, resolver=self.resolver)

    async def list_views(self) -> List[View]:
        return await self.views.list_views()

    async def create_view(self, name: str, definition: str) -> None:
        await self.views.create_view(name, definition)

    async def replace_view(self, name: str, definition: str) -> None:
        await self.views.replace_view(name, definition)

    async def update_view(self, name: str, definition: str, cascade: bool = False) -> None:
        await self.views.update_view(name, definition, cascade)

    async def drop_view(self, name: str, cascade: bool = False) -> None:
        await self.views.drop_view(name, cascade)

    async def create_materialized_view(self, name: str, definition: str) -> None:
        await self.views.create_materialized_view(name, definition)

    async def update_materialized_view(
        self, name: str, definition: str, cascade: bool = False
    ) -> None:
        await self.views.update_materialized_view(name, definition, cascade)

    async def drop_materialized_view(self, name: str, cascade: bool = False) -> None:
        await self.views.drop_materialized_view(name, cascade)

    async def refresh_materialized_view(
        self, name: str, concurrently: bool = False, cascade: bool = False
    ) -> List[str]:
        return await self.refresher.refresh(name, concurrently=concurrently, cascade=cascade)

    async def recreation_order(self, view_names: List[str]) -> List[str]:
        return await self.resolver.order_for(view_names)
