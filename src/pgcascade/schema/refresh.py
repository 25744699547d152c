"""
Materialized view refreshes for pgcascade.
"""

import logging
from typing import List, Optional

from ..database.connection import Connection
from ..exceptions import (
    ConcurrentRefreshesNotSupportedError,
    MaterializedViewsNotSupportedError,
)
from .dependencies import DependencyGraphResolver


logger = logging.getLogger(__name__)


class RefreshDependencyCascader:
    """
    Refreshes a materialized view and, on request, everything built on it.

    Dependents are refreshed after the view itself, never before it: they
    read from the view, so refreshing them first would rebuild them from
    stale rows. They follow in ascending dependency level so each one reads
    from inputs that already hold fresh data, and they are always refreshed
    without CONCURRENTLY.
    """

    def __init__(
        self,
        connection: Connection,
        resolver: Optional[DependencyGraphResolver] = None,
    ):
        self.connection = connection
        self.resolver = resolver or DependencyGraphResolver(connection)

    async def refresh(
        self, name: str, concurrently: bool = False, cascade: bool = False
    ) -> List[str]:
        """
        Refresh ``name`` and optionally its materialized dependents.

        Args:
            name: Materialized view to refresh
            concurrently: Refresh without locking out readers; needs a unique
                index covering all rows on the view
            cascade: Also refresh every materialized view that reads from
                ``name``, directly or through other views

        Returns:
            Names of the views refreshed, in the order they were refreshed

        Raises:
            MaterializedViewsNotSupportedError: Server has no materialized views
            ConcurrentRefreshesNotSupportedError: ``concurrently`` was requested
                on a server without concurrent refreshes
        """
        if not self.connection.supports_materialized_views():
            raise MaterializedViewsNotSupportedError()
        if concurrently and not self.connection.supports_concurrent_refreshes():
            raise ConcurrentRefreshesNotSupportedError()

        dependents: List[str] = []
        if cascade:
            dependents = await self.dependent_order(name)

        await self._refresh_one(name, concurrently)
        for dependent in dependents:
            await self._refresh_one(dependent, False)

        return [name] + dependents

    async def dependent_order(self, name: str) -> List[str]:
        """Materialized views depending on ``name``, in safe refresh order."""
        dependents = await self.resolver.dependents_of(name, materialized_only=True)
        if not dependents:
            return []
        return await self.resolver.order_for(dependents)

    async def _refresh_one(self, name: str, concurrently: bool) -> None:
        keyword = " CONCURRENTLY" if concurrently else ""
        logger.info(f"Refreshing materialized view {name}{keyword.lower()}")
        await self.connection.execute(
            f"REFRESH MATERIALIZED VIEW{keyword} {self.connection.quote_table_name(name)};"
        )
