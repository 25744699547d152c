"""
View dependency ordering for pgcascade.

PostgreSQL records that a view reads from another relation as a
dependency of the view's rewrite rule. Walking those edges from every
view gives each one a level: 0 for views that read only from tables,
otherwise one more than the deepest view it reads from. Recreating views
in ascending level order means every view's inputs exist by the time it
is created.

Relations are matched by bare name within the search path, so two views
with the same name in different schemas on that path share a level.
"""

import logging
from typing import Dict, Iterable, List

from ..database.connection import Connection
from ..database.introspection import bare_name


logger = logging.getLogger(__name__)


class DependencyGraphResolver:
    """Computes safe creation order for interdependent views."""

    LEVELS_QUERY = """
        WITH RECURSIVE t AS (
            -- every view and materialized view on the search path starts at 0
            SELECT c.oid, n.nspname, c.relname, 0 AS level
            FROM pg_class c
            JOIN pg_namespace n ON c.relnamespace = n.oid
            WHERE c.relkind IN ('v', 'm')
            AND c.relname NOT IN (SELECT extname FROM pg_extension)
            AND n.nspname = ANY (current_schemas(false))
            UNION ALL
            -- one level deeper for every view whose rule reads from a row of t
            SELECT c.oid, n.nspname, c.relname, a.level + 1
            FROM t a
            JOIN pg_depend d ON d.refobjid = a.oid
            JOIN pg_rewrite w ON w.oid = d.objid AND w.ev_class != a.oid
            JOIN pg_class c ON c.oid = w.ev_class
            JOIN pg_namespace n ON c.relnamespace = n.oid
            AND n.nspname = ANY (current_schemas(false))
        )
        SELECT relname, nspname, MAX(level) AS level
        FROM t
        WHERE relname = ANY ($1::text[])
        GROUP BY relname, nspname
        ORDER BY level
    """

    DEPENDENTS_QUERY = """
        WITH RECURSIVE dependents AS (
            SELECT c.oid, c.relname, c.relkind
            FROM pg_class c
            JOIN pg_namespace n ON c.relnamespace = n.oid
            WHERE c.relname = $1
            AND n.nspname = ANY (current_schemas(false))
            UNION
            SELECT c.oid, c.relname, c.relkind
            FROM dependents a
            JOIN pg_depend d ON d.refobjid = a.oid
            JOIN pg_rewrite w ON w.oid = d.objid AND w.ev_class != a.oid
            JOIN pg_class c ON c.oid = w.ev_class
            JOIN pg_namespace n ON c.relnamespace = n.oid
            AND n.nspname = ANY (current_schemas(false))
        )
        SELECT DISTINCT relname
        FROM dependents
        WHERE relname != $1
        AND (NOT $2 OR relkind = 'm')
    """

    def __init__(self, connection: Connection):
        self.connection = connection

    async def levels_for(self, view_names: Iterable[str]) -> Dict[str, int]:
        """Deepest dependency level of each named view, keyed by bare name."""
        names = list(dict.fromkeys(bare_name(name) for name in view_names))
        if not names:
            return {}

        rows = await self.connection.select_rows(self.LEVELS_QUERY, names)

        levels: Dict[str, int] = {}
        for row in rows:
            relname = row["relname"]
            levels[relname] = max(levels.get(relname, 0), row["level"])

        return levels

    async def order_for(self, view_names: Iterable[str]) -> List[str]:
        """
        Bare names of the given views, sorted so dependencies come first.

        Views at the same level keep the order they were given in. Names the
        catalog does not know about are left out.
        """
        names = list(dict.fromkeys(bare_name(name) for name in view_names))
        levels = await self.levels_for(names)

        order = sorted((name for name in names if name in levels), key=levels.__getitem__)
        logger.debug(f"Recreation order: {order}")
        return order

    async def dependents_of(self, name: str, materialized_only: bool = False) -> List[str]:
        """Bare names of every view that reads from ``name``, directly or not."""
        rows = await self.connection.select_rows(
            self.DEPENDENTS_QUERY, bare_name(name), materialized_only
        )
        return [row["relname"] for row in rows]
