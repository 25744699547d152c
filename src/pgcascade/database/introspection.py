"""
Catalog introspection for pgcascade.

Reads views, materialized views, their indexes and their triggers out of
the PostgreSQL catalog for every schema on the active search path, and
describes them with immutable value objects.
"""

import logging
from dataclasses import dataclass
from typing import List

from .connection import Connection
from ..exceptions import StatementError


logger = logging.getLogger(__name__)


def bare_name(name: str) -> str:
    """Strip a leading namespace from a relation name, if any."""
    return name.split(".")[-1]


@dataclass(frozen=True)
class View:
    """A view or materialized view as found in the catalog."""

    name: str
    definition: str
    materialized: bool = False
    namespace: str = "public"

    @property
    def bare_name(self) -> str:
        """Relation name without its namespace."""
        return bare_name(self.name)


@dataclass(frozen=True)
class Index:
    """A non-primary index on a table or materialized view."""

    name: str
    object_name: str
    definition: str
    namespace: str = "public"


@dataclass(frozen=True)
class Trigger:
    """
    A trigger on a table or view.

    The DDL is never stored; ``definition`` rebuilds it from the fields.
    """

    name: str
    table: str
    event: str
    action: str
    scope: str
    timing: str
    namespace: str = "public"

    @property
    def definition(self) -> str:
        """CREATE TRIGGER statement that recreates this trigger."""
        return (
            f"CREATE TRIGGER {Connection.quote_identifier(self.name)} "
            f"{self.timing} {self.event} "
            f"ON {Connection.quote_identifier(self.table)} "
            f"FOR EACH {self.scope} "
            f"{self.action};"
        )

    @property
    def qualified_table(self) -> str:
        """Namespace-qualified table the trigger is attached to."""
        return f"{self.namespace}.{self.table}"


class CatalogIntrospector:
    """Builds catalog descriptors from a live connection."""

    VIEWS_QUERY = """
        SELECT
            c.relname AS viewname,
            pg_get_viewdef(c.oid) AS definition,
            c.relkind AS kind,
            n.nspname AS namespace
        FROM pg_class c
        LEFT JOIN pg_namespace n ON n.oid = c.relnamespace
        WHERE c.relkind IN ('m', 'v')
        AND c.relname NOT IN (SELECT extname FROM pg_extension)
        AND n.nspname = ANY (current_schemas(false))
        ORDER BY c.oid
    """

    INDEXES_QUERY = """
        SELECT
            t.relname AS object_name,
            i.relname AS index_name,
            n.nspname AS namespace,
            pg_get_indexdef(d.indexrelid) AS definition
        FROM pg_class t
        INNER JOIN pg_index d ON t.oid = d.indrelid
        INNER JOIN pg_class i ON d.indexrelid = i.oid
        LEFT JOIN pg_namespace n ON n.oid = i.relnamespace
        WHERE i.relkind = 'i'
        AND d.indisprimary = 'f'
        AND t.relname = $1
        AND n.nspname = ANY (current_schemas(false))
        ORDER BY i.relname
    """

    TRIGGERS_QUERY = """
        SELECT
            array_to_string(array_agg(event_manipulation::varchar), ' OR ') AS event_manipulation,
            event_object_schema,
            event_object_table,
            trigger_name,
            action_statement,
            action_orientation,
            action_timing
        FROM information_schema.triggers
        WHERE event_object_table = $1
        AND event_object_schema = ANY (current_schemas(false))
        GROUP BY event_object_table, trigger_name, action_statement,
            action_orientation, action_timing, event_object_schema
        ORDER BY trigger_name
    """

    def __init__(self, connection: Connection):
        self.connection = connection

    async def list_views(self) -> List[View]:
        """All views and materialized views on the search path, in creation order."""
        try:
            rows = await self.connection.select_rows(self.VIEWS_QUERY)
        except StatementError as e:
            logger.error(f"Error listing views: {e}")
            raise

        views = []
        for row in rows:
            namespace = row["namespace"]
            name = row["viewname"]
            if namespace != "public":
                name = f"{namespace}.{name}"

            views.append(
                View(
                    name=name,
                    definition=row["definition"].strip().rstrip(";"),
                    materialized=row["kind"] == "m",
                    namespace=namespace,
                )
            )

        return views

    async def list_indexes(self, object_name: str) -> List[Index]:
        """Indexes on the named object, primary keys excluded."""
        try:
            rows = await self.connection.select_rows(self.INDEXES_QUERY, bare_name(object_name))
        except StatementError as e:
            logger.error(f"Error listing indexes on {object_name}: {e}")
            raise

        return [
            Index(
                name=row["index_name"],
                object_name=row["object_name"],
                definition=row["definition"],
                namespace=row["namespace"],
            )
            for row in rows
        ]

    async def list_triggers(self, object_name: str) -> List[Trigger]:
        """Triggers on the named object, one per trigger with its events combined."""
        try:
            rows = await self.connection.select_rows(self.TRIGGERS_QUERY, bare_name(object_name))
        except StatementError as e:
            logger.error(f"Error listing triggers on {object_name}: {e}")
            raise

        return [
            Trigger(
                name=row["trigger_name"],
                table=row["event_object_table"],
                event=row["event_manipulation"],
                action=row["action_statement"],
                scope=row["action_orientation"],
                timing=row["action_timing"],
                namespace=row["event_object_schema"],
            )
            for row in rows
        ]
