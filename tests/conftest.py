"""
Pytest configuration and shared fixtures for pgcascade tests.

The schema engine only talks to the database through ``Connection``, so
most tests run against ``FakeConnection``: a small in-memory catalog that
understands the DDL pgcascade issues, tracks which views read from which,
and drops dependents on ``CASCADE`` the way PostgreSQL does.
"""

import re
import tempfile
from typing import Any, Dict, List, Optional, Set

import pytest

from pgcascade.database.connection import Connection
from pgcascade.database.introspection import CatalogIntrospector, Trigger
from pgcascade.exceptions import StatementError
from pgcascade.schema.dependencies import DependencyGraphResolver


IDENT = r'(?:"[^"]+"|\w+)(?:\.(?:"[^"]+"|\w+))?'


def _unquote(identifier: str) -> str:
    return identifier.split(".")[-1].replace('"', "")


def _view_columns(definition: str) -> Optional[Set[str]]:
    match = re.match(r"\s*SELECT\s+(.*?)\s+FROM\s", definition, re.IGNORECASE | re.DOTALL)
    if not match:
        return None

    columns = set()
    for part in match.group(1).split(","):
        part = part.strip()
        alias = re.search(r"\s+AS\s+(\w+)$", part, re.IGNORECASE)
        columns.add(alias.group(1) if alias else part.split(".")[-1])

    if "*" in columns:
        return None
    return columns


class FakeConnection(Connection):
    """In-memory stand-in for a PostgreSQL connection inside a transaction."""

    def __init__(
        self,
        tables: Optional[Set[str]] = None,
        materialized_views: bool = True,
        concurrent_refreshes: bool = True,
    ):
        super().__init__(raw=None)
        self.tables = set(tables or ())
        self.views: Dict[str, Dict[str, Any]] = {}
        self.indexes: Dict[str, Dict[str, str]] = {}
        self.triggers: Dict[str, Trigger] = {}
        self.materialized_views = materialized_views
        self.concurrent_refreshes = concurrent_refreshes
        self.executed: List[str] = []
        self.queries: List[str] = []
        self.failing: List[str] = []

    # -- seeding helpers ---------------------------------------------------

    def add_view(self, name: str, definition: str, materialized: bool = False) -> None:
        self._create_view(name, definition, materialized)

    def add_index(self, name: str, object_name: str, columns: str = "id", unique: bool = False) -> str:
        unique_sql = "UNIQUE " if unique else ""
        definition = f"CREATE {unique_sql}INDEX {name} ON public.{object_name} USING btree ({columns})"
        self._create_index(definition)
        return definition

    def add_trigger(self, name: str, table: str, timing: str = "INSTEAD OF", event: str = "INSERT") -> Trigger:
        trigger = Trigger(
            name=name,
            table=table,
            event=event,
            action=f"EXECUTE FUNCTION {name}_fn()",
            scope="ROW",
            timing=timing,
        )
        self.triggers[name] = trigger
        return trigger

    def fail_on(self, fragment: str) -> None:
        """Make any CREATE statement containing ``fragment`` fail."""
        self.failing.append(fragment)

    @property
    def ddl(self) -> List[str]:
        """Executed statements without savepoint bookkeeping."""
        return [
            sql for sql in self.executed
            if not re.match(r"(SAVEPOINT|RELEASE SAVEPOINT|ROLLBACK TO SAVEPOINT)\b", sql)
        ]

    # -- Connection interface ----------------------------------------------

    def supports_materialized_views(self) -> bool:
        return self.materialized_views

    def supports_concurrent_refreshes(self) -> bool:
        return self.concurrent_refreshes

    async def execute(self, sql: str, *args) -> str:
        sql = " ".join(sql.split())
        self.executed.append(sql)

        if sql.startswith("CREATE") and any(fragment in sql for fragment in self.failing):
            raise StatementError(sql, sqlstate="XX000")

        if re.match(r"(SAVEPOINT|RELEASE SAVEPOINT|ROLLBACK TO SAVEPOINT)\b", sql):
            return sql.split()[0]

        match = re.match(rf"CREATE (OR REPLACE )?(MATERIALIZED )?VIEW ({IDENT}) AS (.*);$", sql)
        if match:
            replace, materialized, name, definition = match.groups()
            self._create_view(_unquote(name), definition, bool(materialized), replace=bool(replace))
            return "CREATE VIEW"

        match = re.match(rf"DROP (MATERIALIZED )?VIEW ({IDENT})( CASCADE)?;$", sql)
        if match:
            materialized, name, cascade = match.groups()
            self._drop_view(_unquote(name), bool(materialized), bool(cascade), sql)
            return "DROP VIEW"

        if re.match(r"CREATE (UNIQUE )?INDEX", sql):
            self._create_index(sql)
            return "CREATE INDEX"

        match = re.match(
            rf"CREATE TRIGGER ({IDENT}) (BEFORE|AFTER|INSTEAD OF) (.*?) ON ({IDENT}) "
            rf"FOR EACH (ROW|STATEMENT) (.*);$",
            sql,
        )
        if match:
            name, timing, event, table, scope, action = match.groups()
            name, table = _unquote(name), _unquote(table)
            if table not in self.views and table not in self.tables:
                raise StatementError(sql, sqlstate="42P01")
            if name in self.triggers:
                raise StatementError(sql, sqlstate="42710")
            self.triggers[name] = Trigger(
                name=name, table=table, event=event, action=action, scope=scope, timing=timing
            )
            return "CREATE TRIGGER"

        match = re.match(rf"REFRESH MATERIALIZED VIEW( CONCURRENTLY)? ({IDENT});$", sql)
        if match:
            view = self.views.get(_unquote(match.group(2)))
            if view is None or not view["materialized"]:
                raise StatementError(sql, sqlstate="42809")
            return "REFRESH MATERIALIZED VIEW"

        raise AssertionError(f"FakeConnection does not understand: {sql}")

    async def select_rows(self, sql: str, *args) -> List[Dict[str, Any]]:
        self.queries.append(sql)

        if sql == CatalogIntrospector.VIEWS_QUERY:
            return [
                {
                    "viewname": name,
                    "definition": " " + view["definition"] + ";",
                    "kind": "m" if view["materialized"] else "v",
                    "namespace": "public",
                }
                for name, view in self.views.items()
            ]

        if sql == CatalogIntrospector.INDEXES_QUERY:
            return [
                {
                    "object_name": index["object_name"],
                    "index_name": name,
                    "namespace": "public",
                    "definition": index["definition"],
                }
                for name, index in sorted(self.indexes.items())
                if index["object_name"] == args[0]
            ]

        if sql == CatalogIntrospector.TRIGGERS_QUERY:
            return [
                {
                    "event_manipulation": trigger.event,
                    "event_object_schema": trigger.namespace,
                    "event_object_table": trigger.table,
                    "trigger_name": trigger.name,
                    "action_statement": trigger.action,
                    "action_orientation": trigger.scope,
                    "action_timing": trigger.timing,
                }
                for trigger in sorted(self.triggers.values(), key=lambda t: t.name)
                if trigger.table == args[0]
            ]

        if sql == DependencyGraphResolver.LEVELS_QUERY:
            rows = [
                {"relname": name, "nspname": "public", "level": self.level_of(name)}
                for name in self.views
                if name in args[0]
            ]
            return sorted(rows, key=lambda row: row["level"])

        if sql == DependencyGraphResolver.DEPENDENTS_QUERY:
            name, materialized_only = args
            return [
                {"relname": dependent}
                for dependent in self.dependents_of(name)
                if not materialized_only or self.views[dependent]["materialized"]
            ]

        raise AssertionError("FakeConnection does not understand the query")

    # -- catalog simulation --------------------------------------------------

    def level_of(self, name: str) -> int:
        depends_on = self.views[name]["depends_on"]
        if not depends_on:
            return 0
        return 1 + max(self.level_of(base) for base in depends_on)

    def dependents_of(self, name: str) -> List[str]:
        found: List[str] = []
        pending = [name]
        while pending:
            current = pending.pop(0)
            for candidate, view in self.views.items():
                if current in view["depends_on"] and candidate not in found:
                    found.append(candidate)
                    pending.append(candidate)
        return found

    def _create_view(self, name: str, definition: str, materialized: bool, replace: bool = False) -> None:
        sql = f"CREATE VIEW {name} AS {definition}"
        if name in self.views and not replace:
            raise StatementError(sql, sqlstate="42P07")

        references = re.findall(r"(?:FROM|JOIN)\s+\"?(\w+)\"?", definition, re.IGNORECASE)
        for reference in references:
            if reference not in self.views and reference not in self.tables:
                raise StatementError(sql, sqlstate="42P01")

        self.views[name] = {
            "definition": definition,
            "materialized": materialized,
            "depends_on": {ref for ref in references if ref in self.views},
            "columns": _view_columns(definition),
        }

    def _drop_view(self, name: str, materialized: bool, cascade: bool, sql: str) -> None:
        view = self.views.get(name)
        if view is None or view["materialized"] != materialized:
            raise StatementError(sql, sqlstate="42P01")

        dependents = self.dependents_of(name)
        if dependents and not cascade:
            raise StatementError(sql, sqlstate="2BP01")

        for dropped in [name] + dependents:
            self.views.pop(dropped, None)
            for index_name in [n for n, i in self.indexes.items() if i["object_name"] == dropped]:
                del self.indexes[index_name]
            for trigger_name in [n for n, t in self.triggers.items() if t.table == dropped]:
                del self.triggers[trigger_name]

    def _create_index(self, definition: str) -> None:
        match = re.match(
            rf"CREATE (?:UNIQUE )?INDEX ({IDENT}) ON (?:ONLY )?({IDENT}).*\((.*)\)$", definition
        )
        if not match:
            raise StatementError(definition, sqlstate="42601")

        name, object_name = _unquote(match.group(1)), _unquote(match.group(2))
        if name in self.indexes:
            raise StatementError(definition, sqlstate="42P07")

        view = self.views.get(object_name)
        if view is None and object_name not in self.tables:
            raise StatementError(definition, sqlstate="42P01")

        if view is not None and view["columns"] is not None:
            for column in match.group(3).split(","):
                if column.strip() not in view["columns"]:
                    raise StatementError(definition, sqlstate="42703")

        self.indexes[name] = {"object_name": object_name, "definition": definition}


class RecordingNotifier:
    """Collects every message it is told."""

    def __init__(self):
        self.messages: List[str] = []

    def say(self, message: str) -> None:
        self.messages.append(message)


@pytest.fixture
def fake_connection() -> FakeConnection:
    """Fake connection with two base tables and no views."""
    return FakeConnection(tables={"orders", "customers"})


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def temp_config_file():
    """Temporary configuration file for testing."""
    with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
        f.write(
            """
database:
  host: localhost
  port: 5432
  database: shop
  user: shop_owner
  password: secret
  search_path: public
reapplication:
  notify: true
logging:
  level: WARNING
"""
        )
        return f.name
