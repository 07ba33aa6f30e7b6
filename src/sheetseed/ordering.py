"""Foreign-key dependency ordering of tables.

Tables are emitted so that a referenced table comes before every table that
references it. This is a topological sort driven by a single heap keyed by
``(unsatisfied dependencies, schema, name)``: the smallest entry is the
lexicographically smallest ready table, or, when only cycles are left, the
smallest table among those with the fewest unsatisfied dependencies. The
order is therefore deterministic and total, and cycles never stop the sort.

For tables on a cycle the precedence guarantee is best effort only.
"""

from __future__ import annotations

import heapq
import logging
from collections import defaultdict
from typing import Iterable, NamedTuple

from sheetseed.db.models import Table
from sheetseed.errors import SchemaInconsistencyError

logger = logging.getLogger(__name__)

TableKey = tuple[str, str]


class DependencyGraph(NamedTuple):
    tables: dict[TableKey, Table]
    # table -> tables it references (excluding itself)
    depends_on: dict[TableKey, set[TableKey]]
    # table -> tables that reference it (excluding itself)
    dependents: dict[TableKey, set[TableKey]]
    self_referencing: set[TableKey]


def _index(tables: Iterable[Table]) -> dict[TableKey, Table]:
    index: dict[TableKey, Table] = {}
    for table in tables:
        if table.key in index:
            raise SchemaInconsistencyError(f"Table {table.full_name} appears more than once")
        index[table.key] = table
    return index


def dependency_graph(tables: Iterable[Table]) -> DependencyGraph:
    """Collect foreign-key edges between the given tables.

    Foreign keys are visited in case-folded column name order. References to
    tables outside the input are not edges.
    """
    index = _index(tables)
    depends_on: dict[TableKey, set[TableKey]] = {key: set() for key in index}
    dependents: dict[TableKey, set[TableKey]] = defaultdict(set)
    self_referencing: set[TableKey] = set()
    for key, table in index.items():
        for column in sorted(table.foreign_keys, key=lambda c: c.name.casefold()):
            target = column.foreign_key.table_key
            if target == key:
                self_referencing.add(key)
            elif target in index:
                depends_on[key].add(target)
                dependents[target].add(key)
    return DependencyGraph(index, depends_on, dict(dependents), self_referencing)


def check_references(tables: Iterable[Table]) -> None:
    """Fail if any foreign key points at a table or column that is not present.

    Raises
    ------
    SchemaInconsistencyError
        On the first dangling reference found.
    """
    index = _index(tables)
    for table in index.values():
        for column in table.foreign_keys:
            ref = column.foreign_key
            target = index.get(ref.table_key)
            if target is None:
                raise SchemaInconsistencyError(
                    f"{table.full_name}.{column.name} references missing table {ref.table_full_name}"
                )
            if target.column(ref.column) is None:
                raise SchemaInconsistencyError(
                    f"{table.full_name}.{column.name} references missing column "
                    f"{ref.table_full_name}.{ref.column}"
                )


def order_tables(tables: Iterable[Table]) -> list[Table]:
    """Return ``tables`` with referenced tables ahead of their referencers.

    The result does not depend on the order of the input, and every table
    appears exactly once.
    """
    graph = dependency_graph(tables)
    remaining = {key: len(deps) for key, deps in graph.depends_on.items()}
    heap = [(count, key) for key, count in remaining.items()]
    heapq.heapify(heap)

    emitted: set[TableKey] = set()
    ordered: list[Table] = []
    while heap:
        count, key = heapq.heappop(heap)
        if key in emitted or count != remaining[key]:
            continue  # stale
        if count:
            logger.debug(
                "Breaking foreign-key cycle at %s with %d unsatisfied dependencies",
                graph.tables[key].full_name,
                count,
            )
        emitted.add(key)
        ordered.append(graph.tables[key])
        for dependent in graph.dependents.get(key, ()):
            if dependent in emitted:
                continue
            remaining[dependent] -= 1
            heapq.heappush(heap, (remaining[dependent], dependent))
    return ordered
