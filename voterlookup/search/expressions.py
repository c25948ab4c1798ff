"""
Typed SQL expression builder.

Clauses are small immutable objects that render to SQL text and report the
named parameters they reference. Values never enter the SQL text: every
user-supplied string is a Param, rendered as a psycopg2 ``%(name)s``
placeholder and bound from a parameter map at execution time. Because
psycopg2 treats ``%`` as a placeholder marker, the pg_trgm similarity
operator is rendered as ``%%``.

Usage:
    where = Or(TrigramMatch(FULL_NAME, Param("word_0")), ILike(FULL_NAME, Param("word_pattern_0")))
    where.render()  # '(full_name %% %(word_0)s OR full_name ILIKE %(word_pattern_0)s)'
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Mapping, Optional, Sequence, Tuple, Union

from ..exceptions import QueryBuildError

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")
_COMPARATORS = frozenset({"=", ">", ">=", "<", "<="})

VOTER_TABLE = '"Voter"'
PART_TABLE = '"PartNo"'


class Expr:
    """Base class for renderable SQL fragments."""

    def render(self) -> str:
        raise NotImplementedError

    def params(self) -> FrozenSet[str]:
        return frozenset()

    def __str__(self) -> str:
        return self.render()


@dataclass(frozen=True)
class Param(Expr):
    """Named placeholder bound at execution time."""
    name: str

    def __post_init__(self):
        if not _IDENTIFIER.match(self.name) or "." in self.name:
            raise ValueError(f"Invalid parameter name: {self.name!r}")

    def render(self) -> str:
        return f"%({self.name})s"

    def params(self) -> FrozenSet[str]:
        return frozenset({self.name})


@dataclass(frozen=True)
class Column(Expr):
    """Column reference; only plain or table-qualified identifiers."""
    name: str

    def __post_init__(self):
        if not _IDENTIFIER.match(self.name):
            raise ValueError(f"Invalid column name: {self.name!r}")

    def render(self) -> str:
        return self.name


@dataclass(frozen=True)
class Number(Expr):
    value: Union[int, float]

    def __post_init__(self):
        if isinstance(self.value, bool) or not isinstance(self.value, (int, float)):
            raise ValueError(f"Not a number: {self.value!r}")

    def render(self) -> str:
        if isinstance(self.value, int):
            return str(self.value)
        return repr(round(self.value, 4))


def _as_expr(value: Union[Expr, int, float]) -> Expr:
    return value if isinstance(value, Expr) else Number(value)


@dataclass(frozen=True)
class TrigramMatch(Expr):
    """pg_trgm ``%`` operator: similarity above the server threshold."""
    column: Column
    param: Param

    def render(self) -> str:
        return f"{self.column.render()} %% {self.param.render()}"

    def params(self) -> FrozenSet[str]:
        return self.param.params()


@dataclass(frozen=True)
class ILike(Expr):
    column: Column
    param: Param

    def render(self) -> str:
        return f"{self.column.render()} ILIKE {self.param.render()}"

    def params(self) -> FrozenSet[str]:
        return self.param.params()


@dataclass(frozen=True)
class Similarity(Expr):
    """Trigram similarity score, zero when either side is NULL."""
    column: Column
    param: Param

    def render(self) -> str:
        return f"COALESCE(similarity({self.column.render()}, {self.param.render()}), 0)"

    def params(self) -> FrozenSet[str]:
        return self.param.params()


@dataclass(frozen=True)
class SimilarityAbove(Expr):
    """Trigram match whose similarity also exceeds an explicit threshold."""
    column: Column
    param: Param
    threshold: float

    def render(self) -> str:
        col, p = self.column.render(), self.param.render()
        return f"({col} %% {p} AND similarity({col}, {p}) > {Number(self.threshold).render()})"

    def params(self) -> FrozenSet[str]:
        return self.param.params()


@dataclass(frozen=True)
class UpperEquals(Expr):
    """Case-insensitive equality."""
    column: Column
    param: Param

    def render(self) -> str:
        return f"UPPER({self.column.render()}) = UPPER({self.param.render()})"

    def params(self) -> FrozenSet[str]:
        return self.param.params()


@dataclass(frozen=True)
class WardScope(Expr):
    """Restrict voters to the parts that make up a ward."""
    param: Param = field(default_factory=lambda: Param("ward"))
    part_column: Column = field(default_factory=lambda: Column("part_no"))

    def render(self) -> str:
        return (
            f"{self.part_column.render()} IN "
            f"(SELECT part_no FROM {PART_TABLE} WHERE ward_no = {self.param.render()})"
        )

    def params(self) -> FrozenSet[str]:
        return self.param.params()


@dataclass(frozen=True)
class Compare(Expr):
    left: Expr
    op: str
    right: Expr

    def __post_init__(self):
        if self.op not in _COMPARATORS:
            raise ValueError(f"Unsupported comparison operator: {self.op!r}")

    def render(self) -> str:
        return f"{self.left.render()} {self.op} {self.right.render()}"

    def params(self) -> FrozenSet[str]:
        return self.left.params() | self.right.params()


class _Combinator(Expr):
    """Variadic node rendered as a joined, parenthesised list."""

    def __init__(self, *items: Union[Expr, int, float]):
        if not items:
            raise ValueError(f"{type(self).__name__} needs at least one operand")
        self.items: Tuple[Expr, ...] = tuple(_as_expr(i) for i in items)

    def params(self) -> FrozenSet[str]:
        names: FrozenSet[str] = frozenset()
        for item in self.items:
            names |= item.params()
        return names

    def __eq__(self, other: Any) -> bool:
        return type(self) is type(other) and self.items == other.items

    def __hash__(self) -> int:
        return hash((type(self).__name__, self.items))

    def __repr__(self) -> str:
        return f"{type(self).__name__}{self.items!r}"


class And(_Combinator):
    def render(self) -> str:
        if len(self.items) == 1:
            return self.items[0].render()
        return "(" + " AND ".join(i.render() for i in self.items) + ")"


class Or(_Combinator):
    def render(self) -> str:
        if len(self.items) == 1:
            return self.items[0].render()
        return "(" + " OR ".join(i.render() for i in self.items) + ")"


class Greatest(_Combinator):
    def render(self) -> str:
        if len(self.items) == 1:
            return self.items[0].render()
        return "GREATEST(" + ", ".join(i.render() for i in self.items) + ")"


class Sum(_Combinator):
    def render(self) -> str:
        return "(" + " + ".join(i.render() for i in self.items) + ")"


@dataclass(frozen=True)
class CaseWhen(Expr):
    """``CASE WHEN condition THEN then ELSE otherwise END``"""
    condition: Expr
    then: Union[Expr, int, float]
    otherwise: Union[Expr, int, float] = 0

    def render(self) -> str:
        return (
            f"CASE WHEN {self.condition.render()} "
            f"THEN {_as_expr(self.then).render()} "
            f"ELSE {_as_expr(self.otherwise).render()} END"
        )

    def params(self) -> FrozenSet[str]:
        return (
            self.condition.params()
            | _as_expr(self.then).params()
            | _as_expr(self.otherwise).params()
        )


@dataclass
class SelectQuery:
    """
    A SELECT over the voter table.

    Computed expressions are rendered into the select list under an alias,
    so ORDER BY can refer to them by name.
    """

    columns: Sequence[str]
    where: Sequence[Expr]
    computed: Sequence[Tuple[Expr, str]] = ()
    order_by: Sequence[str] = ()
    limit: Optional[Param] = None
    source: str = VOTER_TABLE

    def __post_init__(self):
        for name in list(self.columns) + [alias for _, alias in self.computed]:
            Column(name)

    def render(self) -> str:
        select_list = list(self.columns)
        select_list += [f"{expr.render()} AS {alias}" for expr, alias in self.computed]
        sql = "SELECT " + ",\n       ".join(select_list)
        sql += f"\nFROM {self.source}"
        if self.where:
            sql += "\nWHERE " + "\n  AND ".join(w.render() for w in self.where)
        if self.order_by:
            sql += "\nORDER BY " + ", ".join(self.order_by)
        if self.limit is not None:
            sql += f"\nLIMIT {self.limit.render()}"
        return sql

    def params(self) -> FrozenSet[str]:
        names: FrozenSet[str] = frozenset()
        for expr in list(self.where) + [e for e, _ in self.computed]:
            names |= expr.params()
        if self.limit is not None:
            names |= self.limit.params()
        return names

    def bind(self, values: Mapping[str, Any]) -> Tuple[str, Dict[str, Any]]:
        """
        Render and pair with exactly the parameters the SQL references.

        Raises:
            QueryBuildError: when a referenced parameter has no value
        """
        needed = self.params()
        missing = [name for name in needed if name not in values]
        if missing:
            raise QueryBuildError(missing)
        return self.render(), {name: values[name] for name in needed}
