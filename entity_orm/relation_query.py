import typing

import attr

from entity_orm import statements
from entity_orm.statements import Clause

_MISSING = object()


def qualify(column: str, table: typing.Optional[str]) -> str:
    if table is None or "." in column:
        return column
    return f"{table}.{column}"


@attr.s(auto_attribs=True, frozen=True)
class Condition:
    boolean: str
    kind: str
    column: str
    operator: str = "="
    values: typing.Tuple[typing.Any, ...] = ()

    def clause(self, table: typing.Optional[str]) -> Clause:
        column = qualify(self.column, table)
        if self.kind == "in":
            return statements.is_in(column, self.values)
        if self.kind == "not_in":
            return statements.is_not_in(column, self.values)
        if self.kind == "null":
            return statements.is_null(column)
        if self.kind == "not_null":
            return statements.is_not_null(column)
        return statements.compare(column, self.operator, self.values[0])


@attr.s(auto_attribs=True)
class RelationQuery:
    """Extra conditions, ordering and limits for a relation read.

    Unqualified column names refer to the related table. Conditions are
    grouped in parentheses so they never loosen the relation's own key
    predicate or the deletion scope.
    """

    BUILDERS: typing.ClassVar[typing.FrozenSet[str]] = frozenset(
        {
            "where",
            "or_where",
            "where_in",
            "where_not_in",
            "where_null",
            "where_not_null",
            "order_by",
            "limit",
            "take",
            "offset",
            "skip",
        }
    )

    conditions: typing.List[Condition] = attr.Factory(list)
    orders: typing.List[typing.Tuple[str, str]] = attr.Factory(list)
    limit_value: typing.Optional[int] = None
    offset_value: typing.Optional[int] = None

    def _add(self, condition: Condition) -> "RelationQuery":
        self.conditions.append(condition)
        return self

    def _basic(self, boolean: str, column: str, operator: typing.Any, value: typing.Any) -> "RelationQuery":
        if value is _MISSING:
            operator, value = "=", operator
        return self._add(Condition(boolean, "basic", column, statements.coerce_operator(operator), (value,)))

    def where(self, column: str, operator: typing.Any, value: typing.Any = _MISSING) -> "RelationQuery":
        return self._basic("AND", column, operator, value)

    def or_where(self, column: str, operator: typing.Any, value: typing.Any = _MISSING) -> "RelationQuery":
        return self._basic("OR", column, operator, value)

    def where_in(self, column: str, values: typing.Iterable[typing.Any]) -> "RelationQuery":
        return self._add(Condition("AND", "in", column, values=tuple(values)))

    def where_not_in(self, column: str, values: typing.Iterable[typing.Any]) -> "RelationQuery":
        return self._add(Condition("AND", "not_in", column, values=tuple(values)))

    def where_null(self, column: str) -> "RelationQuery":
        return self._add(Condition("AND", "null", column))

    def where_not_null(self, column: str) -> "RelationQuery":
        return self._add(Condition("AND", "not_null", column))

    def order_by(self, column: str, direction: str = "asc") -> "RelationQuery":
        self.orders.append((column, statements.coerce_direction(direction)))
        return self

    def limit(self, value: int) -> "RelationQuery":
        self.limit_value = value
        return self

    take = limit

    def offset(self, value: int) -> "RelationQuery":
        self.offset_value = value
        return self

    skip = offset

    def copy(self) -> "RelationQuery":
        return attr.evolve(self, conditions=list(self.conditions), orders=list(self.orders))

    def clauses(self, table: typing.Optional[str] = None) -> typing.List[Clause]:
        if not self.conditions:
            return []
        templates = []
        params: typing.Tuple[typing.Any, ...] = ()
        for index, condition in enumerate(self.conditions):
            clause = condition.clause(table)
            templates.append(clause.template if index == 0 else f"{condition.boolean} {clause.template}")
            params += clause.params
        return [Clause(f"({' '.join(templates)})", params)]

    def ordering(self, table: typing.Optional[str] = None) -> typing.List[typing.Tuple[str, str]]:
        return [(qualify(column, table), direction) for column, direction in self.orders]

    def options(self, table: typing.Optional[str] = None) -> typing.Dict[str, typing.Any]:
        return {"order_by": self.ordering(table), "limit": self.limit_value, "offset": self.offset_value}
