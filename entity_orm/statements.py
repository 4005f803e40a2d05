import logging
import typing

import attr

logger = logging.getLogger(__name__)

Statement = typing.Tuple[str, typing.Tuple[typing.Any, ...]]
Ordering = typing.Sequence[typing.Tuple[str, str]]

ALLOWED_OPERATORS = ("=", ">", "<", ">=", "<=", "LIKE", "!=", "<>")


def coerce_operator(operator: str) -> str:
    """Anything outside the allow-list becomes ``=``; it is never rejected."""
    normalized = str(operator).upper()
    if normalized in ALLOWED_OPERATORS:
        return normalized
    logger.debug("Operator %r is not allowed, using '='", operator)
    return "="


def coerce_direction(direction: str) -> str:
    return "DESC" if str(direction).upper() == "DESC" else "ASC"


@attr.s(auto_attribs=True, frozen=True)
class Clause:
    template: str
    params: typing.Tuple[typing.Any, ...] = ()


def placeholders(count: int, placeholder: str = "?") -> str:
    return ", ".join([placeholder] * count)


def compare(column: str, operator: str, value: typing.Any) -> Clause:
    return Clause(f"?name {operator} ?", (column, value))


def is_in(column: str, values: typing.Sequence[typing.Any]) -> Clause:
    # an empty IN list is not valid SQL everywhere; it matches nothing
    if not values:
        return Clause("1 = 0")
    return Clause(f"?name IN ({placeholders(len(values))})", (column, *values))


def is_not_in(column: str, values: typing.Sequence[typing.Any]) -> Clause:
    if not values:
        return Clause("1 = 1")
    return Clause(f"?name NOT IN ({placeholders(len(values))})", (column, *values))


def is_null(column: str) -> Clause:
    return Clause("?name IS NULL", (column,))


def is_not_null(column: str) -> Clause:
    return Clause("?name IS NOT NULL", (column,))


def where(clauses: typing.Sequence[Clause]) -> Statement:
    if not clauses:
        return "", ()
    template = " WHERE " + " AND ".join(clause.template for clause in clauses)
    params: typing.Tuple[typing.Any, ...] = ()
    for clause in clauses:
        params += clause.params
    return template, params


def modifiers(
    order_by: Ordering = (), limit: typing.Optional[int] = None, offset: typing.Optional[int] = None
) -> Statement:
    """The ``ORDER BY``/``LIMIT``/``OFFSET`` tail of a SELECT."""
    if offset is not None and limit is None:
        raise ValueError("OFFSET needs a LIMIT")
    template = ""
    params: typing.Tuple[typing.Any, ...] = ()
    if order_by:
        template += " ORDER BY " + ", ".join(f"?name {coerce_direction(direction)}" for _, direction in order_by)
        params += tuple(column for column, _ in order_by)
    if limit is not None:
        template += " LIMIT ?"
        params += (limit,)
    if offset is not None:
        template += " OFFSET ?"
        params += (offset,)
    return template, params


def select(
    table: str,
    clauses: typing.Sequence[Clause] = (),
    limit: typing.Optional[int] = None,
    offset: typing.Optional[int] = None,
    order_by: Ordering = (),
) -> Statement:
    condition, condition_params = where(clauses)
    tail, tail_params = modifiers(order_by, limit, offset)
    return f"SELECT * FROM ?name{condition}{tail}", (table, *condition_params, *tail_params)


def count(table: str, clauses: typing.Sequence[Clause] = (), alias: str = "aggregate") -> Statement:
    condition, condition_params = where(clauses)
    return f"SELECT COUNT(*) AS ?name FROM ?name{condition}", (alias, table, *condition_params)


def insert(table: str, values: typing.Mapping[str, typing.Any]) -> Statement:
    if not values:
        return "INSERT INTO ?name DEFAULT VALUES", (table,)
    columns = list(values)
    template = f"INSERT INTO ?name ({placeholders(len(columns), '?name')}) VALUES ({placeholders(len(columns))})"
    return template, (table, *columns, *(values[column] for column in columns))


def update(table: str, values: typing.Mapping[str, typing.Any], clauses: typing.Sequence[Clause]) -> Statement:
    assignments = ", ".join(["?name = ?"] * len(values))
    params: typing.Tuple[typing.Any, ...] = (table,)
    for column, value in values.items():
        params += (column, value)
    condition, condition_params = where(clauses)
    return f"UPDATE ?name SET {assignments}{condition}", params + condition_params


def delete(table: str, clauses: typing.Sequence[Clause]) -> Statement:
    condition, condition_params = where(clauses)
    return f"DELETE FROM ?name{condition}", (table, *condition_params)
