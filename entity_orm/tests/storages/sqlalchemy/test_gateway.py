import uuid
from datetime import datetime

import pytest
from sqlalchemy.dialects import sqlite

from entity_orm import statements
from entity_orm.errors import TemplateError
from entity_orm.storages.sqlalchemy import SqlAlchemyGateway
from entity_orm.storages.sqlalchemy.templates import compile_template, quote_identifier


@pytest.fixture()
def dialect():
    return sqlite.dialect()


def test_identifiers_are_quoted_per_part(dialect) -> None:
    assert quote_identifier("users.deleted_at", dialect) == "users.deleted_at"
    assert quote_identifier("order.select", dialect) == '"order"."select"'


def test_values_become_named_bind_params(dialect) -> None:
    statement, bind_params = compile_template(*statements.select("users", [statements.is_in("id", [1, 2])]), dialect)

    assert statement == "SELECT * FROM users WHERE id IN (:p0, :p1)"
    assert bind_params == {"p0": 1, "p1": 2}


def test_values_are_converted_for_storage(dialect) -> None:
    key = uuid.UUID("6f1c1d8e-59a4-4bb5-9d61-8b4a4c0a6b2f")

    params = ("uuid", key, "at", datetime(2020, 5, 1))

    _statement, bind_params = compile_template("?name = ? AND ?name = ?", params, dialect)

    assert bind_params == {"p0": str(key), "p1": "2020-05-01 00:00:00"}


@pytest.mark.parametrize("params", [("users",), ("users", 1, 2)])
def test_parameter_count_must_match_placeholders(dialect, params) -> None:
    with pytest.raises(TemplateError):
        compile_template("SELECT * FROM ?name WHERE id = ?", params, dialect)


def test_insert_reports_generated_key(connection) -> None:
    gateway = SqlAlchemyGateway(connection)

    gateway.execute(statements.insert("roles", {"name": "admin"}))
    first = gateway.get_insert_id()
    gateway.execute(statements.insert("roles", {"name": "editor"}))

    assert first == 1
    assert gateway.get_insert_id() == 2


def test_fetch_walks_rows_in_order(connection, seed) -> None:
    seed("roles", [{"id": 1, "name": "admin"}, {"id": 2, "name": "editor"}, {"id": 3, "name": "guest"}])
    gateway = SqlAlchemyGateway(connection)

    result = gateway.query("SELECT ?name, ?name FROM ?name ORDER BY ?name", "id", "name", "roles", "id")

    assert result.fetch() == {"id": 1, "name": "admin"}
    assert result.fetch_all() == [{"id": 2, "name": "editor"}, {"id": 3, "name": "guest"}]
    assert result.fetch() is None
    assert result.fetch_all() == []


def test_statements_without_rows_return_empty_result(connection, seed) -> None:
    seed("roles", [{"id": 1, "name": "admin"}])
    gateway = SqlAlchemyGateway(connection)

    result = gateway.execute(statements.delete("roles", [statements.compare("id", "=", 1)]))

    assert result.fetch() is None
    assert gateway.execute(statements.select("roles")).fetch_all() == []


def test_execute_spreads_statement_params(connection, seed) -> None:
    seed("roles", [{"id": 1, "name": "admin"}, {"id": 2, "name": "editor"}])
    gateway = SqlAlchemyGateway(connection)

    rows = gateway.execute(statements.select("roles", [statements.is_in("id", [2])])).fetch_all()

    assert rows == [{"id": 2, "name": "editor", "created_at": None, "updated_at": None}]
