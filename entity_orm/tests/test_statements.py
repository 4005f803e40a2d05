import pytest

from entity_orm import statements


def test_select_without_clauses() -> None:
    assert statements.select("users") == ("SELECT * FROM ?name", ("users",))


def test_select_joins_clauses_with_and() -> None:
    clauses = [statements.compare("age", ">", 18), statements.is_null("users.deleted_at")]

    template, params = statements.select("users", clauses, limit=10, offset=20)

    assert template == "SELECT * FROM ?name WHERE ?name > ? AND ?name IS NULL LIMIT ? OFFSET ?"
    assert params == ("users", "age", 18, "users.deleted_at", 10, 20)


def test_in_clause_has_one_placeholder_per_value() -> None:
    assert statements.is_in("id", [1, 2, 3]) == statements.Clause("?name IN (?, ?, ?)", ("id", 1, 2, 3))


def test_insert_lists_columns_then_values() -> None:
    template, params = statements.insert("posts", {"title": "Hi", "body": "Text"})

    assert template == "INSERT INTO ?name (?name, ?name) VALUES (?, ?)"
    assert params == ("posts", "title", "body", "Hi", "Text")


def test_insert_without_values_uses_defaults() -> None:
    assert statements.insert("posts", {}) == ("INSERT INTO ?name DEFAULT VALUES", ("posts",))


def test_update_interleaves_columns_and_values() -> None:
    template, params = statements.update("posts", {"title": "New", "body": None}, [statements.compare("id", "=", 4)])

    assert template == "UPDATE ?name SET ?name = ?, ?name = ? WHERE ?name = ?"
    assert params == ("posts", "title", "New", "body", None, "id", 4)


def test_count_aliases_the_aggregate() -> None:
    assert statements.count("users") == ("SELECT COUNT(*) AS ?name FROM ?name", ("aggregate", "users"))


def test_delete_by_key() -> None:
    template, params = statements.delete("users", [statements.compare("id", "=", 1)])

    assert template == "DELETE FROM ?name WHERE ?name = ?"
    assert params == ("users", "id", 1)


def test_empty_in_matches_nothing_and_empty_not_in_matches_everything() -> None:
    assert statements.is_in("id", []) == statements.Clause("1 = 0")
    assert statements.is_not_in("id", []) == statements.Clause("1 = 1")
    assert statements.is_not_in("id", [4]) == statements.Clause("?name NOT IN (?)", ("id", 4))


def test_select_orders_before_limiting() -> None:
    template, params = statements.select("posts", order_by=[("posts.id", "desc"), ("title", "sideways")], limit=1)

    assert template == "SELECT * FROM ?name ORDER BY ?name DESC, ?name ASC LIMIT ?"
    assert params == ("posts", "posts.id", "title", 1)


def test_offset_needs_a_limit() -> None:
    with pytest.raises(ValueError):
        statements.modifiers(offset=5)
