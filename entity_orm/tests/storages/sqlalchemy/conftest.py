from typing import Any, Callable, Dict, Generator, List, Tuple

import pytest
from sqlalchemy import Column, Integer, MetaData, String, Table
from sqlalchemy.engine import Connection, Engine

from entity_orm.gateway import QueryGateway, ResultHandle
from entity_orm.storages.sqlalchemy import SqlAlchemyGateway


class RecordingGateway(QueryGateway):
    def __init__(self, gateway: QueryGateway) -> None:
        self._gateway = gateway
        self.statements: List[Tuple[str, Tuple[Any, ...]]] = []

    @property
    def templates(self) -> List[str]:
        return [template for template, _params in self.statements]

    def reset(self) -> None:
        self.statements.clear()

    def query(self, template: str, *params: Any) -> ResultHandle:
        self.statements.append((template, params))
        return self._gateway.query(template, *params)

    def get_insert_id(self) -> Any:
        return self._gateway.get_insert_id()


def _timestamps() -> List[Column]:
    return [Column("created_at", String(32), nullable=True), Column("updated_at", String(32), nullable=True)]


@pytest.fixture()
def metadata() -> MetaData:
    metadata = MetaData()
    Table(
        "users",
        metadata,
        Column("id", Integer, primary_key=True),
        Column("name", String(255)),
        Column("email", String(255), nullable=True),
        Column("password", String(255), nullable=True),
        Column("age", Integer, nullable=True),
        Column("deleted_at", String(32), nullable=True),
        *_timestamps(),
    )
    Table(
        "profiles",
        metadata,
        Column("id", Integer, primary_key=True),
        Column("user_id", Integer, nullable=True),
        Column("bio", String(255), nullable=True),
        *_timestamps(),
    )
    Table(
        "posts",
        metadata,
        Column("id", Integer, primary_key=True),
        Column("user_id", Integer, nullable=True),
        Column("title", String(255)),
        Column("body", String(255), nullable=True),
        *_timestamps(),
    )
    Table(
        "comments",
        metadata,
        Column("id", Integer, primary_key=True),
        Column("post_id", Integer, nullable=True),
        Column("body", String(255), nullable=True),
        *_timestamps(),
    )
    Table(
        "roles", metadata, Column("id", Integer, primary_key=True), Column("name", String(255)), *_timestamps()
    )
    Table(
        "role_user",
        metadata,
        Column("id", Integer, primary_key=True),
        Column("role_id", Integer),
        Column("user_id", Integer),
        Column("granted_by", String(255), nullable=True),
        *_timestamps(),
    )
    return metadata


@pytest.fixture()
def connection(engine: Engine, metadata: MetaData) -> Generator[Connection, None, None]:
    with engine.connect() as connection:
        metadata.drop_all(connection)
        metadata.create_all(connection)
        yield connection
        metadata.drop_all(connection)


@pytest.fixture()
def gateway(connection: Connection) -> RecordingGateway:
    return RecordingGateway(SqlAlchemyGateway(connection))


@pytest.fixture()
def seed(connection: Connection, metadata: MetaData) -> Callable[[str, List[Dict[str, Any]]], None]:
    def insert(table_name: str, rows: List[Dict[str, Any]]) -> None:
        connection.execute(metadata.tables[table_name].insert(), rows)

    return insert
