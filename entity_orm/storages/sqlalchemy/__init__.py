import logging
import typing

from sqlalchemy import text
from sqlalchemy.engine import Connection, Dialect
from sqlalchemy.orm import Session

from entity_orm.gateway import BufferedResult, QueryGateway, ResultHandle
from entity_orm.storages.sqlalchemy.templates import compile_template

logger = logging.getLogger(__name__)


class SqlAlchemyGateway(QueryGateway):
    """Query gateway over a SQLAlchemy connection or session.

    Transactions stay with the caller: nothing here begins, commits or rolls
    back. Insert ids come from ``lastrowid`` and follow the driver's
    semantics (SQLite and MySQL report the generated key).
    """

    def __init__(self, connection: typing.Union[Connection, Session]) -> None:
        self._connection = connection
        self._insert_id: typing.Any = None

    @property
    def dialect(self) -> Dialect:
        if isinstance(self._connection, Session):
            return self._connection.get_bind().dialect
        return self._connection.dialect

    def query(self, template: str, *params: typing.Any) -> ResultHandle:
        statement, bind_params = compile_template(template, params, self.dialect)
        logger.debug("Executing %s with %r", statement, bind_params)
        result = self._connection.execute(text(statement), bind_params)
        if result.returns_rows:
            return BufferedResult(result.mappings().all())
        if template.lstrip().upper().startswith("INSERT"):
            self._insert_id = result.lastrowid
        return BufferedResult()

    def get_insert_id(self) -> typing.Any:
        return self._insert_id
