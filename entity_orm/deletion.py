import abc
import typing

import attr

from entity_orm import statements, timestamps
from entity_orm.gateway import QueryGateway
from entity_orm.statements import Clause


class DeletionPolicy(abc.ABC):
    @abc.abstractmethod
    def scope(self, table: str) -> typing.List[Clause]:
        """Predicates every read of the table must carry."""

    @abc.abstractmethod
    def delete(self, gateway: QueryGateway, table: str, primary_key: str, identity: typing.Any) -> None:
        pass


class HardDelete(DeletionPolicy):
    def scope(self, table: str) -> typing.List[Clause]:
        return []

    def delete(self, gateway: QueryGateway, table: str, primary_key: str, identity: typing.Any) -> None:
        gateway.execute(statements.delete(table, [statements.compare(primary_key, "=", identity)]))


@attr.s(auto_attribs=True, frozen=True)
class SoftDelete(DeletionPolicy):
    column: str = "deleted_at"

    def _qualified(self, table: str) -> str:
        return f"{table}.{self.column}"

    def scope(self, table: str) -> typing.List[Clause]:
        return [statements.is_null(self._qualified(table))]

    def trashed_scope(self, table: str) -> typing.List[Clause]:
        return [statements.is_not_null(self._qualified(table))]

    def delete(self, gateway: QueryGateway, table: str, primary_key: str, identity: typing.Any) -> None:
        self._mark(gateway, table, primary_key, identity, timestamps.now())

    def restore(self, gateway: QueryGateway, table: str, primary_key: str, identity: typing.Any) -> None:
        self._mark(gateway, table, primary_key, identity, None)

    def force_delete(self, gateway: QueryGateway, table: str, primary_key: str, identity: typing.Any) -> None:
        HardDelete().delete(gateway, table, primary_key, identity)

    def _mark(
        self, gateway: QueryGateway, table: str, primary_key: str, identity: typing.Any, value: typing.Optional[str]
    ) -> None:
        key = [statements.compare(primary_key, "=", identity)]
        gateway.execute(statements.update(table, {self.column: value}, key))
