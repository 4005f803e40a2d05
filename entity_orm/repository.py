import typing

from entity_orm import statements
from entity_orm.collection import Collection, EagerLoads, eager_loads
from entity_orm.deletion import SoftDelete
from entity_orm.errors import GatewayNotBound, SoftDeletesDisabled
from entity_orm.gateway import QueryGateway
from entity_orm.hydrator import Hydrator
from entity_orm.pagination import Paginator
from entity_orm.statements import Clause, coerce_operator

if typing.TYPE_CHECKING:
    from entity_orm.entity import Entity

EntityType = typing.TypeVar("EntityType", bound="Entity")

_MISSING = object()


class Repository(typing.Generic[EntityType]):
    def __init__(
        self,
        entity_cls: typing.Type[EntityType],
        gateway: QueryGateway,
        eager_load: EagerLoads = (),
    ) -> None:
        if gateway is None:
            raise GatewayNotBound(f"{entity_cls.__name__} repository needs a gateway")
        self.entity = entity_cls
        self._gateway = gateway
        self._eager_load = eager_loads(eager_load)
        self._hydrator = Hydrator(entity_cls, gateway)

    @property
    def gateway(self) -> QueryGateway:
        return self._gateway

    @property
    def _table(self) -> str:
        return self.entity.table_name

    @property
    def _primary_key(self) -> str:
        return self.entity.primary_key

    def _scope(self) -> typing.List[Clause]:
        return self.entity.deletion_policy.scope(self._table)

    def _key(self, identity: typing.Any) -> Clause:
        return statements.compare(self._primary_key, "=", identity)

    def _select(self, clauses: typing.Sequence[Clause], **kwargs: typing.Any) -> Collection:
        rows = self._gateway.execute(statements.select(self._table, clauses, **kwargs)).fetch_all()
        return self._hydrator.hydrate_many(rows, relations=self._eager_load)

    def with_(self, *relations: EagerLoads) -> "Repository[EntityType]":
        return Repository(self.entity, self._gateway, {**self._eager_load, **eager_loads(*relations)})

    def find(self, identity: typing.Any) -> typing.Optional[EntityType]:
        row = self._gateway.execute(statements.select(self._table, [self._key(identity), *self._scope()])).fetch()
        if row is None:
            return None
        return self._hydrator.hydrate_many([row], relations=self._eager_load).first()

    def all(self) -> Collection:
        return self._select(self._scope())

    def where(self, column: str, operator: typing.Any, value: typing.Any = _MISSING) -> Collection:
        if value is _MISSING:
            operator, value = "=", operator
        clause = statements.compare(column, coerce_operator(operator), value)
        return self._select([clause, *self._scope()])

    def where_in(self, column: str, values: typing.Iterable[typing.Any]) -> Collection:
        values = list(dict.fromkeys(values))
        if not values:
            return Collection((), self._gateway)
        return self._select([statements.is_in(column, values), *self._scope()])

    def paginate(self, per_page: int = 15, page: int = 1) -> Paginator:
        if per_page < 1:
            raise ValueError(f"per_page must be positive, got {per_page}")
        page = max(1, int(page))
        total_row = self._gateway.execute(statements.count(self._table, self._scope())).fetch()
        total = int(total_row["aggregate"]) if total_row else 0
        items = self._select(self._scope(), limit=per_page, offset=(page - 1) * per_page)
        return Paginator(items, total, per_page, page)

    def create(self, attributes: typing.Mapping[str, typing.Any]) -> typing.Optional[EntityType]:
        entity = self.entity(self.entity.filter_fillable(attributes), gateway=self._gateway)
        entity.save()
        # read back so database defaults show up on the returned entity
        return self.find(entity.attributes[self._primary_key])

    def update(self, identity: typing.Any, attributes: typing.Mapping[str, typing.Any]) -> typing.Optional[EntityType]:
        values = self.entity.filter_fillable(attributes)
        values.pop(self._primary_key, None)
        if values:
            self._gateway.execute(statements.update(self._table, values, [self._key(identity)]))
        return self.find(identity)

    def delete(self, identity: typing.Any) -> None:
        self.entity.deletion_policy.delete(self._gateway, self._table, self._primary_key, identity)

    def _soft_deletes(self) -> SoftDelete:
        policy = self.entity.deletion_policy
        if not isinstance(policy, SoftDelete):
            raise SoftDeletesDisabled(f"{self.entity.__name__} does not use soft deletes")
        return policy

    def with_trashed(self) -> Collection:
        self._soft_deletes()
        return self._select([])

    def only_trashed(self) -> Collection:
        return self._select(self._soft_deletes().trashed_scope(self._table))

    def is_trashed(self, identity: typing.Any) -> bool:
        clauses = [self._key(identity), *self._soft_deletes().trashed_scope(self._table)]
        return self._gateway.execute(statements.select(self._table, clauses)).fetch() is not None

    def restore(self, identity: typing.Any) -> None:
        self._soft_deletes().restore(self._gateway, self._table, self._primary_key, identity)

    def force_delete(self, identity: typing.Any) -> None:
        self._soft_deletes().force_delete(self._gateway, self._table, self._primary_key, identity)
