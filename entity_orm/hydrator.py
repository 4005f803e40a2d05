import typing

from entity_orm.collection import Collection, EagerLoads, eager_loads
from entity_orm.gateway import QueryGateway, Row

if typing.TYPE_CHECKING:
    from entity_orm.entity import Entity

PIVOT_PREFIX = "pivot_"


class Hydrator:
    def __init__(self, entity_cls: typing.Type["Entity"], gateway: typing.Optional[QueryGateway]) -> None:
        self._entity_cls = entity_cls
        self._gateway = gateway

    def hydrate_one(self, row: Row) -> "Entity":
        entity = self._entity_cls(gateway=self._gateway)
        entity.fill(row)
        entity.exists = True
        return entity

    def hydrate_pivoted(self, row: Row) -> "Entity":
        attributes = {}
        pivot = {}
        for column, value in row.items():
            if column.startswith(PIVOT_PREFIX):
                pivot[column[len(PIVOT_PREFIX) :]] = value
            else:
                attributes[column] = value
        entity = self.hydrate_one(attributes)
        entity.pivot = pivot
        return entity

    def hydrate_many(
        self, rows: typing.Iterable[Row], relations: EagerLoads = (), apply_defaults: bool = True
    ) -> Collection:
        collection = Collection((self.hydrate_one(row) for row in rows), self._gateway)
        loads = dict.fromkeys(self._entity_cls.eager_load) if apply_defaults else {}
        # an explicit constraint replaces the bare default of the same name
        loads.update(eager_loads(relations))
        if loads:
            collection.load(loads)
        return collection
