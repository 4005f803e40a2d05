import json
import typing

from entity_orm.gateway import QueryGateway
from entity_orm.relation_query import RelationQuery

if typing.TYPE_CHECKING:
    from entity_orm.entity import Entity

Constraint = typing.Callable[[RelationQuery], typing.Any]
EagerLoads = typing.Union[str, typing.Iterable[str], typing.Mapping[str, typing.Optional[Constraint]]]


def eager_loads(*relations: EagerLoads) -> typing.Dict[str, typing.Optional[Constraint]]:
    """Normalizes names, lists of names and ``{name: constraint}`` mappings into one mapping."""
    loads: typing.Dict[str, typing.Optional[Constraint]] = {}
    for relation in relations:
        if isinstance(relation, str):
            loads[relation] = None
        elif isinstance(relation, typing.Mapping):
            loads.update(relation)
        else:
            loads.update(eager_loads(*relation))
    return loads


class Collection(typing.Sequence["Entity"]):
    """Ordered entities of one type, in row-fetch order."""

    def __init__(
        self, items: typing.Iterable["Entity"] = (), gateway: typing.Optional[QueryGateway] = None
    ) -> None:
        self._items: typing.List["Entity"] = list(items)
        self._gateway = gateway

    def _derive(self, items: typing.Iterable["Entity"]) -> "Collection":
        return Collection(items, self._gateway)

    def __iter__(self) -> typing.Iterator["Entity"]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __getitem__(self, index):
        if isinstance(index, slice):
            return self._derive(self._items[index])
        return self._items[index]

    def __repr__(self) -> str:
        return f"Collection({self._items!r})"

    def load(self, *relations: EagerLoads) -> "Collection":
        loads = eager_loads(*relations)
        if not self._items:
            return self

        # members share a type, so any of them knows the relation
        representative = self._items[0]
        for name, constraint in loads.items():
            query = None
            if constraint is not None:
                query = RelationQuery()
                constraint(query)
            representative.resolver(name, self._gateway).eager_load(self._items, name, query)
        return self

    def all(self) -> typing.List["Entity"]:
        return list(self._items)

    def first(
        self, predicate: typing.Optional[typing.Callable[["Entity"], bool]] = None, default: typing.Any = None
    ) -> typing.Any:
        for item in self._items:
            if predicate is None or predicate(item):
                return item
        return default

    def last(
        self, predicate: typing.Optional[typing.Callable[["Entity"], bool]] = None, default: typing.Any = None
    ) -> typing.Any:
        return self.reverse().first(predicate, default)

    def map(self, function: typing.Callable[["Entity"], typing.Any]) -> typing.List[typing.Any]:
        return [function(item) for item in self._items]

    def filter(self, predicate: typing.Optional[typing.Callable[["Entity"], bool]] = None) -> "Collection":
        return self._derive(item for item in self._items if (predicate(item) if predicate else item))

    def pluck(self, value: str, key: typing.Optional[str] = None) -> typing.Union[list, dict]:
        if key is None:
            return [item.get_attribute(value) for item in self._items]
        return {item.get_attribute(key): item.get_attribute(value) for item in self._items}

    def chunk(self, size: int) -> typing.List["Collection"]:
        if size < 1:
            return []
        return [self._derive(self._items[start : start + size]) for start in range(0, len(self._items), size)]

    def reverse(self) -> "Collection":
        return self._derive(reversed(self._items))

    def sort_by(
        self, key: typing.Union[str, typing.Callable[["Entity"], typing.Any]], descending: bool = False
    ) -> "Collection":
        if isinstance(key, str):
            attribute = key
            key = lambda item: item.get_attribute(attribute)  # noqa: E731
        return self._derive(sorted(self._items, key=key, reverse=descending))

    def unique(self, key: typing.Optional[str] = None) -> "Collection":
        seen: typing.Set[typing.Any] = set()
        items = []
        for item in self._items:
            marker = item.get_attribute(key) if key else id(item)
            if marker not in seen:
                seen.add(marker)
                items.append(item)
        return self._derive(items)

    def sum(self, key: typing.Union[str, typing.Callable[["Entity"], typing.Any]]) -> typing.Any:
        if isinstance(key, str):
            return sum(item.get_attribute(key) or 0 for item in self._items)
        return sum(key(item) for item in self._items)

    def contains(self, key: str, value: typing.Any) -> bool:
        return any(item.get_attribute(key) == value for item in self._items)

    def is_empty(self) -> bool:
        return not self._items

    def to_list(self) -> typing.List[typing.Dict[str, typing.Any]]:
        return [item.to_dict() for item in self._items]

    def to_json(self, **kwargs: typing.Any) -> str:
        return json.dumps(self.to_list(), default=str, **kwargs)
