import abc
import json
import logging
import typing
from datetime import datetime

from entity_orm import statements
from entity_orm.collection import Collection, EagerLoads
from entity_orm.deletion import DeletionPolicy, HardDelete
from entity_orm.errors import GatewayNotBound, RelationShadowsAttribute, UnknownRelation
from entity_orm.gateway import QueryGateway
from entity_orm.pagination import Paginator
from entity_orm.registry import Registry, default_registry
from entity_orm.relations import Relation, table_name_for
from entity_orm.repository import Repository
from entity_orm.resolver import BoundRelation, RelationResolver, RelationValue, resolver_for
from entity_orm.timestamps import format_timestamp, now

logger = logging.getLogger(__name__)

INTERNAL_ATTRIBUTES = frozenset({"attributes", "relation_cache", "exists", "gateway", "pivot"})


class EntityMeta(abc.ABCMeta):
    """Turns relation descriptors declared in a class body into the ``__relations__`` registry."""

    def __new__(mcs, name: str, bases: tuple, namespace: dict) -> typing.Type:
        declared = {key: value for key, value in namespace.items() if isinstance(value, Relation)}
        for key in declared:
            del namespace[key]
        cls = super().__new__(mcs, name, bases, namespace)

        relations: typing.Dict[str, Relation] = {}
        for base in reversed(cls.__mro__[1:]):
            relations.update(getattr(base, "__relations__", {}))
        relations.update(declared)
        for relation_name in relations:
            if relation_name in INTERNAL_ATTRIBUTES or hasattr(cls, relation_name):
                raise RelationShadowsAttribute(f"Relation {name}.{relation_name} shadows an entity attribute")
        cls.__relations__ = {key: relation.bind(cls, key) for key, relation in relations.items()}

        cls.fillable = frozenset(cls.fillable)
        cls.hidden = frozenset(cls.hidden)
        cls.eager_load = tuple(cls.eager_load)

        if namespace.get("__abstract__"):
            return cls
        if not namespace.get("table_name"):
            cls.table_name = table_name_for(cls)
        cls.registry.register(cls)
        return cls


class Entity(metaclass=EntityMeta):
    """One persisted row: an attribute bag plus lazily resolved relations.

    Subclasses configure themselves with class attributes and declare
    relations as descriptors::

        class Post(Entity):
            fillable = ("title", "body")
            user = BelongsTo("User")
            comments = HasMany("Comment")
    """

    __abstract__ = True
    __relations__: typing.Dict[str, Relation] = {}

    registry: Registry = default_registry
    table_name: str = ""
    primary_key: str = "id"
    fillable: typing.FrozenSet[str] = frozenset()
    hidden: typing.FrozenSet[str] = frozenset()
    eager_load: typing.Tuple[str, ...] = ()
    timestamps: bool = True
    created_at_column: str = "created_at"
    updated_at_column: str = "updated_at"
    deletion_policy: DeletionPolicy = HardDelete()

    def __init__(
        self,
        attributes: typing.Optional[typing.Mapping[str, typing.Any]] = None,
        gateway: typing.Optional[QueryGateway] = None,
    ) -> None:
        self.gateway = gateway
        self.attributes: typing.Dict[str, typing.Any] = {}
        self.relation_cache: typing.Dict[str, RelationValue] = {}
        self.exists = False
        self.pivot: typing.Optional[typing.Dict[str, typing.Any]] = None
        self.fill(attributes or {})

    def __getattr__(self, name: str) -> typing.Any:
        if name.startswith("_") or name in INTERNAL_ATTRIBUTES:
            raise AttributeError(name)
        return self.get_attribute(name)

    def __setattr__(self, name: str, value: typing.Any) -> None:
        if name.startswith("_") or name in INTERNAL_ATTRIBUTES or hasattr(type(self), name):
            object.__setattr__(self, name, value)
        else:
            self.set_attribute(name, value)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.primary_key}={self.attributes.get(self.primary_key)!r}>"

    def fill(self, attributes: typing.Mapping[str, typing.Any]) -> "Entity":
        self.attributes.update(attributes)
        return self

    def get_attribute(self, name: str) -> typing.Any:
        if name in self.relation_cache:
            return self.relation_cache[name]
        if name in type(self).__relations__:
            value = self.resolver(name).get(self)
            self.relation_cache[name] = value
            return value
        return self.attributes.get(name)

    def set_attribute(self, name: str, value: typing.Any) -> None:
        self.attributes[name] = value

    def resolver(self, name: str, gateway: typing.Optional[QueryGateway] = None) -> RelationResolver:
        try:
            relation = type(self).__relations__[name]
        except KeyError:
            raise UnknownRelation(f"{type(self).__name__} has no relation named {name!r}") from None
        return resolver_for(relation, gateway if gateway is not None else self.gateway)

    def relation(self, name: str) -> BoundRelation:
        return BoundRelation(self.resolver(name), self)

    @classmethod
    def filter_fillable(cls, attributes: typing.Mapping[str, typing.Any]) -> typing.Dict[str, typing.Any]:
        if not cls.fillable:
            return dict(attributes)
        return {key: value for key, value in attributes.items() if key in cls.fillable}

    def _touch(self, values: typing.Dict[str, typing.Any], column: str, timestamp: str) -> None:
        values[column] = timestamp
        self.attributes[column] = timestamp

    def save(self) -> "Entity":
        if self.gateway is None:
            raise GatewayNotBound(f"Cannot save {self!r} without a gateway")

        values = self.filter_fillable(self.attributes)
        timestamp = now()
        if self.exists:
            identity = self.attributes[self.primary_key]
            values.pop(self.primary_key, None)
            if self.timestamps:
                self._touch(values, self.updated_at_column, timestamp)
            if values:
                key = [statements.compare(self.primary_key, "=", identity)]
                self.gateway.execute(statements.update(self.table_name, values, key))
            logger.debug("Updated %s %s=%r", self.table_name, self.primary_key, identity)
        else:
            if self.timestamps:
                self._touch(values, self.created_at_column, timestamp)
                self._touch(values, self.updated_at_column, timestamp)
            # a key set before the first save is an explicit key for the INSERT
            identity = self.attributes.get(self.primary_key)
            if identity is not None:
                values[self.primary_key] = identity
            self.gateway.execute(statements.insert(self.table_name, values))
            self.attributes[self.primary_key] = identity if identity is not None else self.gateway.get_insert_id()
            self.exists = True
            logger.debug("Inserted %s %s=%r", self.table_name, self.primary_key, self.attributes[self.primary_key])
        return self

    def destroy(self) -> bool:
        if not self.exists:
            return False
        identity = self.attributes.get(self.primary_key)
        if identity is None:
            return False

        type(self).query(self.gateway).delete(identity)
        self.exists = False
        del self.attributes[self.primary_key]
        logger.debug("Destroyed %s %s=%r", self.table_name, self.primary_key, identity)
        return True

    @classmethod
    def query(cls, gateway: QueryGateway) -> Repository:
        return Repository(cls, gateway)

    @classmethod
    def find(cls, gateway: QueryGateway, identity: typing.Any) -> typing.Optional["Entity"]:
        return cls.query(gateway).find(identity)

    @classmethod
    def all(cls, gateway: QueryGateway) -> Collection:
        return cls.query(gateway).all()

    @classmethod
    def where(cls, gateway: QueryGateway, column: str, *args: typing.Any) -> Collection:
        return cls.query(gateway).where(column, *args)

    @classmethod
    def where_in(cls, gateway: QueryGateway, column: str, values: typing.Iterable[typing.Any]) -> Collection:
        return cls.query(gateway).where_in(column, values)

    @classmethod
    def with_(cls, gateway: QueryGateway, *relations: EagerLoads) -> Repository:
        return cls.query(gateway).with_(*relations)

    @classmethod
    def paginate(cls, gateway: QueryGateway, per_page: int = 15, page: int = 1) -> Paginator:
        return cls.query(gateway).paginate(per_page, page)

    @classmethod
    def create(cls, gateway: QueryGateway, attributes: typing.Mapping[str, typing.Any]) -> typing.Optional["Entity"]:
        return cls.query(gateway).create(attributes)

    @classmethod
    def update(
        cls, gateway: QueryGateway, identity: typing.Any, attributes: typing.Mapping[str, typing.Any]
    ) -> typing.Optional["Entity"]:
        return cls.query(gateway).update(identity, attributes)

    @classmethod
    def delete(cls, gateway: QueryGateway, identity: typing.Any) -> None:
        cls.query(gateway).delete(identity)

    def to_dict(self) -> typing.Dict[str, typing.Any]:
        data = {key: _serialize(value) for key, value in self.attributes.items()}
        for name, value in self.relation_cache.items():
            data[name] = _serialize(value)
        if self.pivot is not None:
            data["pivot"] = {key: _serialize(value) for key, value in self.pivot.items()}
        # nested entities apply their own hidden set
        for name in self.hidden:
            data.pop(name, None)
        return data

    def to_json(self, **kwargs: typing.Any) -> str:
        return json.dumps(self.to_dict(), default=str, **kwargs)


def _serialize(value: typing.Any) -> typing.Any:
    if isinstance(value, Entity):
        return value.to_dict()
    if isinstance(value, Collection):
        return value.to_list()
    if isinstance(value, datetime):
        return format_timestamp(value)
    return value
