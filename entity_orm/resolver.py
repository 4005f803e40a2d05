import abc
import functools
import logging
import typing
from collections import defaultdict

import attr

from entity_orm import statements, timestamps
from entity_orm.collection import Collection
from entity_orm.errors import GatewayNotBound
from entity_orm.gateway import QueryGateway, ResultHandle, Row
from entity_orm.hydrator import PIVOT_PREFIX, Hydrator
from entity_orm.relation_query import RelationQuery
from entity_orm.relations import BelongsTo, BelongsToMany, HasOne, Relation
from entity_orm.statements import Clause, Statement

if typing.TYPE_CHECKING:
    from entity_orm.entity import Entity

logger = logging.getLogger(__name__)

RelationValue = typing.Union["Entity", Collection, None]


def _distinct(values: typing.Iterable[typing.Any]) -> typing.List[typing.Any]:
    return list(dict.fromkeys(value for value in values if value is not None))


def _group_key(value: typing.Any) -> typing.Any:
    # the database compares 1 and "1" as equal, so grouping does too
    return None if value is None else str(value)


class RelationResolver(abc.ABC):
    """Resolves one relation for a single owner or for a batch of owners.

    Batch mode always issues its full query count (one query, two for
    many-to-many) for a non-empty batch and leaves a cache entry on every
    owner, so a later access never goes back to the gateway. Result order is
    whatever the gateway returns unless a ``RelationQuery`` orders it.
    """

    def __init__(self, relation: Relation, gateway: typing.Optional[QueryGateway]) -> None:
        self.relation = relation
        self.gateway = gateway
        self.related = relation.related_type
        self.hydrator = Hydrator(self.related, gateway)

    def empty(self) -> RelationValue:
        if self.relation.many:
            return Collection((), self.gateway)
        return None

    @abc.abstractmethod
    def get(self, owner: "Entity", query: typing.Optional[RelationQuery] = None) -> RelationValue:
        pass

    @abc.abstractmethod
    def count(self, owner: "Entity", query: typing.Optional[RelationQuery] = None) -> int:
        pass

    @abc.abstractmethod
    def eager_load(
        self, owners: typing.Sequence["Entity"], name: str, query: typing.Optional[RelationQuery] = None
    ) -> None:
        pass

    def _query(self, statement: Statement) -> ResultHandle:
        if self.gateway is None:
            raise GatewayNotBound(f"Resolving {self.relation.owner.__name__}.{self.relation.name} needs a gateway")
        return self.gateway.execute(statement)

    def _constraints(self, query: typing.Optional[RelationQuery]) -> typing.List[Clause]:
        table = self.related.table_name
        scope = self.related.deletion_policy.scope(table)
        return [*scope, *(query.clauses(table) if query is not None else [])]

    def _options(self, query: typing.Optional[RelationQuery]) -> typing.Dict[str, typing.Any]:
        return query.options(self.related.table_name) if query is not None else {}

    def _fetch_in(
        self,
        table: str,
        column: str,
        keys: typing.Sequence[typing.Any],
        clauses: typing.Sequence[Clause] = (),
        **options: typing.Any,
    ) -> typing.List[Row]:
        return self._query(statements.select(table, [statements.is_in(column, keys), *clauses], **options)).fetch_all()


class KeyedResolver(RelationResolver):
    """Relations matched by comparing one owner column with one related column."""

    @property
    @abc.abstractmethod
    def owner_column(self) -> str:
        pass

    @property
    @abc.abstractmethod
    def related_column(self) -> str:
        pass

    def _clauses(self, value: typing.Any, query: typing.Optional[RelationQuery]) -> typing.List[Clause]:
        return [statements.compare(self.related_column, "=", value), *self._constraints(query)]

    def get(self, owner: "Entity", query: typing.Optional[RelationQuery] = None) -> RelationValue:
        value = owner.attributes.get(self.owner_column)
        if value is None:
            return self.empty()

        table = self.related.table_name
        options = self._options(query)
        if self.relation.many:
            rows = self._query(statements.select(table, self._clauses(value, query), **options)).fetch_all()
            return self.hydrator.hydrate_many(rows, apply_defaults=False)

        options["limit"] = 1
        row = self._query(statements.select(table, self._clauses(value, query), **options)).fetch()
        return None if row is None else self.hydrator.hydrate_one(row)

    def count(self, owner: "Entity", query: typing.Optional[RelationQuery] = None) -> int:
        value = owner.attributes.get(self.owner_column)
        if value is None:
            return 0
        row = self._query(statements.count(self.related.table_name, self._clauses(value, query))).fetch()
        return int(row["aggregate"]) if row else 0

    def eager_load(
        self, owners: typing.Sequence["Entity"], name: str, query: typing.Optional[RelationQuery] = None
    ) -> None:
        if not owners:
            return

        keys = _distinct(owner.attributes.get(self.owner_column) for owner in owners)
        logger.debug(
            "Eager loading %s.%s for %d owners (%d keys)", self.relation.owner.__name__, name, len(owners), len(keys)
        )
        rows = self._fetch_in(
            self.related.table_name, self.related_column, keys, self._constraints(query), **self._options(query)
        )

        grouped: typing.DefaultDict[typing.Any, typing.List["Entity"]] = defaultdict(list)
        for entity in self.hydrator.hydrate_many(rows, apply_defaults=False):
            grouped[_group_key(entity.attributes.get(self.related_column))].append(entity)

        for owner in owners:
            matches = grouped.get(_group_key(owner.attributes.get(self.owner_column)), [])
            if self.relation.many:
                owner.relation_cache[name] = Collection(matches, self.gateway)
            else:
                owner.relation_cache[name] = matches[0] if matches else None


class HasOneResolver(KeyedResolver):
    relation: HasOne

    @property
    def owner_column(self) -> str:
        return self.relation.resolved_local_key

    @property
    def related_column(self) -> str:
        return self.relation.resolved_foreign_key

    def create(self, owner: "Entity", attributes: typing.Mapping[str, typing.Any]) -> typing.Optional["Entity"]:
        attributes = {**attributes, self.related_column: owner.attributes.get(self.owner_column)}
        return self.related.query(self.gateway).create(attributes)

    def save(self, owner: "Entity", entity: "Entity") -> typing.Optional["Entity"]:
        entity.set_attribute(self.related_column, owner.attributes.get(self.owner_column))
        repository = type(entity).query(self.gateway)
        if entity.exists:
            return repository.update(entity.attributes[entity.primary_key], entity.attributes)
        return repository.create(entity.attributes)


class HasManyResolver(HasOneResolver):
    def create_many(
        self, owner: "Entity", records: typing.Iterable[typing.Mapping[str, typing.Any]]
    ) -> Collection:
        return Collection((self.create(owner, record) for record in records), self.gateway)

    def save_many(self, owner: "Entity", entities: typing.Iterable["Entity"]) -> Collection:
        return Collection((self.save(owner, entity) for entity in entities), self.gateway)


class BelongsToResolver(KeyedResolver):
    relation: BelongsTo

    @property
    def owner_column(self) -> str:
        return self.relation.resolved_foreign_key

    @property
    def related_column(self) -> str:
        return self.relation.resolved_owner_key

    def associate(self, owner: "Entity", related: typing.Optional["Entity"]) -> "Entity":
        key = None if related is None else related.attributes.get(self.related_column)
        owner.set_attribute(self.owner_column, key)
        owner.relation_cache[self.relation.name] = related
        return owner

    def dissociate(self, owner: "Entity") -> "Entity":
        return self.associate(owner, None)


class BelongsToManyResolver(RelationResolver):
    relation: BelongsToMany

    @property
    def pivot_table(self) -> str:
        return self.relation.resolved_pivot_table

    @property
    def owner_pivot_key(self) -> str:
        return self.relation.resolved_owner_pivot_key

    @property
    def related_pivot_key(self) -> str:
        return self.relation.resolved_related_pivot_key

    def _owner_key(self, owner: "Entity") -> typing.Any:
        return owner.attributes.get(self.relation.owner.primary_key)

    def _joined(
        self,
        selection: str,
        selection_params: typing.Sequence[typing.Any],
        owner_key: typing.Any,
        query: typing.Optional[RelationQuery],
    ) -> Statement:
        """The related table joined to the pivot rows of one owner."""
        table = self.related.table_name
        related_key = f"{table}.{self.related.primary_key}"
        pivot_key = f"{self.pivot_table}.{self.related_pivot_key}"
        params = [*selection_params, table, self.pivot_table, related_key, pivot_key]
        owner_clause = statements.compare(f"{self.pivot_table}.{self.owner_pivot_key}", "=", owner_key)
        condition, condition_params = statements.where([owner_clause, *self._constraints(query)])
        template = f"SELECT {selection} FROM ?name INNER JOIN ?name ON ?name = ?name{condition}"
        return template, (*params, *condition_params)

    def get(self, owner: "Entity", query: typing.Optional[RelationQuery] = None) -> Collection:
        owner_key = self._owner_key(owner)
        if owner_key is None:
            return self.empty()

        columns = ["?name.*"]
        params: typing.List[typing.Any] = [self.related.table_name]
        for key in self.relation.pivot_keys:
            columns.append("?name AS ?name")
            params.extend([f"{self.pivot_table}.{key}", f"{PIVOT_PREFIX}{key}"])

        template, joined_params = self._joined(", ".join(columns), params, owner_key, query)
        tail, tail_params = statements.modifiers(**self._options(query))
        rows = self._query((template + tail, (*joined_params, *tail_params))).fetch_all()
        return Collection((self.hydrator.hydrate_pivoted(row) for row in rows), self.gateway)

    def count(self, owner: "Entity", query: typing.Optional[RelationQuery] = None) -> int:
        owner_key = self._owner_key(owner)
        if owner_key is None:
            return 0
        row = self._query(self._joined("COUNT(*) AS ?name", ["aggregate"], owner_key, query)).fetch()
        return int(row["aggregate"]) if row else 0

    def eager_load(
        self, owners: typing.Sequence["Entity"], name: str, query: typing.Optional[RelationQuery] = None
    ) -> None:
        if not owners:
            return

        keys = _distinct(self._owner_key(owner) for owner in owners)
        logger.debug(
            "Eager loading %s.%s through %s for %d owners (%d keys)",
            self.relation.owner.__name__,
            name,
            self.pivot_table,
            len(owners),
            len(keys),
        )
        pivot_rows = self._fetch_in(self.pivot_table, self.owner_pivot_key, keys)
        related_ids = _distinct(row.get(self.related_pivot_key) for row in pivot_rows)
        related_rows = self._fetch_in(
            self.related.table_name,
            self.related.primary_key,
            related_ids,
            self._constraints(query),
            **self._options(query),
        )

        pivots_by_related: typing.DefaultDict[typing.Any, typing.List[Row]] = defaultdict(list)
        for pivot_row in pivot_rows:
            pivots_by_related[_group_key(pivot_row.get(self.related_pivot_key))].append(pivot_row)

        grouped: typing.DefaultDict[typing.Any, typing.List["Entity"]] = defaultdict(list)
        # related row order first, so an ordering constraint holds per owner
        for row in related_rows:
            for pivot_row in pivots_by_related.get(_group_key(row.get(self.related.primary_key)), []):
                # one instance per pivot row, each carrying its own pivot data
                entity = self.hydrator.hydrate_one(row)
                entity.pivot = {key: pivot_row.get(key) for key in self.relation.pivot_keys}
                grouped[_group_key(pivot_row.get(self.owner_pivot_key))].append(entity)

        for owner in owners:
            owner.relation_cache[name] = Collection(grouped.get(_group_key(self._owner_key(owner)), []), self.gateway)

    def attach(
        self,
        owner: "Entity",
        related_id: typing.Any,
        attributes: typing.Optional[typing.Mapping[str, typing.Any]] = None,
    ) -> None:
        record = {self.owner_pivot_key: self._owner_key(owner), self.related_pivot_key: related_id}
        if self.relation.with_timestamps:
            now = timestamps.now()
            record.update(created_at=now, updated_at=now)
        record.update(attributes or {})
        self._query(statements.insert(self.pivot_table, record))

    def detach(self, owner: "Entity", related_ids: typing.Optional[typing.Iterable[typing.Any]] = None) -> None:
        clauses = [statements.compare(self.owner_pivot_key, "=", self._owner_key(owner))]
        if related_ids is not None:
            related_ids = list(related_ids)
            if not related_ids:
                return
            clauses.append(statements.is_in(self.related_pivot_key, related_ids))
        self._query(statements.delete(self.pivot_table, clauses))

    def related_ids(self, owner: "Entity") -> typing.List[typing.Any]:
        clauses = [statements.compare(self.owner_pivot_key, "=", self._owner_key(owner))]
        rows = self._query(statements.select(self.pivot_table, clauses)).fetch_all()
        return [row.get(self.related_pivot_key) for row in rows]

    def sync(self, owner: "Entity", related_ids: typing.Iterable[typing.Any]) -> typing.Dict[str, list]:
        wanted = list(dict.fromkeys(related_ids))
        current = self.related_ids(owner)
        detached = [related_id for related_id in current if related_id not in wanted]
        attached = [related_id for related_id in wanted if related_id not in current]
        self._apply(owner, attached, detached)
        return {"attached": attached, "detached": detached}

    def toggle(self, owner: "Entity", related_ids: typing.Iterable[typing.Any]) -> typing.Dict[str, list]:
        wanted = list(dict.fromkeys(related_ids))
        current = self.related_ids(owner)
        detached = [related_id for related_id in wanted if related_id in current]
        attached = [related_id for related_id in wanted if related_id not in current]
        self._apply(owner, attached, detached)
        return {"attached": attached, "detached": detached}

    def _apply(self, owner: "Entity", attached: typing.List[typing.Any], detached: typing.List[typing.Any]) -> None:
        if detached:
            self.detach(owner, detached)
        for related_id in attached:
            self.attach(owner, related_id)


@functools.singledispatch
def resolver_for(relation: Relation, gateway: typing.Optional[QueryGateway]) -> RelationResolver:
    raise TypeError(f"Unsupported relation - {relation!r}")


@resolver_for.register(HasOne)
def _(relation: HasOne, gateway: typing.Optional[QueryGateway]) -> RelationResolver:
    return HasManyResolver(relation, gateway) if relation.many else HasOneResolver(relation, gateway)


@resolver_for.register(BelongsTo)
def _(relation: BelongsTo, gateway: typing.Optional[QueryGateway]) -> RelationResolver:
    return BelongsToResolver(relation, gateway)


@resolver_for.register(BelongsToMany)
def _(relation: BelongsToMany, gateway: typing.Optional[QueryGateway]) -> RelationResolver:
    return BelongsToManyResolver(relation, gateway)


@attr.s(auto_attribs=True)
class BoundRelation:
    """A resolver with its owner filled in.

    Writes go straight to the resolver (``user.relation("roles").attach(3)``).
    Query builder calls collect into ``query`` and chain, and the reads
    (``get``, ``first``, ``find``, ``count``, ``exists``) run with them::

        user.relation("posts").where("title", "like", "E%").order_by("id", "desc").first()

    Reads through a bound relation never touch the owner's relation cache.
    """

    resolver: RelationResolver
    owner: "Entity"
    query: RelationQuery = attr.Factory(RelationQuery)

    def get(self) -> RelationValue:
        return self.resolver.get(self.owner, self.query)

    def first(self) -> typing.Optional["Entity"]:
        if not self.resolver.relation.many:
            return self.get()
        return self.resolver.get(self.owner, self.query.copy().limit(1)).first()

    def find(self, identity: typing.Any) -> typing.Optional["Entity"]:
        constrained = attr.evolve(self, query=self.query.copy().where(self.resolver.related.primary_key, "=", identity))
        return constrained.first()

    def count(self) -> int:
        return self.resolver.count(self.owner, self.query)

    def exists(self) -> bool:
        return self.count() > 0

    def _constrain(self, method: str, *args: typing.Any, **kwargs: typing.Any) -> "BoundRelation":
        getattr(self.query, method)(*args, **kwargs)
        return self

    def __getattr__(self, name: str) -> typing.Callable:
        if name.startswith("_") or name in ("resolver", "owner", "query"):
            raise AttributeError(name)
        if name in RelationQuery.BUILDERS:
            return functools.partial(self._constrain, name)
        return functools.partial(getattr(self.resolver, name), self.owner)
