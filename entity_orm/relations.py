import typing

import attr
import inflection

EntityRef = typing.Union[str, typing.Type]


def _type_name(entity: EntityRef) -> str:
    return entity if isinstance(entity, str) else entity.__name__


def table_name_for(entity: EntityRef) -> str:
    return inflection.pluralize(inflection.underscore(_type_name(entity)))


def foreign_key_for(entity: EntityRef) -> str:
    return f"{inflection.singularize(_type_name(entity)).lower()}_id"


def pivot_table_for(first: EntityRef, second: EntityRef) -> str:
    names = sorted(inflection.singularize(_type_name(entity)).lower() for entity in (first, second))
    return "_".join(names)


@attr.s(auto_attribs=True)
class Relation:
    related: EntityRef
    owner: typing.Optional[typing.Type] = attr.ib(default=None, kw_only=True)
    name: typing.Optional[str] = attr.ib(default=None, kw_only=True)

    many: typing.ClassVar[bool] = False

    def bind(self, owner: typing.Type, name: str) -> "Relation":
        return attr.evolve(self, owner=owner, name=name)

    @property
    def related_type(self) -> typing.Type:
        return self.owner.registry.resolve(self.related)


@attr.s(auto_attribs=True)
class HasOne(Relation):
    foreign_key: typing.Optional[str] = None
    local_key: typing.Optional[str] = None

    @property
    def resolved_foreign_key(self) -> str:
        return self.foreign_key or foreign_key_for(self.owner)

    @property
    def resolved_local_key(self) -> str:
        return self.local_key or self.owner.primary_key


@attr.s(auto_attribs=True)
class HasMany(HasOne):
    many = True


@attr.s(auto_attribs=True)
class BelongsTo(Relation):
    foreign_key: typing.Optional[str] = None
    owner_key: typing.Optional[str] = None

    @property
    def resolved_foreign_key(self) -> str:
        return self.foreign_key or foreign_key_for(self.related)

    @property
    def resolved_owner_key(self) -> str:
        return self.owner_key or self.related_type.primary_key


@attr.s(auto_attribs=True)
class BelongsToMany(Relation):
    pivot_table: typing.Optional[str] = None
    owner_pivot_key: typing.Optional[str] = None
    related_pivot_key: typing.Optional[str] = None
    pivot_columns: typing.Tuple[str, ...] = attr.ib(default=(), converter=tuple)
    with_timestamps: bool = False

    many = True

    @property
    def resolved_pivot_table(self) -> str:
        return self.pivot_table or pivot_table_for(self.owner, self.related)

    @property
    def resolved_owner_pivot_key(self) -> str:
        return self.owner_pivot_key or foreign_key_for(self.owner)

    @property
    def resolved_related_pivot_key(self) -> str:
        return self.related_pivot_key or foreign_key_for(self.related)

    @property
    def pivot_keys(self) -> typing.Tuple[str, ...]:
        keys = (self.resolved_owner_pivot_key, self.resolved_related_pivot_key, *self.pivot_columns)
        if self.with_timestamps:
            keys += ("created_at", "updated_at")
        return tuple(dict.fromkeys(keys))
