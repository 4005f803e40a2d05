import logging

from entity_orm.collection import Collection
from entity_orm.deletion import HardDelete, SoftDelete
from entity_orm.entity import Entity
from entity_orm.gateway import QueryGateway, ResultHandle
from entity_orm.registry import Registry
from entity_orm.relation_query import RelationQuery
from entity_orm.relations import BelongsTo, BelongsToMany, HasMany, HasOne
from entity_orm.repository import Repository

__all__ = [
    "BelongsTo",
    "BelongsToMany",
    "Collection",
    "Entity",
    "HardDelete",
    "HasMany",
    "HasOne",
    "QueryGateway",
    "Registry",
    "RelationQuery",
    "Repository",
    "ResultHandle",
    "SoftDelete",
]

logging.getLogger(__name__).addHandler(logging.NullHandler())
