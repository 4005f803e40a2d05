from typing import Dict, Type, Union

import attr

from entity_orm.errors import UnknownEntity


@attr.s(auto_attribs=True)
class Registry:
    entities: Dict[str, Type] = attr.Factory(dict)

    def register(self, entity_cls: Type) -> None:
        self.entities[entity_cls.__name__] = entity_cls

    def resolve(self, entity: Union[str, Type]) -> Type:
        if not isinstance(entity, str):
            return entity
        try:
            return self.entities[entity]
        except KeyError:
            raise UnknownEntity(f"No entity named {entity!r} is registered") from None


default_registry = Registry()
