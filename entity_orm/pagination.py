import math
import typing

import attr

from entity_orm.collection import Collection


@attr.s(auto_attribs=True)
class Paginator:
    items: Collection
    total: int
    per_page: int = 15
    current_page: int = 1

    @property
    def last_page(self) -> int:
        return max(math.ceil(self.total / self.per_page), 1)

    @property
    def has_more_pages(self) -> bool:
        return self.current_page < self.last_page

    def to_dict(self) -> typing.Dict[str, typing.Any]:
        return {
            "data": self.items.to_list(),
            "total": self.total,
            "per_page": self.per_page,
            "current_page": self.current_page,
            "last_page": self.last_page,
        }
