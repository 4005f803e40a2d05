import typing
import uuid
from datetime import datetime
from functools import singledispatch

from entity_orm.timestamps import format_timestamp


@singledispatch
def to_storage(argument: typing.Any) -> typing.Any:
    return argument


@to_storage.register(uuid.UUID)
def _(argument: uuid.UUID) -> str:
    return str(argument)


@to_storage.register(datetime)
def _(argument: datetime) -> str:
    return format_timestamp(argument)
