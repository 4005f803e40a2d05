import re
import typing

from sqlalchemy.engine import Dialect

from entity_orm.errors import TemplateError
from entity_orm.storages.sqlalchemy.types import to_storage

PLACEHOLDER = re.compile(r"\?name\b|\?")


def quote_identifier(identifier: str, dialect: Dialect) -> str:
    preparer = dialect.identifier_preparer
    return ".".join(preparer.quote(part) for part in str(identifier).split("."))


def compile_template(
    template: str, params: typing.Sequence[typing.Any], dialect: Dialect
) -> typing.Tuple[str, typing.Dict[str, typing.Any]]:
    """Turns a gateway template into ``text()`` SQL with named bind parameters.

    ``?name`` placeholders become dialect-quoted identifiers and ``?``
    placeholders become ``:p0``, ``:p1``... in order.
    """
    remaining = list(params)
    bind_params: typing.Dict[str, typing.Any] = {}

    def substitute(match: typing.Match) -> str:
        if not remaining:
            raise TemplateError(f"Not enough parameters for {template!r}")
        value = remaining.pop(0)
        if match.group(0) == "?name":
            return quote_identifier(value, dialect)
        key = f"p{len(bind_params)}"
        bind_params[key] = to_storage(value)
        return f":{key}"

    statement = PLACEHOLDER.sub(substitute, template)
    if remaining:
        raise TemplateError(f"{len(remaining)} unused parameters for {template!r}")
    return statement, bind_params
