import abc
import typing

Row = typing.Dict[str, typing.Any]


class ResultHandle(abc.ABC):
    @abc.abstractmethod
    def fetch(self) -> typing.Optional[Row]:
        pass

    @abc.abstractmethod
    def fetch_all(self) -> typing.List[Row]:
        pass


class QueryGateway(abc.ABC):
    """Executes parameterized statements.

    Templates use ``?`` for bound values and ``?name`` for identifiers (tables,
    columns, aliases), both substituted positionally from ``params``.
    """

    @abc.abstractmethod
    def query(self, template: str, *params: typing.Any) -> ResultHandle:
        pass

    @abc.abstractmethod
    def get_insert_id(self) -> typing.Any:
        pass

    def execute(self, statement: typing.Tuple[str, typing.Sequence[typing.Any]]) -> ResultHandle:
        """Runs a built ``(template, params)`` statement."""
        template, params = statement
        return self.query(template, *params)


class BufferedResult(ResultHandle):
    def __init__(self, rows: typing.Optional[typing.Iterable[Row]] = None) -> None:
        self._rows: typing.List[Row] = [dict(row) for row in rows or ()]
        self._position = 0

    def fetch(self) -> typing.Optional[Row]:
        if self._position >= len(self._rows):
            return None
        row = self._rows[self._position]
        self._position += 1
        return row

    def fetch_all(self) -> typing.List[Row]:
        rows = self._rows[self._position :]
        self._position = len(self._rows)
        return rows
