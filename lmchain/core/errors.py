"""
Exceptions raised by units, pipelines and parallel groups.

Errors are never swallowed at a unit boundary. A pipeline aborts at
the first failing unit and re-raises that unit's exception unchanged;
a parallel group waits for all its children and reports every failing
key at once. There is no automatic retry: retry policies, if any, wrap
`invoke`/`stream` at the caller's level.

    LMChainError
    ├── MissingVariableError      (also a KeyError)
    ├── RemoteInvocationError
    ├── AggregateChildError
    ├── StreamInterruptedError
    └── IncompatibleUnitsError    (also a TypeError)
"""

from collections.abc import Iterable, Mapping


class LMChainError(Exception):
    """Base class of all errors raised by the runtime."""


class MissingVariableError(LMChainError, KeyError):
    """A template placeholder has no corresponding variable.

    Attributes:
        missing: the names of all the missing variables.
    """

    def __init__(self, missing: Iterable[str], source: str = "") -> None:
        self.missing: frozenset[str] = frozenset(missing)
        self.source = source
        super().__init__(self._message())

    def _message(self) -> str:
        names = ", ".join(sorted(self.missing))
        where = f" in {self.source}" if self.source else ""
        return f"Missing variables{where}: {names}"

    # KeyError formats its argument with repr(), we want the text.
    def __str__(self) -> str:
        return self._message()


class RemoteInvocationError(LMChainError):
    """A call to a remote service (language model, vector store)
    failed. The original exception is chained as __cause__.

    Attributes:
        unit_name: the name of the unit whose call failed.
    """

    def __init__(self, unit_name: str, message: str) -> None:
        self.unit_name = unit_name
        super().__init__(f"{unit_name}: {message}")


class AggregateChildError(LMChainError):
    """One or more children of a parallel group failed.

    Attributes:
        errors: a dictionary mapping the key of each failed child to
            the exception it raised.
    """

    def __init__(
        self, group_name: str, errors: Mapping[str, BaseException]
    ) -> None:
        self.group_name = group_name
        self.errors: dict[str, BaseException] = dict(errors)
        details = "; ".join(
            f"{key}: {type(err).__name__}: {err}"
            for key, err in self.errors.items()
        )
        super().__init__(
            f"{group_name}: {len(self.errors)} child(ren) failed "
            f"({details})"
        )

    @property
    def keys(self) -> list[str]:
        """The keys of the failed children."""
        return list(self.errors.keys())


class StreamInterruptedError(LMChainError):
    """A chunk stream terminated abnormally after delivering some
    chunks. The original exception is chained as __cause__.

    Attributes:
        unit_name: the name of the streaming unit.
        chunks_delivered: number of chunks yielded before the failure.
    """

    def __init__(
        self, unit_name: str, chunks_delivered: int, message: str = ""
    ) -> None:
        self.unit_name = unit_name
        self.chunks_delivered = chunks_delivered
        text = (
            f"{unit_name}: stream interrupted after "
            f"{chunks_delivered} chunk(s)"
        )
        if message:
            text += f": {message}"
        super().__init__(text)


class IncompatibleUnitsError(LMChainError, TypeError):
    """The output type of a unit cannot be fed into the input of the
    unit that follows it (or a group child does not accept the input
    type of the group)."""
