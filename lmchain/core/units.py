"""
The unit contract and the generic units.

A unit is a single transformation step with a declared input type
and output type. Any subclass of `Unit` that implements `ainvoke` may
be composed into pipelines and parallel groups:

    ```python
    class Shout(Unit[str, str]):
        input_type = str
        output_type = str

        async def ainvoke(self, value: str) -> str:
            return value.upper()

    pipeline = template | invoker | StrOutputTransformer() | Shout()
    ```

Every unit offers four ways of being called:

- `await unit.ainvoke(value)`: the complete result
- `unit.astream(value)`: a ChunkStream of partial results
- `unit.invoke(value)`, `unit.stream(value)`: synchronous versions
    that run their own event loop

and, to take part in streaming pipelines, `atransform_stream(chunks)`,
which maps a stream of input chunks into a stream of output chunks.
The default implementation buffers the input stream (concatenates
all chunks) and then streams the result; units with `incremental`
set to True map each chunk as it arrives.

Units are stateless once constructed and may be shared by several
pipelines.

Note:
    Type compatibility between units is checked when pipelines and
    parallel groups are constructed, through `is_assignable`. The check
    is shallow: only the classes (or generic origins) are compared, not
    the type parameters. Units that declare `Any` are compatible with
    everything.
"""

import inspect
import types
from abc import ABC, abstractmethod
from collections.abc import (
    AsyncIterator,
    Awaitable,
    Callable,
    Iterator,
    Mapping,
)
from typing import Any, Generic, TypeVar, Union, get_origin

from lmchain.utils import logger as default_logger
from lmchain.utils.logging import LoggerBase

from .errors import MissingVariableError
from .stream import ChunkStream, concat_chunks, run_sync

InputT = TypeVar('InputT')
OutputT = TypeVar('OutputT')


def _union_members(tp: Any) -> tuple[Any, ...]:
    if get_origin(tp) in (Union, types.UnionType):
        return tp.__args__
    return ()


def is_assignable(source: Any, target: Any) -> bool:
    """Checks that a value of type source may be given where a value
    of type target is expected.

    Only the runtime classes are compared: dict[str, str] is assignable
    to Mapping[str, Any], str is assignable to str | list[str]. Types
    that cannot be compared (type variables, literals) are accepted.
    """
    if source is Any or target is Any or target is object:
        return True
    if source is object:
        return False

    source_members = _union_members(source)
    if source_members:
        return all(is_assignable(s, target) for s in source_members)
    target_members = _union_members(target)
    if target_members:
        return any(is_assignable(source, t) for t in target_members)

    source_class = get_origin(source) or source
    target_class = get_origin(target) or target
    if not (
        isinstance(source_class, type) and isinstance(target_class, type)
    ):
        return True
    try:
        return issubclass(source_class, target_class)
    except TypeError:
        return True


def type_name(tp: Any) -> str:
    """Readable name of a type annotation."""
    if isinstance(tp, type) and get_origin(tp) is None:
        return tp.__name__
    return str(tp).replace("typing.", "")


class Unit(ABC, Generic[InputT, OutputT]):
    """Base class of all units.

    Subclasses set the class attributes `input_type` and `output_type`
    (or the instance attributes of the same name in the constructor)
    and implement `ainvoke`. Streaming units override `_stream_chunks`;
    incremental units also override `atransform_stream` and set
    `incremental` to True.
    """

    input_type: Any = Any
    output_type: Any = Any
    incremental: bool = False

    def __init__(
        self, name: str | None = None, logger: LoggerBase | None = None
    ) -> None:
        self.name: str = name or type(self).__name__
        self.logger: LoggerBase = (
            logger if logger is not None else default_logger
        )

    # --- the contract -------------------------------------------------
    @abstractmethod
    async def ainvoke(self, value: InputT) -> OutputT:
        """Compute the complete result for value."""
        ...

    def astream(self, value: InputT) -> ChunkStream[OutputT]:
        """Stream the result for value as a sequence of chunks, whose
        concatenation equals the result of ainvoke."""
        return ChunkStream(self._stream_chunks(value), name=self.name)

    async def _stream_chunks(self, value: InputT) -> AsyncIterator[OutputT]:
        # units that do not stream deliver a single terminal chunk
        yield await self.ainvoke(value)

    async def atransform_stream(
        self, chunks: AsyncIterator[InputT]
    ) -> AsyncIterator[OutputT]:
        """Map a stream of input chunks into a stream of output chunks.
        This default implementation buffers the input."""
        value: InputT = concat_chunks([chunk async for chunk in chunks])
        stream = self.astream(value)
        try:
            async for chunk in stream:
                yield chunk
        finally:
            await stream.aclose()

    # --- synchronous interface ----------------------------------------
    def invoke(self, value: InputT) -> OutputT:
        """Synchronous ainvoke. Not to be called in a running loop."""
        return run_sync(self.ainvoke(value))

    def stream(self, value: InputT) -> Iterator[OutputT]:
        """Synchronous astream. Not to be called in a running loop."""
        return iter(self.astream(value))

    # --- composition ----------------------------------------------------
    def pipe(self, *others: Any, name: str | None = None) -> 'Unit[Any, Any]':
        """Compose this unit with others into a pipeline."""
        from .pipeline import Pipeline

        return Pipeline(self, *others, name=name, logger=self.logger)

    def __or__(self, other: Any) -> 'Unit[Any, Any]':
        from .pipeline import Pipeline

        return Pipeline.concatenate(self, coerce_to_unit(other))

    def __ror__(self, other: Any) -> 'Unit[Any, Any]':
        from .pipeline import Pipeline

        return Pipeline.concatenate(coerce_to_unit(other), self)

    def get_name(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}({self.name!r}: "
            f"{type_name(self.input_type)} -> "
            f"{type_name(self.output_type)})"
        )


class FunctionUnit(Unit[Any, Any]):
    """A unit wrapping a plain or async function of one argument."""

    def __init__(
        self,
        func: Callable[[Any], Any] | Callable[[Any], Awaitable[Any]],
        *,
        input_type: Any = Any,
        output_type: Any = Any,
        name: str | None = None,
        logger: LoggerBase | None = None,
    ) -> None:
        super().__init__(
            name or getattr(func, "__name__", None), logger
        )
        self.func = func
        self.input_type = input_type
        self.output_type = output_type

    async def ainvoke(self, value: Any) -> Any:
        result = self.func(value)
        if inspect.isawaitable(result):
            result = await result
        return result


class Passthrough(Unit[Any, Any]):
    """The identity unit. Chunks are forwarded as they arrive."""

    incremental = True

    async def ainvoke(self, value: Any) -> Any:
        return value

    async def atransform_stream(
        self, chunks: AsyncIterator[Any]
    ) -> AsyncIterator[Any]:
        async for chunk in chunks:
            yield chunk


class ItemGetter(Unit[Mapping[str, Any], Any]):
    """Selects the value of a key of the input mapping.

    Raises:
        MissingVariableError: if the key is not in the input.
    """

    input_type = Mapping[str, Any]
    incremental = True

    def __init__(
        self,
        key: str,
        *,
        output_type: Any = Any,
        name: str | None = None,
        logger: LoggerBase | None = None,
    ) -> None:
        super().__init__(name or f"ItemGetter[{key}]", logger)
        self.key = key
        self.output_type = output_type

    async def ainvoke(self, value: Mapping[str, Any]) -> Any:
        if self.key not in value:
            raise MissingVariableError([self.key], self.name)
        return value[self.key]

    async def atransform_stream(
        self, chunks: AsyncIterator[Mapping[str, Any]]
    ) -> AsyncIterator[Any]:
        found = False
        async for chunk in chunks:
            if self.key in chunk:
                found = True
                yield chunk[self.key]
        if not found:
            raise MissingVariableError([self.key], self.name)


def coerce_to_unit(obj: Any) -> Unit[Any, Any]:
    """Converts obj into a unit: units are returned as they are,
    mappings become parallel groups, callables function units.

    Raises:
        TypeError: for objects that cannot be converted.
    """
    if isinstance(obj, Unit):
        return obj  # type: ignore
    if isinstance(obj, Mapping):
        from .parallel import ParallelGroup

        return ParallelGroup(obj)  # type: ignore
    if callable(obj):
        return FunctionUnit(obj)
    raise TypeError(
        f"Expected a Unit, a mapping or a callable, got "
        f"{type(obj).__name__}"
    )
