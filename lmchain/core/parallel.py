"""
Parallel groups: fan-out of one input to named child units, with
fan-in of their results into a dictionary.

    ```python
    group = ParallelGroup({
        'names': name_chain,
        'final_criteria': ItemGetter('final_criteria'),
    })
    result = await group.ainvoke({
        'product': "wooden cars",
        'final_criteria': "sustainability",
    })
    # {'names': "...", 'final_criteria': "sustainability"}
    ```

All children are scheduled on the running event loop before any of
them is awaited, so that their remote calls are in flight at the same
time. The group completes when every child has completed.

The group is all-or-nothing: if any child fails, the others are still
awaited, and then AggregateChildError is raised with all the failing
keys; no partial dictionary is returned. Cancelling the group cancels
all its children.

When streaming, each chunk is a dictionary with a single key, the
key of the child that produced it. The chunks of a child are in
production order; no order is defined among children.
"""

import asyncio
from collections.abc import AsyncIterator, Mapping
from typing import Any

from lmchain.utils.logging import LoggerBase

from .errors import AggregateChildError, IncompatibleUnitsError
from .units import Unit, coerce_to_unit, is_assignable, type_name

_DONE: Any = object()


async def _cancel_all(tasks: list['asyncio.Future[Any]']) -> None:
    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)


class ParallelGroup(Unit[Any, dict[str, Any]]):
    """Invokes child units concurrently with the same input.

    Args:
        steps: a mapping from result key to child unit (mappings and
            callables are converted with coerce_to_unit). Further
            children may be given as keyword arguments.
        input_type: the input type of the group. If not given, the
            first child input type that is not Any is used.
        name: the name of the group
        logger: failing keys are reported here

    Raises:
        ValueError: for empty groups or invalid keys.
        IncompatibleUnitsError: if a child does not accept the input
            type of the group.
    """

    output_type = dict[str, Any]

    def __init__(
        self,
        steps: Mapping[str, Any] | None = None,
        *,
        input_type: Any = None,
        name: str | None = None,
        logger: LoggerBase | None = None,
        **kwargs: Any,
    ) -> None:
        children: dict[str, Any] = dict(steps or {})
        children.update(kwargs)
        if not children:
            raise ValueError("A parallel group requires at least one child")
        units: dict[str, Unit[Any, Any]] = {}
        for key, child in children.items():
            if not isinstance(key, str) or not key:
                raise ValueError(
                    f"Parallel group keys must be non-empty strings: "
                    f"{key!r}"
                )
            units[key] = coerce_to_unit(child)

        if input_type is None:
            input_type = next(
                (
                    u.input_type
                    for u in units.values()
                    if u.input_type is not Any
                ),
                Any,
            )
        for key, unit in units.items():
            if not is_assignable(input_type, unit.input_type):
                raise IncompatibleUnitsError(
                    f"Child '{key}' ({unit.name}) expects "
                    f"{type_name(unit.input_type)}, but the group "
                    f"input is {type_name(input_type)}"
                )

        super().__init__(
            name or "ParallelGroup{" + ", ".join(units) + "}", logger
        )
        self._steps = units
        self.input_type = input_type

    @property
    def steps(self) -> dict[str, Unit[Any, Any]]:
        return dict(self._steps)

    @property
    def keys(self) -> list[str]:
        return list(self._steps.keys())

    def _fail(self, errors: dict[str, BaseException]) -> AggregateChildError:
        for key, err in errors.items():
            self.logger.error(
                f"{self.name}: child '{key}' failed: "
                f"{type(err).__name__}: {err}"
            )
        return AggregateChildError(self.name, errors)

    async def ainvoke(self, value: Any) -> dict[str, Any]:
        tasks: dict[str, asyncio.Future[Any]] = {
            key: asyncio.ensure_future(unit.ainvoke(value))
            for key, unit in self._steps.items()
        }
        try:
            await asyncio.wait(tasks.values())
        except asyncio.CancelledError:
            await _cancel_all(list(tasks.values()))
            raise

        errors: dict[str, BaseException] = {}
        for key, task in tasks.items():
            if task.cancelled():
                errors[key] = asyncio.CancelledError(
                    f"child '{key}' was cancelled"
                )
            elif task.exception() is not None:
                errors[key] = task.exception()  # type: ignore
        if errors:
            raise self._fail(errors)
        return {key: task.result() for key, task in tasks.items()}

    async def _stream_chunks(
        self, value: Any
    ) -> AsyncIterator[dict[str, Any]]:
        queue: asyncio.Queue[tuple[str, Any]] = asyncio.Queue()
        errors: dict[str, BaseException] = {}
        closing = False

        async def _pump(key: str, unit: Unit[Any, Any]) -> None:
            stream = unit.astream(value)
            try:
                async for chunk in stream:
                    await queue.put((key, chunk))
            except Exception as e:
                # reported with the others once all children are done
                errors[key] = e
            except asyncio.CancelledError as e:
                if closing:
                    raise
                # the child cancelled itself, not the group
                errors[key] = e
            finally:
                await stream.aclose()
                queue.put_nowait((key, _DONE))

        tasks = [
            asyncio.ensure_future(_pump(key, unit))
            for key, unit in self._steps.items()
        ]
        running = len(tasks)
        try:
            while running:
                key, chunk = await queue.get()
                if chunk is _DONE:
                    running -= 1
                    continue
                yield {key: chunk}
        finally:
            closing = True
            await _cancel_all(tasks)

        if errors:
            raise self._fail(errors)
