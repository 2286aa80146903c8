"""
Pipelines: ordered compositions of units.

Each unit's output becomes the next unit's input. The pipeline is
itself a unit, so that pipelines may be nested in other pipelines and
in parallel groups.

    ```python
    from lmchain.core import Pipeline
    from lmchain.language_models import (
        Template,
        ModelInvoker,
        StrOutputTransformer,
    )

    chain = Pipeline(
        Template.from_template("Three names for a {product} shop?"),
        ModelInvoker.from_settings(settings.minor),
        StrOutputTransformer(),
    )
    # or equivalently
    chain = template | invoker | StrOutputTransformer()

    text: str = await chain.ainvoke({'product': "sock"})
    async for piece in chain.astream({'product': "sock"}):
        print(piece, end="")
    ```

Streaming propagates through every unit: the first unit's stream is
handed to the second unit's `atransform_stream`, and so on. A unit
that is not incremental buffers its input stream, so that only the
last such unit delays the output; the units after it stream freely.

The pipeline holds no state between invocations. Each invocation
goes through Constructed -> Invoking -> Completed | Failed; these
transitions are reported to the logger at debug level. The first
failing unit aborts the invocation and its exception is propagated
unchanged.
"""

import asyncio
from collections.abc import AsyncIterator
from enum import StrEnum
from typing import Any

from lmchain.utils.logging import LoggerBase

from .errors import IncompatibleUnitsError
from .units import (
    Unit,
    coerce_to_unit,
    is_assignable,
    type_name,
)


class InvocationState(StrEnum):
    CONSTRUCTED = "Constructed"
    INVOKING = "Invoking"
    COMPLETED = "Completed"
    FAILED = "Failed"


def check_compatible(units: tuple[Unit[Any, Any], ...]) -> None:
    """Raises IncompatibleUnitsError if the output of a unit cannot be
    fed to the next one."""
    for earlier, later in zip(units, units[1:]):
        if not is_assignable(earlier.output_type, later.input_type):
            raise IncompatibleUnitsError(
                f"'{earlier.name}' produces "
                f"{type_name(earlier.output_type)}, but "
                f"'{later.name}' expects "
                f"{type_name(later.input_type)}"
            )


class Pipeline(Unit[Any, Any]):
    """An immutable sequence of units.

    Args:
        *units: the units, in order of execution. Mappings and
            callables are converted with coerce_to_unit.
        name: the pipeline name (defaults to the unit names joined
            by ' | ')
        logger: receives the state transitions of each invocation

    Raises:
        ValueError: if no unit is given.
        IncompatibleUnitsError: if adjacent units do not match.
    """

    def __init__(
        self,
        *units: Any,
        name: str | None = None,
        logger: LoggerBase | None = None,
    ) -> None:
        if not units:
            raise ValueError("A pipeline requires at least one unit")
        steps: tuple[Unit[Any, Any], ...] = tuple(
            coerce_to_unit(u) for u in units
        )
        check_compatible(steps)
        super().__init__(
            name or " | ".join(u.name for u in steps), logger
        )
        self._units = steps
        self.input_type = steps[0].input_type
        self.output_type = steps[-1].output_type
        self.incremental = all(u.incremental for u in steps)
        self.logger.debug(
            f"{self.name}: {InvocationState.CONSTRUCTED} "
            f"({len(steps)} units)"
        )

    @property
    def units(self) -> tuple[Unit[Any, Any], ...]:
        return self._units

    @property
    def first(self) -> Unit[Any, Any]:
        return self._units[0]

    @property
    def last(self) -> Unit[Any, Any]:
        return self._units[-1]

    def buffering_points(self) -> list[int]:
        """The positions of the units that buffer their input stream
        when the pipeline streams. The first unit streams its own
        output and is never a buffering point."""
        return [
            i
            for i, unit in enumerate(self._units)
            if i > 0 and not unit.incremental
        ]

    @classmethod
    def concatenate(
        cls, left: Unit[Any, Any], right: Unit[Any, Any]
    ) -> 'Pipeline':
        """Joins two units into a flat pipeline. Unnamed pipelines
        among the arguments are spliced in."""
        units: list[Unit[Any, Any]] = []
        for unit in (left, right):
            if isinstance(unit, Pipeline) and unit._is_anonymous():
                units.extend(unit.units)
            else:
                units.append(unit)
        logger = left.logger
        return cls(*units, logger=logger)

    def _is_anonymous(self) -> bool:
        return self.name == " | ".join(u.name for u in self._units)

    # --- invocation -----------------------------------------------------
    async def ainvoke(self, value: Any) -> Any:
        self.logger.debug(f"{self.name}: {InvocationState.INVOKING}")
        unit: Unit[Any, Any] = self._units[0]
        try:
            for unit in self._units:
                value = await unit.ainvoke(value)
        except (Exception, asyncio.CancelledError) as e:
            self.logger.debug(
                f"{self.name}: {InvocationState.FAILED} at "
                f"'{unit.name}' ({type(e).__name__})"
            )
            raise
        self.logger.debug(f"{self.name}: {InvocationState.COMPLETED}")
        return value

    def _stream_chunks(self, value: Any) -> AsyncIterator[Any]:
        source = self._units[0].astream(value)
        return self._pipe_through(source, self._units[1:])

    def atransform_stream(
        self, chunks: AsyncIterator[Any]
    ) -> AsyncIterator[Any]:
        return self._pipe_through(chunks, self._units)

    async def _pipe_through(
        self,
        source: AsyncIterator[Any],
        units: tuple[Unit[Any, Any], ...],
    ) -> AsyncIterator[Any]:
        self.logger.debug(
            f"{self.name}: {InvocationState.INVOKING} (streaming)"
        )
        opened: list[AsyncIterator[Any]] = [source]
        stream = source
        for unit in units:
            stream = unit.atransform_stream(stream)
            opened.append(stream)
        try:
            async for chunk in stream:
                yield chunk
        except (Exception, asyncio.CancelledError) as e:
            self.logger.debug(
                f"{self.name}: {InvocationState.FAILED} "
                f"({type(e).__name__})"
            )
            raise
        finally:
            # close from the consumer end towards the source
            for iterator in reversed(opened):
                aclose = getattr(iterator, "aclose", None)
                if aclose is not None:
                    await aclose()
        self.logger.debug(f"{self.name}: {InvocationState.COMPLETED}")
