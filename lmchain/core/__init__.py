"""
The composable-pipeline runtime.

- units: the Unit contract, and generic units (FunctionUnit,
    Passthrough, ItemGetter)
- pipeline: sequential composition (Pipeline)
- parallel: concurrent fan-out (ParallelGroup)
- stream: chunk streams and chunk concatenation
- errors: the exceptions raised by the runtime
"""

# pyright: reportUnusedImport=false
# flake8: noqa

from .errors import (
    LMChainError,
    MissingVariableError,
    RemoteInvocationError,
    AggregateChildError,
    StreamInterruptedError,
    IncompatibleUnitsError,
)
from .stream import ChunkStream, add_chunks, concat_chunks
from .units import (
    Unit,
    FunctionUnit,
    Passthrough,
    ItemGetter,
    coerce_to_unit,
    is_assignable,
)
from .pipeline import Pipeline, InvocationState
from .parallel import ParallelGroup
