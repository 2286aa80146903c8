"""Test parallel groups"""

# pyright: basic
# pyright: reportArgumentType=false

import asyncio
import logging
import unittest
from collections.abc import Mapping
from typing import Any

from lmchain.core.errors import AggregateChildError, IncompatibleUnitsError
from lmchain.core.parallel import ParallelGroup
from lmchain.core.pipeline import Pipeline
from lmchain.core.stream import concat_chunks
from lmchain.core.units import FunctionUnit, ItemGetter, Passthrough, Unit
from lmchain.utils.logging import LoglistLogger


class Words(Unit[str, str]):
    """Streams the words of the input, with trailing spaces."""

    input_type = str
    output_type = str

    async def ainvoke(self, value: str) -> str:
        return value

    async def _stream_chunks(self, value: str):
        for word in value.split(" "):
            await asyncio.sleep(0)
            yield word + " "


def _fail(value: Any) -> Any:
    raise ValueError("bad child")


async def _cancel_self(value: Any) -> Any:
    raise asyncio.CancelledError("internal")


class TestParallelConstruction(unittest.TestCase):

    def test_keys(self):
        group = ParallelGroup({'a': Passthrough()}, b=Passthrough())
        self.assertListEqual(group.keys, ['a', 'b'])
        self.assertEqual(group.output_type, dict[str, Any])

    def test_empty(self):
        with self.assertRaises(ValueError):
            ParallelGroup({})

    def test_invalid_key(self):
        with self.assertRaises(ValueError):
            ParallelGroup({'': Passthrough()})

    def test_input_type_inferred(self):
        group = ParallelGroup(
            {'x': Passthrough(), 'names': ItemGetter('names')}
        )
        self.assertEqual(group.input_type, Mapping[str, Any])

    def test_incompatible_child(self):
        with self.assertRaises(IncompatibleUnitsError):
            ParallelGroup(
                {'words': Words(), 'names': ItemGetter('names')}
            )
        with self.assertRaises(IncompatibleUnitsError):
            ParallelGroup({'names': ItemGetter('names')}, input_type=str)

    def test_nested_in_pipeline(self):
        pipeline = Pipeline(
            ParallelGroup({'a': Passthrough(), 'b': Passthrough()}),
            ItemGetter('b'),
        )
        self.assertEqual(pipeline.invoke("x"), "x")


class TestParallelInvocation(unittest.IsolatedAsyncioTestCase):

    async def test_invoke(self):
        group = ParallelGroup(
            {
                'upper': FunctionUnit(str.upper),
                'same': Passthrough(),
            }
        )
        result = await group.ainvoke("socks")
        self.assertDictEqual(result, {'upper': "SOCKS", 'same': "socks"})

    async def test_children_run_concurrently(self):
        started = asyncio.Event()

        async def waits(value: str) -> str:
            # completes only if 'signals' starts while this is waiting
            await asyncio.wait_for(started.wait(), timeout=1.0)
            return "waited"

        async def signals(value: str) -> str:
            started.set()
            return "signalled"

        group = ParallelGroup(
            {'waits': FunctionUnit(waits), 'signals': FunctionUnit(signals)}
        )
        result = await group.ainvoke("x")
        self.assertDictEqual(
            result, {'waits': "waited", 'signals': "signalled"}
        )

    async def test_failure_is_all_or_nothing(self):
        finished: list[str] = []

        async def slow(value: str) -> str:
            await asyncio.sleep(0.05)
            finished.append("slow")
            return "slow"

        logger = LoglistLogger()
        group = ParallelGroup(
            {
                'slow': FunctionUnit(slow),
                'bad': FunctionUnit(_fail),
                'worse': FunctionUnit(_fail),
            },
            logger=logger,
        )
        with self.assertRaises(AggregateChildError) as cm:
            await group.ainvoke("x")
        self.assertSetEqual(set(cm.exception.keys), {'bad', 'worse'})
        self.assertIsInstance(cm.exception.errors['bad'], ValueError)
        # the other children were awaited
        self.assertListEqual(finished, ["slow"])
        self.assertEqual(logger.count_logs(logging.ERROR), 2)

    async def test_cancellation_cancels_children(self):
        cancelled: list[str] = []

        async def forever(value: str) -> str:
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.append(value)
                raise
            return value

        group = ParallelGroup(
            {'a': FunctionUnit(forever), 'b': FunctionUnit(forever)}
        )
        task = asyncio.ensure_future(group.ainvoke("x"))
        await asyncio.sleep(0.01)
        task.cancel()
        with self.assertRaises(asyncio.CancelledError):
            await task
        self.assertListEqual(cancelled, ["x", "x"])

    async def test_cancellation_through_pipeline(self):
        cancelled: list[str] = []

        async def forever(value: str) -> str:
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.append(value)
                raise
            return value

        pipeline = Pipeline(
            ParallelGroup({'a': FunctionUnit(forever)}), ItemGetter('a')
        )
        task = asyncio.ensure_future(pipeline.ainvoke("y"))
        await asyncio.sleep(0.01)
        task.cancel()
        with self.assertRaises(asyncio.CancelledError):
            await task
        self.assertListEqual(cancelled, ["y"])

    async def test_stream_close_cancels_children(self):
        cancelled: list[str] = []

        async def forever(value: str) -> str:
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.append(value)
                raise
            return value

        group = ParallelGroup(
            {'same': Passthrough(), 'slow': FunctionUnit(forever)}
        )
        stream = group.astream("z")
        async for chunk in stream:
            self.assertDictEqual(chunk, {'same': "z"})
            break
        await stream.aclose()
        self.assertListEqual(cancelled, ["z"])

    async def test_stream(self):
        group = ParallelGroup({'words': Words(), 'same': Passthrough()})
        chunks = [c async for c in group.astream("two words")]
        for chunk in chunks:
            self.assertEqual(len(chunk), 1)
        # per-child order is preserved
        self.assertListEqual(
            [c['words'] for c in chunks if 'words' in c],
            ["two ", "words "],
        )
        self.assertDictEqual(
            concat_chunks(chunks),
            {'words': "two words ", 'same': "two words"},
        )

    async def test_stream_failure(self):
        group = ParallelGroup(
            {'words': Words(), 'bad': FunctionUnit(_fail)}
        )
        with self.assertRaises(AggregateChildError) as cm:
            _ = [c async for c in group.astream("a b c")]
        self.assertListEqual(cm.exception.keys, ['bad'])

    async def test_stream_child_cancelled(self):
        # a child ending with its own cancellation is a failure
        group = ParallelGroup(
            {'same': Passthrough(), 'gone': FunctionUnit(_cancel_self)}
        )
        with self.assertRaises(AggregateChildError) as cm:
            _ = [c async for c in group.astream("x")]
        self.assertListEqual(cm.exception.keys, ['gone'])
        self.assertIsInstance(
            cm.exception.errors['gone'], asyncio.CancelledError
        )
        # same outcome as ainvoke
        with self.assertRaises(AggregateChildError) as cm:
            await group.ainvoke("x")
        self.assertListEqual(cm.exception.keys, ['gone'])


if __name__ == "__main__":
    unittest.main()
