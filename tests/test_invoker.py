"""Test model invokers with offline models"""

# pyright: basic
# pyright: reportArgumentType=false
# pyright: reportIncompatibleMethodOverride=false

import asyncio
import logging
import unittest
from typing import Any

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.language_models.fake_chat_models import (
    GenericFakeChatModel,
)
from langchain_core.messages import AIMessage, AIMessageChunk, BaseMessage
from langchain_core.outputs import ChatGenerationChunk, ChatResult

from lmchain.config.config import LanguageModelSettings
from lmchain.core.errors import (
    RemoteInvocationError,
    StreamInterruptedError,
)
from lmchain.core.stream import concat_chunks
from lmchain.language_models.invoker import ModelInvoker
from lmchain.language_models.message_iterator import yield_cycling_messages
from lmchain.language_models.template import Template
from lmchain.utils.logging import LoglistLogger


class FailingChatModel(BaseChatModel):
    """A chat model that fails, optionally after streaming some
    chunks or after a delay."""

    chunks_before_failure: int = 0
    delay: float = 0.0

    @property
    def _llm_type(self) -> str:
        return "failing"

    def _generate(
        self, messages: list[BaseMessage], stop=None, run_manager=None,
        **kwargs: Any,
    ) -> ChatResult:
        raise ConnectionError("service unavailable")

    async def _agenerate(
        self, messages: list[BaseMessage], stop=None, run_manager=None,
        **kwargs: Any,
    ) -> ChatResult:
        if self.delay:
            await asyncio.sleep(self.delay)
        raise ConnectionError("service unavailable")

    async def _astream(
        self, messages: list[BaseMessage], stop=None, run_manager=None,
        **kwargs: Any,
    ):
        for i in range(self.chunks_before_failure):
            yield ChatGenerationChunk(
                message=AIMessageChunk(content=f"part{i} ")
            )
        if self.delay:
            await asyncio.sleep(self.delay)
        raise ConnectionError("connection reset")


debug_settings = LanguageModelSettings(
    model="Debug/invoker",
    provider_params={'message': "Sock Palette and Rainbow Threads"},
)


class TestModelInvoker(unittest.IsolatedAsyncioTestCase):

    async def test_invoke(self):
        invoker = ModelInvoker.from_settings(debug_settings)
        message = await invoker.ainvoke("Names for a sock company?")
        self.assertIsInstance(message, AIMessage)
        self.assertEqual(
            message.content, "Sock Palette and Rainbow Threads"
        )

    async def test_stream_concatenates_to_invoke(self):
        invoker = ModelInvoker.from_settings(debug_settings)
        chunks = [c async for c in invoker.astream("Names?")]
        self.assertGreater(len(chunks), 1)
        message = await invoker.ainvoke("Names?")
        self.assertEqual(concat_chunks(chunks).content, message.content)

    async def test_prompt_value_input(self):
        template = Template.from_template("Names for {product}?")
        invoker = ModelInvoker.from_settings(debug_settings)
        message = await (template | invoker).ainvoke({'product': "socks"})
        self.assertEqual(
            message.content, "Sock Palette and Rainbow Threads"
        )

    async def test_name(self):
        invoker = ModelInvoker.from_settings(debug_settings)
        self.assertEqual(invoker.name, "Debug/invoker")
        self.assertEqual(ModelInvoker(FailingChatModel()).name, "FailingChatModel")

    async def test_remote_failure(self):
        logger = LoglistLogger()
        invoker = ModelInvoker(FailingChatModel(), logger=logger)
        with self.assertRaises(RemoteInvocationError) as cm:
            await invoker.ainvoke("Hello")
        self.assertIsInstance(cm.exception.__cause__, ConnectionError)
        self.assertEqual(cm.exception.unit_name, "FailingChatModel")
        self.assertEqual(logger.count_logs(logging.ERROR), 1)

    async def test_stream_failure_before_first_chunk(self):
        invoker = ModelInvoker(FailingChatModel())
        with self.assertRaises(RemoteInvocationError):
            _ = [c async for c in invoker.astream("Hello")]

    async def test_stream_interrupted(self):
        invoker = ModelInvoker(FailingChatModel(chunks_before_failure=2))
        received: list[Any] = []
        with self.assertRaises(StreamInterruptedError) as cm:
            async for chunk in invoker.astream("Hello"):
                received.append(chunk)
        self.assertEqual(len(received), 2)
        self.assertEqual(cm.exception.chunks_delivered, 2)
        self.assertIsInstance(cm.exception.__cause__, ConnectionError)

    async def test_invoke_timeout(self):
        logger = LoglistLogger()
        invoker = ModelInvoker(
            FailingChatModel(delay=5.0), timeout=0.05, logger=logger
        )
        with self.assertRaises(RemoteInvocationError) as cm:
            await invoker.ainvoke("Hello")
        self.assertIsInstance(cm.exception.__cause__, TimeoutError)
        self.assertIn("timed out", str(cm.exception))
        self.assertEqual(logger.count_logs(logging.WARNING), 1)

    async def test_stream_timeout(self):
        invoker = ModelInvoker(
            FailingChatModel(chunks_before_failure=1, delay=5.0),
            timeout=0.05,
        )
        with self.assertRaises(StreamInterruptedError) as cm:
            _ = [c async for c in invoker.astream("Hello")]
        self.assertEqual(cm.exception.chunks_delivered, 1)
        self.assertIsInstance(cm.exception.__cause__, TimeoutError)

    async def test_cycling_responses(self):
        model = GenericFakeChatModel(
            messages=yield_cycling_messages(["Sock Palette", "Fancy Crumbs"])
        )
        invoker = ModelInvoker(model)
        first = await invoker.ainvoke("Hello")
        second = await invoker.ainvoke("Hello")
        third = await invoker.ainvoke("Hello")
        self.assertEqual(first.content, "Sock Palette")
        self.assertEqual(second.content, "Fancy Crumbs")
        self.assertEqual(third.content, "Sock Palette")

    async def test_invalid_timeout(self):
        with self.assertRaises(ValueError):
            ModelInvoker(FailingChatModel(), timeout=0)


class TestModelInvokerSync(unittest.TestCase):

    def test_invoke(self):
        invoker = ModelInvoker.from_settings(debug_settings)
        self.assertEqual(
            invoker.invoke("Hello").content,
            "Sock Palette and Rainbow Threads",
        )

    def test_stream(self):
        invoker = ModelInvoker.from_settings(debug_settings)
        text = "".join(str(c.content) for c in invoker.stream("Hello"))
        self.assertEqual(text, "Sock Palette and Rainbow Threads")


if __name__ == "__main__":
    unittest.main()
