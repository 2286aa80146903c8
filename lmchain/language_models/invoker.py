"""
Model invokers: units calling a remote chat model.

A ModelInvoker wraps a LangChain chat model, usually created from a
LanguageModelSettings object:

    ```python
    from lmchain.config import Settings
    from lmchain.language_models.invoker import ModelInvoker

    settings = Settings()
    invoker = ModelInvoker.from_settings(settings.minor)

    message = await invoker.ainvoke("Why is the sky blue?")
    async for chunk in invoker.astream("Why is the sky blue?"):
        print(chunk.content, end="")
    ```

The input is a text, a list of messages, or a PromptValue as produced
by a Template. The result is an AIMessage; when streaming, a sequence
of AIMessageChunk objects that concatenate to a message with the same
content.

Calls suspend on the event loop while awaiting the remote service and
never block other invocations. Failures are reported as follows:

- RemoteInvocationError: the call failed, or a stream failed before
    delivering its first chunk
- StreamInterruptedError: a stream failed after delivering some
    chunks; the stream ends with this error, it is never silently
    truncated

The timeout (constructor argument, or the timeout field of the
settings) covers the whole call, or the whole stream. When it
expires, the invocation fails with the errors above; no partial
result is returned. The invoker does not retry failed calls.
"""

import asyncio
from collections.abc import AsyncIterator, Sequence
from typing import Any

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import BaseMessage
from langchain_core.prompt_values import PromptValue

from lmchain.config.config import LanguageModelSettings
from lmchain.core.errors import (
    LMChainError,
    RemoteInvocationError,
    StreamInterruptedError,
)
from lmchain.core.units import Unit
from lmchain.utils.logging import LoggerBase

from .models import create_model_from_settings

ModelInput = str | Sequence[BaseMessage] | PromptValue


class ModelInvoker(Unit[ModelInput, BaseMessage]):
    """A unit sending its input to a chat model.

    Args:
        model: a LangChain chat model
        timeout: seconds allowed for an invocation or a whole stream
            (None for no limit)
        name: the unit name (defaults to the model name)
        logger: failures and timeouts are reported here
    """

    input_type = ModelInput
    output_type = BaseMessage

    def __init__(
        self,
        model: BaseChatModel,
        *,
        timeout: float | None = None,
        name: str | None = None,
        logger: LoggerBase | None = None,
    ) -> None:
        if timeout is not None and timeout <= 0:
            raise ValueError(f"Invalid timeout: {timeout}")
        super().__init__(name or model.get_name(), logger)
        self.model = model
        self.timeout = timeout

    @classmethod
    def from_settings(
        cls,
        settings: LanguageModelSettings,
        *,
        timeout: float | None = None,
        logger: LoggerBase | None = None,
    ) -> 'ModelInvoker':
        """Creates the invoker of the model described by settings. The
        timeout defaults to the timeout of the settings."""
        return cls(
            create_model_from_settings(settings),
            timeout=timeout if timeout is not None else settings.timeout,
            name=settings.model,
            logger=logger,
        )

    def _failure(
        self, exc: BaseException, delivered: int = 0
    ) -> LMChainError:
        if isinstance(exc, TimeoutError):
            message = f"timed out after {self.timeout} s"
            self.logger.warning(f"{self.name}: {message}")
        else:
            message = f"{type(exc).__name__}: {exc}"
            self.logger.error(f"{self.name}: {message}")
        if delivered:
            return StreamInterruptedError(self.name, delivered, message)
        return RemoteInvocationError(self.name, message)

    async def ainvoke(self, value: ModelInput) -> BaseMessage:
        try:
            async with asyncio.timeout(self.timeout):
                return await self.model.ainvoke(value)
        except Exception as e:
            raise self._failure(e) from e

    async def _stream_chunks(
        self, value: ModelInput
    ) -> AsyncIterator[BaseMessage]:
        loop = asyncio.get_running_loop()
        deadline = (
            None if self.timeout is None else loop.time() + self.timeout
        )
        source: AsyncIterator[Any] = self.model.astream(value)
        delivered = 0
        try:
            while True:
                try:
                    async with asyncio.timeout_at(deadline):
                        chunk = await anext(source)
                except StopAsyncIteration:
                    break
                except Exception as e:
                    raise self._failure(e, delivered) from e
                delivered += 1
                yield chunk
        finally:
            aclose = getattr(source, "aclose", None)
            if aclose is not None:
                await aclose()
