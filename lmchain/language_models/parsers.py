"""
Output transformers: units converting the result of a model invoker
into another representation.

A transformer implements `transform(result)`. Incremental
transformers apply it to each chunk of a stream as the chunk arrives,
so that the transformed chunks concatenate to the transformation of
the complete result. Transformers that need the complete result (for
example, to compute its length) buffer the stream and emit a single
terminal chunk.

    ```python
    chain = template | invoker | StrOutputTransformer()
    await chain.ainvoke({'product': "fancy cookies"})   # a str
    async for text in chain.astream({'product': "fancy cookies"}):
        ...                                            # str chunks

    http_chain = chain | ResponseEnvelopeTransformer()
    await http_chain.ainvoke({'product': "fancy cookies"})
    # {'status': 200, 'content_type': 'text/plain; charset=utf-8',
    #  'content_length': ..., 'body': "..."}
    ```
"""

from abc import abstractmethod
from collections.abc import AsyncIterator
from typing import Any, TypeVar

from langchain_core.messages import BaseMessage

from lmchain.core.stream import concat_chunks
from lmchain.core.units import Unit
from lmchain.utils.logging import LoggerBase

InputT = TypeVar('InputT')
OutputT = TypeVar('OutputT')


def message_text(result: Any) -> str:
    """The text content of a message, message chunk, or string.
    Content given as a list of blocks is joined."""
    if isinstance(result, str):
        return result
    content = result.content if isinstance(result, BaseMessage) else result
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts: list[str] = []
        for block in content:  # type: ignore
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":  # type: ignore
                parts.append(str(block.get("text", "")))  # type: ignore
        return "".join(parts)
    return str(content)


class OutputTransformer(Unit[InputT, OutputT]):
    """Base class of output transformers."""

    @abstractmethod
    def transform(self, result: InputT) -> OutputT:
        """Transform a complete result, or a chunk of it if the
        transformer is incremental."""
        ...

    async def ainvoke(self, value: InputT) -> OutputT:
        return self.transform(value)

    async def atransform_stream(
        self, chunks: AsyncIterator[InputT]
    ) -> AsyncIterator[OutputT]:
        if self.incremental:
            async for chunk in chunks:
                yield self.transform(chunk)
        else:
            buffered: InputT = concat_chunks(
                [chunk async for chunk in chunks]
            )
            yield self.transform(buffered)


class StrOutputTransformer(OutputTransformer[BaseMessage | str, str]):
    """Extracts the text from a model message. Incremental."""

    input_type = BaseMessage | str
    output_type = str
    incremental = True

    def transform(self, result: BaseMessage | str) -> str:
        return message_text(result)


class ResponseEnvelopeTransformer(
    OutputTransformer[BaseMessage | str, dict[str, Any]]
):
    """Wraps the text of a model message into a complete HTTP-like
    response envelope. Not incremental: when streaming, the envelope
    is delivered as a single terminal chunk.

    Args:
        status: the response status code
        content_type: the media type of the body
        encoding: the charset used to compute the body length
    """

    input_type = BaseMessage | str
    output_type = dict[str, Any]

    def __init__(
        self,
        *,
        status: int = 200,
        content_type: str = "text/plain",
        encoding: str = "utf-8",
        name: str | None = None,
        logger: LoggerBase | None = None,
    ) -> None:
        super().__init__(name, logger)
        self.status = status
        self.content_type = content_type
        self.encoding = encoding

    def transform(self, result: BaseMessage | str) -> dict[str, Any]:
        body = message_text(result)
        return {
            'status': self.status,
            'content_type': f"{self.content_type}; charset={self.encoding}",
            'content_length': len(body.encode(self.encoding)),
            'body': body,
        }
