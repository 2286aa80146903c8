"""
Message iterators feeding the responses of the Debug language
models.

The Debug models (see lmchain.language_models.models) are LangChain
fake chat models that answer each call with the next message of an
iterator. When streaming, the fake model splits the message at
whitespace, so that the chunks concatenate to the same text that an
invoke would have returned.
"""

from collections.abc import Iterator, Sequence


class MessageIterator:
    """
    An infinite iterator of sequential messages, "{prefix} {counter}",
    with counter starting at 1.
    """

    def __init__(self, prefix: str = "Message") -> None:
        self.prefix = prefix
        self.counter = 1

    def __iter__(self) -> Iterator[str]:
        return self

    def __next__(self) -> str:
        message = f"{self.prefix} {self.counter}"
        self.counter += 1
        return message


class ConstantMessageIterator:
    """
    An infinite iterator returning always the same message.
    """

    def __init__(self, message: str = "Message") -> None:
        self.message = message
        self.counter = 0

    def __iter__(self) -> Iterator[str]:
        return self

    def __next__(self) -> str:
        self.counter += 1
        return self.message


class CyclingMessageIterator:
    """
    An infinite iterator cycling through a list of messages, in order.
    """

    def __init__(self, messages: Sequence[str]) -> None:
        if not messages:
            raise ValueError("At least one message is required")
        self.messages = list(messages)
        self.counter = 0

    def __iter__(self) -> Iterator[str]:
        return self

    def __next__(self) -> str:
        message = self.messages[self.counter % len(self.messages)]
        self.counter += 1
        return message


def yield_message(prefix: str = "Message") -> MessageIterator:
    """
    Create an iterator of sequential messages.

    Example:
        >>> iterator = yield_message("Alert")
        >>> next(iterator)
        'Alert 1'
        >>> next(iterator)
        'Alert 2'
    """
    return MessageIterator(prefix)


def yield_constant_message(
    message: str = "Message",
) -> ConstantMessageIterator:
    """
    Create an iterator repeating the same message.

    Example:
        >>> iterator = yield_constant_message("Alert")
        >>> next(iterator)
        'Alert'
        >>> next(iterator)
        'Alert'
    """
    return ConstantMessageIterator(message)


def yield_cycling_messages(
    messages: Sequence[str],
) -> CyclingMessageIterator:
    """
    Create an iterator cycling through messages.

    Example:
        >>> iterator = yield_cycling_messages(["yes", "no"])
        >>> [next(iterator) for _ in range(3)]
        ['yes', 'no', 'yes']
    """
    return CyclingMessageIterator(messages)
