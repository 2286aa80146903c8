"""
Prompt templates as units.

A Template substitutes named variables into a LangChain chat prompt
template. As a unit, it maps a dictionary of variables to a LangChain
PromptValue, which a ModelInvoker takes as input. The two formatting
functions give the result as text or as messages:

    ```python
    template = Template.from_template(
        "What are three good names for a company that makes {product}?"
    )
    template.format({'product': "colorful socks"})
    # 'Human: What are three good names for a company that makes
    #   colorful socks?'
    template.format_messages({'product': "colorful socks"})
    # [HumanMessage(content='What are three good names ...')]
    ```

A template with a system message is created with from_messages, or
from a definition of the prompt library:

    ```python
    template = Template.from_messages([
        ("system", "You are a naming consultant."),
        ("human", "Names for a company that makes {product}?"),
    ])
    template = Template.from_prompt_definition(
        prompt_library["rag_answer"])
    ```

A placeholder without a value raises MissingVariableError; variables
that are not used by the template are ignored.
"""

from collections.abc import Mapping, Sequence
from typing import Any

from langchain_core.messages import BaseMessage
from langchain_core.prompt_values import PromptValue
from langchain_core.prompts import (
    ChatPromptTemplate,
    HumanMessagePromptTemplate,
    SystemMessagePromptTemplate,
)

from lmchain.core.errors import MissingVariableError
from lmchain.core.units import Unit
from lmchain.utils.logging import LoggerBase

from .prompts import PromptDefinition


class Template(Unit[Mapping[str, Any], PromptValue]):
    """A unit formatting a chat prompt template.

    Args:
        prompt: a LangChain ChatPromptTemplate
        name: the unit name
        logger: the unit logger
    """

    input_type = Mapping[str, Any]
    output_type = PromptValue

    def __init__(
        self,
        prompt: ChatPromptTemplate,
        *,
        name: str | None = None,
        logger: LoggerBase | None = None,
    ) -> None:
        super().__init__(name, logger)
        self.prompt = prompt

    @classmethod
    def from_template(
        cls,
        text: str,
        *,
        name: str | None = None,
        logger: LoggerBase | None = None,
    ) -> 'Template':
        """A template made of a single human message."""
        return cls(
            ChatPromptTemplate.from_template(text),
            name=name,
            logger=logger,
        )

    @classmethod
    def from_messages(
        cls,
        messages: Sequence[tuple[str, str]],
        *,
        name: str | None = None,
        logger: LoggerBase | None = None,
    ) -> 'Template':
        """A template from (role, text) pairs, with roles 'system',
        'human' or 'ai'."""
        return cls(
            ChatPromptTemplate.from_messages(list(messages)),
            name=name,
            logger=logger,
        )

    @classmethod
    def from_prompt_definition(
        cls,
        definition: PromptDefinition,
        system_prompt: str | None = None,
        *,
        logger: LoggerBase | None = None,
    ) -> 'Template':
        """A template from a prompt library definition. The system
        prompt of the definition may be overridden."""
        system = (
            definition.system_prompt
            if system_prompt is None
            else system_prompt
        )
        prompt: ChatPromptTemplate
        if system is not None:
            prompt = ChatPromptTemplate.from_messages(
                [
                    SystemMessagePromptTemplate.from_template(system),
                    HumanMessagePromptTemplate.from_template(
                        definition.prompt
                    ),
                ]
            )
        else:
            prompt = ChatPromptTemplate.from_template(definition.prompt)
        return cls(prompt, name=definition.name, logger=logger)

    @property
    def input_variables(self) -> list[str]:
        """The names of the placeholders of the template."""
        return sorted(self.prompt.input_variables)

    def _checked(self, variables: Mapping[str, Any]) -> dict[str, Any]:
        missing = set(self.prompt.input_variables) - set(variables.keys())
        if missing:
            raise MissingVariableError(missing, self.name)
        return dict(variables)

    def format(self, variables: Mapping[str, Any]) -> str:
        """The formatted prompt as a transcript of the messages,
        each prefixed by its role (e.g. 'Human: ...')."""
        return self.prompt.format(**self._checked(variables))

    def format_messages(
        self, variables: Mapping[str, Any]
    ) -> list[BaseMessage]:
        """The formatted prompt as role-tagged messages."""
        return self.prompt.format_messages(**self._checked(variables))

    def format_prompt(self, variables: Mapping[str, Any]) -> PromptValue:
        return self.prompt.format_prompt(**self._checked(variables))

    async def ainvoke(self, value: Mapping[str, Any]) -> PromptValue:
        return self.format_prompt(value)
