"""
The prompt library: named prompt definitions from which templates
and chains are created.

The predefined prompts are

    - "company_names": three names for a company making {product}
    - "name_selection": choose among {names} by {final_criteria}
    - "summarizer": a concise summary of {text}
    - "rag_answer": answer {question} from the retrieved {context}

They are retrieved from the module-level dictionary `prompt_library`:

    ```python
    from lmchain.language_models.prompts import prompt_library
    definition = prompt_library["company_names"]
    definition.prompt  # the human message template
    ```

Custom prompts are added with `create_prompt`, after which they may
be used by name everywhere a predefined prompt may, e.g. by
`create_chain` in lmchain.language_models.chains:

    ```python
    from lmchain.language_models.prompts import create_prompt
    create_prompt(
        "Write a slogan for a company that makes {product}.",
        "slogan",
        system_prompt="You are a marketing expert.",
    )
    chain = create_chain("slogan")
    ```

Each definition also names the model tier (major, minor or aux in
config.toml) used to run the prompt.
"""

from typing import Literal
from pydantic import BaseModel, ConfigDict

from .lazy_dict import LazyLoadingDict

ModelTier = Literal['major', 'minor', 'aux']

PromptNames = Literal[
    "company_names",
    "name_selection",
    "summarizer",
    "rag_answer",
]


class PromptDefinition(BaseModel):
    """Groups the properties that define a prompt"""

    name: str
    prompt: str
    system_prompt: str | None = None
    model_tier: ModelTier = 'minor'

    model_config = ConfigDict(frozen=True, extra='forbid')


def _create_prompts(prompt_name: PromptNames) -> PromptDefinition:
    match prompt_name:
        case "company_names":
            return PromptDefinition(
                name=prompt_name,
                prompt="What are three good names for a company that "
                "makes {product}?",
            )
        case "name_selection":
            return PromptDefinition(
                name=prompt_name,
                prompt="""Here are some candidate names for a company:

{names}

Choose the best name according to this criterion: {final_criteria}.
Reply with the chosen name, followed by one sentence explaining the
choice.
""",
                system_prompt="You are a branding consultant.",
                model_tier='major',
            )
        case "summarizer":
            return PromptDefinition(
                name=prompt_name,
                prompt="""Write a concise summary of the following: "{text}"

SUMMARY:
""",
            )
        case "rag_answer":
            return PromptDefinition(
                name=prompt_name,
                prompt="""Answer the QUESTION using only the CONTEXT below.
If the answer is not in the CONTEXT, say that you don't know.

----
CONTEXT:
{context}

----
QUESTION: {question}

----
ANSWER:
""",
                system_prompt="You are a helpful assistant.",
                model_tier='major',
            )
        case _:  # do not remove this
            raise ValueError(f"Invalid prompt: {prompt_name}")


# a module-level dictionary of the prompt definitions
prompt_library: LazyLoadingDict[str, PromptDefinition] = LazyLoadingDict(
    _create_prompts  # type: ignore
)


def create_prompt(
    prompt: str,
    name: str,
    *,
    system_prompt: str | None = None,
    model_tier: ModelTier = 'minor',
) -> PromptDefinition:
    """
    Adds a custom prompt to the prompt library.

    Args:
        prompt: the human message template, with {placeholders}
        name: the name under which the prompt is stored
        system_prompt: an optional system message template
        model_tier: the configured model used to run the prompt

    Raises:
        ValueError: if a prompt with this name already exists
    """
    if name in PromptNames.__args__:
        raise ValueError(f"'{name}' is a predefined prompt")
    definition = PromptDefinition(
        name=name,
        prompt=prompt,
        system_prompt=system_prompt,
        model_tier=model_tier,
    )
    prompt_library[name] = definition
    return definition
