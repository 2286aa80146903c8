"""
Creates chains: pipelines made of a prompt template, a model invoker
and a string output transformer. The chains are memoized in the
global dictionary `chain_library`, keyed by the prompt name and the
settings of the language model.

Each chain plugs two resources into the pipeline runtime:

- a language model, selected from the settings (config.toml, or the
    settings given in the call)
- a prompt from the prompt library (lmchain.language_models.prompts),
    which also determines which of the major, minor and aux models is
    used.

    ```python
    from lmchain.language_models.chains import create_chain

    chain = create_chain("company_names")       # uses config.toml
    names: str = chain.invoke({'product': "colorful socks"})

    # a chain that specifies the model directly
    chain = create_chain("summarizer", {'model': "OpenAI/gpt-4o"})

    # streaming
    async for text in chain.astream({'text': "..."}):
        print(text, end="")
    ```

A chain may also be assembled from a prompt text and a model, without
being registered in the library:

    ```python
    chain = create_chain_from_objects(
        "Write a slogan for {product}.",
        system_prompt="You are a marketing expert.",
        language_model=settings.minor,
    )
    ```

The naming chain shows a parallel group feeding a second chain: the
company names generated for {product} are passed, together with the
{final_criteria} given in the input, to a prompt that chooses one.

Expected behaviour:
    Settings and prompt names are validated when the chain is
    created (ValueError, ValidationError). Model names are not
    checked until the chain is invoked.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict
from langchain_core.language_models.chat_models import BaseChatModel

from lmchain.config.config import Settings, LanguageModelSettings
from lmchain.core.parallel import ParallelGroup
from lmchain.core.pipeline import Pipeline
from lmchain.core.units import ItemGetter
from lmchain.utils.logging import LoggerBase

from .invoker import ModelInvoker
from .lazy_dict import LazyLoadingDict
from .parsers import StrOutputTransformer
from .prompts import PromptDefinition, PromptNames, prompt_library
from .template import Template

UserSettings = dict[str, Any] | LanguageModelSettings | Settings | None

# Responses of the Debug models, per prompt
_DEBUG_MESSAGES: dict[str, str] = {
    'company_names': "1. Rainbow Threads 2. Happy Feet Co. 3. Sock Palette",
    'name_selection': "Rainbow Threads: it is memorable and sustainable.",
    'summarizer': "This is a summary of the text.",
    'rag_answer': "This is an answer based on the context.",
}


class ChainDefinition(BaseModel):
    """Groups together all properties that define a chain"""

    kernel_name: PromptNames | str
    settings: LanguageModelSettings
    system_prompt_override: str | None = None

    # required for hashability
    model_config = ConfigDict(frozen=True, extra='forbid')


def _create_chain(definition: ChainDefinition) -> Pipeline:
    """Assembles a chain with a prompt from prompt_library and a
    language model as specified by a LanguageModelSettings."""
    prompt_definition: PromptDefinition = prompt_library[
        definition.kernel_name
    ]
    template = Template.from_prompt_definition(
        prompt_definition, definition.system_prompt_override
    )

    # Debug models answer with a message fitting the prompt, unless
    # the settings specify one
    settings: LanguageModelSettings = definition.settings
    if (
        settings.get_model_source() == "Debug"
        and not settings.provider_params
        and definition.kernel_name in _DEBUG_MESSAGES
    ):
        settings = settings.from_instance(
            provider_params={
                'message': _DEBUG_MESSAGES[definition.kernel_name]
            }
        )

    return Pipeline(
        template,
        ModelInvoker.from_settings(settings),
        StrOutputTransformer(),
        name=(
            f"{definition.kernel_name}:"
            + f"{definition.settings.get_model_source()}/"
            + f"{definition.settings.get_model_name()}"
        ),
    )


# global project-wide repository of chains
chain_library: LazyLoadingDict[ChainDefinition, Pipeline] = (
    LazyLoadingDict(_create_chain)
)


def resolve_settings(user_settings: UserSettings) -> Settings:
    """Converts the settings given by the user into a Settings
    object. A dictionary or a LanguageModelSettings object replaces
    all the major, minor and aux models.

    Raises:
        ValueError: for invalid settings.
    """
    match user_settings:
        case dict() if bool(user_settings):
            try:
                model = LanguageModelSettings(**user_settings)
            except Exception as e:
                raise ValueError(f"Invalid model definition:\n{e}") from e
            return Settings(major=model, minor=model, aux=model)
        case LanguageModelSettings():
            return Settings(
                major=user_settings,
                minor=user_settings,
                aux=user_settings,
            )
        case Settings():
            return user_settings
        case None | {}:
            return Settings()
        case _:
            raise ValueError(
                f"Invalid model definition: {user_settings}"
            )


def create_chain(
    kernel_name: PromptNames | str,
    user_settings: UserSettings = None,
    system_prompt: str | None = None,
) -> Pipeline:
    """
    Creates a chain combining the prompt named kernel_name with the
    language model of the prompt's tier.

    Settings hierarchy (highest to lowest priority):
    1. user_settings parameter (if provided)
    2. config.toml file settings
    3. Default settings from Settings class

    Args:
        kernel_name: the name of a prompt in the prompt library,
            either predefined or added with create_prompt.
        user_settings: Optional settings to override the default
            configuration. Can be either:
            - dict: Dictionary with a 'model' key and optionally
                the other LanguageModelSettings fields
            - LanguageModelSettings: used for all tiers
            - Settings: the model of the prompt tier is used
            - None: Use settings from config.toml or defaults
        system_prompt: overrides the system prompt of the prompt
            definition.

    Returns:
        a memoized Pipeline mapping a dictionary of template variables
        to a string.

    Raises:
        ValueError: If kernel_name is not in the library, or if the
            settings are invalid.
        ImportError: for not installed provider libraries.
    """
    settings: Settings = resolve_settings(user_settings)
    prompt_definition: PromptDefinition = prompt_library[kernel_name]

    match prompt_definition.model_tier:
        case 'major':
            settings_to_use = settings.major
        case 'aux':
            settings_to_use = settings.aux
        case _:
            settings_to_use = settings.minor

    return chain_library[
        ChainDefinition(
            kernel_name=kernel_name,
            settings=settings_to_use,
            system_prompt_override=system_prompt,
        )
    ]


def create_chain_from_objects(
    human_prompt: str,
    *,
    system_prompt: str | None = None,
    language_model: (
        BaseChatModel | LanguageModelSettings | Settings | None
    ) = None,
    timeout: float | None = None,
    logger: LoggerBase | None = None,
) -> Pipeline:
    """
    Creates a chain from a prompt text and a language model. The chain
    is not registered in the chain library.

    Args:
        human_prompt: prompt text, with {placeholders}
        system_prompt: system prompt text
        language_model: either a LangChain chat model, or a
            LanguageModelSettings object, or a Settings object (its
            minor model is used), or None (default). In this latter
            case the minor model from the config file is used.
        timeout: timeout of the model invoker
        logger: logger of the chain units

    Returns:
        a Pipeline mapping a dictionary of template variables to a
        string.
    """
    invoker: ModelInvoker
    match language_model:
        case None:
            settings = Settings().minor
            invoker = ModelInvoker.from_settings(
                settings, timeout=timeout, logger=logger
            )
            name = f"Custom:{settings.model}"
        case Settings():
            invoker = ModelInvoker.from_settings(
                language_model.minor, timeout=timeout, logger=logger
            )
            name = f"Custom:{language_model.minor.model}"
        case LanguageModelSettings():
            invoker = ModelInvoker.from_settings(
                language_model, timeout=timeout, logger=logger
            )
            name = f"Custom:{language_model.model}"
        case _:
            invoker = ModelInvoker(
                language_model, timeout=timeout, logger=logger
            )
            name = "Custom"

    messages: list[tuple[str, str]] = []
    if system_prompt is not None:
        messages.append(("system", system_prompt))
    messages.append(("human", human_prompt))
    template = Template.from_messages(messages, logger=logger)

    return Pipeline(
        template,
        invoker,
        StrOutputTransformer(logger=logger),
        name=name,
        logger=logger,
    )


def create_naming_chain(user_settings: UserSettings = None) -> Pipeline:
    """
    Creates a two-stage chain: the names proposed by the
    'company_names' chain for {product}, and the {final_criteria} of
    the input, are given to the 'name_selection' chain.

    Example:
        ```python
        chain = create_naming_chain()
        choice: str = chain.invoke({
            'product': "wooden cars",
            'final_criteria': "sustainability",
        })
        ```
    """
    settings = resolve_settings(user_settings)
    candidates = ParallelGroup(
        {
            'names': create_chain("company_names", settings),
            'final_criteria': ItemGetter('final_criteria', output_type=str),
        }
    )
    return Pipeline(
        candidates,
        create_chain("name_selection", settings),
        name="naming",
    )
