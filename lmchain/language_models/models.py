"""
Creation of the LangChain chat model and embedding objects that the
model invokers and the document stores wrap. These objects unify the
calling interface to the diverse model providers.

The objects are memoized in two global repositories,
`langchain_models` and `langchain_embeddings`, keyed by the settings
that define them. The settings are given as LanguageModelSettings or
EmbeddingSettings objects (usually members of the Settings object
read from config.toml), or as a spec given to the create_*_from_spec
functions.

    ```python
    from lmchain.config import LanguageModelSettings
    from lmchain.language_models.models import (
        create_model_from_settings,
        create_model_from_spec,
    )

    settings = LanguageModelSettings(model="OpenAI/gpt-4o", timeout=30)
    model = create_model_from_settings(settings)

    # offline model for tests and demos
    model = create_model_from_spec("Debug/echo",
        provider_params={'message': "Socks & Co."})
    ```

The provider packages (langchain-openai, langchain-anthropic,
langchain-mistralai, langchain-google-genai, langchain-huggingface)
are imported when a model of that provider is first created; a
missing package raises an ImportError that names it.

The Debug provider gives LangChain fake models that do not call any
service: a chat model answering from a message iterator (a constant
message if provider_params has 'message', numbered messages starting
with provider_params['prefix'] otherwise), and deterministic
pseudo-random embeddings.
"""

from typing import Any

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.embeddings import Embeddings

from lmchain.config.config import (
    LanguageModelSettings,
    EmbeddingSettings,
    MetadataPrimitive,
    ModelSource,
)

from .lazy_dict import LazyLoadingDict
from .message_iterator import yield_message, yield_constant_message


def _missing_package(provider: str, package: str) -> ImportError:
    return ImportError(
        f"{provider} models require the '{package}' package. "
        f"Install it with: pip install {package}"
    )


def _create_model_instance(
    model: LanguageModelSettings,
) -> BaseChatModel:
    """
    Factory function to create LangChain chat models while checking
    permissible sources.
    """
    model_source: ModelSource = model.get_model_source()
    model_name: str = model.get_model_name()
    kwargs: dict[str, Any]
    match model_source:
        case "Anthropic":
            try:
                from langchain_anthropic import ChatAnthropic
            except ImportError as e:
                raise _missing_package(
                    "Anthropic", "langchain-anthropic"
                ) from e

            kwargs = {
                "model_name": model_name,
                "temperature": model.temperature,
                "max_tokens_to_sample": model.max_tokens or 1024,
                "timeout": model.timeout,
                "max_retries": model.max_retries,
                "stop": None,
            }
            kwargs.update(model.provider_params)
            return ChatAnthropic(**kwargs)

        case "Gemini":
            try:
                from langchain_google_genai import (
                    ChatGoogleGenerativeAI,
                )
            except ImportError as e:
                raise _missing_package(
                    "Gemini", "langchain-google-genai"
                ) from e

            kwargs = {
                "model": model_name,
                "temperature": model.temperature,
                "max_retries": model.max_retries,
            }
            if model.max_tokens is not None:
                kwargs["max_output_tokens"] = model.max_tokens
            if model.timeout is not None:
                kwargs["request_timeout"] = model.timeout
            kwargs.update(model.provider_params)
            return ChatGoogleGenerativeAI(**kwargs)

        case "Mistral":
            try:
                from langchain_mistralai import ChatMistralAI
            except ImportError as e:
                raise _missing_package(
                    "Mistral", "langchain-mistralai"
                ) from e

            kwargs = {
                "model_name": model_name,
                "temperature": model.temperature,
                "max_retries": model.max_retries,
            }
            if model.max_tokens is not None:
                kwargs["max_tokens"] = model.max_tokens
            if model.timeout is not None:
                kwargs["timeout"] = int(model.timeout)
            kwargs.update(model.provider_params)
            return ChatMistralAI(**kwargs)

        case "OpenAI":
            try:
                from langchain_openai import ChatOpenAI
            except ImportError as e:
                raise _missing_package(
                    "OpenAI", "langchain-openai"
                ) from e

            kwargs = {
                "model": model_name,
                "temperature": model.temperature,
                "max_retries": model.max_retries,
                "use_responses_api": False,
            }
            if model.max_tokens is not None:
                kwargs["max_tokens"] = model.max_tokens
            if model.timeout is not None:
                kwargs["timeout"] = model.timeout
            kwargs.update(model.provider_params)
            return ChatOpenAI(**kwargs)

        case "Debug":
            from langchain_core.language_models.fake_chat_models import (
                GenericFakeChatModel,
            )

            params = model.provider_params
            if "message" in params:
                return GenericFakeChatModel(
                    name=f"Debug/{model_name}",
                    messages=yield_constant_message(
                        str(params["message"])
                    ),
                )
            return GenericFakeChatModel(
                name=f"Debug/{model_name}",
                messages=yield_message(
                    str(params.get("prefix", "Message"))
                ),
            )

        case _:
            raise ValueError(
                f"Unreachable code reached: invalid source {model_source}"
            )


def _create_embedding_instance(
    model: EmbeddingSettings,
) -> Embeddings:
    """
    Factory function to create LangChain embeddings while checking
    permissible sources.
    """
    model_source: str = model.get_model_source()
    model_name: str = model.get_model_name()
    match model_source:
        case "Gemini":
            try:
                from langchain_google_genai import (
                    GoogleGenerativeAIEmbeddings,
                )
            except ImportError as e:
                raise _missing_package(
                    "Gemini", "langchain-google-genai"
                ) from e

            return GoogleGenerativeAIEmbeddings(
                model=model_name,
                task_type="retrieval_document",
            )

        case "Mistral":
            try:
                from langchain_mistralai import MistralAIEmbeddings
            except ImportError as e:
                raise _missing_package(
                    "Mistral", "langchain-mistralai"
                ) from e

            return MistralAIEmbeddings(model=model_name)

        case "OpenAI":
            try:
                from langchain_openai import OpenAIEmbeddings
            except ImportError as e:
                raise _missing_package(
                    "OpenAI", "langchain-openai"
                ) from e

            return OpenAIEmbeddings(model=model_name)

        case "SentenceTransformers":
            try:
                from langchain_huggingface import HuggingFaceEmbeddings
            except ImportError as e:
                raise _missing_package(
                    "SentenceTransformers", "langchain-huggingface"
                ) from e

            return HuggingFaceEmbeddings(
                model_name=f"sentence-transformers/{model_name}",
                encode_kwargs={"normalize_embeddings": True},
            )

        case "Debug":
            from langchain_core.embeddings import (
                DeterministicFakeEmbedding,
            )

            return DeterministicFakeEmbedding(size=model.size)

        case _:
            raise ValueError(
                f"Unreachable code reached: invalid source {model_source}"
            )


# Public interface----------------------------------------------
langchain_models: LazyLoadingDict[LanguageModelSettings, BaseChatModel] = (
    LazyLoadingDict(_create_model_instance)
)
langchain_embeddings: LazyLoadingDict[EmbeddingSettings, Embeddings] = (
    LazyLoadingDict(_create_embedding_instance)
)


def create_model_from_spec(
    model: str,
    *,
    temperature: float = 0.1,
    max_tokens: int | None = None,
    max_retries: int = 2,
    timeout: float | None = None,
    provider_params: dict[str, MetadataPrimitive] | None = None,
) -> BaseChatModel:
    """
    Create a LangChain chat model from specifications.

    Args:
        model: the model in the form source/model, such as
            'OpenAI/gpt-4o'

    Returns:
        a memoized LangChain chat model object.

    Raises:
        ValidationError, ValueError: for invalid specifications
        ImportError: if the provider package is not installed
    """
    spec = LanguageModelSettings(
        model=model,
        temperature=temperature,
        max_tokens=max_tokens,
        max_retries=max_retries,
        timeout=timeout,
        provider_params=provider_params or {},
    )
    return langchain_models[spec]


def create_model_from_settings(
    settings: LanguageModelSettings,
) -> BaseChatModel:
    """
    Create a LangChain chat model from a LanguageModelSettings object.

    Example:
        ```python
        settings = Settings()
        model = create_model_from_settings(settings.minor)
        ```
    """
    return langchain_models[settings]


def create_embedding_model_from_spec(
    dense_model: str, *, size: int = 256
) -> Embeddings:
    """
    Create a LangChain embeddings object from the specification
    source/model, e.g. 'OpenAI/text-embedding-3-small'.

    Raises:
        ValidationError, ValueError: for invalid specifications
        ImportError: if the provider package is not installed
    """
    spec = EmbeddingSettings(dense_model=dense_model, size=size)
    return langchain_embeddings[spec]


def create_embedding_model_from_settings(
    settings: EmbeddingSettings,
) -> Embeddings:
    """
    Create a LangChain embeddings object from an EmbeddingSettings
    object.
    """
    return langchain_embeddings[settings]
