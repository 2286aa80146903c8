"""
Read and write the configuration file.

The configuration is a pydantic settings object, `Settings`, read
from config.toml in the working directory (and from environment
variables with the LMCHAIN_ prefix, e.g. LMCHAIN_MINOR__MODEL). It is
meant to be loaded once, at process start, and is immutable
afterwards: settings objects are frozen, and are handed explicitly to
the factories that create model invokers and vector stores.

This file also contains the definitions of the model providers
supported by the package.

    ```python
    from lmchain.config import Settings, LanguageModelSettings

    settings = Settings()             # config.toml, or defaults
    settings.minor.get_model_source() # 'OpenAI'

    # override a single model
    settings = Settings(minor={'model': "Debug/echo"})
    ```
"""

from pathlib import Path
from typing import Any, Literal, Self

from pydantic import (
    Field,
    field_validator,
    model_validator,
    BaseModel,
)
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

# Values admitted in provider_params
MetadataPrimitive = str | int | float | bool

# Define supported models. These models must also be handled by the
# factories in lmchain.language_models.models
ModelSource = Literal[
    'OpenAI', 'Anthropic', 'Mistral', 'Gemini', 'Debug'
]
EmbeddingSource = Literal[
    'OpenAI', 'Mistral', 'Gemini', 'SentenceTransformers', 'Debug'
]

DEFAULT_CONFIG_FILE = "config.toml"
ENV_PREFIX = "LMCHAIN_"


def _validate_spec(spec: str, sources: tuple[str, ...]) -> str:
    cleaned_spec = spec.strip()
    if not (bool(cleaned_spec)):
        raise ValueError("Model specification is empty")
    if '\n' in cleaned_spec or '\r' in cleaned_spec:
        raise ValueError(
            "Model specification cannot contain newlines or carriage"
            + " returns."
        )
    tokens = cleaned_spec.split('/')
    if len(tokens) != 2 or not tokens[1].strip():
        raise ValueError(
            "Model specification must contain the model provider and "
            + "the model name separated by a single '/'.",
        )
    source = tokens[0].strip()
    if source not in sources:
        raise ValueError(
            f"Invalid model provider: '{source}'. "
            + f"Must be one of {sources}."
        )
    return source + '/' + tokens[1].strip()


class LanguageModelSettings(BaseModel):
    """
    Specification of language sources and models.

    Attributes:
        model: model specification, 'provider/model'
        temperature: float between 0.0 and 2.0
        max_tokens: max number of generated tokens
        max_retries: max number of retry attempts of the provider
            client (the pipeline runtime itself never retries)
        timeout: seconds allowed for one invocation or one stream
        provider_params: provider-specific parameters
    """

    model: str = Field(
        description="Model specification in the form "
        + "'model_provider/model' (e.g., 'OpenAI/gpt-4o')"
    )
    temperature: float = Field(
        default=0.1,
        ge=0.0,
        le=2.0,
        description="Controls randomness in model responses (0.0-2.0)",
    )
    max_tokens: int | None = Field(
        default=None,
        ge=1,
        description="Maximum number of tokens to generate",
    )
    max_retries: int = Field(
        default=2,
        ge=0,
        description="Maximum number of retry attempts of the client",
    )
    timeout: float | None = Field(
        default=None, gt=0, description="Request timeout in seconds"
    )
    provider_params: dict[str, MetadataPrimitive] = Field(
        default_factory=dict,
        description="Provider-specific parameters (e.g., "
        + "frequency_penalty for OpenAI)",
    )

    model_config = SettingsConfigDict(frozen=True, extra='forbid')

    def __hash__(self) -> int:
        # provider_params is a dict: hash its sorted items instead
        return hash(
            (
                self.model,
                self.temperature,
                self.max_tokens,
                self.max_retries,
                self.timeout,
                tuple(sorted(self.provider_params.items())),
            )
        )

    def get_model_source(self) -> ModelSource:
        return self.model.split('/')[0]  # type: ignore

    def get_model_name(self) -> str:
        return self.model.split('/')[1]

    def from_instance(self, **changes: Any) -> 'LanguageModelSettings':
        """A copy of these settings with some fields changed, e.g.
        settings.from_instance(temperature=0.7)."""
        data = self.model_dump()
        data.update(
            {k: v for k, v in changes.items() if v is not None}
        )
        return LanguageModelSettings(**data)

    @field_validator('model', mode='after')
    @classmethod
    def validate_model_spec(cls, spec: str) -> str:
        return _validate_spec(spec, ModelSource.__args__)

    @model_validator(mode='after')
    def validate_provider_params(self) -> Self:
        """Validate provider-specific parameters based on the source."""
        ALLOWED_PARAMS = {
            'OpenAI': {
                'frequency_penalty',
                'presence_penalty',
                'top_p',
                'seed',
                'logprobs',
                'top_logprobs',
            },
            'Anthropic': {'top_p', 'top_k', 'stop_sequences'},
            'Mistral': {'top_p', 'random_seed', 'safe_mode'},
            'Gemini': {'top_p', 'top_k', 'candidate_count'},
            'Debug': {'message', 'prefix'},
        }

        source: ModelSource = self.get_model_source()
        if source in ALLOWED_PARAMS:
            allowed = ALLOWED_PARAMS[source]
            invalid_params = set(self.provider_params.keys()) - allowed
            if invalid_params:
                raise ValueError(
                    f"Invalid provider_params for {source}: "
                    f"{invalid_params}. Allowed: {allowed}"
                )
        return self


class EmbeddingSettings(BaseModel):
    """
    Specification of the embeddings used to populate and search the
    vector store.

    Attributes:
        dense_model: embedding model specification, 'provider/model'
        size: vector size, used by the Debug embeddings only
    """

    dense_model: str = Field(
        description="Model specification in the form "
        + "'model_provider/model' (e.g., 'OpenAI/text-embedding-3-small')"
    )
    size: int = Field(
        default=256,
        ge=1,
        description="Vector size of the Debug embeddings",
    )

    model_config = SettingsConfigDict(frozen=True, extra='forbid')

    def get_model_source(self) -> EmbeddingSource:
        return self.dense_model.split('/')[0]  # type: ignore

    def get_model_name(self) -> str:
        return self.dense_model.split('/')[1]

    @field_validator('dense_model', mode='after')
    @classmethod
    def validate_model_spec(cls, spec: str) -> str:
        return _validate_spec(spec, EmbeddingSource.__args__)


class RetrievalSettings(BaseModel):
    """
    Retrieval parameters.

    Attributes:
        k: number of documents retrieved for each query
        separator: text placed between retrieved documents when they
            are formatted into a prompt
    """

    k: int = Field(default=4, ge=1, description="Documents per query")
    separator: str = Field(
        default="\n\n", description="Separator of formatted documents"
    )

    model_config = SettingsConfigDict(frozen=True, extra='forbid')


class Settings(BaseSettings):
    """
    A pydantic settings object containing the fields with the
    configuration information.

    Settings are saved and read from the configuration file in TOML
    format.

    Attributes:
        embeddings: Embedding model configuration
        major: Primary language model for complex tasks
        minor: Secondary language model for simple tasks
        aux: Auxiliary language model for specialized tasks
        retrieval: Retrieval parameters

    Note:
        Sources in order of priority: arguments given to the
        constructor, config.toml, environment variables.
    """

    embeddings: EmbeddingSettings = Field(
        default_factory=lambda: EmbeddingSettings(
            dense_model="OpenAI/text-embedding-3-small"
        ),
        description="Embedding model configuration",
    )
    major: LanguageModelSettings = Field(
        default_factory=lambda: LanguageModelSettings(
            model="OpenAI/gpt-4.1-mini",
        ),
        description="Primary language model for complex reasoning tasks",
    )
    minor: LanguageModelSettings = Field(
        default_factory=lambda: LanguageModelSettings(
            model="OpenAI/gpt-4.1-nano",
        ),
        description="Secondary language model for simple tasks",
    )
    aux: LanguageModelSettings = Field(
        default_factory=lambda: LanguageModelSettings(
            model="Mistral/mistral-small-latest", temperature=0.7
        ),
        description="Auxiliary language model for specialized tasks",
    )
    retrieval: RetrievalSettings = Field(
        default_factory=RetrievalSettings,
        description="Retrieval parameters",
    )

    model_config = SettingsConfigDict(
        toml_file=DEFAULT_CONFIG_FILE,
        env_prefix=ENV_PREFIX,
        env_nested_delimiter="__",
        frozen=True,
        validate_assignment=True,
        extra='allow',
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customize the order of settings sources."""
        return (
            init_settings,
            TomlConfigSettingsSource(settings_cls),
            env_settings,
        )

    def __str__(self) -> str:
        return serialize_settings(self)


def serialize_settings(sets: BaseSettings) -> str:
    """Transform the settings into a string in TOML format.

    Raises:
        ValueError: If settings cannot be serialized
    """
    import tomlkit

    doc = tomlkit.document()
    doc.add(tomlkit.comment("lmchain configuration file"))
    doc.add(tomlkit.nl())

    data: dict[str, Any] = sets.model_dump()
    for key, value in data.items():
        if isinstance(value, dict):
            tbl = tomlkit.table()
            for kkey, vvalue in value.items():  # type: ignore
                # None values cannot be serialized to TOML
                if vvalue is not None:
                    tbl[kkey] = vvalue
            doc[key] = tbl
        elif value is not None:
            doc[key] = value

    return str(tomlkit.dumps(doc))  # type: ignore


def export_settings(
    settings: BaseSettings, file_path: str | Path | None = None
) -> None:
    """Save settings to file in TOML format.

    Args:
        settings: A settings object to save
        file_path: The settings file path (defaults to config.toml)

    Raises:
        OSError: If file cannot be written
    """
    file_path = Path(file_path or DEFAULT_CONFIG_FILE)
    file_path.parent.mkdir(parents=True, exist_ok=True)
    with file_path.open("w", encoding="utf-8") as f:
        f.write(serialize_settings(settings))


def create_default_config_file(
    file_path: str | Path | None = None,
) -> None:
    """Create a settings file with the default values, replacing any
    existing file.

    Example:
        ```python
        create_default_config_file()
        create_default_config_file(file_path="custom_config.toml")
        ```
    """
    file_path = Path(file_path or DEFAULT_CONFIG_FILE)
    if file_path.exists():
        # otherwise, it would be read in by Settings()
        file_path.unlink()

    # defaults only: bypass config.toml and environment
    class DefaultSettings(Settings):
        @classmethod
        def settings_customise_sources(
            cls,
            settings_cls: type[BaseSettings],
            init_settings: PydanticBaseSettingsSource,
            env_settings: PydanticBaseSettingsSource,
            dotenv_settings: PydanticBaseSettingsSource,
            file_secret_settings: PydanticBaseSettingsSource,
        ) -> tuple[PydanticBaseSettingsSource, ...]:
            return (init_settings,)

    export_settings(DefaultSettings(), file_path)


def load_settings(file_path: str | Path | None = None) -> Settings:
    """Load settings from a TOML file.

    Raises:
        FileNotFoundError: If settings file doesn't exist
        ValueError: If settings file is invalid
    """
    file_path = Path(file_path or DEFAULT_CONFIG_FILE)
    if not file_path.exists():
        raise FileNotFoundError(
            f"Settings file not found: {file_path}"
        )

    try:
        class FileSettings(Settings):
            model_config = SettingsConfigDict(
                toml_file=str(file_path),
                env_prefix=ENV_PREFIX,
                env_nested_delimiter="__",
                frozen=True,
                validate_assignment=True,
                extra='allow',
            )

        return FileSettings()
    except Exception as e:
        raise ValueError(
            f"Failed to load settings from {file_path}:\n"
            + format_pydantic_error_message(str(e))
        ) from e


def format_pydantic_error_message(error_message: str) -> str:
    """Filter out the link lines from pydantic error messages."""
    lines = error_message.split('\n')
    return '\n'.join(
        line
        for line in lines
        if "For further information visit" not in line
    )


# Create a default config.toml file, if there is none.
if not Path(DEFAULT_CONFIG_FILE).exists():
    create_default_config_file()
