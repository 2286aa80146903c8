""" LangChain interface to language models

This package connects the pipeline runtime (lmchain.core) to language
models through the LangChain core abstractions. The models are
specified in config.toml (or in settings objects created in code),
so that the application layer may be configured without modifying
the code.

The package has three layers:

- model objects (models): LangChain chat models and embeddings,
    created from settings and memoized.
- units (template, invoker, parsers): prompt templates, model
    invokers and output transformers, which implement the unit
    contract and may be composed into pipelines.
- chains (chains, prompts): ready-made pipelines built from the
    prompt library and the configured models.
"""
# pyright: reportUnusedImport=false
# flake8: noqa

from .lazy_dict import LazyLoadingDict
from .prompts import (
    PromptDefinition,
    PromptNames,
    prompt_library,
    create_prompt,
)
from .template import Template
from .invoker import ModelInvoker
from .parsers import (
    OutputTransformer,
    StrOutputTransformer,
    ResponseEnvelopeTransformer,
    message_text,
)
from .chains import (
    create_chain,
    create_chain_from_objects,
    create_naming_chain,
)
