"""
lmchain: composable language model pipelines.

- lmchain.core: units, pipelines, parallel groups and chunk streams
- lmchain.language_models: templates, model invokers, output
    transformers and ready-made chains over LangChain models
- lmchain.retrieval: document stores and retrieval chains
- lmchain.config: the settings read from config.toml
"""

__version__ = "0.1.0"
