"""
The utility class `LazyLoadingDict` memoizes the objects created by
a factory function: chat models, embeddings, prompt definitions and
chains are created on first access from a hashable definition (the
dictionary key) and retrieved from the dictionary afterwards.

Using pydantic models or Literal-constrained values as keys gives
runtime errors for invalid definitions: the key fails validation, or
the factory raises for an unknown value.

    ```python
    from lmchain.config import LanguageModelSettings

    def _create_model(settings: LanguageModelSettings) -> BaseChatModel:
        ...   # build the model described by settings

    models = LazyLoadingDict(_create_model)

    # created on first access, the same object afterwards
    model = models[LanguageModelSettings(model="OpenAI/gpt-4o")]
    ```

Values may also be assigned directly, bypassing the factory; this is
how custom prompts are registered in the prompt library.
"""

from collections.abc import Callable
from typing import TypeVar

ValueT = TypeVar('ValueT')
KeyT = TypeVar('KeyT')


class LazyLoadingDict(dict[KeyT, ValueT]):
    """A dictionary whose missing values are created by a factory
    function of the key, and stored for later access.

    Args:
        key_creator_func: the factory function, called with the key
            when the key is first accessed.
        destructor_func: optional function called on values removed
            from the dictionary. If not given, values with a `close`
            member function are closed.

    Expected behaviour: may raise ValidationError and ValueErrors
        from the factory function.
    """

    def __init__(
        self,
        key_creator_func: Callable[[KeyT], ValueT],
        destructor_func: Callable[[ValueT], None] | None = None,
    ):
        super().__init__()
        self._key_creator_func = key_creator_func
        self._destructor_func = destructor_func

    def _destroy_value(self, value: ValueT) -> None:
        if self._destructor_func:
            self._destructor_func(value)
        elif hasattr(value, "close") and callable(value.close):  # type: ignore
            value.close()  # type: ignore

    def __getitem__(self, key: KeyT) -> ValueT:
        if key in self:
            return super().__getitem__(key)

        value: ValueT = self._key_creator_func(key)
        super().__setitem__(key, value)
        return value

    def __setitem__(self, key: KeyT, value: ValueT) -> None:
        """Store a value directly, bypassing the factory function.

        Raises:
            ValueError: If the key already exists in the dictionary.
        """
        if key in self:
            raise ValueError(
                f"Key '{key}' already exists. Delete it first to "
                "overwrite."
            )
        super().__setitem__(key, value)

    def __delitem__(self, key: KeyT) -> None:
        if key in self:
            self._destroy_value(super().__getitem__(key))
        super().__delitem__(key)

    def clear(self) -> None:
        for value in list(self.values()):
            self._destroy_value(value)
        super().clear()
