"""
The utility class `LazyLoadingDict` stores objects produced by a
factory function, memoizing them on first access.

The factory function takes one argument of the type of the dictionary
key and returns the value for that key. Invalid keys are rejected by
the factory raising an exception, typically a ValueError, in which
case nothing is stored.

Example:
    ```python
    def _capabilities(provider: str) -> ProviderCapabilities:
        match provider:
            case "Anthropic":
                return ProviderCapabilities(streaming_with_tools=False)
            case _:
                return ProviderCapabilities()

    provider_capabilities = LazyLoadingDict(_capabilities)
    caps = provider_capabilities["Anthropic"]  # created and stored
    caps = provider_capabilities["Anthropic"]  # retrieved
    ```
"""

from collections.abc import Callable
from typing import TypeVar

# ValueT is the parameter for the stored valued, KeyT for the keys.
ValueT = TypeVar('ValueT')
KeyT = TypeVar('KeyT')


class LazyLoadingDict(dict[KeyT, ValueT]):
    """A lazy dictionary with memoized values of type ValueT created
    by a factory function from the key."""

    def __init__(self, key_creator_func: Callable[[KeyT], ValueT]):
        super().__init__()
        self._key_creator_func = key_creator_func

    def __getitem__(self, key: KeyT) -> ValueT:
        if key in self:
            return super().__getitem__(key)

        value: ValueT = self._key_creator_func(key)
        super().__setitem__(key, value)
        return value

    def __setitem__(self, key: KeyT, value: ValueT) -> None:
        """Allow direct setting of key/value pairs, bypassing the
        factory function.

        Raises:
            ValueError: If the key already exists in the dictionary.
        """
        if key in self:
            raise ValueError(
                f"Key '{key}' already exists. Delete it first to overwrite."
            )
        super().__setitem__(key, value)
