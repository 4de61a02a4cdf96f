"""
Model providers and their capabilities.

A pipe's model is given as 'provider:model' (e.g. 'openai:gpt-4o-mini').
The provider prefix determines the capabilities consulted by the
orchestrator, and, when running against a local server, the
environment variable holding the provider's API key.

**Example**:

    ```python
    from pipeloop.pipes.providers import (
        get_provider,
        provider_capabilities,
    )
    provider = get_provider("anthropic")  # 'Anthropic'
    provider_capabilities[provider].streaming_with_tools  # False
    ```
"""

import os
from typing import Literal

from pydantic import BaseModel, ConfigDict

from .lazy_dict import LazyLoadingDict

ModelProvider = Literal[
    'OpenAI',
    'Anthropic',
    'Together',
    'Groq',
    'Google',
    'Cohere',
    'Fireworks AI',
    'Perplexity',
    'Mistral AI',
    'xAI',
    'Ollama',
    'DeepSeek',
]

# model prefix -> provider name
_PREFIXES: dict[str, ModelProvider] = {
    'openai': 'OpenAI',
    'anthropic': 'Anthropic',
    'together': 'Together',
    'groq': 'Groq',
    'google': 'Google',
    'cohere': 'Cohere',
    'fireworks': 'Fireworks AI',
    'perplexity': 'Perplexity',
    'mistral': 'Mistral AI',
    'xai': 'xAI',
    'ollama': 'Ollama',
    'deepseek': 'DeepSeek',
}

# provider name -> environment variable with the provider key
_KEY_VARIABLES: dict[ModelProvider, str] = {
    'OpenAI': "OPENAI_API_KEY",
    'Anthropic': "ANTHROPIC_API_KEY",
    'Together': "TOGETHER_API_KEY",
    'Groq': "GROQ_API_KEY",
    'Google': "GOOGLE_API_KEY",
    'Cohere': "COHERE_API_KEY",
    'Fireworks AI': "FIREWORKS_API_KEY",
    'Perplexity': "PERPLEXITY_API_KEY",
    'Mistral AI': "MISTRAL_API_KEY",
    'xAI': "XAI_API_KEY",
    'Ollama': "OLLAMA_API_KEY",
    'DeepSeek': "DEEPSEEK_API_KEY",
}


class ProviderCapabilities(BaseModel):
    """Features of a provider that change how a pipe is run.

    Attributes:
        streaming_with_tools: the provider can stream a response when
            the pipe declares tools
    """

    streaming_with_tools: bool = True

    model_config = ConfigDict(frozen=True, extra='forbid')


def get_provider(prefix: str) -> ModelProvider:
    """Map a model prefix to the provider name.

    Raises:
        ValueError: if the prefix is not a known provider
    """
    key = prefix.strip().lower()
    if key not in _PREFIXES:
        raise ValueError(
            f"Unknown model provider: '{prefix}'. "
            f"Must be one of {list(_PREFIXES)}."
        )
    return _PREFIXES[key]


def get_model_provider(model: str) -> ModelProvider:
    """The provider of a model spec of the form 'provider:model'."""
    return get_provider(model.split(':')[0])


def _create_capabilities(provider: ModelProvider) -> ProviderCapabilities:
    match provider:
        case 'Anthropic':
            return ProviderCapabilities(streaming_with_tools=False)
        case _ if provider in _KEY_VARIABLES:
            return ProviderCapabilities()
        case _:
            raise ValueError(f"Invalid model provider: {provider}")


# memoized capabilities, keyed by provider name
provider_capabilities = LazyLoadingDict(_create_capabilities)


def get_llm_api_key(provider: ModelProvider) -> str:
    """Read the API key of the provider from the environment.

    Returns an empty string if the variable is not set. Local servers
    of keyless providers (such as Ollama) accept that.
    """
    if provider not in _KEY_VARIABLES:
        raise ValueError(f"Invalid model provider: {provider}")
    return os.environ.get(_KEY_VARIABLES[provider], "")
