"""
Generation layer: ordered provider catalogue, fallback chain, and the
gateway every other component calls for text and embeddings.
"""

from agent_workspace.llm.fallback import FallbackChain, ProvidersExhaustedError
from agent_workspace.llm.gateway import GenerationGateway
from agent_workspace.llm.providers import (
    Provider,
    ProviderFactory,
    ProviderSpec,
    configured_providers,
)

__all__ = [
    "FallbackChain",
    "GenerationGateway",
    "Provider",
    "ProviderFactory",
    "ProviderSpec",
    "ProvidersExhaustedError",
    "configured_providers",
]
