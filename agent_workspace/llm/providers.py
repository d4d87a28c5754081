"""
Generation Providers — Ordered Backend Catalogue

The gateway never talks to a vendor SDK directly. It receives an ordered
list of ProviderSpec entries and asks ProviderFactory for a LangChain chat
model or embeddings client for whichever spec it is currently trying.

Priority order (fixed):
  1. OpenAI       — chat + embeddings
  2. Groq         — chat only (OpenAI-compatible endpoint)
  3. Together     — chat + embeddings (OpenAI-compatible endpoint)
  4. Ollama       — chat + embeddings, local; always last

A hosted provider is configured only when its API key is present.
Ollama needs no key and is included unless explicitly disabled.

Adding a provider:
  Add a Provider member, a branch in configured_providers(), and a builder
  in ProviderFactory. Nothing upstream needs to change.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from langchain_core.embeddings import Embeddings
from langchain_core.language_models.chat_models import BaseChatModel

from agent_workspace.core.config import Settings, settings

logger = logging.getLogger(__name__)


class Provider(str, Enum):
    OPENAI   = "openai"
    GROQ     = "groq"
    TOGETHER = "together"
    OLLAMA   = "ollama"


@dataclass(frozen=True)
class ProviderSpec:
    """
    Static connection details for one provider.

    embedding_model is None for providers that cannot embed (Groq); the
    gateway skips them for embed() calls.
    """
    provider:        Provider
    chat_model:      str
    embedding_model: str | None = None
    api_key:         str = ""
    base_url:        str | None = None

    @property
    def supports_embeddings(self) -> bool:
        return self.embedding_model is not None

    def __str__(self) -> str:
        return f"{self.provider.value}/{self.chat_model}"


def configured_providers(cfg: Settings | None = None) -> list[ProviderSpec]:
    """Build the priority-ordered provider list from settings."""
    cfg = cfg or settings
    specs: list[ProviderSpec] = []

    if cfg.openai_api_key:
        specs.append(ProviderSpec(
            provider        = Provider.OPENAI,
            chat_model      = cfg.openai_model,
            embedding_model = cfg.openai_embedding_model,
            api_key         = cfg.openai_api_key,
        ))

    if cfg.groq_api_key:
        specs.append(ProviderSpec(
            provider   = Provider.GROQ,
            chat_model = cfg.groq_model,
            api_key    = cfg.groq_api_key,
            base_url   = cfg.groq_base_url,
        ))

    if cfg.together_api_key:
        specs.append(ProviderSpec(
            provider        = Provider.TOGETHER,
            chat_model      = cfg.together_model,
            embedding_model = cfg.together_embedding_model,
            api_key         = cfg.together_api_key,
            base_url        = cfg.together_base_url,
        ))

    if cfg.ollama_enabled:
        specs.append(ProviderSpec(
            provider        = Provider.OLLAMA,
            chat_model      = cfg.ollama_model,
            embedding_model = cfg.ollama_embedding_model,
            base_url        = cfg.ollama_base_url,
        ))

    logger.info(
        "Providers | configured=%s",
        ", ".join(str(s) for s in specs) or "none",
    )
    return specs


class ProviderFactory:
    """
    Instantiates LangChain clients for a ProviderSpec.

    Pure construction, no network I/O; the fallback chain calls
    .ainvoke() / .astream() / .aembed_query() on what is returned.
    """

    def build_chat(
        self,
        spec:        ProviderSpec,
        temperature: float,
        max_tokens:  int,
        streaming:   bool = False,
    ) -> BaseChatModel:
        if spec.provider == Provider.OLLAMA:
            return self._build_ollama_chat(spec, temperature, max_tokens)
        return self._build_openai_compatible_chat(spec, temperature, max_tokens, streaming)

    def build_embeddings(self, spec: ProviderSpec) -> Embeddings:
        if not spec.supports_embeddings:
            raise ValueError(f"Provider {spec.provider.value} has no embedding model")
        if spec.provider == Provider.OLLAMA:
            from langchain_community.embeddings import OllamaEmbeddings
            return OllamaEmbeddings(model=spec.embedding_model, base_url=spec.base_url)

        from langchain_openai import OpenAIEmbeddings
        return OpenAIEmbeddings(
            model=spec.embedding_model,
            api_key=spec.api_key,
            base_url=spec.base_url,
            # Non-OpenAI endpoints reject pre-tokenized input
            check_embedding_ctx_length=spec.provider == Provider.OPENAI,
        )

    # -----------------------------------------------------------------------
    # Provider-specific builders
    # -----------------------------------------------------------------------

    @staticmethod
    def _build_openai_compatible_chat(
        spec:        ProviderSpec,
        temperature: float,
        max_tokens:  int,
        streaming:   bool,
    ) -> BaseChatModel:
        from langchain_openai import ChatOpenAI
        return ChatOpenAI(
            model=spec.chat_model,
            api_key=spec.api_key,
            base_url=spec.base_url,
            temperature=temperature,
            max_tokens=max_tokens,
            streaming=streaming,
        )

    @staticmethod
    def _build_ollama_chat(
        spec:        ProviderSpec,
        temperature: float,
        max_tokens:  int,
    ) -> BaseChatModel:
        from langchain_community.chat_models import ChatOllama
        return ChatOllama(
            model=spec.chat_model,
            base_url=spec.base_url,
            temperature=temperature,
            num_predict=max_tokens,
        )
