"""
Language-model completion backend.

The rest of dbsage only depends on the LLMBackend protocol:
``complete(system_prompt, messages, max_tokens, temperature) -> str``.
LangChainBackend implements it on top of LangChain chat models; the
OpenAI-compatible providers (groq, deepseek, grok, openrouter) go through
ChatOpenAI with their own base URL.

Failures are wrapped in BackendError and never retried here.
"""

from dataclasses import dataclass
from typing import Protocol, TypedDict

from langchain_anthropic import ChatAnthropic
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_google_genai import ChatGoogleGenerativeAI
from langchain_openai import ChatOpenAI

from dbsage.config import Settings, settings as default_settings
from dbsage.errors import BackendError, ConfigurationError
from dbsage.logging_config import get_logger

logger = get_logger(__name__)


class ChatMessage(TypedDict):
    role: str  # "user" | "assistant"
    content: str


class LLMBackend(Protocol):
    """Completion capability used by the agent, the augmenter and routines."""

    def complete(
        self,
        system_prompt: str,
        messages: list[ChatMessage],
        max_tokens: int,
        temperature: float,
    ) -> str:
        ...


@dataclass(frozen=True)
class ProviderProfile:
    default_model: str
    base_url: str | None = None


PROVIDERS: dict[str, ProviderProfile] = {
    "groq": ProviderProfile("openai/gpt-oss-120b", "https://api.groq.com/openai/v1"),
    "openai": ProviderProfile("gpt-4o"),
    "deepseek": ProviderProfile("deepseek-chat", "https://api.deepseek.com/v1"),
    "grok": ProviderProfile("grok-beta", "https://api.x.ai/v1"),
    "openrouter": ProviderProfile("openai/gpt-4o", "https://openrouter.ai/api/v1"),
    "anthropic": ProviderProfile("claude-3-5-sonnet-20241022"),
    "google": ProviderProfile("gemini-2.0-flash"),
}


def build_chat_model(
    provider: str,
    model: str,
    api_key: str,
    max_tokens: int,
    temperature: float,
    timeout: float,
) -> BaseChatModel:
    """
    Instantiate the LangChain chat model for a provider.
    
    Raises:
        ConfigurationError: Unknown provider
    """
    profile = PROVIDERS.get(provider)
    if profile is None:
        raise ConfigurationError(
            f"Unsupported LLM provider: {provider}. "
            f"Supported: {', '.join(sorted(PROVIDERS))}"
        )

    if provider == "anthropic":
        return ChatAnthropic(
            model=model,
            api_key=api_key,
            max_tokens=max_tokens,
            temperature=temperature,
            timeout=timeout,
            max_retries=0,
        )

    if provider == "google":
        return ChatGoogleGenerativeAI(
            model=model,
            google_api_key=api_key,
            max_output_tokens=max_tokens,
            temperature=temperature,
            timeout=timeout,
            max_retries=0,
        )

    return ChatOpenAI(
        model=model,
        api_key=api_key,
        base_url=profile.base_url,
        max_tokens=max_tokens,
        temperature=temperature,
        timeout=timeout,
        max_retries=0,
    )


def to_langchain_messages(system_prompt: str, messages: list[ChatMessage]) -> list[BaseMessage]:
    converted: list[BaseMessage] = [SystemMessage(content=system_prompt)]
    for message in messages:
        if message["role"] == "assistant":
            converted.append(AIMessage(content=message["content"]))
        else:
            converted.append(HumanMessage(content=message["content"]))
    return converted


def message_text(message: BaseMessage) -> str:
    """Plain text of a model reply (content may be a list of blocks)."""
    content = message.content
    if isinstance(content, str):
        return content
    parts = []
    for block in content:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)


class LangChainBackend:
    """
    LLMBackend over LangChain chat models.
    
    One model instance is kept per (max_tokens, temperature) pair since
    those are constructor parameters for some providers.
    """

    def __init__(self, provider: str, model: str, api_key: str, timeout: float = 30.0):
        if provider not in PROVIDERS:
            raise ConfigurationError(f"Unsupported LLM provider: {provider}")
        self.provider = provider
        self.model = model
        self._api_key = api_key
        self._timeout = timeout
        self._models: dict[tuple[int, float], BaseChatModel] = {}

    def _get_model(self, max_tokens: int, temperature: float) -> BaseChatModel:
        key = (max_tokens, temperature)
        if key not in self._models:
            logger.debug(
                "initializing_chat_model",
                provider=self.provider,
                model=self.model,
                max_tokens=max_tokens,
            )
            self._models[key] = build_chat_model(
                self.provider, self.model, self._api_key, max_tokens, temperature, self._timeout
            )
        return self._models[key]

    def complete(
        self,
        system_prompt: str,
        messages: list[ChatMessage],
        max_tokens: int,
        temperature: float,
    ) -> str:
        """
        Run one completion.
        
        Raises:
            BackendError: Any transport, auth, rate-limit or provider failure
        """
        chat_model = self._get_model(max_tokens, temperature)
        try:
            reply = chat_model.invoke(to_langchain_messages(system_prompt, messages))
        except Exception as e:
            logger.warning(
                "llm_completion_failed",
                provider=self.provider,
                model=self.model,
                error=str(e),
            )
            raise BackendError(
                "Language model call failed",
                provider=self.provider,
                model=self.model,
                original_error=e,
            ) from e

        text = message_text(reply).strip()
        logger.debug("llm_completion_done", provider=self.provider, chars=len(text))
        return text


def get_backend(settings: Settings | None = None) -> LangChainBackend:
    """
    Build the configured backend.
    
    Raises:
        ConfigurationError: Missing API key for the configured provider
    """
    settings = settings or default_settings
    provider = settings.llm_provider.lower()
    api_key = settings.api_key_for(provider)
    if not api_key:
        raise ConfigurationError(f"{provider.upper()}_API_KEY not configured")

    model = settings.llm_model or PROVIDERS[provider].default_model
    logger.debug("initializing_llm_backend", provider=provider, model=model)
    return LangChainBackend(provider, model, api_key, timeout=settings.llm_timeout_seconds)
