from dbsage.llm.backend import (
    PROVIDERS,
    ChatMessage,
    LangChainBackend,
    LLMBackend,
    get_backend,
)

__all__ = [
    "PROVIDERS",
    "ChatMessage",
    "LangChainBackend",
    "LLMBackend",
    "get_backend",
]
