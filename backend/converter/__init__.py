from .llm_client import (
    ChatMessage,
    LlmClient,
    LlmResponse,
    ToolCall,
    ToolDefinition,
)
from .errors import (
    CheckFailedError,
    ConversionCancelled,
    ConversionError,
    MissingOutputError,
    TransportError,
)
from .engine import ConversionEngine
from .factory import build_llm_client

__all__ = [
    "ChatMessage",
    "CheckFailedError",
    "ConversionCancelled",
    "ConversionEngine",
    "ConversionError",
    "LlmClient",
    "LlmResponse",
    "MissingOutputError",
    "ToolCall",
    "ToolDefinition",
    "TransportError",
    "build_llm_client",
]
