from .chat_completions_adapter import ChatCompletionsAdapter

__all__ = ["ChatCompletionsAdapter"]
