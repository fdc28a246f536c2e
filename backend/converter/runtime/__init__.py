from .tool_dispatcher import ProgressCallback, ToolDispatcher

__all__ = ["ProgressCallback", "ToolDispatcher"]
