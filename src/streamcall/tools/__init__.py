"""Tool registry, dispatch and executors."""

from streamcall.tools.base import Tool, ToolExecutor, ToolParameter
from streamcall.tools.dispatcher import ToolDispatcher
from streamcall.tools.http_executor import HttpToolExecutor
from streamcall.tools.registry import ToolRegistry

__all__ = [
    "HttpToolExecutor",
    "Tool",
    "ToolDispatcher",
    "ToolExecutor",
    "ToolParameter",
    "ToolRegistry",
]
