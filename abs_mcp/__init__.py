"""MCP server for the Australian Bureau of Statistics SDMX API."""

from .errors import AbsMcpError, ParseError, RemoteError, UnknownToolError, ValidationError
from .registry import ToolDefinition, ToolRegistry, build_registry

__version__ = "0.1.0"

__all__ = [
    "AbsMcpError",
    "ParseError",
    "RemoteError",
    "ToolDefinition",
    "ToolRegistry",
    "UnknownToolError",
    "ValidationError",
    "build_registry",
]
