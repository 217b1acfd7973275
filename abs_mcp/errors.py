"""
Errors raised while serving a tool call.

Each error carries the pipeline ``stage`` that produced it so callers can
tell a rejected argument from a remote failure or an unreadable body.
"""

from typing import Any, Dict, List, NamedTuple, Optional

from .config import NO_DATA_SENTINEL


class AbsMcpError(Exception):
    """Base class for every error a tool call can surface."""

    stage = "internal"
    kind = "error"

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "stage": self.stage, "message": str(self)}


class FieldError(NamedTuple):
    field: str
    reason: str


class ValidationError(AbsMcpError):
    """Arguments were missing, mistyped or outside an allowed set."""

    stage = "validation"
    kind = "validation_error"

    def __init__(self, tool: str, errors: List[FieldError]):
        self.tool = tool
        self.errors = list(errors)
        details = "; ".join(f"{e.field}: {e.reason}" for e in self.errors)
        super().__init__(f"Invalid arguments for {tool}: {details}")

    @property
    def fields(self) -> List[str]:
        return [e.field for e in self.errors]

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["errors"] = [e._asdict() for e in self.errors]
        return data


class RemoteError(AbsMcpError):
    """The remote service answered with a non-success status, or not at all.

    ``status`` is None when no response arrived (timeout, connection failure).
    ``body`` is the response body exactly as received.
    """

    stage = "remote"
    kind = "remote_error"

    def __init__(self, status: Optional[int], body: str, url: str = ""):
        self.status = status
        self.body = body
        self.url = url
        if status is None:
            message = f"Request failed: {body}"
        else:
            message = f"HTTP {status}: {body}"
        if self.no_data:
            message += " (no observations match the query)"
        super().__init__(message)

    @property
    def no_data(self) -> bool:
        return self.body.strip() == NO_DATA_SENTINEL

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(status=self.status, body=self.body, url=self.url)
        return data


class ParseError(AbsMcpError):
    """A response body could not be read in its declared format."""

    stage = "parse"
    kind = "parse_error"

    def __init__(self, reason: str, excerpt: str = ""):
        self.reason = reason
        self.excerpt = excerpt
        message = reason
        if excerpt:
            message += f". Body starts with: {excerpt}"
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(reason=self.reason, excerpt=self.excerpt)
        return data


class UnknownToolError(AbsMcpError):
    """Dispatch was asked for a tool that is not registered."""

    stage = "dispatch"
    kind = "unknown_tool"

    def __init__(self, name: str, available: List[str]):
        self.name = name
        self.available = list(available)
        super().__init__(
            f"Unknown tool: {name}. Available tools: {', '.join(self.available)}"
        )
