"""
Request/response audit trail.

The core only talks to an ``AuditSink``. ``NullAuditSink`` is the default;
``FileAuditSink`` appends one JSON object per line to a local file. Auditing
is diagnostic output: nothing here may make a tool call fail.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Optional, Protocol

from .config import ERROR_EXCERPT_LENGTH, Settings

if TYPE_CHECKING:
    from .builder import RemoteRequest
    from .client import RemoteResponse

logger = logging.getLogger(__name__)


class AuditSink(Protocol):
    def record_request(self, request: "RemoteRequest") -> None: ...

    def record_response(self, request: "RemoteRequest", response: "RemoteResponse") -> None: ...

    def record_error(self, request: "RemoteRequest", error: Exception) -> None: ...


class NullAuditSink:
    """Discards everything."""

    def record_request(self, request: "RemoteRequest") -> None:
        pass

    def record_response(self, request: "RemoteRequest", response: "RemoteResponse") -> None:
        pass

    def record_error(self, request: "RemoteRequest", error: Exception) -> None:
        pass


class FileAuditSink:
    """Append-only JSON-lines audit log.

    Writes go through a private logger with a ``FileHandler`` so that I/O
    errors end up in ``Handler.handleError`` instead of the caller.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._logger: Optional[logging.Logger] = None

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            handler = logging.FileHandler(self.path, mode="a", encoding="utf-8")
        except OSError as e:
            logger.warning(f"Audit log disabled, cannot open {self.path}: {e}")
            return

        handler.setFormatter(logging.Formatter("%(message)s"))
        audit_logger = logging.getLogger(f"{__name__}.{id(self)}")
        audit_logger.setLevel(logging.INFO)
        audit_logger.propagate = False
        audit_logger.addHandler(handler)
        self._logger = audit_logger

    @property
    def enabled(self) -> bool:
        return self._logger is not None

    def close(self) -> None:
        if self._logger is None:
            return
        for handler in list(self._logger.handlers):
            handler.close()
            self._logger.removeHandler(handler)
        self._logger = None

    def _write(self, event: str, request: "RemoteRequest", **fields: Any) -> None:
        if self._logger is None:
            return
        entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event": event,
            "url": request.full_url,
        }
        entry.update(fields)
        try:
            self._logger.info(json.dumps(entry, ensure_ascii=False, default=str))
        except Exception as e:
            logger.warning(f"Could not write audit entry: {e}")

    def record_request(self, request: "RemoteRequest") -> None:
        self._write("request", request, headers=request.header_dict())

    def record_response(self, request: "RemoteRequest", response: "RemoteResponse") -> None:
        self._write(
            "response",
            request,
            status=response.status_code,
            content_type=response.content_type,
            size=len(response.content),
            excerpt=response.text[:ERROR_EXCERPT_LENGTH],
        )

    def record_error(self, request: "RemoteRequest", error: Exception) -> None:
        self._write("error", request, error=type(error).__name__, message=str(error)[:ERROR_EXCERPT_LENGTH])


def audit_sink_from_settings(settings: Settings) -> AuditSink:
    if settings.audit_log_path is None:
        return NullAuditSink()
    return FileAuditSink(settings.audit_log_path)
