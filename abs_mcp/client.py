"""HTTP access to the ABS SDMX API."""

import logging
from typing import Optional

import httpx
from pydantic import BaseModel, ConfigDict

from .audit import AuditSink, NullAuditSink
from .builder import RemoteRequest
from .config import TIMEOUT
from .errors import RemoteError

logger = logging.getLogger(__name__)


class RemoteResponse(BaseModel):
    """A successful response, body untouched."""

    model_config = ConfigDict(frozen=True)

    status_code: int
    content_type: str = ""
    content: bytes = b""
    encoding: Optional[str] = None

    @property
    def text(self) -> str:
        return self.content.decode(self.encoding or "utf-8", errors="replace")


class AbsClient:
    """Issues exactly one GET per ``fetch``; no retries.

    Args:
        timeout: Seconds before an outbound call is abandoned.
        transport: Optional httpx transport, e.g. ``httpx.MockTransport`` in tests.
        audit: Sink receiving every request, response and failure.
    """

    def __init__(
        self,
        timeout: float = TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        audit: Optional[AuditSink] = None,
    ):
        self.timeout = timeout
        self.transport = transport
        self.audit = audit or NullAuditSink()

    def _audit(self, event: str, *args) -> None:
        try:
            getattr(self.audit, event)(*args)
        except Exception as e:
            logger.warning(f"Audit sink failed on {event}: {e}")

    async def fetch(self, request: RemoteRequest) -> RemoteResponse:
        self._audit("record_request", request)
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                logger.info(f"Fetching: {request.full_url}")
                response = await client.get(
                    request.url, params=list(request.query), headers=request.header_dict()
                )
        except httpx.TimeoutException as e:
            logger.error(f"Timeout fetching {request.full_url}")
            error = RemoteError(None, f"Request timed out after {self.timeout:g}s", request.full_url)
            self._audit("record_error", request, error)
            raise error from e
        except httpx.HTTPError as e:
            logger.error(f"Error fetching {request.full_url}: {e}")
            error = RemoteError(None, str(e) or type(e).__name__, request.full_url)
            self._audit("record_error", request, error)
            raise error from e

        # The body usually explains the failure, so read it before raising
        body = response.text
        if not response.is_success:
            logger.error(f"HTTP {response.status_code} from {request.full_url}: {body[:200]}")
            error = RemoteError(response.status_code, body, request.full_url)
            self._audit("record_error", request, error)
            raise error

        result = RemoteResponse(
            status_code=response.status_code,
            content_type=response.headers.get("content-type", ""),
            content=response.content,
            encoding=response.encoding,
        )
        self._audit("record_response", request, result)
        return result
