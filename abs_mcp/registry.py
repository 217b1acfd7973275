"""
Tool registry and dispatch.

Each tool is a ``ToolDefinition``: a name, a description, the pydantic model
its arguments must satisfy, and the coroutine that builds the request, calls
the ABS API and normalizes the answer. ``ToolRegistry.dispatch`` runs that
pipeline for one call and lets the first error through, tagged with its
stage.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Type

import httpx

from .audit import AuditSink, audit_sink_from_settings
from .builder import (
    build_data_request,
    build_dataflow_list_request,
    build_datastructure_request,
    build_structure_request,
)
from .cache import DataflowCache
from .client import AbsClient
from .config import Settings
from .errors import AbsMcpError, UnknownToolError
from .normalize import (
    DataflowRecord,
    ToolResult,
    normalize_response,
    parse_dataflow_details,
    parse_dataflow_list,
    parse_json,
    require_document,
)
from .params import (
    DataflowDetailsParams,
    GetDataParams,
    ListDataflowsParams,
    StructureListParams,
    StructureParams,
    ToolParams,
    validate_arguments,
)

logger = logging.getLogger(__name__)

Handler = Callable[[Any], Awaitable[ToolResult]]


@dataclass(frozen=True)
class ToolDefinition:
    name: str
    description: str
    params_model: Type[ToolParams]
    handler: Handler

    @property
    def input_schema(self) -> Dict[str, Any]:
        return self.params_model.model_json_schema()


class ToolRegistry:
    """The set of callable tools, in declaration order."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[AbsClient] = None,
        cache: Optional[DataflowCache] = None,
        clock: Optional[Callable[[], date]] = None,
    ):
        self.settings = settings or Settings()
        self.client = client or AbsClient(timeout=self.settings.timeout)
        self.cache = cache or DataflowCache()
        self.clock = clock or date.today
        self._tools: Dict[str, ToolDefinition] = {}

        self.register(ToolDefinition(
            name="get_data",
            description=(
                "Retrieve observations from an ABS dataflow. The data key filters by "
                "dimension values ('.'-separated, empty position = any value, '+' = "
                "several values, 'all' = everything). Periods default to last year "
                "through this year; the format defaults to CSV with labels."
            ),
            params_model=GetDataParams,
            handler=self._get_data,
        ))
        self.register(ToolDefinition(
            name="list_dataflows",
            description="List all available ABS statistical dataflows (id, name, version, agency).",
            params_model=ListDataflowsParams,
            handler=self._list_dataflows,
        ))
        self.register(ToolDefinition(
            name="get_structure_list",
            description="Get all structures of a given type owned by an agency, e.g. every ABS codelist.",
            params_model=StructureListParams,
            handler=self._get_structure,
        ))
        self.register(ToolDefinition(
            name="get_structure",
            description=(
                "Get a structure (dataflow, data structure, codelist, concept scheme...) "
                "by type, agency, id and optional version. Without an id, lists the "
                "structures of that type."
            ),
            params_model=StructureParams,
            handler=self._get_structure,
        ))
        self.register(ToolDefinition(
            name="get_dataflow_details",
            description=(
                "Get the dimensions (with their allowed codes), measures and attributes "
                "of a dataflow. Use it to build data keys for get_data."
            ),
            params_model=DataflowDetailsParams,
            handler=self._get_dataflow_details,
        ))

    def register(self, definition: ToolDefinition) -> None:
        if definition.name in self._tools:
            raise ValueError(f"Tool already registered: {definition.name}")
        self._tools[definition.name] = definition

    def definitions(self) -> List[ToolDefinition]:
        return list(self._tools.values())

    def names(self) -> List[str]:
        return list(self._tools)

    def get(self, name: str) -> ToolDefinition:
        try:
            return self._tools[name]
        except KeyError:
            raise UnknownToolError(name, self.names()) from None

    async def dispatch(self, name: str, arguments: Optional[Mapping[str, Any]] = None) -> ToolResult:
        """Validate ``arguments`` and run tool ``name``.

        Raises:
            UnknownToolError: before anything else happens.
            ValidationError: before any request is built.
            RemoteError: when the ABS API fails or does not answer.
            ParseError: when its answer cannot be read.
        """
        definition = self.get(name)
        try:
            params = validate_arguments(name, definition.params_model, arguments, today=self.clock())
            return await definition.handler(params)
        except AbsMcpError as e:
            logger.error(f"{name} failed ({e.stage}): {e}")
            raise

    async def _get_data(self, params: GetDataParams) -> ToolResult:
        request = build_data_request(params, self.settings.base_url)
        response = await self.client.fetch(request)
        return normalize_response(response, params.response_format)

    async def _fetch_dataflows(self) -> List[DataflowRecord]:
        request = build_dataflow_list_request(self.settings.base_url, self.settings.agency)
        response = await self.client.fetch(request)
        return parse_dataflow_list(require_document(response))

    async def _list_dataflows(self, params: ListDataflowsParams) -> ToolResult:
        records = await self.cache.get_or_fetch(self._fetch_dataflows)
        return ToolResult(
            kind="json",
            value=[record.model_dump(exclude_none=True) for record in records],
        )

    async def _get_structure(self, params: StructureListParams) -> ToolResult:
        request = build_structure_request(params, self.settings.base_url)
        response = await self.client.fetch(request)
        return parse_json(response)

    async def _get_dataflow_details(self, params: DataflowDetailsParams) -> ToolResult:
        request = build_datastructure_request(
            params.dataflow_id,
            self.settings.base_url,
            self.settings.agency,
            self.settings.datastructure_prefix,
        )
        response = await self.client.fetch(request)
        details = parse_dataflow_details(require_document(response), params.dataflow_id)
        return ToolResult(kind="json", value=details.model_dump(exclude_none=True))


def build_registry(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    audit: Optional[AuditSink] = None,
    clock: Optional[Callable[[], date]] = None,
) -> ToolRegistry:
    """Assemble a registry with its client, audit sink and cache."""
    settings = settings or Settings()
    if audit is None:
        audit = audit_sink_from_settings(settings)
    client = AbsClient(timeout=settings.timeout, transport=transport, audit=audit)
    return ToolRegistry(settings=settings, client=client, cache=DataflowCache(), clock=clock)
