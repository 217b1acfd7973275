"""
ABS MCP Server

An MCP server that provides tools to query the Australian Bureau of Statistics
SDMX REST API (https://data.api.abs.gov.au/rest):
- data queries for any dataflow, as CSV, SDMX-JSON or SDMX-ML
- structure (metadata) queries: dataflows, data structures, codelists, ...
- a cached list of dataflows and a digest of one dataflow's dimensions
"""

import logging
import sys
from enum import Enum
from typing import Annotated, Any, Optional, Type

from mcp.server.fastmcp import FastMCP
from pydantic import Field

from .config import Settings
from .params import (
    AGENCY_PATTERN,
    DATA_KEY_PATTERN,
    DEFAULT_RESPONSE_FORMAT,
    ID_PATTERN,
    PERIOD_PATTERN,
    VERSION_PATTERN,
    DataDetail,
    References,
    ResponseFormat,
    StructureDetail,
    StructureType,
)
from .registry import build_registry

# Configure logging to stderr (never stdout for stdio servers!)
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger("abs-mcp")

settings = Settings.from_env()
registry = build_registry(settings)

# Initialize the MCP server
mcp = FastMCP("abs")


def _description(name: str) -> str:
    return registry.get(name).description


def _one_of(choices: Type[Enum]) -> Any:
    # Advertised to clients only; the registry does the validating
    return Field(json_schema_extra={"enum": [member.value for member in choices]})


def _matching(pattern: str) -> Any:
    return Field(json_schema_extra={"pattern": pattern})


DataflowId = Annotated[str, _matching(ID_PATTERN)]
AgencyId = Annotated[str, _matching(AGENCY_PATTERN)]
DataKey = Annotated[Optional[str], _matching(DATA_KEY_PATTERN)]
Period = Annotated[Optional[str], _matching(PERIOD_PATTERN)]
StructureId = Annotated[Optional[str], _matching(ID_PATTERN)]
Version = Annotated[Optional[str], _matching(VERSION_PATTERN)]
FormatName = Annotated[str, _one_of(ResponseFormat)]
DataDetailName = Annotated[Optional[str], _one_of(DataDetail)]
StructureTypeName = Annotated[str, _one_of(StructureType)]
StructureDetailName = Annotated[Optional[str], _one_of(StructureDetail)]
ReferencesName = Annotated[Optional[str], _one_of(References)]


async def _call(name: str, **arguments: Any) -> str:
    """Dispatch a tool call, leaving out arguments the client did not send."""
    given = {key: value for key, value in arguments.items() if value is not None}
    result = await registry.dispatch(name, given)
    return result.render()


@mcp.tool(description=_description("get_data"))
async def get_data(
    dataflow_id: DataflowId,
    data_key: DataKey = None,
    start_period: Period = None,
    end_period: Period = None,
    response_format: FormatName = DEFAULT_RESPONSE_FORMAT.value,
    detail: DataDetailName = None,
    dimension_at_observation: Optional[str] = None,
) -> str:
    """
    Args:
        dataflow_id: The dataflow ID (e.g., "ABS_ANNUAL_ERP_ASGS2016")
        data_key: Filter key, e.g. "1.3.TOT..A" or "all" (default);
                  "." and ".." are refused, use "all" instead
        start_period: "2020", "2020-S1", "2020-Q2" or "2020-06" (default: last year)
        end_period: Same formats as start_period (default: this year)
        response_format: "csvfilewithlabels" (default), "csvfile", "jsondata",
                         "genericdata" or "structurespecificdata"
        detail: "full", "dataonly", "serieskeysonly" or "nodata"
        dimension_at_observation: e.g. "TIME_PERIOD" or "AllDimensions"
    """
    return await _call(
        "get_data",
        dataflow_id=dataflow_id,
        data_key=data_key,
        start_period=start_period,
        end_period=end_period,
        response_format=response_format,
        detail=detail,
        dimension_at_observation=dimension_at_observation,
    )


@mcp.tool(description=_description("list_dataflows"))
async def list_dataflows() -> str:
    return await _call("list_dataflows")


@mcp.tool(description=_description("get_structure_list"))
async def get_structure_list(
    structure_type: StructureTypeName,
    agency_id: AgencyId,
    detail: StructureDetailName = None,
    references: ReferencesName = None,
) -> str:
    """
    Args:
        structure_type: e.g. "dataflow", "datastructure", "codelist", "conceptscheme"
        agency_id: Owning agency (e.g., "ABS")
        detail: "allstubs", "referencestubs", "referencepartial",
                "allcompletestubs", "referencecompletestubs" or "full"
        references: "none", "parents", "parentsandsiblings", "children",
                    "descendants", "all" or a structure type
    """
    return await _call(
        "get_structure_list",
        structure_type=structure_type,
        agency_id=agency_id,
        detail=detail,
        references=references,
    )


@mcp.tool(description=_description("get_structure"))
async def get_structure(
    structure_type: StructureTypeName,
    agency_id: AgencyId,
    structure_id: StructureId = None,
    version: Version = None,
    detail: StructureDetailName = None,
    references: ReferencesName = None,
) -> str:
    """
    Args:
        structure_type: e.g. "dataflow", "datastructure", "codelist", "conceptscheme"
        agency_id: Owning agency (e.g., "ABS")
        structure_id: Structure ID (e.g., "CL_SEX"); omit to list all of the type
        version: e.g. "1.0.0" or "latest"; only with structure_id
        detail: Same values as for get_structure_list
        references: Same values as for get_structure_list
    """
    return await _call(
        "get_structure",
        structure_type=structure_type,
        agency_id=agency_id,
        structure_id=structure_id,
        version=version,
        detail=detail,
        references=references,
    )


@mcp.tool(description=_description("get_dataflow_details"))
async def get_dataflow_details(dataflow_id: DataflowId) -> str:
    """
    Args:
        dataflow_id: The dataflow ID (e.g., "ABS_ANNUAL_ERP_ASGS2016")
    """
    return await _call("get_dataflow_details", dataflow_id=dataflow_id)


def main():
    try:
        logging.getLogger().setLevel(settings.log_level)
    except ValueError as e:
        logger.critical(f"Cannot start ABS MCP server: {e}")
        sys.exit(1)

    logger.info(f"Starting ABS MCP server against {settings.base_url}...")
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
