"""Turn validated tool arguments into requests against the ABS SDMX API."""

from typing import Dict, Optional, Tuple

import httpx
from pydantic import BaseModel, ConfigDict

from .config import BASE_URL, DATASTRUCTURE_ID_PREFIX, DEFAULT_AGENCY
from .params import GetDataParams, References, ResponseFormat, StructureListParams, StructureParams

# Key selecting every series of a dataflow
ALL_KEY = "all"

ACCEPT_HEADERS = {
    ResponseFormat.CSV: "application/vnd.sdmx.data+csv;file=true",
    ResponseFormat.CSV_WITH_LABELS: "application/vnd.sdmx.data+csv;file=true;labels=both",
    ResponseFormat.JSON: "application/vnd.sdmx.data+json",
    ResponseFormat.GENERIC_XML: "application/vnd.sdmx.genericdata+xml",
    ResponseFormat.STRUCTURE_SPECIFIC_XML: "application/vnd.sdmx.structurespecificdata+xml",
}

STRUCTURE_ACCEPT = "application/vnd.sdmx.structure+json"

# Explicitly request no compression to avoid gzip issues
BASE_HEADERS = (("Accept-Encoding", "identity"),)


class RemoteRequest(BaseModel):
    """A fully resolved GET request. Query parameters keep their order."""

    model_config = ConfigDict(frozen=True)

    url: str
    query: Tuple[Tuple[str, str], ...] = ()
    headers: Tuple[Tuple[str, str], ...] = ()

    @property
    def full_url(self) -> str:
        return str(httpx.URL(self.url, params=list(self.query)))

    def query_dict(self) -> Dict[str, str]:
        return dict(self.query)

    def header_dict(self) -> Dict[str, str]:
        return dict(self.headers)


def _query(**values: Optional[str]) -> Tuple[Tuple[str, str], ...]:
    """Keep only the parameters that were given."""
    return tuple((name, value) for name, value in values.items() if value is not None)


def _enum_value(member) -> Optional[str]:
    return member.value if member is not None else None


def build_data_request(params: GetDataParams, base_url: str = BASE_URL) -> RemoteRequest:
    key = params.data_key or ALL_KEY
    return RemoteRequest(
        url=f"{base_url}/data/{params.dataflow_id}/{key}",
        query=_query(
            startPeriod=params.start_period,
            endPeriod=params.end_period,
            detail=_enum_value(params.detail),
            dimensionAtObservation=params.dimension_at_observation,
        ),
        headers=BASE_HEADERS + (("Accept", ACCEPT_HEADERS[params.response_format]),),
    )


def build_structure_request(params: StructureListParams, base_url: str = BASE_URL) -> RemoteRequest:
    """Build a structure query.

    Without a structure id the list form ``/{type}/{agency}`` is used. A
    version is only ever appended after an id; the validator refuses a
    version on its own.
    """
    segments = [params.structure_type.value, params.agency_id]
    if isinstance(params, StructureParams) and params.structure_id:
        segments.append(params.structure_id)
        if params.version:
            segments.append(params.version)

    return RemoteRequest(
        url=f"{base_url}/" + "/".join(segments),
        query=_query(
            detail=_enum_value(params.detail),
            references=_enum_value(params.references),
        ),
        headers=BASE_HEADERS + (("Accept", STRUCTURE_ACCEPT),),
    )


def build_dataflow_list_request(base_url: str = BASE_URL, agency: str = DEFAULT_AGENCY) -> RemoteRequest:
    return RemoteRequest(
        url=f"{base_url}/dataflow/{agency}",
        headers=BASE_HEADERS + (("Accept", STRUCTURE_ACCEPT),),
    )


def build_datastructure_request(
    dataflow_id: str,
    base_url: str = BASE_URL,
    agency: str = DEFAULT_AGENCY,
    prefix: str = DATASTRUCTURE_ID_PREFIX,
) -> RemoteRequest:
    """Request a dataflow's data structure with its codelists and concepts inlined."""
    return RemoteRequest(
        url=f"{base_url}/datastructure/{agency}/{prefix}{dataflow_id}",
        query=_query(references=References.CHILDREN.value),
        headers=BASE_HEADERS + (("Accept", STRUCTURE_ACCEPT),),
    )
