"""
Map ABS responses onto what the tools return.

CSV and XML bodies are handed back as text without being parsed. JSON is
parsed, and the structure helpers dig records out of SDMX-JSON structure
messages. Those helpers are lenient below the top level: a missing nested
collection becomes an empty one. A missing top-level document is an error.
"""

import json
import re
from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from .client import RemoteResponse
from .config import ERROR_EXCERPT_LENGTH
from .errors import ParseError
from .params import ResponseFormat

PREFERRED_LOCALE = "en"

# urn:sdmx:org.sdmx.infomodel.codelist.Codelist=ABS:CL_SEX(1.0.0)
# urn:sdmx:org.sdmx.infomodel.conceptscheme.Concept=ABS:CS_C16(1.0.0).SEX
URN_PATTERN = re.compile(
    r"=(?P<agency>[^:=]+):(?P<id>[^(]+)\((?P<version>[^)]*)\)(?:\.(?P<item>.+))?$"
)

# An XML declaration or a namespaced SDMX-ML root such as <message:Structure>;
# an HTML page does not qualify
XML_START = re.compile(r"<(\?xml\b|[A-Za-z][\w.-]*:[A-Za-z])")


class ToolResult(BaseModel):
    """Normalized outcome of a tool call."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["json", "csv", "xml"]
    value: Any
    content_type: str = ""
    # Set when JSON was asked for but XML came back
    mismatch: bool = False

    def render(self) -> str:
        if self.mismatch:
            return json.dumps(
                {
                    "kind": "xml",
                    "mismatch": True,
                    "message": "Expected JSON but the service returned XML",
                    "content_type": self.content_type,
                    "content": self.value,
                },
                indent=2,
                ensure_ascii=False,
            )
        if self.kind == "json":
            return json.dumps(self.value, indent=2, ensure_ascii=False)
        return self.value


class DataflowRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: Optional[str] = None
    version: Optional[str] = None
    agency: Optional[str] = None


class Code(BaseModel):
    id: str
    name: str


class Dimension(BaseModel):
    id: str
    name: str
    position: Optional[int] = None
    codelist: Optional[str] = None
    values: List[Code] = Field(default_factory=list)


class Measure(BaseModel):
    id: str
    name: str


class Attribute(BaseModel):
    id: str
    name: str
    assignment_status: Optional[str] = None


class DataflowDetails(BaseModel):
    id: str
    name: str
    version: Optional[str] = None
    agency: Optional[str] = None
    dimensions: List[Dimension] = Field(default_factory=list)
    measures: List[Measure] = Field(default_factory=list)
    attributes: List[Attribute] = Field(default_factory=list)


def excerpt(text: str) -> str:
    return text[:ERROR_EXCERPT_LENGTH]


def is_xml_response(data: str, content_type: str = "") -> bool:
    """Check if response data is XML (SDMX-ML)."""
    if "xml" in content_type.lower():
        return True
    return XML_START.match(data.lstrip()) is not None


def parse_json(response: RemoteResponse) -> ToolResult:
    """Parse a body declared as JSON.

    An XML body is not parsed; it comes back as a result flagged ``mismatch``.

    Raises:
        ParseError: if the body is not valid JSON.
    """
    text = response.text
    if is_xml_response(text, response.content_type):
        return ToolResult(kind="xml", value=text, content_type=response.content_type, mismatch=True)
    try:
        value = json.loads(text)
    except ValueError as e:
        raise ParseError(f"Response is not valid JSON ({e})", excerpt(text)) from e
    return ToolResult(kind="json", value=value, content_type=response.content_type)


def normalize_response(response: RemoteResponse, response_format: ResponseFormat) -> ToolResult:
    if response_format.is_csv:
        return ToolResult(kind="csv", value=response.text, content_type=response.content_type)
    if response_format.is_xml:
        return ToolResult(kind="xml", value=response.text, content_type=response.content_type)
    return parse_json(response)


def require_document(response: RemoteResponse) -> Dict[str, Any]:
    """Parse a body that must be an SDMX-JSON structure message."""
    result = parse_json(response)
    if result.mismatch:
        raise ParseError("Expected an SDMX-JSON structure message but received XML", excerpt(result.value))
    if not isinstance(result.value, dict):
        raise ParseError("Structure message is missing", excerpt(response.text))
    return result.value


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def _opt_str(value: Any) -> Optional[str]:
    return str(value) if value is not None else None


def _pick_localized(value: Any) -> Optional[str]:
    """Read a plain, list-of-objects or locale-keyed name."""
    if isinstance(value, str):
        return value or None
    if isinstance(value, dict):
        if value.get(PREFERRED_LOCALE):
            return str(value[PREFERRED_LOCALE])
        for text in value.values():
            if isinstance(text, str) and text:
                return text
        return None
    if isinstance(value, list):
        if not value:
            return None
        first = value[0]
        if isinstance(first, dict):
            text = first.get("name") or first.get("value") or first.get("text")
            return str(text) if text else None
        return str(first) if first else None
    return None


def _name_of(item: Dict[str, Any]) -> Optional[str]:
    return _pick_localized(item.get("name")) or _pick_localized(item.get("names"))


def localized_name(item: Dict[str, Any]) -> str:
    """Display name of an SDMX artefact, falling back to its id."""
    return _name_of(item) or str(item.get("id") or "")


def localized_description(item: Dict[str, Any]) -> Optional[str]:
    descriptions = item.get("descriptions")
    if isinstance(descriptions, list) and descriptions and isinstance(descriptions[0], dict):
        text = descriptions[0].get("description")
        if text:
            return str(text)
    return _pick_localized(item.get("description")) or _pick_localized(descriptions)


def parse_dataflow_list(document: Any) -> List[DataflowRecord]:
    """Extract dataflow records from a structure message.

    Raises:
        ParseError: if ``document`` is not a JSON object.
    """
    if not isinstance(document, dict):
        raise ParseError("Structure message is missing", excerpt(json.dumps(document)))

    data = _as_dict(document.get("data"))
    flows = data.get("dataflows")
    if not isinstance(flows, list):
        flows = _as_list(data.get("structures"))

    records = []
    for flow in flows:
        if not isinstance(flow, dict):
            continue
        records.append(
            DataflowRecord(
                id=str(flow.get("id") or ""),
                name=localized_name(flow),
                description=localized_description(flow),
                version=_opt_str(flow.get("version")),
                agency=_opt_str(flow.get("agencyID") or flow.get("agencyId")),
            )
        )
    return records


def _urn_parts(urn: Any) -> Optional[Tuple[str, str, Optional[str]]]:
    if not isinstance(urn, str):
        return None
    match = URN_PATTERN.search(urn)
    if not match:
        return None
    return match.group("id"), match.group("version"), match.group("item")


class _Lookup:
    """Codelists and concepts inlined in a structure message."""

    def __init__(self, data: Dict[str, Any]):
        self.codelists: Dict[Tuple[str, str], List[Code]] = {}
        self.concepts: Dict[Tuple[str, str, str], str] = {}

        for codelist in _as_list(data.get("codelists")):
            if not isinstance(codelist, dict):
                continue
            codes = [
                Code(id=str(code.get("id") or ""), name=localized_name(code))
                for code in _as_list(codelist.get("codes"))
                if isinstance(code, dict)
            ]
            self.codelists[(str(codelist.get("id")), str(codelist.get("version")))] = codes
            self.codelists.setdefault((str(codelist.get("id")), ""), codes)

        for scheme in _as_list(data.get("conceptSchemes")):
            if not isinstance(scheme, dict):
                continue
            for concept in _as_list(scheme.get("concepts")):
                if not isinstance(concept, dict):
                    continue
                name = _name_of(concept)
                if name:
                    key = (str(scheme.get("id")), str(concept.get("id")))
                    self.concepts[key + (str(scheme.get("version")),)] = name
                    self.concepts.setdefault(key + ("",), name)

    def codes(self, urn: Any) -> List[Code]:
        parts = _urn_parts(urn)
        if parts is None:
            return []
        codelist_id, version, _ = parts
        return list(self.codelists.get((codelist_id, version)) or self.codelists.get((codelist_id, ""), []))

    def concept_name(self, urn: Any) -> Optional[str]:
        parts = _urn_parts(urn)
        if parts is None or not parts[2]:
            return None
        scheme_id, version, concept_id = parts
        return self.concepts.get((scheme_id, concept_id, version)) or self.concepts.get(
            (scheme_id, concept_id, "")
        )

    def component_name(self, component: Dict[str, Any]) -> str:
        return (
            _name_of(component)
            or self.concept_name(component.get("conceptIdentity"))
            or str(component.get("id") or "")
        )


def parse_dataflow_details(document: Any, dataflow_id: str) -> DataflowDetails:
    """Summarise a data structure message as dimensions, measures and attributes.

    Raises:
        ParseError: if the message or its data structure is missing.
    """
    if not isinstance(document, dict) or not isinstance(document.get("data"), dict):
        raise ParseError(
            f"Structure message for {dataflow_id} is missing",
            excerpt(json.dumps(document)),
        )

    data = document["data"]
    structures = [s for s in _as_list(data.get("dataStructures")) if isinstance(s, dict)]
    if not structures:
        raise ParseError(f"No data structure found for {dataflow_id}", excerpt(json.dumps(document)))

    structure = structures[0]
    lookup = _Lookup(data)
    components = _as_dict(structure.get("dataStructureComponents"))

    dimension_list = _as_dict(components.get("dimensionList"))
    dimensions = []
    for dim in _as_list(dimension_list.get("dimensions")) + _as_list(dimension_list.get("timeDimensions")):
        if not isinstance(dim, dict):
            continue
        enumeration = _as_dict(dim.get("localRepresentation")).get("enumeration")
        position = dim.get("position")
        dimensions.append(
            Dimension(
                id=str(dim.get("id") or ""),
                name=lookup.component_name(dim),
                position=position if isinstance(position, int) else None,
                codelist=enumeration if isinstance(enumeration, str) else None,
                values=lookup.codes(enumeration),
            )
        )

    measure_list = _as_dict(components.get("measureList"))
    raw_measures = _as_list(measure_list.get("measures"))
    if isinstance(measure_list.get("primaryMeasure"), dict):
        raw_measures = [measure_list["primaryMeasure"]] + raw_measures
    measures = [
        Measure(id=str(m.get("id") or ""), name=lookup.component_name(m))
        for m in raw_measures
        if isinstance(m, dict)
    ]

    attributes = [
        Attribute(
            id=str(a.get("id") or ""),
            name=lookup.component_name(a),
            assignment_status=_opt_str(a.get("assignmentStatus")),
        )
        for a in _as_list(_as_dict(components.get("attributeList")).get("attributes"))
        if isinstance(a, dict)
    ]

    return DataflowDetails(
        id=str(structure.get("id") or dataflow_id),
        name=localized_name(structure) or dataflow_id,
        version=_opt_str(structure.get("version")),
        agency=_opt_str(structure.get("agencyID") or structure.get("agencyId")),
        dimensions=dimensions,
        measures=measures,
        attributes=attributes,
    )
