"""
Tool argument shapes and their validation.

Every option the ABS API accepts as a closed set is declared once here as an
Enum, and every identifier that ends up in a URL path is constrained by a
pattern before a request is built.
"""

from datetime import date
from enum import Enum
from typing import Any, Mapping, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from .errors import FieldError, ValidationError

# SDMX identifiers (dataflows, structures, codes)
ID_PATTERN = r"^[A-Za-z0-9_@$\-]+$"
# Agencies may be nested, e.g. "OECD.SDD"
AGENCY_PATTERN = r"^[A-Za-z0-9_@$\-]+(\.[A-Za-z0-9_@$\-]+)*$"
# "1.0.0", "latest", "+", "1.*"
VERSION_PATTERN = r"^[0-9A-Za-z.+*]+$"
# The key grammar (dot-separated, empty = wildcard, "+" = OR) is left to the
# remote service; only characters that would break the path are refused.
DATA_KEY_PATTERN = r"^[^/?#\s]+$"
# yyyy, yyyy-Sn, yyyy-Qn, yyyy-mm, yyyy-mm-dd
PERIOD_PATTERN = r"^\d{4}(-(S[12]|Q[1-4]|(0[1-9]|1[0-2])(-(0[1-9]|[12]\d|3[01]))?))?$"
DIMENSION_PATTERN = r"^[A-Za-z][A-Za-z0-9_@$\-]*$"
# Path segments that URL normalization removes
DOT_SEGMENTS = (".", "..")


class ResponseFormat(str, Enum):
    """Data formats the ABS data endpoint can return."""

    CSV = "csvfile"
    CSV_WITH_LABELS = "csvfilewithlabels"
    JSON = "jsondata"
    GENERIC_XML = "genericdata"
    STRUCTURE_SPECIFIC_XML = "structurespecificdata"

    @property
    def is_csv(self) -> bool:
        return self in (ResponseFormat.CSV, ResponseFormat.CSV_WITH_LABELS)

    @property
    def is_xml(self) -> bool:
        return self in (ResponseFormat.GENERIC_XML, ResponseFormat.STRUCTURE_SPECIFIC_XML)


DEFAULT_RESPONSE_FORMAT = ResponseFormat.CSV_WITH_LABELS


class DataDetail(str, Enum):
    FULL = "full"
    DATA_ONLY = "dataonly"
    SERIES_KEYS_ONLY = "serieskeysonly"
    NO_DATA = "nodata"


class StructureType(str, Enum):
    DATAFLOW = "dataflow"
    DATASTRUCTURE = "datastructure"
    CODELIST = "codelist"
    CONCEPTSCHEME = "conceptscheme"
    CATEGORYSCHEME = "categoryscheme"
    CATEGORISATION = "categorisation"
    CONTENTCONSTRAINT = "contentconstraint"
    ACTUALCONSTRAINT = "actualconstraint"
    AGENCYSCHEME = "agencyscheme"
    HIERARCHICALCODELIST = "hierarchicalcodelist"


class StructureDetail(str, Enum):
    ALL_STUBS = "allstubs"
    REFERENCE_STUBS = "referencestubs"
    REFERENCE_PARTIAL = "referencepartial"
    ALL_COMPLETE_STUBS = "allcompletestubs"
    REFERENCE_COMPLETE_STUBS = "referencecompletestubs"
    FULL = "full"


class References(str, Enum):
    """Which related artefacts a structure query inlines.

    Besides the generic modes, any structure type may be named to inline
    only artefacts of that type.
    """

    NONE = "none"
    PARENTS = "parents"
    PARENTS_AND_SIBLINGS = "parentsandsiblings"
    CHILDREN = "children"
    DESCENDANTS = "descendants"
    ALL = "all"
    DATAFLOW = "dataflow"
    DATASTRUCTURE = "datastructure"
    CODELIST = "codelist"
    CONCEPTSCHEME = "conceptscheme"
    CATEGORYSCHEME = "categoryscheme"
    CATEGORISATION = "categorisation"
    CONTENTCONSTRAINT = "contentconstraint"
    ACTUALCONSTRAINT = "actualconstraint"
    AGENCYSCHEME = "agencyscheme"
    HIERARCHICALCODELIST = "hierarchicalcodelist"


class ToolParams(BaseModel):
    """Base for validated tool arguments. Unknown fields are dropped."""

    model_config = ConfigDict(extra="ignore", frozen=True)


class GetDataParams(ToolParams):
    dataflow_id: str = Field(
        pattern=ID_PATTERN,
        description="Dataflow identifier, e.g. ABS_ANNUAL_ERP_ASGS2016",
    )
    data_key: Optional[str] = Field(
        default=None,
        pattern=DATA_KEY_PATTERN,
        description=(
            "Filter key: dimension values separated by '.', an empty position is a "
            "wildcard, '+' joins several codes, 'all' selects everything (default)"
        ),
    )
    start_period: Optional[str] = Field(
        default=None,
        pattern=PERIOD_PATTERN,
        description="Start period (yyyy, yyyy-Sn, yyyy-Qn or yyyy-mm); defaults to last year",
    )
    end_period: Optional[str] = Field(
        default=None,
        pattern=PERIOD_PATTERN,
        description="End period (yyyy, yyyy-Sn, yyyy-Qn or yyyy-mm); defaults to this year",
    )
    response_format: ResponseFormat = Field(
        default=DEFAULT_RESPONSE_FORMAT, description="Format of the returned data"
    )
    detail: Optional[DataDetail] = Field(default=None, description="Amount of detail returned")
    dimension_at_observation: Optional[str] = Field(
        default=None,
        pattern=DIMENSION_PATTERN,
        description="Dimension attached to each observation, e.g. TIME_PERIOD or AllDimensions",
    )

    @field_validator("data_key", mode="before")
    @classmethod
    def blank_key_is_absent(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("data_key")
    @classmethod
    def key_is_not_a_dot_segment(cls, value: Optional[str]) -> Optional[str]:
        # "." and ".." would be collapsed out of the URL path
        if value in DOT_SEGMENTS:
            raise ValueError(
                "a key of only '.' or '..' cannot be sent; use 'all' or one position per dimension"
            )
        return value

    @model_validator(mode="before")
    @classmethod
    def default_periods(cls, data: Any, info: ValidationInfo) -> Any:
        if not isinstance(data, dict):
            return data
        today = (info.context or {}).get("today") or date.today()
        data = dict(data)
        if data.get("start_period") is None:
            data["start_period"] = str(today.year - 1)
        if data.get("end_period") is None:
            data["end_period"] = str(today.year)
        return data


class ListDataflowsParams(ToolParams):
    pass


class StructureListParams(ToolParams):
    structure_type: StructureType = Field(description="Kind of structure, e.g. dataflow or codelist")
    agency_id: str = Field(pattern=AGENCY_PATTERN, description="Owning agency, e.g. ABS")
    detail: Optional[StructureDetail] = Field(default=None, description="Amount of detail returned")
    references: Optional[References] = Field(
        default=None, description="Related structures to include in the response"
    )


class StructureParams(StructureListParams):
    structure_id: Optional[str] = Field(
        default=None,
        pattern=ID_PATTERN,
        description="Structure identifier; omit to list every structure of the type",
    )
    version: Optional[str] = Field(
        default=None,
        pattern=VERSION_PATTERN,
        description="Structure version, e.g. 1.0.0 or latest; needs structure_id",
    )

    @field_validator("version")
    @classmethod
    def version_needs_structure_id(cls, value: Optional[str], info: ValidationInfo) -> Optional[str]:
        if value is not None and info.data.get("structure_id") is None:
            raise ValueError("a version needs structure_id")
        if value is not None and not value.strip("."):
            raise ValueError("a version cannot consist of dots only")
        return value


class DataflowDetailsParams(ToolParams):
    dataflow_id: str = Field(pattern=ID_PATTERN, description="Dataflow identifier")


P = TypeVar("P", bound=ToolParams)


def _field_name(loc: tuple) -> str:
    return ".".join(str(part) for part in loc) or "(arguments)"


def validate_arguments(
    tool_name: str,
    model: Type[P],
    arguments: Optional[Mapping[str, Any]],
    today: Optional[date] = None,
) -> P:
    """Validate a raw argument bag against a tool's parameter model.

    Missing optional fields get their defaults; unknown fields are ignored.

    Raises:
        ValidationError: listing every offending field and why.
    """
    if arguments is None:
        arguments = {}
    if not isinstance(arguments, Mapping):
        raise ValidationError(
            tool_name, [FieldError("(arguments)", "arguments must be an object")]
        )

    try:
        return model.model_validate(dict(arguments), context={"today": today})
    except PydanticValidationError as e:
        errors = [FieldError(_field_name(err["loc"]), err["msg"]) for err in e.errors()]
        raise ValidationError(tool_name, errors) from e
