import json
from datetime import date
from typing import Any, List

import httpx
import pytest

from abs_mcp.audit import NullAuditSink
from abs_mcp.config import Settings
from abs_mcp.registry import ToolRegistry, build_registry

TODAY = date(2025, 5, 1)


class FakeAbs:
    """Stands in for the ABS API: records requests and answers with a canned response."""

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self.status = 200
        self.body = ""
        self.content_type = "text/plain"
        self.error: Exception | None = None

    def reply(self, body: str = "", status: int = 200, content_type: str = "text/plain") -> None:
        self.body = body
        self.status = status
        self.content_type = content_type

    def reply_json(self, document: Any, status: int = 200) -> None:
        self.reply(json.dumps(document), status, "application/vnd.sdmx.structure+json; charset=utf-8")

    def fail_with(self, error: Exception) -> None:
        self.error = error

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return httpx.Response(
            self.status,
            content=self.body.encode("utf-8"),
            headers={"content-type": self.content_type},
        )

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture
def fake_abs() -> FakeAbs:
    return FakeAbs()


@pytest.fixture
def registry(fake_abs: FakeAbs) -> ToolRegistry:
    return build_registry(
        Settings(),
        transport=fake_abs.transport,
        audit=NullAuditSink(),
        clock=lambda: TODAY,
    )


@pytest.fixture
def dataflow_list_document() -> dict:
    return {
        "data": {
            "dataflows": [
                {
                    "id": "ABS_ANNUAL_ERP_ASGS2016",
                    "agencyID": "ABS",
                    "version": "1.0.0",
                    "name": "ERP by SA2 and above (ASGS 2016), 2001 to 2021",
                },
                {
                    "id": "ABORIGINAL_POP_PROJ",
                    "agencyID": "ABS",
                    "version": "1.0.0",
                    "names": {"en": "Projected population, Aboriginal and Torres Strait Islander Australians"},
                    "descriptions": [{"locale": "en", "description": "Projections by state and territory, 2016 to 2031"}],
                },
                {"id": "NO_NAME", "names": []},
            ]
        }
    }


@pytest.fixture
def datastructure_document() -> dict:
    return {
        "data": {
            "dataStructures": [
                {
                    "id": "ABS_ANNUAL_ERP_ASGS2016",
                    "agencyID": "ABS",
                    "version": "1.0.0",
                    "name": "ERP by SA2 and above (ASGS 2016)",
                    "dataStructureComponents": {
                        "dimensionList": {
                            "dimensions": [
                                {
                                    "id": "MEASURE",
                                    "position": 0,
                                    "conceptIdentity": "urn:sdmx:org.sdmx.infomodel.conceptscheme.Concept=ABS:CS_ERP(1.0.0).MEASURE",
                                    "localRepresentation": {
                                        "enumeration": "urn:sdmx:org.sdmx.infomodel.codelist.Codelist=ABS:CL_ERP_MEASURE(1.0.0)"
                                    },
                                },
                                {
                                    "id": "REGION",
                                    "position": 1,
                                    "names": [{"locale": "en", "name": "Region"}],
                                },
                            ],
                            "timeDimensions": [{"id": "TIME_PERIOD", "position": 2}],
                        },
                        "measureList": {"primaryMeasure": {"id": "OBS_VALUE"}},
                        "attributeList": {
                            "attributes": [
                                {
                                    "id": "UNIT_MEASURE",
                                    "assignmentStatus": "Mandatory",
                                    "conceptIdentity": "urn:sdmx:org.sdmx.infomodel.conceptscheme.Concept=ABS:CS_ERP(1.0.0).UNIT_MEASURE",
                                }
                            ]
                        },
                    },
                }
            ],
            "codelists": [
                {
                    "id": "CL_ERP_MEASURE",
                    "agencyID": "ABS",
                    "version": "1.0.0",
                    "codes": [
                        {"id": "ERP", "name": "Estimated Resident Population"},
                        {"id": "GROWTH", "names": {"en": "Population growth"}},
                    ],
                }
            ],
            "conceptSchemes": [
                {
                    "id": "CS_ERP",
                    "version": "1.0.0",
                    "concepts": [
                        {"id": "MEASURE", "name": "Measure"},
                        {"id": "UNIT_MEASURE", "name": "Unit of Measure"},
                    ],
                }
            ],
        }
    }
