import json

import pytest

from abs_mcp import server
from abs_mcp.errors import RemoteError, ValidationError
from abs_mcp.params import (
    DEFAULT_RESPONSE_FORMAT,
    ID_PATTERN,
    VERSION_PATTERN,
    DataDetail,
    References,
    ResponseFormat,
    StructureType,
)


@pytest.fixture
def served(monkeypatch, registry):
    monkeypatch.setattr(server, "registry", registry)
    return server


@pytest.mark.asyncio
async def test_every_registered_tool_is_served():
    tools = await server.mcp.list_tools()

    assert sorted(tool.name for tool in tools) == sorted(server.registry.names())
    for tool in tools:
        assert tool.description == server.registry.get(tool.name).description


@pytest.mark.asyncio
async def test_listed_schemas_carry_allowed_values():
    schemas = {tool.name: tool.inputSchema for tool in await server.mcp.list_tools()}

    get_data = schemas["get_data"]["properties"]
    assert get_data["response_format"]["enum"] == [member.value for member in ResponseFormat]
    assert get_data["response_format"]["default"] == DEFAULT_RESPONSE_FORMAT.value
    assert get_data["detail"]["enum"] == [member.value for member in DataDetail]

    get_structure = schemas["get_structure"]["properties"]
    assert get_structure["structure_type"]["enum"] == [member.value for member in StructureType]
    assert get_structure["references"]["enum"] == [member.value for member in References]
    assert get_structure["version"]["pattern"] == VERSION_PATTERN
    assert get_structure["structure_id"]["pattern"] == ID_PATTERN


@pytest.mark.asyncio
async def test_get_data_renders_csv(served, fake_abs):
    fake_abs.reply("DATAFLOW,OBS_VALUE\nABS:CPI(1.0.0),138.8\n", content_type="application/vnd.sdmx.data+csv")

    text = await served.get_data("CPI", data_key="1.10001.10.50.Q")

    assert text == "DATAFLOW,OBS_VALUE\nABS:CPI(1.0.0),138.8\n"
    assert fake_abs.requests[0].url.path == "/rest/data/CPI/1.10001.10.50.Q"


@pytest.mark.asyncio
async def test_omitted_arguments_take_defaults(served, fake_abs):
    await served.get_data("ABS_ANNUAL_ERP_ASGS2016")

    assert dict(fake_abs.requests[0].url.params) == {"startPeriod": "2024", "endPeriod": "2025"}


@pytest.mark.asyncio
async def test_list_dataflows_renders_json(served, fake_abs, dataflow_list_document):
    fake_abs.reply_json(dataflow_list_document)

    text = await served.list_dataflows()

    assert [flow["id"] for flow in json.loads(text)] == [
        "ABS_ANNUAL_ERP_ASGS2016",
        "ABORIGINAL_POP_PROJ",
        "NO_NAME",
    ]


@pytest.mark.asyncio
async def test_get_structure_list(served, fake_abs):
    fake_abs.reply_json({"data": {"codelists": []}})

    text = await served.get_structure_list("codelist", "ABS")

    assert json.loads(text) == {"data": {"codelists": []}}
    assert fake_abs.requests[0].url.path == "/rest/codelist/ABS"


@pytest.mark.asyncio
async def test_get_dataflow_details(served, fake_abs, datastructure_document):
    fake_abs.reply_json(datastructure_document)

    details = json.loads(await served.get_dataflow_details("ABS_ANNUAL_ERP_ASGS2016"))

    assert details["id"] == "ABS_ANNUAL_ERP_ASGS2016"
    assert [m["id"] for m in details["measures"]] == ["OBS_VALUE"]


@pytest.mark.asyncio
async def test_errors_reach_the_caller(served, fake_abs):
    with pytest.raises(ValidationError):
        await served.get_data("CPI", response_format="excel")

    fake_abs.reply("Could not find requested structures", status=404)
    with pytest.raises(RemoteError) as exc_info:
        await served.get_structure("dataflow", "ABS", structure_id="NOPE")

    assert str(exc_info.value) == "HTTP 404: Could not find requested structures"
