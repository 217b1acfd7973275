import json
from datetime import date

import pytest

from abs_mcp.audit import FileAuditSink, NullAuditSink, audit_sink_from_settings
from abs_mcp.config import Settings
from abs_mcp.errors import RemoteError
from abs_mcp.registry import build_registry

TODAY = date(2025, 5, 1)


def read_entries(path):
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]


def test_sink_from_settings(tmp_path):
    assert isinstance(audit_sink_from_settings(Settings()), NullAuditSink)

    sink = audit_sink_from_settings(Settings(audit_log_path=tmp_path / "audit.jsonl"))
    try:
        assert isinstance(sink, FileAuditSink)
        assert sink.enabled
    finally:
        sink.close()


@pytest.mark.asyncio
async def test_file_sink_records_requests_and_responses(tmp_path, fake_abs):
    path = tmp_path / "logs" / "audit.jsonl"
    sink = FileAuditSink(path)
    registry = build_registry(Settings(), transport=fake_abs.transport, audit=sink, clock=lambda: TODAY)
    fake_abs.reply("a,b\n1,2\n", content_type="application/vnd.sdmx.data+csv")

    try:
        await registry.dispatch("get_data", {"dataflow_id": "CPI"})
        fake_abs.reply("Could not find requested structures", status=404)
        with pytest.raises(RemoteError):
            await registry.dispatch("get_data", {"dataflow_id": "CPI"})
    finally:
        sink.close()

    entries = read_entries(path)
    assert [e["event"] for e in entries] == ["request", "response", "request", "error"]
    assert entries[0]["url"] == "https://data.api.abs.gov.au/rest/data/CPI/all?startPeriod=2024&endPeriod=2025"
    assert entries[1]["status"] == 200
    assert entries[1]["excerpt"] == "a,b\n1,2\n"
    assert entries[3]["error"] == "RemoteError"
    assert "Could not find requested structures" in entries[3]["message"]


@pytest.mark.asyncio
async def test_file_sink_appends(tmp_path, fake_abs):
    path = tmp_path / "audit.jsonl"
    path.write_text('{"event": "earlier"}\n', encoding="utf-8")
    sink = FileAuditSink(path)
    registry = build_registry(Settings(), transport=fake_abs.transport, audit=sink, clock=lambda: TODAY)

    try:
        await registry.dispatch("get_data", {"dataflow_id": "CPI"})
    finally:
        sink.close()

    assert [e["event"] for e in read_entries(path)] == ["earlier", "request", "response"]


@pytest.mark.asyncio
async def test_unwritable_location_does_not_abort_calls(tmp_path, fake_abs):
    blocker = tmp_path / "not-a-directory"
    blocker.write_text("", encoding="utf-8")
    sink = FileAuditSink(blocker / "audit.jsonl")
    registry = build_registry(Settings(), transport=fake_abs.transport, audit=sink, clock=lambda: TODAY)
    fake_abs.reply("a,b\n")

    result = await registry.dispatch("get_data", {"dataflow_id": "CPI"})

    assert not sink.enabled
    assert result.render() == "a,b\n"
