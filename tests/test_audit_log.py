from __future__ import annotations

import asyncio
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from conftest import read_jsonl
from data.audit_log import AuditLog
from tools.tools_policy import handle_audit_log


def test_append_writes_one_json_line(audit_path: Path) -> None:
    audit = AuditLog(audit_path)

    assert audit.append("order.placed", {"symbol": "AAPL", "qty": 5}) is True

    records = read_jsonl(audit_path)
    assert len(records) == 1
    assert records[0]["event"] == "order.placed"
    assert records[0]["payload"] == {"symbol": "AAPL", "qty": 5}
    assert records[0]["ts"].endswith("Z")
    assert audit.get_stats()["writes"] == 1


def test_threaded_appends_never_interleave(audit_path: Path) -> None:
    audit = AuditLog(audit_path)
    blob = "x" * 4096

    with ThreadPoolExecutor(max_workers=16) as pool:
        results = list(pool.map(lambda i: audit.append("evt", {"i": i, "blob": blob}), range(200)))

    assert all(results)
    records = read_jsonl(audit_path)
    assert sorted(r["payload"]["i"] for r in records) == list(range(200))


def test_concurrent_audit_tool_calls_each_persist(make_ctx, audit_path: Path) -> None:
    async def burst():
        return await asyncio.gather(*(
            handle_audit_log(make_ctx("audit.log"), {"event": "tick", "payload": {"n": n}})
            for n in range(50)
        ))

    results = asyncio.run(burst())

    assert results == [{"persisted": True}] * 50
    assert sorted(r["payload"]["n"] for r in read_jsonl(audit_path)) == list(range(50))


def test_unwritable_path_reports_not_persisted(tmp_path: Path) -> None:
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("file in the way", encoding="utf-8")
    audit = AuditLog(blocker / "audit.jsonl")

    assert audit.append("evt", {}) is False
    assert audit.get_stats()["failures"] == 1


def test_audit_tool_never_fails_on_persistence_error(make_ctx, services, tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")
    services.audit_log = AuditLog(blocker / "audit.jsonl")

    out = asyncio.run(handle_audit_log(make_ctx("audit.log"), {"event": "evt"}))

    assert out == {"persisted": False}
