from __future__ import annotations

import json

import pytest

from app.core.config import settings
from app.utils.debug_log import debug_log


def test_records_event_timestamp_and_fields(_isolate_debug_log) -> None:
    debug_log("embedding_sync", successful=3, failed_product_ids=["p-1"])

    record = json.loads(_isolate_debug_log.read_text(encoding="utf-8").splitlines()[-1])
    assert record["event"] == "embedding_sync"
    assert record["successful"] == 3
    assert record["failed_product_ids"] == ["p-1"]
    assert record["timestamp"]


def test_disabled_trail_writes_nothing(_isolate_debug_log, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "DEBUG_LOG_ENABLED", False)

    debug_log("chat_turn", session_id="s-1")

    assert not _isolate_debug_log.exists()


def test_unwritable_path_is_ignored(tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")
    monkeypatch.setattr("app.utils.debug_log.DEBUG_LOG_PATH", blocker / "debug.log")

    debug_log("chat_turn", session_id="s-1")
