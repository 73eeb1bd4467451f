"""Tests for stage repositories, the live state reader, and the screenshot store."""

from __future__ import annotations

import base64
import json
import logging
from pathlib import Path

import pytest

from conftest import JPEG_BYTES, PNG_BYTES, make_gate
from evaltrace.models import GateResult, LiveSuggestion
from evaltrace.stores import (
    InMemoryRepository,
    JsonDirRepository,
    ScreenshotStore,
    StateFileLiveState,
    StaticLiveState,
)


# ---------------------------------------------------------------------------
# JsonDirRepository
# ---------------------------------------------------------------------------


def _write_gates(directory: Path, count: int) -> None:
    directory.mkdir(parents=True, exist_ok=True)
    for i in range(count):
        frame_id = f"frame_17000000{i:05d}_periodic"
        (directory / f"gate_{frame_id}.json").write_text(json.dumps(make_gate(frame_id)))


def test_one_corrupt_file_of_ten_is_skipped(tmp_path, caplog):
    gate_dir = tmp_path / "concentration_gate"
    _write_gates(gate_dir, 9)
    (gate_dir / "gate_broken.json").write_text('{"frameId": "frame_1_periodic", "decis')
    caplog.set_level(logging.DEBUG, logger="evaltrace")

    records = JsonDirRepository(gate_dir, GateResult).load_all()

    assert len(records) == 9
    warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
    assert len(warnings) == 1
    assert "gate_broken.json" in warnings[0].getMessage()


def test_record_without_identifying_key_is_skipped(tmp_path):
    gate_dir = tmp_path / "gates"
    _write_gates(gate_dir, 2)
    (gate_dir / "gate_noid.json").write_text(json.dumps({"decision": "SKIP", "importance": 0.1}))
    (gate_dir / "gate_list.json").write_text(json.dumps([make_gate("f3")]))

    assert len(JsonDirRepository(gate_dir, GateResult).load_all()) == 2


def test_off_nominal_values_are_kept(tmp_path):
    gate_dir = tmp_path / "gates"
    gate_dir.mkdir()
    (gate_dir / "gate_a.json").write_text(json.dumps({"frameId": "a"}))
    (gate_dir / "gate_b.json").write_text(
        json.dumps({**make_gate("b"), "decision": "MAYBE", "importance": 1.4})
    )

    a, b = JsonDirRepository(gate_dir, GateResult).load_all()

    assert a.decision is None
    assert b.decision == "MAYBE"
    assert b.importance == 1.4


def test_reserved_and_foreign_files_ignored(tmp_path):
    gate_dir = tmp_path / "gates"
    _write_gates(gate_dir, 1)
    (gate_dir / "_meta.json").write_text(json.dumps(make_gate("reserved")))
    (gate_dir / "notes.txt").write_text("not a record")
    (gate_dir / "gate_partial.json.tmp").write_text(json.dumps(make_gate("partial")))
    (gate_dir / "subdir.json").mkdir()

    records = JsonDirRepository(gate_dir, GateResult).load_all()
    assert [r.frame_id for r in records] == ["frame_1700000000000_periodic"]


def test_missing_directory_is_empty(tmp_path):
    assert JsonDirRepository(tmp_path / "nope", GateResult).load_all() == []


def test_records_load_in_file_name_order(tmp_path):
    gate_dir = tmp_path / "gates"
    _write_gates(gate_dir, 5)
    first = JsonDirRepository(gate_dir, GateResult).load_all()
    second = JsonDirRepository(gate_dir, GateResult).load_all()
    assert [r.frame_id for r in first] == sorted(r.frame_id for r in first)
    assert first == second


def test_custom_extension(tmp_path):
    gate_dir = tmp_path / "gates"
    gate_dir.mkdir()
    (gate_dir / "a.rec").write_text(json.dumps(make_gate("a")))
    (gate_dir / "b.json").write_text(json.dumps(make_gate("b")))
    records = JsonDirRepository(gate_dir, GateResult, extension=".rec").load_all()
    assert [r.frame_id for r in records] == ["a"]


def test_camel_case_fields_parse():
    gate = GateResult.model_validate(make_gate("frame_1_before", "SKIP", 0.3))
    assert gate.frame_id == "frame_1_before"
    assert gate.processed_at == 1700000600000
    assert gate.model_dump(by_alias=True)["frameId"] == "frame_1_before"


def test_in_memory_repository_returns_copies():
    gate = GateResult.model_validate(make_gate("f1"))
    repo = InMemoryRepository([gate])
    loaded = repo.load_all()
    loaded.clear()
    assert repo.load_all() == [gate]


# ---------------------------------------------------------------------------
# Live state
# ---------------------------------------------------------------------------


def test_live_state_reads_suggestions(tmp_path):
    state = tmp_path / "state.json"
    state.write_text(json.dumps({
        "suggestions": [
            {"suggestionId": "s1", "title": "T", "status": "active", "support": 0.7, "projectId": 3},
            {"title": "no id"},
        ],
        "chats": [],
    }))

    live = StateFileLiveState(state).by_id()

    assert list(live) == ["s1"]
    assert live["s1"].support == 0.7
    assert live["s1"].description is None


def test_live_state_missing_file(tmp_path):
    assert StateFileLiveState(tmp_path / "state.json").current_suggestions() == []


def test_live_state_corrupt_file(tmp_path, caplog):
    state = tmp_path / "state.json"
    state.write_text("{oops")
    caplog.set_level(logging.WARNING, logger="evaltrace")
    assert StateFileLiveState(state).current_suggestions() == []
    assert "unreadable live state" in caplog.text


@pytest.mark.parametrize("payload", [[], {"suggestions": "nope"}, {"chats": []}])
def test_live_state_unexpected_shape(tmp_path, payload):
    state = tmp_path / "state.json"
    state.write_text(json.dumps(payload))
    assert StateFileLiveState(state).current_suggestions() == []


def test_static_live_state():
    provider = StaticLiveState([LiveSuggestion(suggestion_id="a"), LiveSuggestion(suggestion_id="b")])
    assert set(provider.by_id()) == {"a", "b"}


# ---------------------------------------------------------------------------
# Screenshots
# ---------------------------------------------------------------------------


@pytest.fixture
def shots(tmp_path):
    d = tmp_path / "screenshots"
    d.mkdir()
    return d


def test_jpg_wins_over_png(shots):
    (shots / "frame_1_after.png").write_bytes(PNG_BYTES)
    (shots / "frame_1_after.jpg").write_bytes(JPEG_BYTES)
    store = ScreenshotStore(shots)
    assert store.find("frame_1_after").suffix == ".jpg"
    assert store.data_uri("frame_1_after") == (
        "data:image/jpeg;base64," + base64.b64encode(JPEG_BYTES).decode()
    )


def test_png_data_uri(shots):
    (shots / "frame_2_before.png").write_bytes(PNG_BYTES)
    uri = ScreenshotStore(shots).data_uri("frame_2_before")
    assert uri.startswith("data:image/png;base64,")
    assert base64.b64decode(uri.split(",", 1)[1]) == PNG_BYTES


def test_jpeg_extension_is_jpeg_mime(shots):
    (shots / "frame_3_periodic.jpeg").write_bytes(JPEG_BYTES)
    assert ScreenshotStore(shots).data_uri("frame_3_periodic").startswith("data:image/jpeg;base64,")


def test_missing_screenshot(shots):
    store = ScreenshotStore(shots)
    assert store.find("frame_9_after") is None
    assert store.data_uri("frame_9_after") is None


def test_missing_directory(tmp_path):
    store = ScreenshotStore(tmp_path / "nope")
    assert store.frame_ids() == set()
    assert store.data_uri("frame_1_after") is None


@pytest.mark.parametrize("frame_id", ["", "../secret", "a/b", "a\\b"])
def test_path_like_ids_rejected(shots, frame_id):
    assert ScreenshotStore(shots).find(frame_id) is None


def test_frame_ids_scan(shots):
    (shots / "frame_1_after.jpg").write_bytes(JPEG_BYTES)
    (shots / "frame_2_before.png").write_bytes(PNG_BYTES)
    (shots / "frame_3_periodic.jpeg").write_bytes(JPEG_BYTES)
    (shots / "notes.txt").write_text("x")
    assert ScreenshotStore(shots).frame_ids() == {"frame_1_after", "frame_2_before", "frame_3_periodic"}


def test_read_failure_returns_none(shots, monkeypatch, caplog):
    (shots / "frame_1_after.jpg").write_bytes(JPEG_BYTES)

    def _boom(self):
        raise PermissionError("denied")

    monkeypatch.setattr(Path, "read_bytes", _boom)
    caplog.set_level(logging.WARNING, logger="evaltrace")

    assert ScreenshotStore(shots).data_uri("frame_1_after") is None
    assert "Failed to read screenshot" in caplog.text
