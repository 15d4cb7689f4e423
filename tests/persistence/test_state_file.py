"""Tests for JSON state file persistence."""

import json
import os
from unittest.mock import patch

import pytest

from tallr.core.errors import CorruptStateError, PersistenceError
from tallr.core.models import AppState
from tallr.persistence.state_file import StateFile


@pytest.fixture
def state_file(temp_dir) -> StateFile:
    return StateFile(temp_dir / "sessions.json")


class TestSave:
    def test_save_then_load_preserves_snapshot(self, state_file, store, make_report):
        store.upsert(*make_report())
        store.set_pinned("task-1", True)
        store.record_ping()
        expected = store.snapshot()

        state_file.save(expected)

        assert state_file.load() == expected

    def test_saved_file_uses_wire_keys(self, state_file, store, make_report):
        store.upsert(*make_report())

        state_file.save_from(store)

        data = json.loads(state_file.path.read_text())
        assert set(data) == {"projects", "tasks", "debug_data", "updated_at", "last_cli_ping"}
        task = data["tasks"]["task-1"]
        assert "projectId" in task
        assert "createdAt" in task
        project = next(iter(data["projects"].values()))
        assert project["repoPath"] == "/src/api"

    def test_save_creates_parent_directory(self, temp_dir):
        state_file = StateFile(temp_dir / "nested" / "sessions.json")

        state_file.save(AppState())

        assert state_file.path.exists()

    def test_no_temp_files_left_behind(self, state_file):
        state_file.save(AppState())
        state_file.save(AppState(updated_at=5))

        assert os.listdir(state_file.path.parent) == ["sessions.json"]

    def test_write_failure_raises_persistence_error(self, state_file):
        with patch("tallr.persistence.state_file.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(PersistenceError):
                state_file.save(AppState())

        assert not state_file.path.exists()


class TestLoad:
    def test_missing_file_is_empty_state(self, state_file):
        assert state_file.load() == AppState()

    def test_blank_file_is_empty_state(self, state_file):
        state_file.path.write_text("  \n")

        assert state_file.load() == AppState()

    def test_accepts_snake_case_entity_keys(self, state_file):
        state_file.path.write_text(
            json.dumps(
                {
                    "projects": {
                        "p1": {
                            "id": "p1",
                            "name": "api",
                            "repo_path": "/src/api",
                            "created_at": 1,
                            "updated_at": 1,
                        }
                    },
                    "tasks": {},
                    "updated_at": 1,
                }
            )
        )

        state = state_file.load()

        assert state.projects["p1"].repo_path == "/src/api"

    def test_corrupt_file_is_backed_up(self, state_file):
        state_file.path.write_text("{not json")

        with pytest.raises(CorruptStateError) as exc_info:
            state_file.load()

        assert exc_info.value.backup_path == str(state_file.backup_path)
        assert state_file.backup_path.read_text() == "{not json"
        assert not state_file.path.exists()

    def test_invalid_schema_is_corrupt(self, state_file):
        state_file.path.write_text(json.dumps({"tasks": {"t": {"id": "t"}}}))

        with pytest.raises(CorruptStateError):
            state_file.load()

    def test_deeply_nested_json_is_corrupt(self, state_file):
        state_file.path.write_text("[" * 200_000)

        with pytest.raises(CorruptStateError):
            state_file.load()

        assert state_file.backup_path.exists()

    def test_deeply_nested_json_does_not_block_startup(self, state_file):
        state_file.path.write_text("[" * 200_000)

        assert state_file.load_or_empty() == AppState()
        assert not state_file.path.exists()

    def test_invalid_utf8_is_backed_up(self, state_file):
        content = b'{"tasks": {"\xff\xfe": 1}}'
        state_file.path.write_bytes(content)

        assert state_file.load_or_empty() == AppState()
        assert state_file.backup_path.read_bytes() == content
        assert not state_file.path.exists()

    def test_unreadable_file_is_persistence_error(self, state_file):
        state_file.path.write_text("{}")

        with patch("pathlib.Path.read_bytes", side_effect=PermissionError("denied")):
            with pytest.raises(PersistenceError) as exc_info:
                state_file.load()

        assert not isinstance(exc_info.value, CorruptStateError)
        assert state_file.path.exists()

    def test_load_or_empty_recovers_from_corruption(self, state_file):
        state_file.path.write_text("garbage")

        assert state_file.load_or_empty() == AppState()
        assert state_file.backup_path.exists()
