"""Tests for the in-memory state store."""

import threading

import pytest

from tallr.core.errors import TaskNotFoundError
from tallr.core.models import (
    DebugData,
    DetectionHistoryEntry,
    EnhancedStateContext,
    NetworkContext,
    ProjectIn,
    SessionContext,
    SessionMessage,
    TaskIn,
    TaskState,
)
from tallr.core.state_store import MAX_HISTORY_ENTRIES, StateStore


class TestUpsert:
    """Creating and updating tasks reported by the wrapper."""

    def test_upsert_creates_project_and_task(self, store, make_report, clock):
        project_in, task_in = make_report()

        task_id = store.upsert(project_in, task_in)

        snapshot = store.snapshot()
        assert task_id == "task-1"
        assert len(snapshot.projects) == 1
        project = next(iter(snapshot.projects.values()))
        assert project.name == "api"
        assert project.repo_path == "/src/api"
        assert project.preferred_ide == ""

        task = snapshot.tasks["task-1"]
        assert task.project_id == project.id
        assert task.state == "WORKING"
        assert task.created_at == clock.now
        assert task.updated_at == clock.now
        assert task.pinned is False

    def test_projects_deduplicated_by_repo_path(self, store, make_report):
        store.upsert(*make_report(task_id="a"))
        store.upsert(*make_report(task_id="b", name="renamed"))

        snapshot = store.snapshot()
        assert len(snapshot.projects) == 1
        assert snapshot.tasks["a"].project_id == snapshot.tasks["b"].project_id

    def test_different_repo_paths_create_separate_projects(self, store, make_report):
        store.upsert(*make_report(task_id="a", repo_path="/src/api"))
        store.upsert(*make_report(task_id="b", repo_path="/src/web"))

        assert len(store.snapshot().projects) == 2

    def test_reupsert_preserves_pinned_and_created_at(self, store, make_report, clock):
        store.upsert(*make_report(state="WORKING"))
        created = clock.now
        store.set_pinned("task-1", True)

        clock.advance(10)
        store.upsert(*make_report(state="PENDING"))

        task = store.get_task("task-1")
        assert task.pinned is True
        assert task.created_at == created
        assert task.updated_at == created + 10
        assert task.state == "PENDING"

    def test_unknown_state_stored_verbatim(self, store, make_report):
        store.upsert(*make_report(state="THINKING"))

        task = store.get_task("task-1")
        assert task.state == "THINKING"
        assert task.kind is TaskState.OTHER


class TestMutators:
    """State, details, done, delete and pin operations."""

    def test_update_state_sets_state_and_details(self, store, make_report, clock):
        store.upsert(*make_report())
        clock.advance(5)

        task = store.update_state("task-1", "PENDING", "Waiting for approval", "hooks")

        assert task.state == "PENDING"
        assert task.details == "Waiting for approval"
        assert task.detection_method == "hooks"
        assert task.updated_at == clock.now

    def test_update_state_unknown_task_raises(self, store):
        with pytest.raises(TaskNotFoundError) as exc_info:
            store.update_state("missing", "WORKING")

        assert exc_info.value.task_id == "missing"
        assert store.snapshot().tasks == {}

    def test_update_state_with_context_builds_details(self, store, make_report):
        store.upsert(*make_report())
        context = EnhancedStateContext(
            network=NetworkContext(active_requests=2, average_response_time=350, thinking_duration=4200),
            session=SessionContext(
                message_count=12,
                last_message=SessionMessage(message_type="assistant", timestamp="t", preview="Proceed?"),
            ),
            detection_method="network",
            confidence=0.9,
            timestamp=1,
        )

        task = store.update_state_with_context("task-1", "PENDING", context)

        assert task.state == "PENDING"
        assert task.detection_method == "network"
        assert task.confidence == 0.9
        assert task.network_context.active_requests == 2
        assert task.session_context.message_count == 12
        assert task.details == (
            "Detection: network (confidence: 90.0%) | Active requests: 2 | "
            "Avg response: 350ms | Thinking: 4s | Messages: 12 | Last: Proceed?"
        )

    def test_update_details_keeps_state(self, store, make_report):
        store.upsert(*make_report(state="PENDING"))

        task = store.update_details("task-1", "new details")

        assert task.state == "PENDING"
        assert task.details == "new details"

    def test_mark_done(self, store, make_report):
        store.upsert(*make_report())

        task = store.mark_done("task-1", "finished")

        assert task.state == "DONE"
        assert task.details == "finished"

    def test_delete_removes_task_and_debug_trace(self, tracing_store, make_report):
        tracing_store.upsert(*make_report())
        tracing_store.update_state("task-1", "PENDING")
        assert tracing_store.get_debug_data("task-1") is not None

        tracing_store.delete("task-1")

        assert "task-1" not in tracing_store.snapshot().tasks
        assert tracing_store.get_debug_data("task-1") is None

    def test_delete_unknown_task_raises(self, store):
        with pytest.raises(TaskNotFoundError):
            store.delete("missing")

    @pytest.mark.parametrize(
        "mutate",
        [
            lambda s: s.mark_done("missing"),
            lambda s: s.set_pinned("missing", True),
            lambda s: s.update_details("missing", "details"),
            lambda s: s.update_state_with_context(
                "missing",
                "PENDING",
                EnhancedStateContext(detection_method="network", confidence=0.9, timestamp=1),
            ),
            lambda s: s.get_task("missing"),
        ],
        ids=["mark_done", "set_pinned", "update_details", "update_state_with_context", "get_task"],
    )
    def test_unknown_task_raises_and_leaves_state_unchanged(self, store, make_report, mutate):
        store.upsert(*make_report())
        before = store.snapshot()

        with pytest.raises(TaskNotFoundError) as exc_info:
            mutate(store)

        assert exc_info.value.task_id == "missing"
        assert store.snapshot() == before

    def test_set_pinned_toggles(self, store, make_report):
        store.upsert(*make_report())

        assert store.set_pinned("task-1", True).pinned is True
        assert store.set_pinned("task-1", False).pinned is False

    def test_returned_task_is_a_copy(self, store, make_report):
        store.upsert(*make_report())

        task = store.get_task("task-1")
        task.state = "ERROR"

        assert store.get_task("task-1").state == "WORKING"


class TestTimestamps:
    """updated_at never precedes created_at and the snapshot never goes backwards."""

    def test_snapshot_updated_at_is_monotonic(self, store, make_report, clock):
        store.upsert(*make_report())
        first = store.snapshot().updated_at

        clock.advance(-100)
        store.update_details("task-1", "clock went backwards")

        assert store.snapshot().updated_at == first

    def test_task_updated_at_never_before_created_at(self, store, make_report, clock):
        store.upsert(*make_report())
        created = store.get_task("task-1").created_at

        clock.advance(-50)
        task = store.update_state("task-1", "ERROR")

        assert task.updated_at >= created

    def test_load_keeps_newer_updated_at(self, store, make_report):
        store.upsert(*make_report())
        current = store.snapshot().updated_at
        older = store.snapshot()
        older.updated_at = current - 1000

        store.load(older)

        assert store.snapshot().updated_at == current


class TestCleanup:
    """Removal of finished and stale tasks."""

    def test_done_task_removed_after_grace(self, store, make_report, clock):
        store.upsert(*make_report())
        store.mark_done("task-1")

        assert store.cleanup(now=clock.now + 30) == []
        assert store.cleanup(now=clock.now + 31) == ["task-1"]
        assert store.snapshot().tasks == {}

    def test_idle_task_removed_after_max_age(self, store, make_report, clock):
        store.upsert(*make_report(state="IDLE"))

        assert store.cleanup(now=clock.now + 3600) == []
        assert store.cleanup(now=clock.now + 3601) == ["task-1"]

    def test_idle_cleanup_can_be_disabled(self, store, make_report, clock):
        store.upsert(*make_report(state="IDLE"))

        assert store.cleanup(now=clock.now + 10_000, include_idle=False) == []

    def test_pinned_tasks_never_removed(self, store, make_report, clock):
        store.upsert(*make_report(task_id="done"))
        store.mark_done("done")
        store.set_pinned("done", True)
        store.upsert(*make_report(task_id="idle", state="IDLE"))
        store.set_pinned("idle", True)

        assert store.cleanup(now=clock.now + 100_000) == []
        assert set(store.snapshot().tasks) == {"done", "idle"}

    def test_active_tasks_kept_regardless_of_age(self, store, make_report, clock):
        for task_id, state in [("w", "WORKING"), ("p", "PENDING"), ("e", "ERROR"), ("x", "CUSTOM")]:
            store.upsert(*make_report(task_id=task_id, state=state))

        assert store.cleanup(now=clock.now + 100_000) == []

    def test_cleanup_without_removal_leaves_updated_at(self, store, make_report, clock):
        store.upsert(*make_report())
        before = store.snapshot().updated_at

        store.cleanup(now=clock.now + 100)

        assert store.snapshot().updated_at == before


class TestConnectivity:
    def test_never_pinged_is_disconnected(self, store, clock):
        result = store.cli_connectivity()

        assert result == {"connected": False, "last_ping": None, "current_time": clock.now}

    def test_recent_ping_is_connected(self, store, clock):
        store.record_ping()

        assert store.cli_connectivity(now=clock.now + 30)["connected"] is True
        assert store.cli_connectivity(now=clock.now + 31)["connected"] is False


class TestDebugTrace:
    """Transition tracing and the debug data API."""

    def test_transitions_not_traced_by_default(self, store, make_report):
        store.upsert(*make_report())
        store.update_state("task-1", "PENDING")

        assert store.get_debug_data("task-1") is None

    def test_transitions_traced_when_enabled(self, tracing_store, make_report):
        tracing_store.upsert(*make_report())
        tracing_store.update_state("task-1", "PENDING", "Approve?")

        debug_data = tracing_store.get_debug_data("task-1")
        assert debug_data.current_state == "PENDING"
        assert [(e.from_state, e.to_state) for e in debug_data.detection_history] == [
            ("IDLE", "WORKING"),
            ("WORKING", "PENDING"),
        ]

    def test_history_is_bounded(self, tracing_store, make_report):
        tracing_store.upsert(*make_report())
        for i in range(MAX_HISTORY_ENTRIES + 20):
            tracing_store.update_state("task-1", "PENDING" if i % 2 else "WORKING")

        history = tracing_store.get_debug_data("task-1").detection_history
        assert len(history) == MAX_HISTORY_ENTRIES

    def test_update_debug_data_bounds_history(self, store):
        entries = [
            DetectionHistoryEntry(timestamp=i, from_state="IDLE", to_state="WORKING")
            for i in range(MAX_HISTORY_ENTRIES + 5)
        ]

        stored = store.update_debug_data(DebugData(task_id="t", detection_history=entries))

        assert len(stored.detection_history) == MAX_HISTORY_ENTRIES
        assert stored.detection_history[-1].timestamp == MAX_HISTORY_ENTRIES + 4

    def test_latest_debug_data_picks_most_recent_entry(self, store):
        store.update_debug_data(
            DebugData(
                task_id="old",
                detection_history=[DetectionHistoryEntry(timestamp=10, from_state="IDLE", to_state="WORKING")],
            )
        )
        store.update_debug_data(
            DebugData(
                task_id="new",
                detection_history=[DetectionHistoryEntry(timestamp=20, from_state="IDLE", to_state="PENDING")],
            )
        )

        assert store.latest_debug_data().task_id == "new"

    def test_latest_debug_data_empty(self, store):
        assert store.latest_debug_data() is None


class TestConcurrency:
    def test_concurrent_upserts_are_all_recorded(self, clock):
        store = StateStore(clock=clock)

        def report(n: int):
            for i in range(50):
                store.upsert(
                    ProjectIn(name="api", repo_path="/src/api"),
                    TaskIn(id=f"t{n}-{i}", agent="claude", title="x", state="WORKING"),
                )

        threads = [threading.Thread(target=report, args=(n,)) for n in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        snapshot = store.snapshot()
        assert len(snapshot.tasks) == 200
        assert len(snapshot.projects) == 1
