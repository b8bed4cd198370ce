#!/usr/bin/env python3
"""
Tests for TaskSlotTable and TaskRecord
"""

import pytest

from testexec.executor.errors import BadStateError, OutOfMemoryError, Status
from testexec.executor.slot_table import TaskRecord, TaskSlotTable, TaskState
from testexec.shared.process_utils import ProcessHandle

from conftest import make_test


def record(pid: int) -> TaskRecord:
    return TaskRecord(test=make_test(f"t{pid}"), handle=ProcessHandle(pid))


@pytest.fixture
def full_table():
    table = TaskSlotTable.allocate(4)
    for pid in (10, 11, 12, 13):
        table.add(record(pid))
    return table


class TestTaskSlotTable:
    """Bookkeeping of in-flight tasks"""

    def test_allocate(self):
        table = TaskSlotTable.allocate(3)
        assert table.capacity == 3
        assert table.active_count() == 0
        assert not table.is_full

    def test_allocate_rejects_zero_capacity(self):
        with pytest.raises(ValueError):
            TaskSlotTable.allocate(0)

    def test_allocation_failure_maps_to_out_of_memory(self, monkeypatch):
        def explode(self, capacity):
            raise MemoryError()

        monkeypatch.setattr(TaskSlotTable, "__init__", explode)
        with pytest.raises(OutOfMemoryError) as exc_info:
            TaskSlotTable.allocate(8)
        assert exc_info.value.status == Status.NO_MEM

    def test_add_until_full(self, full_table):
        assert full_table.is_full
        assert full_table.active_count() == 4
        with pytest.raises(BadStateError):
            full_table.add(record(99))

    def test_find_by_process_handle(self, full_table):
        index, found = full_table.find_by_process_handle(12)
        assert index == 2
        assert found.pid == 12
        assert full_table.find_by_process_handle(404) is None

    @pytest.mark.parametrize("index", [0, 1, 2, 3])
    def test_remove_by_swap_keeps_other_records(self, full_table, index):
        before = list(full_table)
        removed = full_table.remove_by_swap(index)

        remaining = list(full_table)
        assert removed is before[index]
        assert len(remaining) == 3
        assert full_table.active_count() == 3
        # Same identities, nothing lost or duplicated
        assert {id(r) for r in remaining} == {id(r) for r in before if r is not removed}

    def test_remove_moves_last_record_into_hole(self, full_table):
        last = full_table.get(3)
        full_table.remove_by_swap(0)
        assert full_table.get(0) is last
        assert full_table.find_by_process_handle(13) == (0, last)

    def test_remove_inactive_slot(self, full_table):
        full_table.remove_by_swap(3)
        with pytest.raises(IndexError):
            full_table.remove_by_swap(3)

    def test_slot_reused_after_removal(self, full_table):
        full_table.remove_by_swap(1)
        assert not full_table.is_full
        assert full_table.add(record(20)) == 3
        assert full_table.is_full


class TestTaskRecord:
    """Outcome transitions"""

    def test_pending_until_finalized(self):
        r = record(1)
        assert r.state == TaskState.PENDING
        assert r.outcome is None
        assert not r.is_final

    @pytest.mark.parametrize("code, state", [
        (Status.OK, TaskState.SUCCEEDED),
        (Status.FAILED, TaskState.FAILED),
        (Status.TIMEOUT, TaskState.TIMED_OUT),
        (Status.KILLED, TaskState.KILLED),
        (42, TaskState.FAILED),
    ])
    def test_finalize_sets_state(self, code, state):
        r = record(1)
        r.finalize(code)
        assert r.outcome == code
        assert r.state == state
        assert r.succeeded == (code == Status.OK)

    def test_finalize_only_once(self):
        r = record(1)
        r.finalize(Status.OK)
        with pytest.raises(BadStateError):
            r.finalize(Status.FAILED)
        assert r.outcome == Status.OK

    def test_elapsed(self):
        r = TaskRecord(test=make_test("t"), submitted_at=100.0)
        assert r.elapsed(now=102.5) == pytest.approx(2.5)
        assert r.pid is None
