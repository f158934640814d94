"""Tests for the process table."""

import pytest
from conftest import GIB, FakeSource, make_process

from hostmon.models import ProcessRecord, ProcessState
from hostmon.processes import ProcessTable, SortKey, matches, sort_records


def record(pid: int, name: str = "p", cpu: float = 0.0, mem: float = 0.0, state: str = "S"):
    return ProcessRecord(
        pid=pid,
        name=name,
        state=ProcessState.from_char(state),
        cpu_percent=cpu,
        memory_percent=mem,
    )


class TestSortKey:
    """Tests for SortKey enum."""

    def test_sort_key_values(self):
        assert SortKey.CPU.value == "cpu"
        assert SortKey.MEM.value == "mem"
        assert SortKey.PID.value == "pid"
        assert SortKey.NAME.value == "name"
        assert SortKey.STATE.value == "state"

    def test_sort_key_members(self):
        assert len(list(SortKey)) == 5


class TestSortRecords:
    """Tests for sort_records."""

    def test_cpu_descending_with_pid_tie_break(self):
        rows = [record(30, cpu=5.0), record(10, cpu=5.0), record(20, cpu=50.0)]
        assert [r.pid for r in sort_records(rows)] == [20, 10, 30]

    def test_pid_ascending(self):
        rows = [record(3), record(1), record(2)]
        assert [r.pid for r in sort_records(rows, SortKey.PID)] == [1, 2, 3]

    def test_name_is_case_insensitive(self):
        rows = [record(1, "zsh"), record(2, "Bash"), record(3, "awk")]
        assert [r.name for r in sort_records(rows, SortKey.NAME)] == ["awk", "Bash", "zsh"]

    def test_explicit_direction(self):
        rows = [record(1, mem=1.0), record(2, mem=2.0)]
        assert [r.pid for r in sort_records(rows, SortKey.MEM, descending=False)] == [1, 2]

    def test_tie_break_stays_ascending_when_descending(self):
        rows = [record(9, mem=1.0), record(4, mem=1.0)]
        assert [r.pid for r in sort_records(rows, SortKey.MEM)] == [4, 9]


class TestMatches:
    """Tests for the process filter."""

    def test_empty_text_matches_everything(self):
        assert matches(record(1, "anything"), "")
        assert matches(record(1, "anything"), "   ")

    def test_substring_of_name_case_insensitive(self):
        assert matches(record(1, "Firefox"), "fire")
        assert not matches(record(1, "Firefox"), "chrome")

    def test_pid_and_state(self):
        assert matches(record(4242, "x"), "424")
        assert matches(record(1, "x", state="Z"), "zombie")

    def test_glob_pattern(self):
        assert matches(record(1, "python3.12"), "py*3*")
        assert not matches(record(1, "ipython"), "py*")


class TestProcessTable:
    """Tests for ProcessTable."""

    def test_first_refresh_has_zero_cpu(self, source: FakeSource):
        table = ProcessTable(clock_ticks=100)
        records = table.refresh(source, 8 * GIB, now=0.0)

        assert len(records) == 3
        assert all(r.cpu_percent == 0.0 for r in records)
        assert table.tracked_pids == 3

    def test_cpu_percent_from_ticks(self):
        """50 ticks in 1s at 100 ticks/s on one core is 50%."""
        fake = FakeSource()
        fake.processes = [make_process(10, ticks=1000)]
        table = ProcessTable(clock_ticks=100)
        table.refresh(fake, 8 * GIB, now=0.0)

        fake.processes = [make_process(10, ticks=1050)]
        (rec,) = table.refresh(fake, 8 * GIB, now=1.0)

        assert rec.cpu_percent == pytest.approx(50.0)

    def test_cpu_percent_normalized_by_cores(self):
        fake = FakeSource()
        fake.processes = [make_process(10, ticks=0)]
        table = ProcessTable(clock_ticks=100, core_count=4)
        table.refresh(fake, 8 * GIB, now=0.0)

        fake.processes = [make_process(10, ticks=200)]
        (rec,) = table.refresh(fake, 8 * GIB, now=1.0)

        assert rec.cpu_percent == pytest.approx(50.0)

    def test_cpu_percent_is_capped(self):
        fake = FakeSource()
        fake.processes = [make_process(10, ticks=0)]
        table = ProcessTable(clock_ticks=100)
        table.refresh(fake, 8 * GIB, now=0.0)

        fake.processes = [make_process(10, ticks=500)]
        (rec,) = table.refresh(fake, 8 * GIB, now=1.0)

        assert rec.cpu_percent == 100.0

    def test_memory_percent(self):
        fake = FakeSource()
        fake.processes = [make_process(10, rss=GIB)]
        table = ProcessTable()

        (rec,) = table.refresh(fake, 4 * GIB, now=0.0)
        assert rec.memory_percent == pytest.approx(25.0)

        (rec,) = table.refresh(fake, 0, now=1.0)
        assert rec.memory_percent == 0.0

    def test_records_sorted_by_cpu(self, source: FakeSource):
        table = ProcessTable(clock_ticks=100)
        table.refresh(source, 8 * GIB, now=0.0)
        source.processes = [
            make_process(1, "systemd", ticks=510),
            make_process(200, "python3", ticks=1080),
            make_process(300, "nginx", ticks=100),
        ]

        records = table.refresh(source, 8 * GIB, now=1.0)

        assert [r.pid for r in records] == [200, 1, 300]

    def test_duplicate_pids_collapsed(self):
        fake = FakeSource()
        fake.processes = [make_process(5, "a"), make_process(5, "b")]
        table = ProcessTable()
        records = table.refresh(fake, GIB, now=0.0)
        assert [(r.pid, r.name) for r in records] == [(5, "a")]

    def test_vanished_pid_state_is_dropped(self, source: FakeSource):
        table = ProcessTable()
        table.refresh(source, 8 * GIB, now=0.0)
        source.processes = source.processes[:1]

        table.refresh(source, 8 * GIB, now=1.0)

        assert table.tracked_pids == 1

    def test_reused_pid_starts_from_zero(self):
        """A new process with a recycled PID and lower ticks reports 0, not a negative rate."""
        fake = FakeSource()
        fake.processes = [make_process(10, "old", ticks=90_000)]
        table = ProcessTable()
        table.refresh(fake, GIB, now=0.0)

        fake.processes = [make_process(10, "new", ticks=5)]
        (rec,) = table.refresh(fake, GIB, now=1.0)

        assert rec.cpu_percent == 0.0
        assert rec.name == "new"

    def test_filter_does_not_mutate(self, source: FakeSource):
        table = ProcessTable()
        table.refresh(source, 8 * GIB, now=0.0)

        hits = table.filter("nginx")

        assert [r.pid for r in hits] == [300]
        assert len(table.records) == 3
        assert table.filter("") == table.records

    def test_filter_without_match_then_clear(self, source: FakeSource):
        table = ProcessTable()
        table.refresh(source, 8 * GIB, now=0.0)

        table.filter_text = "no-such-process"
        assert table.visible() == []

        table.filter_text = ""
        assert len(table.visible()) == 3

    def test_visible_uses_filter_text(self, source: FakeSource):
        table = ProcessTable()
        table.refresh(source, 8 * GIB, now=0.0)
        table.filter_text = "PYTHON"

        assert [r.pid for r in table.visible()] == [200]

        table.filter_text = None
        assert table.filter_text == ""

    def test_selection_by_pid(self, source: FakeSource):
        table = ProcessTable()
        table.refresh(source, 8 * GIB, now=0.0)

        assert table.toggle(200) is True
        table.select(300)
        assert table.selected == frozenset({200, 300})

        records = table.refresh(source, 8 * GIB, now=1.0)
        assert {r.pid for r in records if r.selected} == {200, 300}

        assert table.toggle(200) is False
        table.deselect(300)
        assert not table.is_selected(300)
        assert table.selected == frozenset()

    def test_selection_pruned_when_process_exits(self, source: FakeSource):
        table = ProcessTable()
        table.refresh(source, 8 * GIB, now=0.0)
        table.select(300)

        source.processes = [p for p in source.processes if p.pid != 300]
        table.refresh(source, 8 * GIB, now=1.0)

        assert table.selected == frozenset()

    def test_kill_selected(self, source: FakeSource):
        table = ProcessTable()
        table.refresh(source, 8 * GIB, now=0.0)
        table.select(200)
        table.select(300)

        killed = table.kill_selected(source)

        assert killed == [200, 300]
        assert source.terminated == [200, 300]
        assert table.selected == frozenset()
        assert [r.pid for r in table.records] == [1]

    def test_kill_nonexistent_pid_is_ignored(self, source: FakeSource):
        table = ProcessTable()
        table.refresh(source, 8 * GIB, now=0.0)
        source.processes = [
            make_process(1, "systemd", ticks=510),
            make_process(200, "python3", ticks=1080),
            make_process(300, "nginx", ticks=100),
        ]
        before = table.refresh(source, 8 * GIB, now=1.0)
        table.select(99999)

        killed = table.kill_selected(source)

        assert killed == []
        assert table.selected == frozenset()
        assert table.records == before

    def test_kill_keeps_survivor_cpu(self):
        """A kill right after a refresh must not re-derive CPU over a tiny interval."""
        fake = FakeSource()
        fake.processes = [make_process(10, ticks=100), make_process(20, ticks=0)]
        table = ProcessTable(clock_ticks=100)
        table.refresh(fake, GIB, now=0.0)
        fake.processes = [make_process(10, ticks=105), make_process(20, ticks=0)]
        table.refresh(fake, GIB, now=1.0)
        fake.processes = [make_process(10, ticks=106), make_process(20, ticks=0)]
        table.select(20)

        assert table.kill_selected(fake) == [20]

        (rec,) = table.records
        assert rec.pid == 10
        assert rec.cpu_percent == pytest.approx(5.0)
        assert table.tracked_pids == 1

        # The baseline is still the last full refresh
        fake.processes = [make_process(10, ticks=115)]
        (rec,) = table.refresh(fake, GIB, now=2.0)
        assert rec.cpu_percent == pytest.approx(10.0)

    def test_kill_denied_pid(self, source: FakeSource):
        source.denied.add(1)
        table = ProcessTable()
        table.refresh(source, 8 * GIB, now=0.0)
        table.select(1)

        assert table.kill_selected(source) == []
        assert 1 in {r.pid for r in table.records}

    def test_task_stats(self):
        fake = FakeSource()
        fake.processes = [
            make_process(1, state="R"),
            make_process(2, state="S"),
            make_process(3, state="S"),
            make_process(4, state="D"),
            make_process(5, state="Z"),
            make_process(6, state="T"),
            make_process(7, state="t"),
            make_process(8, state="I"),
            make_process(9, state="?"),
        ]
        table = ProcessTable()
        table.refresh(fake, GIB, now=0.0)

        stats = table.task_stats()

        assert stats.total == 9
        assert stats.running == 1
        assert stats.sleeping == 2
        assert stats.disk_sleep == 1
        assert stats.zombie == 1
        assert stats.stopped == 2
        assert stats.idle == 1
        assert stats.other == 1
