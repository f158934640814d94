"""Process enumeration, per-PID CPU derivation, filtering and selection."""

from collections.abc import Iterable
from dataclasses import replace
from enum import Enum
from fnmatch import fnmatchcase

import structlog

from hostmon.models import ProcessRecord, ProcessState, TaskStats
from hostmon.rate import RateCalculator
from hostmon.source import DEFAULT_CLOCK_TICKS, SampleSource

log = structlog.get_logger()

_GLOB_CHARS = frozenset("*?[")


class SortKey(Enum):
    """Sort keys for the process table."""

    CPU = "cpu"
    MEM = "mem"
    PID = "pid"
    NAME = "name"
    STATE = "state"


_SORT_FUNCS = {
    SortKey.CPU: lambda p: p.cpu_percent,
    SortKey.MEM: lambda p: p.memory_percent,
    SortKey.PID: lambda p: p.pid,
    SortKey.NAME: lambda p: p.name.lower(),
    SortKey.STATE: lambda p: p.state.value,
}


def sort_records(
    records: Iterable[ProcessRecord],
    key: SortKey = SortKey.CPU,
    descending: bool | None = None,
) -> list[ProcessRecord]:
    """
    Return records sorted by ``key``, ties broken by ascending PID.

    ``descending`` defaults to True for CPU and memory, False otherwise.
    """
    if descending is None:
        descending = key in (SortKey.CPU, SortKey.MEM)
    # Two stable passes keep the PID tie-break ascending in both directions
    by_pid = sorted(records, key=lambda p: p.pid)
    return sorted(by_pid, key=_SORT_FUNCS[key], reverse=descending)


def matches(record: ProcessRecord, text: str) -> bool:
    """Case-insensitive match of ``text`` against name, PID and state."""
    needle = text.strip().lower()
    if not needle:
        return True
    candidates = (
        record.name.lower(),
        str(record.pid),
        record.state.label.lower(),
        record.state.value,
    )
    if _GLOB_CHARS.intersection(needle):
        return any(fnmatchcase(c, needle) for c in candidates)
    return any(needle in c for c in candidates)


class ProcessTable:
    """
    Table of all processes, rebuilt on every refresh.

    CPU usage is derived from cumulative ticks through a RateCalculator keyed
    by PID, so the rate state outlives the records themselves. Selection is
    keyed by PID, never by row position, since ordering changes every cycle.
    """

    def __init__(self, clock_ticks: int = DEFAULT_CLOCK_TICKS, core_count: int = 1) -> None:
        self._rates = RateCalculator()
        self._clock_ticks = clock_ticks
        self._core_count = max(1, core_count)
        self._records: list[ProcessRecord] = []
        self._selected: set[int] = set()
        self._filter_text = ""

    @property
    def core_count(self) -> int:
        return self._core_count

    @core_count.setter
    def core_count(self, value: int) -> None:
        self._core_count = max(1, value)

    @property
    def records(self) -> list[ProcessRecord]:
        """All records from the last refresh, CPU-descending (returns a copy)."""
        return list(self._records)

    @property
    def tracked_pids(self) -> int:
        """Number of PIDs with CPU rate state."""
        return len(self._rates)

    def refresh(
        self,
        source: SampleSource,
        total_memory_bytes: int,
        now: float,
    ) -> list[ProcessRecord]:
        """
        Re-enumerate processes and derive CPU and memory usage.

        Args:
            source: Where to read raw process rows from.
            total_memory_bytes: Physical memory, for memory percent.
            now: Monotonic timestamp of this refresh.

        Returns:
            Records sorted by CPU descending, then PID ascending.
        """
        divisor = self._clock_ticks * self._core_count
        records: list[ProcessRecord] = []
        seen: set[int] = set()

        for raw in source.list_processes():
            if raw.pid in seen:
                continue
            seen.add(raw.pid)
            cpu = self._rates.derive(raw.pid, raw.cpu_ticks, now, divisor=divisor) * 100.0
            memory = (
                raw.resident_bytes * 100.0 / total_memory_bytes if total_memory_bytes > 0 else 0.0
            )
            records.append(
                ProcessRecord(
                    pid=raw.pid,
                    name=raw.name,
                    state=ProcessState.from_char(raw.state_char),
                    cpu_percent=min(100.0, cpu),
                    memory_percent=memory,
                    resident_bytes=raw.resident_bytes,
                    selected=raw.pid in self._selected,
                )
            )

        dropped = self._rates.prune(seen)
        if dropped:
            log.debug("process_state_pruned", count=dropped)
        self._selected &= seen

        self._records = sort_records(records, SortKey.CPU)
        return list(self._records)

    # Filtering

    @property
    def filter_text(self) -> str:
        return self._filter_text

    @filter_text.setter
    def filter_text(self, value: str) -> None:
        self._filter_text = value or ""

    def filter(self, text: str) -> list[ProcessRecord]:
        """Records matching ``text``. Never modifies the table."""
        return [r for r in self._records if matches(r, text)]

    def visible(self) -> list[ProcessRecord]:
        """Records matching the current filter text."""
        return self.filter(self._filter_text)

    # Selection

    @property
    def selected(self) -> frozenset[int]:
        return frozenset(self._selected)

    def is_selected(self, pid: int) -> bool:
        return pid in self._selected

    def select(self, pid: int) -> None:
        self._selected.add(pid)

    def deselect(self, pid: int) -> None:
        self._selected.discard(pid)

    def toggle(self, pid: int) -> bool:
        """Flip selection of ``pid``. Returns the new state."""
        if pid in self._selected:
            self._selected.discard(pid)
            return False
        self._selected.add(pid)
        return True

    def clear_selection(self) -> None:
        self._selected.clear()

    def kill_selected(self, source: SampleSource) -> list[int]:
        """
        Terminate every selected PID, clear the selection and re-enumerate.

        PIDs that no longer exist are ignored. The re-enumeration only drops
        processes that have exited and their rate state. Survivors keep the
        CPU usage and baseline of the last full refresh; new processes appear
        on the next refresh.

        Returns:
            PIDs that were actually signalled.
        """
        signalled = [pid for pid in sorted(self._selected) if source.terminate(pid)]
        skipped = len(self._selected) - len(signalled)
        log.info("processes_terminated", pids=signalled, skipped=skipped)
        self._selected.clear()

        alive = {raw.pid for raw in source.list_processes()}
        for record in self._records:
            if record.pid not in alive:
                self._rates.forget(record.pid)
        self._records = [
            replace(record, selected=False) for record in self._records if record.pid in alive
        ]
        return signalled

    def task_stats(self) -> TaskStats:
        """Histogram of process states from the last refresh."""
        counts = dict.fromkeys(ProcessState, 0)
        for record in self._records:
            counts[record.state] += 1
        return TaskStats(
            total=len(self._records),
            running=counts[ProcessState.RUNNING],
            sleeping=counts[ProcessState.SLEEPING],
            disk_sleep=counts[ProcessState.DISK_SLEEP],
            zombie=counts[ProcessState.ZOMBIE],
            stopped=counts[ProcessState.STOPPED] + counts[ProcessState.TRACING],
            idle=counts[ProcessState.IDLE],
            other=counts[ProcessState.DEAD] + counts[ProcessState.UNKNOWN],
        )
