"""System monitoring engine for hostmon."""

import threading
import time
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from queue import Queue

import structlog

from hostmon.config import Config
from hostmon.cpu import CpuUsageMeter
from hostmon.history import HistoryBuffer
from hostmon.models import (
    FanReading,
    HistoryView,
    HostInfo,
    InterfaceRecord,
    NetworkSummary,
    ProcessRecord,
    TaskStats,
    UsageTotals,
)
from hostmon.network import NetworkInterfaceTracker, summarize
from hostmon.processes import ProcessTable, matches
from hostmon.sensors import SyntheticFan
from hostmon.source import SampleSource, create_source

log = structlog.get_logger()

CPU = "cpu"
FAN = "fan"
THERMAL = "thermal"
NET_RX = "net_rx"
NET_TX = "net_tx"
HISTORY_NAMES = (CPU, FAN, THERMAL, NET_RX, NET_TX)
# Graph families; each dashboard tab drives one family with a single set of controls
SYSTEM_GRAPHS = (CPU, FAN, THERMAL)
NETWORK_GRAPHS = (NET_RX, NET_TX)

_DEFAULT_SCALES = {
    FAN: 3000.0,  # RPM
    NET_RX: 1024.0 * 1024.0,  # bytes/s
    NET_TX: 1024.0 * 1024.0,
}

_NO_USAGE = UsageTotals(total=0, used=0, free=0)


@dataclass(slots=True, frozen=True)
class SystemSnapshot:
    """Snapshot of overall system state. A new instance is published every cycle."""

    timestamp: float
    host: HostInfo
    core_count: int
    cpu_percent: float
    temperature: float | None
    fan: FanReading | None
    fan_synthetic: bool
    memory: UsageTotals
    swap: UsageTotals
    disk: UsageTotals
    tasks: TaskStats
    processes: tuple[ProcessRecord, ...]
    interfaces: tuple[InterfaceRecord, ...]
    network: NetworkSummary
    history: Mapping[str, HistoryView] = field(default_factory=dict)
    selected: frozenset[int] = frozenset()
    filter_text: str = ""

    @classmethod
    def empty(cls) -> "SystemSnapshot":
        """Placeholder published before the first update."""
        return cls(
            timestamp=0.0,
            host=HostInfo(),
            core_count=1,
            cpu_percent=0.0,
            temperature=None,
            fan=None,
            fan_synthetic=False,
            memory=_NO_USAGE,
            swap=_NO_USAGE,
            disk=_NO_USAGE,
            tasks=TaskStats(),
            processes=(),
            interfaces=(),
            network=NetworkSummary(),
        )

    @property
    def is_empty(self) -> bool:
        return self.timestamp == 0.0

    def visible_processes(self) -> list[ProcessRecord]:
        """Processes matching the filter text at publish time."""
        return [p for p in self.processes if matches(p, self.filter_text)]

    def top_processes(self, count: int = 5) -> list[ProcessRecord]:
        """The ``count`` processes using the most CPU."""
        return list(self.processes[:count])


class SystemMonitor:
    """
    Owns the sampling engine and publishes a SystemSnapshot per cycle.

    A daemon thread calls update() every poll_rate seconds. Cycles never
    overlap: a call made while one is running is skipped. A single coarse
    lock guards the published state; readers hold it through read() for a
    whole render pass.
    """

    def __init__(
        self,
        source: SampleSource | None = None,
        config: Config | None = None,
        update_queue: "Queue[SystemSnapshot] | None" = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize the SystemMonitor.

        Args:
            source: Raw counter source. Defaults to the one for this platform.
            config: Application config. Defaults to built-in defaults.
            update_queue: Optional queue each new snapshot is pushed to.
            clock: Monotonic time function, in seconds.
        """
        self._config = config or Config()
        sampling = self._config.sampling
        self._source = source or create_source(sampling.source, sampling.clock_ticks)
        self._queue = update_queue
        self._clock = clock
        self._poll_rate = max(0.1, sampling.interval)
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._lock = threading.RLock()
        self._cycle_lock = threading.Lock()

        self._cpu = CpuUsageMeter()
        self._processes = ProcessTable(clock_ticks=self._source.clock_ticks)
        self._network = NetworkInterfaceTracker()
        self._history = {
            name: HistoryBuffer(
                capacity=sampling.history_size,
                fps=sampling.graph_fps,
                scale=_DEFAULT_SCALES.get(name, sampling.graph_scale),
            )
            for name in HISTORY_NAMES
        }
        self._synthetic_fan = SyntheticFan() if self._config.sensors.synthetic_fan else None
        self._host: HostInfo | None = None
        self._core_count = 1
        self._snapshot = SystemSnapshot.empty()

    @property
    def source(self) -> SampleSource:
        return self._source

    @property
    def config(self) -> Config:
        return self._config

    @property
    def poll_rate(self) -> float:
        """Get the current poll rate."""
        return self._poll_rate

    @poll_rate.setter
    def poll_rate(self, value: float) -> None:
        """Set the poll rate."""
        self._poll_rate = max(0.1, value)  # Minimum 0.1 seconds

    @property
    def is_running(self) -> bool:
        """Check if the monitor thread is running."""
        return self._thread is not None and self._thread.is_alive()

    @property
    def snapshot(self) -> SystemSnapshot:
        """The most recently published snapshot."""
        with self._lock:
            return self._snapshot

    @contextmanager
    def read(self) -> Iterator[SystemSnapshot]:
        """Hold the monitor lock for a whole render pass."""
        with self._lock:
            yield self._snapshot

    def start(self) -> None:
        """Start the monitoring thread."""
        if self.is_running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._poll_loop,
            daemon=True,
            name="SystemMonitor",
        )
        self._thread.start()
        log.info("monitor_started", poll_rate=self._poll_rate)

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Stop the monitoring thread.

        Args:
            timeout: How long to wait for thread to stop (seconds).
        """
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
            log.info("monitor_stopped")

    def _poll_loop(self) -> None:
        """Main polling loop running in the background thread."""
        while not self._stop_event.is_set():
            started = self._clock()
            self.update()
            # Fixed period: subtract the time the cycle itself took
            elapsed = self._clock() - started
            self._stop_event.wait(timeout=max(0.0, self._poll_rate - elapsed))

    def update(self, now: float | None = None) -> SystemSnapshot | None:
        """
        Run one full update cycle and publish the result.

        Returns:
            The new snapshot, or None if another cycle was already running
            or the cycle failed (the previous snapshot stays published).
        """
        if not self._cycle_lock.acquire(blocking=False):
            log.debug("update_skipped")
            return None
        try:
            with self._lock:
                try:
                    snapshot = self._collect(self._clock() if now is None else now)
                except Exception:
                    log.exception("update_failed")
                    return None
                self._snapshot = snapshot
        finally:
            self._cycle_lock.release()

        self._publish(snapshot)
        return snapshot

    def _publish(self, snapshot: SystemSnapshot) -> None:
        if self._queue is not None:
            self._queue.put(snapshot)

    def _collect(self, now: float) -> SystemSnapshot:
        """Read every sub-collector once and build a snapshot."""
        source = self._source
        if self._host is None:
            self._host = source.host_info()
            self._core_count = max(1, source.cpu_count())
            self._processes.core_count = self._core_count

        cpu_percent = self._cpu.update(source.cpu_times())
        temperature = source.thermal_reading()
        fan = source.fan_reading()
        fan_synthetic = False
        if fan is None and self._synthetic_fan is not None:
            fan = self._synthetic_fan.read()
            fan_synthetic = True

        memory = source.memory_totals() or _NO_USAGE
        swap = source.swap_totals() or _NO_USAGE
        disk = source.disk_totals(self._config.sensors.disk_mountpoint) or _NO_USAGE

        processes = self._processes.refresh(source, memory.total, now)
        interfaces = self._network.refresh(source, now)
        network = summarize(interfaces)

        self._history[CPU].maybe_sample(cpu_percent, now)
        if fan is not None:
            self._history[FAN].maybe_sample(fan.speed_rpm, now)
        if temperature is not None:
            self._history[THERMAL].maybe_sample(temperature, now)
        self._history[NET_RX].maybe_sample(network.rx_rate, now)
        self._history[NET_TX].maybe_sample(network.tx_rate, now)

        return SystemSnapshot(
            timestamp=now,
            host=self._host,
            core_count=self._core_count,
            cpu_percent=cpu_percent,
            temperature=temperature,
            fan=fan,
            fan_synthetic=fan_synthetic,
            memory=memory,
            swap=swap,
            disk=disk,
            tasks=self._processes.task_stats(),
            processes=tuple(processes),
            interfaces=tuple(interfaces),
            network=network,
            history=self._history_views(),
            selected=self._processes.selected,
            filter_text=self._processes.filter_text,
        )

    def _history_views(self) -> dict[str, HistoryView]:
        return {name: buffer.view() for name, buffer in self._history.items()}

    def _republish_processes(self) -> None:
        """Publish table changes (selection, filter, kill) without a full cycle."""
        selected = self._processes.selected
        processes = tuple(
            replace(p, selected=p.pid in selected) for p in self._processes.records
        )
        self._snapshot = replace(
            self._snapshot,
            processes=processes,
            tasks=self._processes.task_stats(),
            selected=selected,
            filter_text=self._processes.filter_text,
        )

    # Process selection and control

    @property
    def selected(self) -> frozenset[int]:
        with self._lock:
            return self._processes.selected

    def select(self, pid: int) -> None:
        with self._lock:
            self._processes.select(pid)
            self._republish_processes()

    def deselect(self, pid: int) -> None:
        with self._lock:
            self._processes.deselect(pid)
            self._republish_processes()

    def toggle(self, pid: int) -> bool:
        """Flip selection of ``pid``. Returns the new state."""
        with self._lock:
            state = self._processes.toggle(pid)
            self._republish_processes()
        return state

    def clear_selection(self) -> None:
        with self._lock:
            self._processes.clear_selection()
            self._republish_processes()

    def set_filter(self, text: str) -> None:
        """Set the process filter carried by published snapshots."""
        with self._lock:
            self._processes.filter_text = text
            self._republish_processes()

    def kill_selected(self) -> list[int]:
        """
        Terminate all selected processes and refresh the process list.

        Waits for a running cycle to finish first.

        Returns:
            PIDs that were signalled.
        """
        with self._cycle_lock:
            with self._lock:
                pids = self._processes.kill_selected(self._source)
                self._republish_processes()
                snapshot = self._snapshot
        self._publish(snapshot)
        return pids

    # Graph controls

    def history(self, name: str) -> HistoryView:
        with self._lock:
            return self._history[name].view()

    def configure_history(
        self,
        name: str,
        *,
        paused: bool | None = None,
        fps: float | None = None,
        scale: float | None = None,
    ) -> HistoryView:
        """
        Change graph settings of one history buffer.

        Raises:
            KeyError: If ``name`` is not a known history.
            ValueError: If ``scale`` is not positive.
        """
        with self._lock:
            buffer = self._history[name]
            if paused is not None:
                buffer.paused = paused
            if fps is not None:
                buffer.fps = fps
            if scale is not None:
                buffer.scale = scale
            self._snapshot = replace(self._snapshot, history=self._history_views())
            return buffer.view()

    def configure_all_history(
        self,
        names: tuple[str, ...] = SYSTEM_GRAPHS,
        *,
        paused: bool | None = None,
        fps: float | None = None,
    ) -> None:
        """Apply pause and sample-rate changes to several graphs at once."""
        for name in names:
            self.configure_history(name, paused=paused, fps=fps)
