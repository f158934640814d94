"""hostmon - Textual dashboard."""

from collections.abc import Iterable
from queue import Empty, Queue

from rich.text import Text
from textual.app import App, ComposeResult
from textual.containers import Container, VerticalScroll
from textual.css.query import NoMatches
from textual.widgets import DataTable, Footer, Input, Static, TabbedContent, TabPane

from hostmon.config import Config
from hostmon.formatting import format_bytes, format_rate, percent_bar, sparkline
from hostmon.models import HistoryView, InterfaceRecord, ProcessRecord, UsageTotals
from hostmon.monitor import (
    CPU,
    FAN,
    NET_RX,
    NET_TX,
    NETWORK_GRAPHS,
    SYSTEM_GRAPHS,
    THERMAL,
    SystemMonitor,
    SystemSnapshot,
)
from hostmon.processes import SortKey, sort_records
from hostmon.source import SampleSource

SCALE_STEP = 1.25
FPS_STEP = 2.0
GRAPH_WIDTH = 60


class GraphView(Static):
    """One-row history graph with its current value and control state."""

    DEFAULT_CSS = """
    GraphView {
        height: auto;
        padding: 0 1;
    }
    """

    current: str = ""
    paused: bool = False

    def show(self, title: str, current: str, view: HistoryView) -> None:
        """Redraw the graph from a history view."""
        self.current = current
        self.paused = view.paused
        width = max(10, self.size.width - 4) if self.size.width else GRAPH_WIDTH
        state = "[yellow]paused[/]" if view.paused else f"{view.fps:g} fps"
        graph = sparkline(view.data, view.scale, width)
        self.update(
            f"[b]{title}[/b] {current}  [dim]{state}, scale {view.scale:g}[/]\n"
            f"[green]{graph}[/green]"
        )


class SystemPanel(VerticalScroll):
    """Host facts, task states and the CPU/fan/thermal graphs."""

    def compose(self) -> ComposeResult:
        yield Static("Loading system info...", id="host-info")
        yield GraphView(id="graph-cpu")
        yield GraphView(id="graph-fan")
        yield GraphView(id="graph-thermal")

    def update_stats(self, snapshot: SystemSnapshot) -> None:
        """Update the panel from a system snapshot."""
        host = snapshot.host
        tasks = snapshot.tasks
        self.query_one("#host-info", Static).update(
            f"Operating System: {host.os_name}\n"
            f"User: {host.user}\n"
            f"Hostname: {host.hostname}\n"
            f"CPU: {host.cpu_model} ({snapshot.core_count} cores)\n"
            f"Tasks: {tasks.total} total, {tasks.running} running, "
            f"{tasks.sleeping} sleeping, {tasks.disk_sleep} uninterruptible, "
            f"{tasks.zombie} zombie, {tasks.stopped} stopped, {tasks.idle} idle"
        )

        history = snapshot.history
        if CPU in history:
            self.query_one("#graph-cpu", GraphView).show(
                "CPU", f"{snapshot.cpu_percent:5.1f}%", history[CPU]
            )
        if FAN in history:
            fan = snapshot.fan
            if fan is None:
                current = "[dim]unavailable[/]"
            else:
                status = "active" if fan.active else "inactive"
                demo = " [yellow](synthetic)[/]" if snapshot.fan_synthetic else ""
                current = f"{fan.speed_rpm} RPM, {status}{demo}"
            self.query_one("#graph-fan", GraphView).show("Fan", current, history[FAN])
        if THERMAL in history:
            temp = snapshot.temperature
            current = "[dim]unavailable[/]" if temp is None else f"{temp:.1f}°C"
            self.query_one("#graph-thermal", GraphView).show(
                "Thermal", current, history[THERMAL]
            )


def _usage_bar(label: str, usage: UsageTotals) -> str:
    return (
        f"{label:<5}\\{percent_bar(usage.percent)} "
        f"{format_bytes(usage.used)} / {format_bytes(usage.total)} ({usage.percent:.1f}%)"
    )


class ProcessPanel(Container):
    """Memory bars, filter box and the process data table."""

    DEFAULT_CSS = """
    ProcessPanel {
        height: 1fr;
    }
    #memory-info {
        height: auto;
        padding: 0 1;
    }
    #process-table {
        height: 1fr;
        border: solid $primary;
    }
    #process-status {
        height: 1;
        padding: 0 1;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize ProcessPanel."""
        super().__init__(*args, **kwargs)
        self._sort_key: SortKey = SortKey.CPU
        self._sort_reverse: bool = True  # Default: descending for CPU

    @property
    def sort_key(self) -> SortKey:
        """Get current sort key."""
        return self._sort_key

    def cycle_sort(self) -> SortKey:
        """Cycle to the next sort key and return it."""
        keys = list(SortKey)
        next_index = (keys.index(self._sort_key) + 1) % len(keys)
        self._sort_key = keys[next_index]
        self._sort_reverse = self._sort_key in (SortKey.CPU, SortKey.MEM)
        return self._sort_key

    def compose(self) -> ComposeResult:
        yield Static("Loading memory info...", id="memory-info")
        yield Input(placeholder="Filter by name, PID or state", id="process-filter")
        yield DataTable(id="process-table")
        yield Static("", id="process-status")

    def on_mount(self) -> None:
        """Initialize the data table when mounted."""
        table = self.query_one("#process-table", DataTable)
        table.cursor_type = "row"
        table.add_column(" ", key="mark", width=1)
        table.add_column("PID", key="pid", width=8)
        table.add_column("Name", key="name", width=24)
        table.add_column("State", key="state", width=11)
        table.add_column("CPU%", key="cpu", width=7)
        table.add_column("MEM%", key="mem", width=7)
        table.add_column("RES", key="rss", width=11)

    @property
    def cursor_pid(self) -> int | None:
        """PID of the row under the cursor."""
        table = self.query_one("#process-table", DataTable)
        if table.row_count == 0:
            return None
        row_key = table.coordinate_to_cell_key(table.cursor_coordinate).row_key
        return int(row_key.value) if row_key.value is not None else None

    def update_processes(self, snapshot: SystemSnapshot) -> None:
        """Rebuild the table from a snapshot, keeping the cursor on the same PID."""
        self.query_one("#memory-info", Static).update(
            "\n".join(
                [
                    _usage_bar("RAM", snapshot.memory),
                    _usage_bar("Swap", snapshot.swap),
                    _usage_bar("Disk", snapshot.disk),
                ]
            )
        )

        table = self.query_one("#process-table", DataTable)
        cursor_pid = self.cursor_pid
        visible = snapshot.visible_processes()
        rows = sort_records(visible, self._sort_key, self._sort_reverse)

        table.clear()
        for proc in rows:
            self._add_row(table, proc)

        if cursor_pid is not None and any(p.pid == cursor_pid for p in rows):
            table.move_cursor(row=table.get_row_index(str(cursor_pid)))

        self.query_one("#process-status", Static).update(
            f"{len(rows)} of {len(snapshot.processes)} shown, "
            f"{len(snapshot.selected)} selected, sort: {self._sort_key.value}"
        )

    def _add_row(self, table: DataTable, proc: ProcessRecord) -> None:
        table.add_row(
            "✓" if proc.selected else "",
            str(proc.pid),
            Text(proc.name[:24]),
            proc.state.label,
            f"{proc.cpu_percent:5.1f}",
            f"{proc.memory_percent:5.1f}",
            format_bytes(proc.resident_bytes),
            key=str(proc.pid),
        )


# Cumulative traffic drawn as a full usage bar
USAGE_BAR_BYTES = 10 * 1024**3
RX_COLUMNS = (
    "Interface", "Bytes", "Packets", "Errors", "Drops", "FIFO", "Frame", "Compressed", "Multicast"
)
TX_COLUMNS = (
    "Interface", "Bytes", "Packets", "Errors", "Drops", "FIFO", "Colls", "Carrier", "Compressed"
)


def _traffic_bar(label: str, total: int, rate: float) -> str:
    percent = min(100.0, total * 100.0 / USAGE_BAR_BYTES)
    return f"  {label} \\{percent_bar(percent)} {format_bytes(total)} ({format_rate(rate)})"


def traffic_usage(interfaces: Iterable[InterfaceRecord]) -> str:
    """Per-interface cumulative RX/TX bars, loopback excluded."""
    lines: list[str] = []
    for iface in interfaces:
        if iface.name == "lo":
            continue
        lines += [
            f"{iface.name}:",
            _traffic_bar("RX", iface.rx.bytes, iface.rx_rate),
            _traffic_bar("TX", iface.tx.bytes, iface.tx_rate),
        ]
    return "\n".join(lines)


class NetworkPanel(VerticalScroll):
    """Interface overview, RX/TX graphs, full RX and TX counter tables and usage bars."""

    DEFAULT_CSS = """
    NetworkPanel DataTable {
        height: auto;
        max-height: 16;
        margin-bottom: 1;
    }
    NetworkPanel .table-title {
        padding: 0 1;
        text-style: bold;
    }
    #network-usage {
        height: auto;
        padding: 0 1;
    }
    """

    def compose(self) -> ComposeResult:
        yield Static("Loading network info...", id="network-summary")
        yield GraphView(id="graph-net-rx")
        yield GraphView(id="graph-net-tx")
        yield DataTable(id="network-table")
        yield Static("RX (Receive)", classes="table-title")
        yield DataTable(id="rx-table")
        yield Static("TX (Transmit)", classes="table-title")
        yield DataTable(id="tx-table")
        yield Static("", id="network-usage")

    def on_mount(self) -> None:
        overview = self.query_one("#network-table", DataTable)
        for label in ("Interface", "Status", "IPv4", "Total RX", "Total TX", "RX Rate", "TX Rate"):
            overview.add_column(label)
        for label in RX_COLUMNS:
            self.query_one("#rx-table", DataTable).add_column(label)
        for label in TX_COLUMNS:
            self.query_one("#tx-table", DataTable).add_column(label)

    def update_interfaces(self, snapshot: SystemSnapshot) -> None:
        net = snapshot.network
        self.query_one("#network-summary", Static).update(
            f"Interfaces: {len(snapshot.interfaces)} ({net.active_interfaces} active)  "
            f"RX {format_rate(net.rx_rate)}  TX {format_rate(net.tx_rate)}  "
            f"Total traffic {format_bytes(net.total_traffic)}  "
            f"Errors RX {net.rx_error_rate:.2f}% TX {net.tx_error_rate:.2f}%"
        )

        history = snapshot.history
        if NET_RX in history:
            self.query_one("#graph-net-rx", GraphView).show(
                "RX", format_rate(net.rx_rate), history[NET_RX]
            )
        if NET_TX in history:
            self.query_one("#graph-net-tx", GraphView).show(
                "TX", format_rate(net.tx_rate), history[NET_TX]
            )

        overview = self.query_one("#network-table", DataTable)
        rx_table = self.query_one("#rx-table", DataTable)
        tx_table = self.query_one("#tx-table", DataTable)
        overview.clear()
        rx_table.clear()
        tx_table.clear()
        for iface in snapshot.interfaces:
            rx, tx = iface.rx, iface.tx
            overview.add_row(
                iface.name,
                "[green]UP[/]" if iface.operational else "[red]DOWN[/]",
                iface.ipv4 or "N/A",
                format_bytes(rx.bytes),
                format_bytes(tx.bytes),
                format_rate(iface.rx_rate),
                format_rate(iface.tx_rate),
                key=iface.name,
            )
            rx_counts = (
                rx.packets, rx.errors, rx.drops, rx.fifo, rx.frame, rx.compressed, rx.multicast
            )
            tx_counts = (
                tx.packets, tx.errors, tx.drops, tx.fifo, tx.collisions, tx.carrier, tx.compressed
            )
            rx_table.add_row(
                iface.name, format_bytes(rx.bytes), *map(str, rx_counts), key=iface.name
            )
            tx_table.add_row(
                iface.name, format_bytes(tx.bytes), *map(str, tx_counts), key=iface.name
            )
        self.query_one("#network-usage", Static).update(traffic_usage(snapshot.interfaces))


class HostmonApp(App):
    """Main hostmon application."""

    TITLE = "hostmon"
    SUB_TITLE = "Host Telemetry Monitor"

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("f6", "sort", "Sort"),
        ("slash", "search", "Filter"),
        ("space", "toggle_select", "Select"),
        ("k", "kill", "Kill"),
        ("c", "clear_selection", "Clear"),
        ("p", "pause", "Pause"),
        ("plus", "faster", "FPS+"),
        ("minus", "slower", "FPS-"),
        ("right_square_bracket", "scale_up", "Scale+"),
        ("left_square_bracket", "scale_down", "Scale-"),
    ]

    def __init__(self, source: SampleSource | None = None, config: Config | None = None) -> None:
        """Initialize the HostmonApp."""
        super().__init__()
        self._update_queue: Queue[SystemSnapshot] = Queue()
        self._monitor = SystemMonitor(
            source=source, config=config, update_queue=self._update_queue
        )

    @property
    def monitor(self) -> SystemMonitor:
        return self._monitor

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        with TabbedContent(id="tabs"):
            with TabPane("System", id="tab-system"):
                yield SystemPanel(id="system-panel")
            with TabPane("Memory & Processes", id="tab-processes"):
                yield ProcessPanel(id="process-panel")
            with TabPane("Network", id="tab-network"):
                yield NetworkPanel(id="network-panel")
        yield Footer()

    def on_mount(self) -> None:
        """Start the system monitor when the app is mounted."""
        self._monitor.start()
        self.set_interval(0.5, self._check_for_updates)

    def _check_for_updates(self) -> None:
        """Drain the queue and refresh the UI with the most recent snapshot."""
        snapshot = None
        while True:
            try:
                snapshot = self._update_queue.get_nowait()
            except Empty:
                break

        if snapshot is not None:
            self._update_ui(snapshot)

    def _update_ui(self, snapshot: SystemSnapshot) -> None:
        """Update every panel from one snapshot."""
        try:
            self.query_one(SystemPanel).update_stats(snapshot)
            self.query_one(ProcessPanel).update_processes(snapshot)
            self.query_one(NetworkPanel).update_interfaces(snapshot)
        except NoMatches:
            pass  # Not mounted yet

    def _refresh_from_monitor(self) -> None:
        self._update_ui(self._monitor.snapshot)

    def on_input_changed(self, event: Input.Changed) -> None:
        """Apply the process filter as the user types."""
        if event.input.id == "process-filter":
            self._monitor.set_filter(event.value)
            self._refresh_from_monitor()

    def action_sort(self) -> None:
        """Cycle through sort keys."""
        panel = self.query_one(ProcessPanel)
        new_sort_key = panel.cycle_sort()
        self._refresh_from_monitor()
        self.notify(f"Sort: {new_sort_key.value.upper()}")

    def action_search(self) -> None:
        """Jump to the process filter box."""
        self.query_one(TabbedContent).active = "tab-processes"
        self.query_one("#process-filter", Input).focus()

    def action_toggle_select(self) -> None:
        pid = self.query_one(ProcessPanel).cursor_pid
        if pid is None:
            return
        self._monitor.toggle(pid)
        self._refresh_from_monitor()

    def action_clear_selection(self) -> None:
        self._monitor.clear_selection()
        self._refresh_from_monitor()

    def action_kill(self) -> None:
        """Terminate every selected process."""
        requested = len(self._monitor.selected)
        if not requested:
            self.notify("No processes selected", severity="warning")
            return
        pids = self._monitor.kill_selected()
        self._refresh_from_monitor()
        self.notify(f"Terminated {len(pids)} of {requested} selected")

    def _graph_family(self) -> tuple[str, ...]:
        """Graphs driven by the controls: the Network tab's or the System tab's."""
        if self.query_one(TabbedContent).active == "tab-network":
            return NETWORK_GRAPHS
        return SYSTEM_GRAPHS

    def action_pause(self) -> None:
        """Pause or resume the graphs of the current tab."""
        family = self._graph_family()
        paused = not self._monitor.history(family[0]).paused
        self._monitor.configure_all_history(family, paused=paused)
        self._refresh_from_monitor()
        self.notify("Graphs paused" if paused else "Graphs resumed")

    def _change_fps(self, factor: float) -> None:
        family = self._graph_family()
        fps = self._monitor.history(family[0]).fps * factor
        self._monitor.configure_all_history(family, fps=fps)
        self._refresh_from_monitor()

    def action_faster(self) -> None:
        self._change_fps(FPS_STEP)

    def action_slower(self) -> None:
        self._change_fps(1 / FPS_STEP)

    def _change_scale(self, factor: float) -> None:
        for name in self._graph_family():
            scale = self._monitor.history(name).scale * factor
            self._monitor.configure_history(name, scale=scale)
        self._refresh_from_monitor()

    def action_scale_up(self) -> None:
        self._change_scale(SCALE_STEP)

    def action_scale_down(self) -> None:
        self._change_scale(1 / SCALE_STEP)

    def action_quit(self) -> None:
        """Handle quit action with graceful cleanup."""
        self._monitor.stop()
        self.exit()


def run_app(source: SampleSource | None = None, config: Config | None = None) -> None:
    """Run the dashboard until the user quits."""
    HostmonApp(source=source, config=config).run()
