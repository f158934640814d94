"""Data models for hostmon."""

from dataclasses import dataclass, field
from enum import Enum


class ProcessState(Enum):
    """Scheduler state of a process."""

    RUNNING = "running"
    SLEEPING = "sleeping"
    DISK_SLEEP = "disk-sleep"
    ZOMBIE = "zombie"
    STOPPED = "stopped"
    TRACING = "tracing"
    DEAD = "dead"
    IDLE = "idle"
    UNKNOWN = "unknown"

    @classmethod
    def from_char(cls, char: str) -> "ProcessState":
        """Map a Linux /proc state letter to a ProcessState."""
        return _STATE_CHARS.get(char, cls.UNKNOWN)

    @property
    def char(self) -> str:
        return _STATE_LETTERS[self]

    @property
    def label(self) -> str:
        return self.value.replace("-", " ").title()


_STATE_CHARS = {
    "R": ProcessState.RUNNING,
    "S": ProcessState.SLEEPING,
    "D": ProcessState.DISK_SLEEP,
    "Z": ProcessState.ZOMBIE,
    "T": ProcessState.STOPPED,
    "t": ProcessState.TRACING,
    "X": ProcessState.DEAD,
    "x": ProcessState.DEAD,
    "I": ProcessState.IDLE,
    "W": ProcessState.SLEEPING,  # paging (pre-2.6) / waking
    "K": ProcessState.SLEEPING,  # wakekill
    "P": ProcessState.SLEEPING,  # parked
}

_STATE_LETTERS = {
    ProcessState.RUNNING: "R",
    ProcessState.SLEEPING: "S",
    ProcessState.DISK_SLEEP: "D",
    ProcessState.ZOMBIE: "Z",
    ProcessState.STOPPED: "T",
    ProcessState.TRACING: "t",
    ProcessState.DEAD: "X",
    ProcessState.IDLE: "I",
    ProcessState.UNKNOWN: "?",
}


@dataclass(slots=True, frozen=True)
class RawProcess:
    """One process as read from the OS, before any derivation."""

    pid: int
    name: str
    state_char: str
    cpu_ticks: int  # cumulative user + system clock ticks
    resident_bytes: int


@dataclass(slots=True, frozen=True)
class CpuTimes:
    """Cumulative system-wide CPU time, in clock ticks."""

    user: int
    nice: int
    system: int
    idle: int
    iowait: int = 0
    irq: int = 0
    softirq: int = 0
    steal: int = 0

    @property
    def idle_total(self) -> int:
        return self.idle + self.iowait

    @property
    def busy(self) -> int:
        return self.user + self.nice + self.system + self.irq + self.softirq + self.steal

    @property
    def total(self) -> int:
        return self.busy + self.idle_total


@dataclass(slots=True, frozen=True)
class UsageTotals:
    """Capacity figures for memory, swap or a filesystem, in bytes."""

    total: int
    used: int
    free: int

    @property
    def percent(self) -> float:
        if self.total <= 0:
            return 0.0
        return self.used * 100.0 / self.total


@dataclass(slots=True, frozen=True)
class RxCounters:
    """Cumulative receive counters of one interface (/proc/net/dev columns)."""

    bytes: int = 0
    packets: int = 0
    errors: int = 0
    drops: int = 0
    fifo: int = 0
    frame: int = 0
    compressed: int = 0
    multicast: int = 0


@dataclass(slots=True, frozen=True)
class TxCounters:
    """Cumulative transmit counters of one interface."""

    bytes: int = 0
    packets: int = 0
    errors: int = 0
    drops: int = 0
    fifo: int = 0
    collisions: int = 0
    carrier: int = 0
    compressed: int = 0


@dataclass(slots=True, frozen=True)
class RawInterface:
    """One network interface as read from the OS."""

    name: str
    rx: RxCounters
    tx: TxCounters
    operational: bool = False
    addresses: tuple[str, ...] = ()
    mac_address: str = ""
    speed_mbps: int = 0


@dataclass(slots=True, frozen=True)
class FanReading:
    """Fan speed in RPM; target is None when the sensor doesn't expose one."""

    speed_rpm: int
    target_rpm: int | None = None

    @property
    def active(self) -> bool:
        return self.speed_rpm > 0


@dataclass(slots=True, frozen=True)
class HostInfo:
    """Static facts about the host."""

    os_name: str = "Unknown"
    hostname: str = ""
    user: str = ""
    cpu_model: str = "Unknown"


@dataclass(slots=True, frozen=True)
class ProcessRecord:
    """Immutable per-cycle view of a process with derived usage."""

    pid: int
    name: str
    state: ProcessState
    cpu_percent: float  # 0.0 - 100.0, normalized across all cores
    memory_percent: float
    resident_bytes: int = 0
    selected: bool = False


@dataclass(slots=True, frozen=True)
class InterfaceRecord:
    """Immutable per-cycle view of an interface with derived rates."""

    name: str
    rx: RxCounters
    tx: TxCounters
    operational: bool = False
    addresses: tuple[str, ...] = ()
    mac_address: str = ""
    speed_mbps: int = 0
    rx_rate: float = 0.0  # bytes/s
    tx_rate: float = 0.0
    rx_packet_rate: float = 0.0  # packets/s
    tx_packet_rate: float = 0.0

    @property
    def ipv4(self) -> str:
        """First IPv4 address, or an empty string."""
        for address in self.addresses:
            if ":" not in address:
                return address
        return ""

    @property
    def ipv6(self) -> str:
        """First IPv6 address, or an empty string."""
        for address in self.addresses:
            if ":" in address:
                return address
        return ""


@dataclass(slots=True, frozen=True)
class TaskStats:
    """Histogram of process states."""

    total: int = 0
    running: int = 0
    sleeping: int = 0
    disk_sleep: int = 0
    zombie: int = 0
    stopped: int = 0  # stopped or traced
    idle: int = 0
    other: int = 0


@dataclass(slots=True, frozen=True)
class NetworkSummary:
    """Totals across all non-loopback interfaces."""

    active_interfaces: int = 0
    rx_bytes: int = 0
    tx_bytes: int = 0
    rx_rate: float = 0.0
    tx_rate: float = 0.0
    rx_packets: int = 0
    tx_packets: int = 0
    rx_errors: int = 0
    tx_errors: int = 0
    rx_drops: int = 0
    tx_drops: int = 0

    @property
    def total_traffic(self) -> int:
        return self.rx_bytes + self.tx_bytes

    @property
    def rx_error_rate(self) -> float:
        """Percentage of received packets with errors."""
        if self.rx_packets == 0:
            return 0.0
        return self.rx_errors * 100.0 / self.rx_packets

    @property
    def tx_error_rate(self) -> float:
        """Percentage of transmitted packets with errors."""
        if self.tx_packets == 0:
            return 0.0
        return self.tx_errors * 100.0 / self.tx_packets


@dataclass(slots=True, frozen=True)
class HistoryView:
    """Read-only copy of a history buffer and its graph settings."""

    data: tuple[float, ...] = field(default_factory=tuple)
    paused: bool = False
    fps: float = 60.0
    scale: float = 100.0
