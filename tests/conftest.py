"""Shared test fixtures for hostmon."""

from pathlib import Path

import pytest

from hostmon.config import Config
from hostmon.models import (
    CpuTimes,
    FanReading,
    HostInfo,
    RawInterface,
    RawProcess,
    RxCounters,
    TxCounters,
    UsageTotals,
)

GIB = 1024**3


def make_process(
    pid: int = 100,
    name: str = "proc",
    state: str = "S",
    ticks: int = 0,
    rss: int = 0,
) -> RawProcess:
    """Create a RawProcess for testing."""
    return RawProcess(pid=pid, name=name, state_char=state, cpu_ticks=ticks, resident_bytes=rss)


def make_interface(
    name: str = "eth0",
    rx_bytes: int = 0,
    tx_bytes: int = 0,
    rx_packets: int = 0,
    tx_packets: int = 0,
    up: bool = True,
    addresses: tuple[str, ...] = (),
    rx_errors: int = 0,
    tx_errors: int = 0,
) -> RawInterface:
    """Create a RawInterface for testing."""
    return RawInterface(
        name=name,
        rx=RxCounters(bytes=rx_bytes, packets=rx_packets, errors=rx_errors),
        tx=TxCounters(bytes=tx_bytes, packets=tx_packets, errors=tx_errors),
        operational=up,
        addresses=addresses,
    )


class FakeSource:
    """Scripted SampleSource. Tests mutate the public attributes between cycles."""

    def __init__(self) -> None:
        self.clock_ticks = 100
        self.cores = 1
        self.host = HostInfo(
            os_name="Linux 6.1.0",
            hostname="testhost",
            user="tester",
            cpu_model="Test CPU @ 3.00GHz",
        )
        self.times: CpuTimes | None = CpuTimes(user=0, nice=0, system=0, idle=0)
        self.processes: list[RawProcess] = []
        self.memory: UsageTotals | None = UsageTotals(total=8 * GIB, used=2 * GIB, free=6 * GIB)
        self.swap: UsageTotals | None = UsageTotals(total=2 * GIB, used=0, free=2 * GIB)
        self.disk: UsageTotals | None = UsageTotals(total=100 * GIB, used=40 * GIB, free=60 * GIB)
        self.interfaces: list[RawInterface] = []
        self.temperature: float | None = None
        self.fan: FanReading | None = None
        self.terminated: list[int] = []
        self.denied: set[int] = set()
        self.fail_with: Exception | None = None

    def host_info(self) -> HostInfo:
        return self.host

    def cpu_count(self) -> int:
        return self.cores

    def cpu_times(self) -> CpuTimes | None:
        if self.fail_with is not None:
            raise self.fail_with
        return self.times

    def list_processes(self) -> list[RawProcess]:
        return list(self.processes)

    def memory_totals(self) -> UsageTotals | None:
        return self.memory

    def swap_totals(self) -> UsageTotals | None:
        return self.swap

    def disk_totals(self, mountpoint: str) -> UsageTotals | None:
        return self.disk

    def list_interfaces(self) -> list[RawInterface]:
        return list(self.interfaces)

    def thermal_reading(self) -> float | None:
        return self.temperature

    def fan_reading(self) -> FanReading | None:
        return self.fan

    def terminate(self, pid: int) -> bool:
        if pid in self.denied:
            return False
        if not any(p.pid == pid for p in self.processes):
            return False
        self.terminated.append(pid)
        self.processes = [p for p in self.processes if p.pid != pid]
        return True


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


@pytest.fixture
def source() -> FakeSource:
    """A FakeSource with a handful of processes and interfaces."""
    fake = FakeSource()
    fake.processes = [
        make_process(1, "systemd", "S", ticks=500, rss=10 * 1024**2),
        make_process(200, "python3", "R", ticks=1000, rss=200 * 1024**2),
        make_process(300, "nginx", "S", ticks=100, rss=50 * 1024**2),
    ]
    fake.interfaces = [
        make_interface("lo", rx_bytes=5000, tx_bytes=5000, addresses=("127.0.0.1", "::1")),
        make_interface("eth0", rx_bytes=1000, tx_bytes=500, addresses=("192.168.1.10",)),
    ]
    return fake


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Config:
    """Default config with HOME pointed at a temporary directory."""
    monkeypatch.setenv("HOME", str(tmp_path))
    return Config()
