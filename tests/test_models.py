"""Tests for data models."""

from dataclasses import FrozenInstanceError

import pytest

from hostmon.models import (
    CpuTimes,
    FanReading,
    InterfaceRecord,
    NetworkSummary,
    ProcessRecord,
    ProcessState,
    RxCounters,
    TxCounters,
    UsageTotals,
)


class TestProcessState:
    """Tests for ProcessState."""

    @pytest.mark.parametrize(
        ("char", "state"),
        [
            ("R", ProcessState.RUNNING),
            ("S", ProcessState.SLEEPING),
            ("D", ProcessState.DISK_SLEEP),
            ("Z", ProcessState.ZOMBIE),
            ("T", ProcessState.STOPPED),
            ("t", ProcessState.TRACING),
            ("X", ProcessState.DEAD),
            ("I", ProcessState.IDLE),
        ],
    )
    def test_from_char(self, char, state):
        assert ProcessState.from_char(char) is state
        assert state.char == char

    def test_unknown_letter(self):
        assert ProcessState.from_char("?") is ProcessState.UNKNOWN
        assert ProcessState.from_char("") is ProcessState.UNKNOWN

    def test_label(self):
        assert ProcessState.DISK_SLEEP.label == "Disk Sleep"
        assert ProcessState.RUNNING.label == "Running"


class TestProcessRecord:
    """Tests for ProcessRecord dataclass."""

    def test_process_record_creation(self):
        record = ProcessRecord(
            pid=1234,
            name="python",
            state=ProcessState.RUNNING,
            cpu_percent=25.5,
            memory_percent=10.2,
            resident_bytes=104857600,
        )
        assert record.pid == 1234
        assert record.name == "python"
        assert record.cpu_percent == 25.5
        assert not record.selected

    def test_process_record_uses_slots(self):
        record = ProcessRecord(
            pid=1, name="init", state=ProcessState.SLEEPING, cpu_percent=0.0, memory_percent=0.0
        )
        # Slots-based dataclasses don't have __dict__
        assert not hasattr(record, "__dict__")

    def test_process_record_is_frozen(self):
        record = ProcessRecord(
            pid=1, name="init", state=ProcessState.SLEEPING, cpu_percent=0.0, memory_percent=0.0
        )
        with pytest.raises(FrozenInstanceError):
            record.cpu_percent = 50.0  # type: ignore[misc]


def test_cpu_times_totals():
    times = CpuTimes(user=10, nice=1, system=5, idle=80, iowait=4, irq=1, softirq=2, steal=3)
    assert times.idle_total == 84
    assert times.busy == 22
    assert times.total == 106


def test_usage_percent():
    assert UsageTotals(total=200, used=50, free=150).percent == 25.0
    assert UsageTotals(total=0, used=0, free=0).percent == 0.0


def test_fan_active():
    assert FanReading(speed_rpm=1200).active
    assert not FanReading(speed_rpm=0, target_rpm=800).active


def test_interface_addresses():
    record = InterfaceRecord(
        name="eth0",
        rx=RxCounters(),
        tx=TxCounters(),
        addresses=("fe80::1", "10.0.0.2"),
    )
    assert record.ipv4 == "10.0.0.2"
    assert record.ipv6 == "fe80::1"

    bare = InterfaceRecord(name="dummy0", rx=RxCounters(), tx=TxCounters())
    assert bare.ipv4 == ""
    assert bare.ipv6 == ""


def test_network_summary_rates():
    summary = NetworkSummary(
        rx_bytes=100, tx_bytes=50, rx_packets=1000, tx_packets=0, rx_errors=5, tx_errors=0
    )
    assert summary.total_traffic == 150
    assert summary.rx_error_rate == pytest.approx(0.5)
    assert summary.tx_error_rate == 0.0
