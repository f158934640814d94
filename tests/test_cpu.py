"""Tests for system-wide CPU usage."""

import pytest

from hostmon.cpu import CpuUsageMeter
from hostmon.models import CpuTimes


def test_first_sample_is_zero():
    meter = CpuUsageMeter()
    assert meter.update(CpuTimes(user=100, nice=0, system=50, idle=850)) == 0.0


def test_busy_share_of_tick_delta():
    """Usage is (total delta - idle delta) / total delta."""
    meter = CpuUsageMeter()
    meter.update(CpuTimes(user=100, nice=0, system=0, idle=900))
    # +100 total ticks, +75 idle
    percent = meter.update(CpuTimes(user=120, nice=0, system=5, idle=975))

    assert percent == pytest.approx(25.0)
    assert meter.percent == pytest.approx(25.0)


def test_iowait_counts_as_idle():
    meter = CpuUsageMeter()
    meter.update(CpuTimes(user=0, nice=0, system=0, idle=0, iowait=0))
    percent = meter.update(CpuTimes(user=50, nice=0, system=0, idle=25, iowait=25))
    assert percent == pytest.approx(50.0)


def test_no_progress_keeps_previous_value():
    meter = CpuUsageMeter()
    meter.update(CpuTimes(user=0, nice=0, system=0, idle=0))
    meter.update(CpuTimes(user=10, nice=0, system=0, idle=10))

    assert meter.update(CpuTimes(user=10, nice=0, system=0, idle=10)) == pytest.approx(50.0)


def test_missing_sample_keeps_previous_value():
    meter = CpuUsageMeter()
    meter.update(CpuTimes(user=0, nice=0, system=0, idle=0))
    meter.update(CpuTimes(user=30, nice=0, system=0, idle=70))

    assert meter.update(None) == pytest.approx(30.0)


def test_counter_reset_rebaselines():
    """Counters going backwards (e.g. restored VM) report 0 instead of garbage."""
    meter = CpuUsageMeter()
    meter.update(CpuTimes(user=1000, nice=0, system=0, idle=1000))

    assert meter.update(CpuTimes(user=10, nice=0, system=0, idle=10)) == 0.0
    assert meter.update(CpuTimes(user=20, nice=0, system=0, idle=20)) == pytest.approx(50.0)


def test_result_is_bounded():
    meter = CpuUsageMeter()
    meter.update(CpuTimes(user=0, nice=0, system=0, idle=0))
    assert 0.0 <= meter.update(CpuTimes(user=500, nice=0, system=0, idle=0)) <= 100.0


def test_fifteen_percent_example():
    """15 busy ticks out of a 100-tick delta."""
    meter = CpuUsageMeter()
    meter.update(CpuTimes(user=100, nice=0, system=50, idle=850))
    percent = meter.update(CpuTimes(user=110, nice=0, system=55, idle=935))
    assert percent == pytest.approx(15.0)
