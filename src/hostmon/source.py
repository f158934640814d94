"""Raw counter sources.

A SampleSource reads operating-system counters and returns them without
deriving anything. Every accessor fails softly: an unreadable sensor or file
yields None (or an empty list) and a debug log entry, never an exception.
"""

import getpass
import os
import platform
import signal
import socket
from pathlib import Path
from typing import Protocol

import psutil
import structlog

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

log = structlog.get_logger()

DEFAULT_CLOCK_TICKS = 100

# psutil status constant name -> /proc state letter. Not every psutil
# release or platform defines every name, so missing ones are skipped.
_STATUS_LETTERS = {
    "STATUS_RUNNING": "R",
    "STATUS_SLEEPING": "S",
    "STATUS_DISK_SLEEP": "D",
    "STATUS_STOPPED": "T",
    "STATUS_TRACING_STOP": "t",
    "STATUS_ZOMBIE": "Z",
    "STATUS_DEAD": "X",
    "STATUS_WAKE_KILL": "K",
    "STATUS_WAKING": "W",
    "STATUS_IDLE": "I",
    "STATUS_PARKED": "P",
    "STATUS_LOCKED": "D",
    "STATUS_WAITING": "S",
    "STATUS_SUSPENDED": "T",
}

_PSUTIL_STATUS = {
    getattr(psutil, name): letter
    for name, letter in _STATUS_LETTERS.items()
    if hasattr(psutil, name)
}

_CPU_SENSOR_HINTS = ("cpu", "core", "package", "tctl", "k10temp", "soc")

# net/if.h
_IFF_UP = 0x1
_IFF_RUNNING = 0x40


class SampleSource(Protocol):
    """Capability interface every platform source implements."""

    @property
    def clock_ticks(self) -> int: ...

    def host_info(self) -> HostInfo: ...

    def cpu_count(self) -> int: ...

    def cpu_times(self) -> CpuTimes | None: ...

    def list_processes(self) -> list[RawProcess]: ...

    def memory_totals(self) -> UsageTotals | None: ...

    def swap_totals(self) -> UsageTotals | None: ...

    def disk_totals(self, mountpoint: str) -> UsageTotals | None: ...

    def list_interfaces(self) -> list[RawInterface]: ...

    def thermal_reading(self) -> float | None: ...

    def fan_reading(self) -> FanReading | None: ...

    def terminate(self, pid: int) -> bool: ...


def detect_clock_ticks() -> int:
    """Return the kernel's clock ticks per second (USER_HZ)."""
    try:
        ticks = os.sysconf("SC_CLK_TCK")
    except (AttributeError, ValueError, OSError):
        return DEFAULT_CLOCK_TICKS
    return ticks if ticks > 0 else DEFAULT_CLOCK_TICKS


def create_source(kind: str = "auto", clock_ticks: int = 0) -> SampleSource:
    """
    Build the source for this platform.

    Args:
        kind: "auto", "psutil" or "procfs". "auto" is psutil; "procfs" reads
            /proc and /sys directly on Linux.
        clock_ticks: Ticks per second; 0 asks the kernel.
    """
    ticks = clock_ticks or detect_clock_ticks()
    if kind in ("auto", "psutil"):
        return PsutilSource(clock_ticks=ticks)
    if kind == "procfs":
        return ProcfsSource(clock_ticks=ticks)
    raise ValueError(f"Unknown source: {kind!r}. Valid sources: ['auto', 'psutil', 'procfs']")


def _current_user() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return ""


def _os_name() -> str:
    name = f"{platform.system()} {platform.release()}".strip()
    return name or "Unknown"


def _interface_addresses() -> dict[str, tuple[tuple[str, ...], str]]:
    """Map interface name -> (IP addresses, MAC address) via psutil."""
    try:
        raw = psutil.net_if_addrs()
    except OSError as e:
        log.debug("net_if_addrs_unavailable", error=str(e))
        return {}

    result: dict[str, tuple[tuple[str, ...], str]] = {}
    for name, entries in raw.items():
        addresses: list[str] = []
        mac = ""
        for entry in entries:
            if entry.family in (socket.AF_INET, socket.AF_INET6):
                addresses.append(entry.address.split("%", 1)[0])
            elif entry.family == psutil.AF_LINK:
                mac = entry.address
        result[name] = (tuple(addresses), mac)
    return result


class PsutilSource:
    """Portable source built on psutil."""

    def __init__(self, clock_ticks: int = DEFAULT_CLOCK_TICKS) -> None:
        self._clock_ticks = clock_ticks

    @property
    def clock_ticks(self) -> int:
        return self._clock_ticks

    def _ticks(self, seconds: float) -> int:
        return int(seconds * self._clock_ticks)

    def host_info(self) -> HostInfo:
        return HostInfo(
            os_name=_os_name(),
            hostname=socket.gethostname(),
            user=_current_user(),
            cpu_model=platform.processor() or platform.machine() or "Unknown",
        )

    def cpu_count(self) -> int:
        return psutil.cpu_count(logical=True) or 1

    def cpu_times(self) -> CpuTimes | None:
        try:
            times = psutil.cpu_times()
        except OSError as e:
            log.debug("cpu_times_unavailable", error=str(e))
            return None
        return CpuTimes(
            user=self._ticks(times.user),
            nice=self._ticks(getattr(times, "nice", 0.0)),
            system=self._ticks(times.system),
            idle=self._ticks(times.idle),
            iowait=self._ticks(getattr(times, "iowait", 0.0)),
            irq=self._ticks(getattr(times, "irq", getattr(times, "interrupt", 0.0))),
            softirq=self._ticks(getattr(times, "softirq", 0.0)),
            steal=self._ticks(getattr(times, "steal", 0.0)),
        )

    def list_processes(self) -> list[RawProcess]:
        """
        Enumerate all processes.

        Processes that exit mid-enumeration or deny access are skipped.
        """
        processes: list[RawProcess] = []
        attrs = ["pid", "name", "status", "cpu_times", "memory_info"]

        for proc in psutil.process_iter(attrs=attrs):
            try:
                info = proc.info
                cpu = info.get("cpu_times")
                mem = info.get("memory_info")
                processes.append(
                    RawProcess(
                        pid=info["pid"],
                        name=info.get("name") or "",
                        state_char=_PSUTIL_STATUS.get(info.get("status"), "?"),
                        cpu_ticks=self._ticks(cpu.user + cpu.system) if cpu else 0,
                        resident_bytes=mem.rss if mem else 0,
                    )
                )
            except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                continue

        return processes

    def memory_totals(self) -> UsageTotals | None:
        try:
            vm = psutil.virtual_memory()
        except OSError as e:
            log.debug("memory_unavailable", error=str(e))
            return None
        # Page cache and buffers count as available
        reclaimable = getattr(vm, "buffers", 0) + getattr(vm, "cached", 0)
        if reclaimable:
            used = max(0, vm.total - vm.free - reclaimable)
        else:
            used = max(0, vm.total - vm.available)
        return UsageTotals(total=vm.total, used=used, free=vm.total - used)

    def swap_totals(self) -> UsageTotals | None:
        try:
            swap = psutil.swap_memory()
        except OSError as e:
            log.debug("swap_unavailable", error=str(e))
            return None
        return UsageTotals(total=swap.total, used=swap.used, free=swap.free)

    def disk_totals(self, mountpoint: str) -> UsageTotals | None:
        try:
            usage = psutil.disk_usage(mountpoint)
        except OSError as e:
            log.debug("disk_unavailable", mountpoint=mountpoint, error=str(e))
            return None
        return UsageTotals(total=usage.total, used=usage.used, free=usage.free)

    def list_interfaces(self) -> list[RawInterface]:
        try:
            counters = psutil.net_io_counters(pernic=True)
            stats = psutil.net_if_stats()
        except OSError as e:
            log.debug("interfaces_unavailable", error=str(e))
            return []
        addresses = _interface_addresses()

        interfaces: list[RawInterface] = []
        for name, c in counters.items():
            st = stats.get(name)
            addrs, mac = addresses.get(name, ((), ""))
            interfaces.append(
                RawInterface(
                    name=name,
                    rx=RxCounters(
                        bytes=c.bytes_recv,
                        packets=c.packets_recv,
                        errors=c.errin,
                        drops=c.dropin,
                    ),
                    tx=TxCounters(
                        bytes=c.bytes_sent,
                        packets=c.packets_sent,
                        errors=c.errout,
                        drops=c.dropout,
                    ),
                    operational=bool(st and st.isup),
                    addresses=addrs,
                    mac_address=mac,
                    speed_mbps=st.speed if st else 0,
                )
            )
        return interfaces

    def thermal_reading(self) -> float | None:
        """Best-effort CPU temperature in Celsius."""
        if not hasattr(psutil, "sensors_temperatures"):
            return None
        try:
            temps = psutil.sensors_temperatures()
        except (OSError, RuntimeError) as e:
            log.debug("thermal_unavailable", error=str(e))
            return None
        if not temps:
            return None

        fallback: float | None = None
        for chip, entries in temps.items():
            for entry in entries:
                if entry.current is None:
                    continue
                label = f"{chip} {entry.label or ''}".lower()
                if any(hint in label for hint in _CPU_SENSOR_HINTS):
                    return float(entry.current)
                if fallback is None:
                    fallback = float(entry.current)
        return fallback

    def fan_reading(self) -> FanReading | None:
        if not hasattr(psutil, "sensors_fans"):
            return None
        try:
            fans = psutil.sensors_fans()
        except (OSError, RuntimeError) as e:
            log.debug("fan_unavailable", error=str(e))
            return None
        for entries in fans.values():
            for entry in entries:
                return FanReading(speed_rpm=int(entry.current))
        return None

    def terminate(self, pid: int) -> bool:
        """Send the platform's termination request to ``pid``."""
        try:
            psutil.Process(pid).terminate()
        except psutil.NoSuchProcess:
            return False
        except psutil.AccessDenied:
            log.warning("terminate_denied", pid=pid)
            return False
        return True


class ProcfsSource:
    """
    Linux source reading /proc and /sys directly.

    Root directories are parameters so the parser can run against a copy
    of the tree.
    """

    def __init__(
        self,
        proc_root: str | Path = "/proc",
        sys_root: str | Path = "/sys",
        clock_ticks: int = DEFAULT_CLOCK_TICKS,
        page_size: int | None = None,
    ) -> None:
        self._proc = Path(proc_root)
        self._sys = Path(sys_root)
        self._clock_ticks = clock_ticks
        self._page_size = page_size or _page_size()

    @property
    def clock_ticks(self) -> int:
        return self._clock_ticks

    def _read(self, path: Path) -> str | None:
        try:
            return path.read_text()
        except (OSError, UnicodeDecodeError) as e:
            log.debug("read_failed", path=str(path), error=str(e))
            return None

    def host_info(self) -> HostInfo:
        cpu_model = "Unknown"
        cpuinfo = self._read(self._proc / "cpuinfo")
        if cpuinfo:
            for line in cpuinfo.splitlines():
                if line.startswith("model name"):
                    _, _, value = line.partition(":")
                    cpu_model = value.strip() or cpu_model
                    break
        return HostInfo(
            os_name=_os_name(),
            hostname=socket.gethostname(),
            user=_current_user(),
            cpu_model=cpu_model,
        )

    def cpu_count(self) -> int:
        stat = self._read(self._proc / "stat")
        if stat:
            count = sum(
                1 for line in stat.splitlines() if line.startswith("cpu") and line[3:4].isdigit()
            )
            if count:
                return count
        return os.cpu_count() or 1

    def cpu_times(self) -> CpuTimes | None:
        stat = self._read(self._proc / "stat")
        if not stat:
            return None
        fields = stat.splitlines()[0].split()
        if len(fields) < 5 or fields[0] != "cpu":
            log.debug("cpu_stat_malformed", line=fields)
            return None
        try:
            values = [int(v) for v in fields[1:9]]
        except ValueError:
            log.debug("cpu_stat_malformed", line=fields)
            return None
        values += [0] * (8 - len(values))
        user, nice, system, idle, iowait, irq, softirq, steal = values
        return CpuTimes(
            user=user,
            nice=nice,
            system=system,
            idle=idle,
            iowait=iowait,
            irq=irq,
            softirq=softirq,
            steal=steal,
        )

    def list_processes(self) -> list[RawProcess]:
        try:
            entries = os.listdir(self._proc)
        except OSError as e:
            log.debug("proc_unavailable", error=str(e))
            return []

        processes: list[RawProcess] = []
        for entry in entries:
            if not entry.isdigit():
                continue
            line = self._read(self._proc / entry / "stat")
            if line is None:
                # Exited between listdir and open
                continue
            proc = self._parse_stat(int(entry), line)
            if proc is not None:
                processes.append(proc)
        return processes

    def _parse_stat(self, pid: int, line: str) -> RawProcess | None:
        """Parse one /proc/[pid]/stat line. Returns None for a malformed line."""
        # comm is wrapped in parentheses and may itself contain spaces or ')'
        open_paren = line.find("(")
        close_paren = line.rfind(")")
        if open_paren < 0 or close_paren < open_paren:
            log.debug("proc_stat_malformed", pid=pid)
            return None
        name = line[open_paren + 1 : close_paren]
        rest = line[close_paren + 1 :].split()
        # rest[0] is field 3 (state); utime=14, stime=15, rss=24
        if len(rest) < 22:
            log.debug("proc_stat_malformed", pid=pid, fields=len(rest))
            return None
        try:
            utime = int(rest[11])
            stime = int(rest[12])
            rss_pages = int(rest[21])
        except ValueError:
            log.debug("proc_stat_malformed", pid=pid)
            return None
        return RawProcess(
            pid=pid,
            name=name,
            state_char=rest[0],
            cpu_ticks=utime + stime,
            resident_bytes=max(0, rss_pages) * self._page_size,
        )

    def _meminfo(self) -> dict[str, int] | None:
        text = self._read(self._proc / "meminfo")
        if text is None:
            return None
        values: dict[str, int] = {}
        for line in text.splitlines():
            key, _, rest = line.partition(":")
            parts = rest.split()
            if not parts:
                continue
            try:
                value = int(parts[0])
            except ValueError:
                continue
            # Values are in kB unless unitless (HugePages_*)
            values[key.strip()] = value * 1024 if len(parts) > 1 else value
        return values

    def memory_totals(self) -> UsageTotals | None:
        mem = self._meminfo()
        if not mem or "MemTotal" not in mem:
            return None
        total = mem["MemTotal"]
        free = mem.get("MemFree", 0)
        reclaimable = mem.get("Buffers", 0) + mem.get("Cached", 0) + mem.get("SReclaimable", 0)
        used = max(0, total - free - reclaimable)
        return UsageTotals(total=total, used=used, free=total - used)

    def swap_totals(self) -> UsageTotals | None:
        mem = self._meminfo()
        if not mem or "SwapTotal" not in mem:
            return None
        total = mem["SwapTotal"]
        free = mem.get("SwapFree", 0)
        return UsageTotals(total=total, used=max(0, total - free), free=free)

    def disk_totals(self, mountpoint: str) -> UsageTotals | None:
        try:
            st = os.statvfs(mountpoint)
        except OSError as e:
            log.debug("disk_unavailable", mountpoint=mountpoint, error=str(e))
            return None
        total = st.f_blocks * st.f_frsize
        free = st.f_bavail * st.f_frsize
        return UsageTotals(total=total, used=total - free, free=free)

    def list_interfaces(self) -> list[RawInterface]:
        text = self._read(self._proc / "net" / "dev")
        if text is None:
            return []
        addresses = _interface_addresses()

        interfaces: list[RawInterface] = []
        # First two lines are column headers
        for line in text.splitlines()[2:]:
            name, sep, counters = line.partition(":")
            name = name.strip()
            if not sep or not name:
                continue
            try:
                values = [int(v) for v in counters.split()]
            except ValueError:
                log.debug("net_dev_malformed", interface=name)
                continue
            if len(values) < 16:
                log.debug("net_dev_malformed", interface=name, fields=len(values))
                continue

            addrs, mac = addresses.get(name, ((), ""))
            interfaces.append(
                RawInterface(
                    name=name,
                    rx=RxCounters(*values[0:8]),
                    tx=TxCounters(*values[8:16]),
                    operational=self._is_up(name),
                    addresses=addrs,
                    mac_address=self._sysfs_value(name, "address") or mac,
                    speed_mbps=self._speed(name),
                )
            )
        return interfaces

    def _sysfs_value(self, interface: str, attribute: str) -> str | None:
        value = self._read(self._sys / "class" / "net" / interface / attribute)
        return value.strip() if value is not None else None

    def _is_up(self, interface: str) -> bool:
        flags = self._sysfs_value(interface, "flags")
        if flags:
            try:
                value = int(flags, 16)
            except ValueError:
                return False
            return bool(value & _IFF_UP) and bool(value & _IFF_RUNNING)
        return self._sysfs_value(interface, "operstate") == "up"

    def _speed(self, interface: str) -> int:
        speed = self._sysfs_value(interface, "speed")
        try:
            return max(0, int(speed)) if speed else 0
        except ValueError:
            return 0

    def thermal_reading(self) -> float | None:
        raw = self._read(self._sys / "class" / "thermal" / "thermal_zone0" / "temp")
        if raw is None:
            return None
        try:
            return int(raw.strip()) / 1000.0
        except ValueError:
            log.debug("thermal_malformed", value=raw.strip())
            return None

    def fan_reading(self) -> FanReading | None:
        for fan_input in sorted((self._sys / "class" / "hwmon").glob("hwmon*/fan1_input")):
            raw = self._read(fan_input)
            if raw is None:
                continue
            try:
                speed = int(raw.strip())
            except ValueError:
                continue
            target_raw = self._read(fan_input.with_name("fan1_target"))
            target = None
            if target_raw is not None and target_raw.strip().isdigit():
                target = int(target_raw.strip())
            return FanReading(speed_rpm=speed, target_rpm=target)
        return None

    def terminate(self, pid: int) -> bool:
        try:
            os.kill(pid, signal.SIGTERM)
        except ProcessLookupError:
            return False
        except PermissionError:
            log.warning("terminate_denied", pid=pid)
            return False
        return True


def _page_size() -> int:
    try:
        return os.sysconf("SC_PAGE_SIZE")
    except (AttributeError, ValueError, OSError):
        return 4096
