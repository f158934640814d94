"""Plain-text console report built from one SystemSnapshot."""

from hostmon.formatting import format_bytes, format_gb, format_rate
from hostmon.models import UsageTotals
from hostmon.monitor import SystemSnapshot


def _usage_line(label: str, usage: UsageTotals) -> str:
    return (
        f"{label}: {format_gb(usage.used)} / {format_gb(usage.total)} ({usage.percent:.1f}%)"
    )


def _truncate(text: str, width: int) -> str:
    return text if len(text) < width else text[: width - 4] + "..."


def render_report(snapshot: SystemSnapshot, top: int = 5) -> str:
    """
    Render the full console report.

    Sections: system facts and task states, CPU/fan/thermal, memory/swap/disk,
    the top CPU consumers and per-interface traffic.
    """
    host = snapshot.host
    tasks = snapshot.tasks
    lines = [
        "=== System Information ===",
        f"OS: {host.os_name}",
        f"User: {host.user}",
        f"Hostname: {host.hostname}",
        f"CPU: {host.cpu_model} ({snapshot.core_count} cores)",
        (
            f"Total Tasks: {tasks.total} (Running: {tasks.running}, "
            f"Sleeping: {tasks.sleeping}, Uninterruptible: {tasks.disk_sleep}, "
            f"Zombie: {tasks.zombie}, Traced/Stopped: {tasks.stopped}, Idle: {tasks.idle})"
        ),
        "",
        "=== Performance Information ===",
        f"CPU Usage: {snapshot.cpu_percent:.1f}%",
    ]

    fan = snapshot.fan
    if fan is None:
        lines.append("Fan: unavailable")
    else:
        status = "Active" if fan.active else "Inactive"
        target = f", Target: {fan.target_rpm} RPM" if fan.target_rpm is not None else ""
        demo = " (synthetic)" if snapshot.fan_synthetic else ""
        lines.append(f"Fan: {status}, Speed: {fan.speed_rpm} RPM{target}{demo}")

    if snapshot.temperature is None:
        lines.append("Temperature: unavailable")
    else:
        lines.append(f"Temperature: {snapshot.temperature:.1f}°C")

    lines += [
        "",
        "=== Memory Information ===",
        _usage_line("RAM", snapshot.memory),
        _usage_line("Swap", snapshot.swap),
        _usage_line("Disk", snapshot.disk),
        "",
        "=== Top Processes (CPU) ===",
        f"{'PID':<8}{'Name':<20}{'State':<12}{'CPU%':<10}{'Memory%':<10}",
    ]
    for proc in snapshot.top_processes(top):
        lines.append(
            f"{proc.pid:<8}{_truncate(proc.name, 20):<20}{proc.state.label:<12}"
            f"{proc.cpu_percent:<10.1f}{proc.memory_percent:<10.1f}"
        )

    lines += ["", "=== Network Interfaces ==="]
    for iface in snapshot.interfaces:
        status = "UP" if iface.operational else "DOWN"
        lines.append(f"{iface.name}: {iface.ipv4 or 'N/A'} [{status}]")
        lines.append(f"  RX: {format_bytes(iface.rx.bytes)} ({format_rate(iface.rx_rate)})")
        lines.append(f"  TX: {format_bytes(iface.tx.bytes)} ({format_rate(iface.tx_rate)})")

    net = snapshot.network
    lines.append(
        f"Total: RX {format_rate(net.rx_rate)}, TX {format_rate(net.tx_rate)}, "
        f"{net.active_interfaces} active"
    )
    return "\n".join(lines)
