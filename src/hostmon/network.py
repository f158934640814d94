"""Per-interface network counters and throughput."""

from collections.abc import Iterable

from hostmon.models import InterfaceRecord, NetworkSummary, RawInterface
from hostmon.source import SampleSource

LOOPBACK = "lo"


def _rate(current: int, previous: int, elapsed: float) -> float:
    # A counter that went backwards means the interface was reset
    if current < previous:
        return 0.0
    return (current - previous) / elapsed


class NetworkInterfaceTracker:
    """
    Derives RX/TX byte and packet rates between refreshes.

    The previous refresh's raw rows are carried forward as-is. All interfaces
    in one refresh share the same elapsed time, so their rates are comparable.
    """

    def __init__(self) -> None:
        self._previous: dict[str, RawInterface] = {}
        self._previous_time: float | None = None
        self._records: list[InterfaceRecord] = []

    @property
    def records(self) -> list[InterfaceRecord]:
        """Records from the last refresh (returns a copy)."""
        return list(self._records)

    def refresh(self, source: SampleSource, now: float) -> list[InterfaceRecord]:
        """Read all interfaces and derive rates against the previous refresh."""
        current = source.list_interfaces()
        elapsed = now - self._previous_time if self._previous_time is not None else 0.0

        records: list[InterfaceRecord] = []
        for raw in current:
            prev = self._previous.get(raw.name)
            rx_rate = tx_rate = rx_packet_rate = tx_packet_rate = 0.0
            if prev is not None and elapsed > 0:
                rx_rate = _rate(raw.rx.bytes, prev.rx.bytes, elapsed)
                tx_rate = _rate(raw.tx.bytes, prev.tx.bytes, elapsed)
                rx_packet_rate = _rate(raw.rx.packets, prev.rx.packets, elapsed)
                tx_packet_rate = _rate(raw.tx.packets, prev.tx.packets, elapsed)
            records.append(
                InterfaceRecord(
                    name=raw.name,
                    rx=raw.rx,
                    tx=raw.tx,
                    operational=raw.operational,
                    addresses=raw.addresses,
                    mac_address=raw.mac_address,
                    speed_mbps=raw.speed_mbps,
                    rx_rate=rx_rate,
                    tx_rate=tx_rate,
                    rx_packet_rate=rx_packet_rate,
                    tx_packet_rate=tx_packet_rate,
                )
            )

        # A refresh at the same timestamp keeps the old baseline
        if self._previous_time is None or elapsed > 0:
            self._previous = {raw.name: raw for raw in current}
            self._previous_time = now
        self._records = records
        return list(records)


def summarize(records: Iterable[InterfaceRecord]) -> NetworkSummary:
    """Totals across all interfaces except loopback."""
    active = 0
    rx_bytes = tx_bytes = rx_packets = tx_packets = 0
    rx_errors = tx_errors = rx_drops = tx_drops = 0
    rx_rate = tx_rate = 0.0

    for record in records:
        if record.name == LOOPBACK:
            continue
        if record.operational:
            active += 1
        rx_bytes += record.rx.bytes
        tx_bytes += record.tx.bytes
        rx_rate += record.rx_rate
        tx_rate += record.tx_rate
        rx_packets += record.rx.packets
        tx_packets += record.tx.packets
        rx_errors += record.rx.errors
        tx_errors += record.tx.errors
        rx_drops += record.rx.drops
        tx_drops += record.tx.drops

    return NetworkSummary(
        active_interfaces=active,
        rx_bytes=rx_bytes,
        tx_bytes=tx_bytes,
        rx_rate=rx_rate,
        tx_rate=tx_rate,
        rx_packets=rx_packets,
        tx_packets=tx_packets,
        rx_errors=rx_errors,
        tx_errors=tx_errors,
        rx_drops=rx_drops,
        tx_drops=tx_drops,
    )
