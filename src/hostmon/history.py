"""Rolling sample history for graphs.

Each metric family (CPU, fan, thermal, network) owns one buffer. The
dashboard may pause a buffer, change its sample rate or its Y-axis scale
without affecting how the underlying values are derived.
"""

from collections import deque

from hostmon.models import HistoryView

MIN_FPS = 0.1
MAX_FPS = 60.0


class HistoryBuffer:
    """Fixed-capacity FIFO of float samples gated by a sample rate."""

    def __init__(
        self,
        capacity: int = 120,
        fps: float = 60.0,
        scale: float = 100.0,
        paused: bool = False,
    ) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self._data: deque[float] = deque(maxlen=capacity)
        self._fps = _clamp_fps(fps)
        self._scale = scale if scale > 0 else 100.0
        self._last_sample: float | None = None
        self.paused = paused

    def __len__(self) -> int:
        """Return number of samples held."""
        return len(self._data)

    @property
    def capacity(self) -> int:
        return self._data.maxlen or 0

    @property
    def data(self) -> list[float]:
        """Samples oldest-first (returns a copy)."""
        return list(self._data)

    @property
    def fps(self) -> float:
        return self._fps

    @fps.setter
    def fps(self, value: float) -> None:
        self._fps = _clamp_fps(value)

    @property
    def scale(self) -> float:
        """Upper bound of the Y axis used when rendering."""
        return self._scale

    @scale.setter
    def scale(self, value: float) -> None:
        if value <= 0:
            raise ValueError(f"scale must be > 0, got {value}")
        self._scale = value

    @property
    def sample_interval(self) -> float:
        """Minimum seconds between two accepted samples."""
        return 1.0 / self._fps

    def maybe_sample(self, value: float, now: float) -> bool:
        """
        Append ``value`` if the buffer is running and the sample interval has elapsed.

        Returns:
            True if the value was recorded. A rejected sample leaves the
            buffer untouched.
        """
        if self.paused:
            return False
        if self._last_sample is not None and now - self._last_sample < self.sample_interval:
            return False
        self._data.append(float(value))
        self._last_sample = now
        return True

    def clear(self) -> None:
        """Empty the buffer."""
        self._data.clear()
        self._last_sample = None

    def view(self) -> HistoryView:
        """Return an immutable copy for readers."""
        return HistoryView(
            data=tuple(self._data),
            paused=self.paused,
            fps=self._fps,
            scale=self._scale,
        )


def _clamp_fps(value: float) -> float:
    return max(MIN_FPS, min(MAX_FPS, float(value)))
