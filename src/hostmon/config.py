"""Configuration system for hostmon."""

from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path

import tomlkit

VALID_SOURCES = ("auto", "psutil", "procfs")
VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


@dataclass
class SamplingConfig:
    """Update cycle and history configuration."""

    interval: float = 1.0  # Seconds between update cycles
    history_size: int = 120  # Samples kept per graph
    graph_fps: float = 60.0  # Max samples per second recorded into a graph
    graph_scale: float = 100.0  # Default Y-axis upper bound
    source: str = "auto"  # "auto", "psutil" or "procfs"
    clock_ticks: int = 0  # Clock ticks per second; 0 = ask the kernel


@dataclass
class SensorsConfig:
    """Sensor fallbacks and disk selection."""

    synthetic_fan: bool = False  # Fabricate fan data when no fan sensor exists
    disk_mountpoint: str = "/"


@dataclass
class DisplayConfig:
    """Presentation settings shared by the console report and the dashboard."""

    top_processes: int = 5  # Rows in the console top-processes table


@dataclass
class LoggingConfig:
    """Log file settings."""

    level: str = "INFO"
    max_bytes: int = 5 * 1024 * 1024  # Max log file size (5MB)
    backup_count: int = 3  # Number of rotated files to keep


def _dataclass_to_table(obj: object) -> tomlkit.items.Table:
    """Convert a dataclass instance to a tomlkit Table recursively."""
    table = tomlkit.table()
    for f in fields(obj):  # type: ignore[arg-type]
        value = getattr(obj, f.name)
        if is_dataclass(value) and not isinstance(value, type):
            table.add(f.name, _dataclass_to_table(value))
        else:
            table.add(f.name, value)
    return table


@dataclass
class Config:
    """Main configuration container."""

    sampling: SamplingConfig = field(default_factory=SamplingConfig)
    sensors: SensorsConfig = field(default_factory=SensorsConfig)
    display: DisplayConfig = field(default_factory=DisplayConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def config_dir(self) -> Path:
        """Configuration directory."""
        return Path.home() / ".config" / "hostmon"

    @property
    def config_path(self) -> Path:
        """Path to config file."""
        return self.config_dir / "config.toml"

    @property
    def state_dir(self) -> Path:
        """State directory for logs."""
        return Path.home() / ".local" / "state" / "hostmon"

    @property
    def log_path(self) -> Path:
        """Log file path."""
        return self.state_dir / "hostmon.log"

    def save(self, path: Path | None = None) -> None:
        """Save config to TOML file."""
        path = path or self.config_path
        path.parent.mkdir(parents=True, exist_ok=True)

        doc = tomlkit.document()
        for name in ("sampling", "sensors", "display", "logging"):
            doc.add(name, _dataclass_to_table(getattr(self, name)))
            doc.add(tomlkit.nl())

        path.write_text(tomlkit.dumps(doc))

    def to_toml(self) -> str:
        """Render the config as TOML text."""
        doc = tomlkit.document()
        for name in ("sampling", "sensors", "display", "logging"):
            doc.add(name, _dataclass_to_table(getattr(self, name)))
        return tomlkit.dumps(doc)

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Load config from TOML file, returning defaults for missing values.

        All defaults come from the dataclass definitions, so Config() and
        Config.load() of an empty file are identical.
        """
        defaults = cls()
        path = path or defaults.config_path
        if not path.exists():
            return defaults

        try:
            with open(path) as f:
                data = tomlkit.load(f).unwrap()
        except tomlkit.exceptions.TOMLKitError as e:
            raise ValueError(f"Failed to parse config file {path}: {e}") from e

        return cls(
            sampling=_load_sampling_config(_section(data, "sampling")),
            sensors=_load_sensors_config(_section(data, "sensors")),
            display=_load_display_config(_section(data, "display")),
            logging=_load_logging_config(_section(data, "logging")),
        )


def _section(data: dict, name: str) -> dict:
    """Return the ``[name]`` table, empty when absent."""
    section = data.get(name, {})
    if not isinstance(section, dict):
        raise ValueError(f"[{name}] must be a table, got {type(section).__name__}")
    return section


def _number(data: dict, key: str, default: float, integer: bool = False) -> float:
    """Read a numeric setting, rejecting strings and booleans."""
    value = data.get(key, default)
    allowed = (int,) if integer else (int, float)
    if isinstance(value, bool) or not isinstance(value, allowed):
        kind = "an integer" if integer else "a number"
        raise ValueError(f"{key} must be {kind}, got {value!r}")
    return value


def _string(data: dict, key: str, default: str) -> str:
    value = data.get(key, default)
    if not isinstance(value, str):
        raise ValueError(f"{key} must be a string, got {value!r}")
    return value


def _load_sampling_config(data: dict) -> SamplingConfig:
    """Load sampling config from TOML data, using dataclass defaults for missing fields."""
    d = SamplingConfig()
    interval = _number(data, "interval", d.interval)
    history_size = _number(data, "history_size", d.history_size, integer=True)
    graph_fps = _number(data, "graph_fps", d.graph_fps)
    graph_scale = _number(data, "graph_scale", d.graph_scale)
    source = _string(data, "source", d.source)
    clock_ticks = _number(data, "clock_ticks", d.clock_ticks, integer=True)

    if interval < 0.1:
        raise ValueError(f"interval must be >= 0.1, got {interval}")
    if history_size < 1:
        raise ValueError(f"history_size must be >= 1, got {history_size}")
    if graph_fps <= 0:
        raise ValueError(f"graph_fps must be > 0, got {graph_fps}")
    if graph_scale <= 0:
        raise ValueError(f"graph_scale must be > 0, got {graph_scale}")
    if source not in VALID_SOURCES:
        raise ValueError(f"Invalid source: {source!r}. Must be one of {list(VALID_SOURCES)}")
    if clock_ticks < 0:
        raise ValueError(f"clock_ticks must be >= 0, got {clock_ticks}")

    return SamplingConfig(
        interval=float(interval),
        history_size=history_size,
        graph_fps=float(graph_fps),
        graph_scale=float(graph_scale),
        source=source,
        clock_ticks=clock_ticks,
    )


def _load_sensors_config(data: dict) -> SensorsConfig:
    """Load sensors config from TOML data."""
    d = SensorsConfig()
    synthetic_fan = data.get("synthetic_fan", d.synthetic_fan)
    if not isinstance(synthetic_fan, bool):
        raise ValueError(f"synthetic_fan must be true or false, got {synthetic_fan!r}")
    return SensorsConfig(
        synthetic_fan=synthetic_fan,
        disk_mountpoint=_string(data, "disk_mountpoint", d.disk_mountpoint),
    )


def _load_display_config(data: dict) -> DisplayConfig:
    """Load display config from TOML data."""
    d = DisplayConfig()
    top_processes = _number(data, "top_processes", d.top_processes, integer=True)
    if top_processes < 0:
        raise ValueError(f"top_processes must be >= 0, got {top_processes}")
    return DisplayConfig(top_processes=top_processes)


def _load_logging_config(data: dict) -> LoggingConfig:
    """Load logging config from TOML data."""
    d = LoggingConfig()
    level = _string(data, "level", d.level).upper()
    if level not in VALID_LOG_LEVELS:
        raise ValueError(f"Invalid log level: {level!r}. Must be one of {list(VALID_LOG_LEVELS)}")
    return LoggingConfig(
        level=level,
        max_bytes=_number(data, "max_bytes", d.max_bytes, integer=True),
        backup_count=_number(data, "backup_count", d.backup_count, integer=True),
    )
