"""Configuration system for cputop."""

from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path

import tomlkit

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class LoopConfig:
    """Tick loop cadence."""

    process_refresh_interval: int = 60  # Ticks between full process refreshes
    poll_timeout: float = 0.016  # Seconds to wait for a key each tick (~60 Hz)
    cpu_min_interval: float = 0.2  # Shortest window between real CPU measurements


@dataclass
class HistoryConfig:
    """CPU history retention."""

    capacity: int = 0  # Samples kept for the chart, 0 = unbounded


@dataclass
class LoggingConfig:
    """Log file settings."""

    level: str = "INFO"
    max_bytes: int = 1024 * 1024  # Rotate after 1MB
    backup_count: int = 2


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


def _section(cls: type, data: dict, defaults: object) -> object:
    """Build a section dataclass from TOML data, defaulting missing keys."""
    if not isinstance(data, dict):
        name = cls.__name__.removesuffix("Config").lower()
        raise TypeError(f"[{name}] must be a table, got {type(data).__name__}")
    return cls(**{f.name: data.get(f.name, getattr(defaults, f.name)) for f in fields(cls)})


@dataclass
class Config:
    """Main configuration container."""

    loop: LoopConfig = field(default_factory=LoopConfig)
    history: HistoryConfig = field(default_factory=HistoryConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def config_dir(self) -> Path:
        """Configuration directory."""
        return Path.home() / ".config" / "cputop"

    @property
    def config_path(self) -> Path:
        """Path to config file."""
        return self.config_dir / "config.toml"

    @property
    def state_dir(self) -> Path:
        """State directory for logs."""
        return Path.home() / ".local" / "state" / "cputop"

    @property
    def log_path(self) -> Path:
        """Log file path."""
        return self.state_dir / "cputop.log"

    def validate(self) -> None:
        """Check value ranges.

        Raises:
            ValueError: Naming the first invalid key.
        """
        if self.loop.process_refresh_interval < 1:
            raise ValueError("loop.process_refresh_interval must be >= 1")
        if self.loop.poll_timeout <= 0:
            raise ValueError("loop.poll_timeout must be > 0")
        if self.loop.cpu_min_interval < 0:
            raise ValueError("loop.cpu_min_interval must be >= 0")
        if self.history.capacity < 0:
            raise ValueError("history.capacity must be >= 0")
        level = self.logging.level
        if not isinstance(level, str) or level.upper() not in LOG_LEVELS:
            raise ValueError(f"logging.level must be one of {', '.join(LOG_LEVELS)}")

    def save(self, path: Path | None = None) -> None:
        """Save config to TOML file."""
        path = path or self.config_path
        path.parent.mkdir(parents=True, exist_ok=True)

        doc = tomlkit.document()
        doc.add(tomlkit.comment("cputop configuration"))
        doc.add(tomlkit.nl())
        for name in ("loop", "history", "logging"):
            doc.add(name, _dataclass_to_table(getattr(self, name)))
            doc.add(tomlkit.nl())

        path.write_text(tomlkit.dumps(doc))

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Load config from TOML file, returning defaults for missing values.

        Raises:
            ValueError: If the file cannot be parsed or holds invalid values.
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

        try:
            config = cls(
                loop=_section(LoopConfig, data.get("loop", {}), defaults.loop),
                history=_section(HistoryConfig, data.get("history", {}), defaults.history),
                logging=_section(LoggingConfig, data.get("logging", {}), defaults.logging),
            )
            config.validate()
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid config file {path}: {e}") from e
        return config
