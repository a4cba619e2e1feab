"""Configuration management for gitsql."""

import json
import logging
from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

DEFAULT_INITIAL_QUERY = "SELECT * FROM commits ORDER BY date DESC LIMIT 1;"


class DisplayConfig(BaseModel):
    """Configuration for query result rendering."""

    table_width: Optional[int] = Field(
        default=None,
        description="Fixed table width in columns (None uses the terminal width)",
    )
    show_tips: bool = Field(
        default=True,
        description="Suggest the traverse command when a commits query returns nothing",
    )

    @field_validator("table_width")
    @classmethod
    def validate_table_width(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 20:
            raise ValueError("table_width must be at least 20 columns")
        return v


class LoggingConfig(BaseModel):
    """Configuration for logging and the exception log file."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="WARNING", description="Log level for console logging"
    )
    error_log_dir: Path = Field(
        default_factory=lambda: Path.home() / ".gitsql" / "logs",
        description="Directory where exception log files are written",
    )


class Config(BaseModel):
    """Main configuration for gitsql."""

    repository_path: Path = Field(
        default=Path("."), description="Root of the git repository to load"
    )
    starting_point: str = Field(
        default="HEAD", description="Revision the initial history walk starts from"
    )
    prompt: str = Field(default=">> ", description="Interactive prompt string")
    initial_query: str = Field(
        default=DEFAULT_INITIAL_QUERY,
        description="Query run once after loading (empty string disables it)",
    )

    display: DisplayConfig = Field(default_factory=DisplayConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("repository_path", mode="before")
    @classmethod
    def convert_path(cls, v: Any) -> Path:
        """Convert string paths to Path objects."""
        if isinstance(v, str):
            return Path(v)
        if isinstance(v, Path):
            return v
        raise ValueError(f"Expected str or Path, got {type(v)}")

    @field_validator("starting_point")
    @classmethod
    def validate_starting_point(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("starting_point must not be empty")
        return v


class ConfigManager:
    """Loads configuration from a .gitsql/config.json file."""

    CONFIG_DIR_NAME = ".gitsql"
    CONFIG_FILE_NAME = "config.json"

    def __init__(self, config_path: Optional[Path] = None):
        self.config_path = config_path
        self._config: Optional[Config] = None

    def load(self) -> Config:
        """Load configuration from file, or defaults if there is no file.

        A relative or missing ``repository_path`` in the file is resolved
        against the directory that contains the ``.gitsql`` directory (or
        the config file's own directory for a config kept elsewhere).
        """
        if self.config_path is not None and self.config_path.exists():
            try:
                with open(self.config_path, "r") as f:
                    data = json.load(f)

                data.setdefault("repository_path", ".")
                data["repository_path"] = str(
                    self._resolve_relative_path(data["repository_path"])
                )

                self._config = Config(**data)
            except Exception as e:
                raise ValueError(f"Failed to load config from {self.config_path}: {e}")
            logger.info(f"Loaded configuration from {self.config_path}")
        else:
            self._config = Config()

        return self._config

    @classmethod
    def find_config_path(cls, start_dir: Optional[Path] = None) -> Optional[Path]:
        """Find .gitsql/config.json by walking up the directory tree.

        Args:
            start_dir: Directory to start searching from (default: current directory)

        Returns:
            Path to config.json if found, None otherwise
        """
        current = (start_dir or Path.cwd()).resolve()

        for path in [current] + list(current.parents):
            config_path = path / cls.CONFIG_DIR_NAME / cls.CONFIG_FILE_NAME
            if config_path.exists():
                return config_path

        return None

    @classmethod
    def create_with_backtrack(cls, start_dir: Optional[Path] = None) -> "ConfigManager":
        """Create ConfigManager by finding config through directory backtracking."""
        return cls(cls.find_config_path(start_dir))

    def _resolve_relative_path(self, path_str: str) -> Path:
        """Resolve a path from the config file relative to the project directory."""
        path = Path(path_str).expanduser()
        if path.is_absolute() or self.config_path is None:
            return path
        base = self.config_path.parent
        if base.name == self.CONFIG_DIR_NAME:
            base = base.parent
        return (base / path).resolve()
