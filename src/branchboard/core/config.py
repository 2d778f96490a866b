import json
import logging
from pathlib import Path
from typing import Dict, Any, Optional

from .constants import (
    DEFAULT_CHART_SAMPLE_SIZE,
    DEFAULT_SAMPLE_SIZE,
    DEFAULT_TOP_VALUES,
    SCHEMA_SAMPLE_SIZE,
    SORT_CHECK_SIZE,
)


class ConfigManager:
    """Manages application configuration."""

    DEFAULT_CONFIG = {
        "schema_sample_size": SCHEMA_SAMPLE_SIZE,  # Rows sampled when inferring a schema
        "sample_size": DEFAULT_SAMPLE_SIZE,  # Rows in a table preview window
        "chart_sample_size": DEFAULT_CHART_SAMPLE_SIZE,  # Rows plotted without aggregation
        "top_values": DEFAULT_TOP_VALUES,  # Values listed in a column profile
        "sort_check_size": SORT_CHECK_SIZE,  # Values checked before sorting numerically
        "log_level": "INFO",
    }

    def __init__(self, app_name: str = "branchboard", config_dir: Optional[Path] = None):
        self.config_dir = Path(config_dir) if config_dir else Path.home() / f".{app_name}"
        self.config_file = self.config_dir / "config.json"
        self._config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load config from file or return defaults."""
        if not self.config_file.exists():
            logging.info(f"[CONFIG] Config file does not exist, using defaults: {self.config_file}")
            return self.DEFAULT_CONFIG.copy()

        try:
            with open(self.config_file, 'r') as f:
                saved_config = json.load(f)
                # Merge with defaults to ensure all keys exist
                config = self.DEFAULT_CONFIG.copy()
                config.update(saved_config)
                logging.info(f"[CONFIG] Loaded config from: {self.config_file}")
                return config
        except (OSError, ValueError) as e:
            logging.error(f"[CONFIG] Error loading config: {e}")
            return self.DEFAULT_CONFIG.copy()

    def save_config(self):
        """Save current config to file."""
        self.config_dir.mkdir(parents=True, exist_ok=True)
        try:
            with open(self.config_file, 'w') as f:
                json.dump(self._config, f, indent=4)
            logging.info(f"[CONFIG] Config saved to {self.config_file}")
        except OSError as e:
            logging.error(f"[CONFIG] Error saving config: {e}")

    def get(self, key: str, default: Any = None) -> Any:
        return self._config.get(key, default)

    def set(self, key: str, value: Any):
        logging.info(f"[CONFIG] set('{key}', {value!r})")
        self._config[key] = value
        self.save_config()

    def _positive_int(self, key: str) -> int:
        try:
            value = int(self._config.get(key, self.DEFAULT_CONFIG[key]))
        except (TypeError, ValueError):
            return self.DEFAULT_CONFIG[key]
        return value if value > 0 else self.DEFAULT_CONFIG[key]

    @property
    def schema_sample_size(self) -> int:
        return self._positive_int("schema_sample_size")

    @property
    def sample_size(self) -> int:
        return self._positive_int("sample_size")

    @property
    def chart_sample_size(self) -> int:
        return self._positive_int("chart_sample_size")

    @property
    def top_values(self) -> int:
        return self._positive_int("top_values")

    @property
    def sort_check_size(self) -> int:
        return self._positive_int("sort_check_size")

    @property
    def log_level(self) -> str:
        return str(self._config.get("log_level", "INFO")).upper()
