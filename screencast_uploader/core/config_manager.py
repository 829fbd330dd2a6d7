"""Reader for flat ``key = value`` configuration files."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable

from .logging_utils import get_module_logger


logger = get_module_logger("ConfigManager")


class ConfigManager:
    """Parse ``key = value`` files into flat string mappings.

    Blank lines and ``#`` comments are ignored, trailing comments are
    stripped, and values may be wrapped in single or double quotes.
    """

    def __init__(self):
        self.logger = get_module_logger("ConfigManager")

    def _parse_config_lines(self, lines: Iterable[str]) -> Dict[str, str]:
        config: Dict[str, str] = {}

        for raw_line in lines:
            line = raw_line.strip()
            if not line or line.startswith('#'):
                continue
            if '=' not in line:
                continue

            key, value = line.split('=', 1)
            key = key.strip()
            value = value.strip()

            if (value.startswith('"') and value.endswith('"')) or (value.startswith("'") and value.endswith("'")):
                value = value[1:-1]
            elif '#' in value:
                value = value.split('#')[0].strip()

            config[key] = value

        return config

    def read_config(self, config_path: Path) -> Dict[str, str]:
        """Return the parsed mapping, or an empty one when the file is absent or unreadable."""
        config: Dict[str, str] = {}

        if not config_path.exists():
            self.logger.debug("Config file %s not found, using defaults", config_path)
            return config

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                config = self._parse_config_lines(f)
        except OSError as e:
            self.logger.error("Failed to read config %s: %s", config_path, e)
            return {}

        self.logger.debug("Loaded %d keys from %s", len(config), config_path)
        return config


__all__ = ["ConfigManager"]
