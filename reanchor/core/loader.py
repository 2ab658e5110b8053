# reanchor/core/loader.py

"""Heuristics loader for layout-volatility detection."""

import re
import yaml
import logging
from pathlib import Path
from typing import Dict, List, Any, Optional, Pattern

from reanchor.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class HeuristicsLoader:
    """Singleton loader for layout heuristics.

    Loads heuristics.yaml once and caches it for the application lifecycle.
    """

    _instance: Optional["HeuristicsLoader"] = None
    _config: Dict[str, Any] = {}
    _loaded: bool = False
    _static_path_regex: Optional[Pattern] = None

    def __new__(cls) -> "HeuristicsLoader":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        if not HeuristicsLoader._loaded:
            self._load_config()

    def _load_config(self, config_path: Optional[Path] = None) -> None:
        """Loads heuristics.yaml from the module directory.

        Raises:
            ConfigurationError: If file is missing, invalid, or empty.
        """
        try:
            config_path = config_path or Path(__file__).parent / "heuristics.yaml"

            if not config_path.exists():
                error_msg = f"Heuristics file not found: {config_path}"
                logger.error(error_msg)
                raise ConfigurationError(error_msg)

            with open(config_path, "r", encoding="utf-8") as f:
                config = yaml.safe_load(f)

            if not config:
                raise ConfigurationError("Heuristics file is empty or invalid")

            self._validate_config(config)

            # Pre-compile the static path pattern for fast access
            pattern = config["infinite_scroll"].get("static_path_pattern")
            HeuristicsLoader._static_path_regex = re.compile(pattern) if pattern else None

            HeuristicsLoader._config = config
            HeuristicsLoader._loaded = True
            logger.info(
                "Heuristics loaded successfully",
                extra={
                    "config_path": str(config_path),
                    "domain_count": len(self.get_infinite_scroll_domains()),
                },
            )

        except yaml.YAMLError as e:
            logger.error(f"YAML parsing error: {e}", exc_info=True)
            raise ConfigurationError(f"Failed to parse heuristics.yaml: {e}") from e
        except re.error as e:
            logger.error(f"Invalid static path pattern: {e}", exc_info=True)
            raise ConfigurationError(f"Invalid static path pattern: {e}") from e
        except Exception as e:
            if isinstance(e, ConfigurationError):
                raise
            logger.error(f"Heuristics loading failed: {e}", exc_info=True)
            raise ConfigurationError(f"Failed to load heuristics: {e}") from e

    @staticmethod
    def _validate_config(config: Dict[str, Any]) -> None:
        """Validates required configuration sections exist.

        Raises:
            ConfigurationError: If required sections are missing.
        """
        required_sections = ["infinite_scroll"]
        missing = [s for s in required_sections if not isinstance(config.get(s), dict)]

        if missing:
            error_msg = f"Missing required heuristics sections: {missing}"
            logger.error(error_msg)
            raise ConfigurationError(error_msg)

    @classmethod
    def get_instance(cls) -> "HeuristicsLoader":
        """Returns the singleton instance of HeuristicsLoader."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reload(cls, config_path: Path) -> "HeuristicsLoader":
        """Replaces the cached heuristics with the contents of another file."""
        instance = cls.get_instance()
        instance._load_config(config_path)
        return instance

    def get_infinite_scroll_domains(self) -> List[str]:
        domains = self._config.get("infinite_scroll", {}).get("domains", [])
        return domains if domains else []

    def get_infinite_scroll_markers(self) -> List[str]:
        markers = self._config.get("infinite_scroll", {}).get("markers", [])
        return markers if markers else []

    def get_static_path_regex(self) -> Optional[Pattern]:
        return self._static_path_regex
