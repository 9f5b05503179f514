"""
Configuration management for moodlist.

Loads a TOML config and validates tunable parameters against fixed bounds.
Missing sections or parameters fall back to defaults.
"""

import os
from pathlib import Path
from typing import Dict, Any, List, Optional
import toml
import logging

logger = logging.getLogger(__name__)


DEFAULT_GENRES = [
    "rock", "jazz", "pop", "rap", "country", "classical",
    "blues", "metal", "gospel", "punk", "indie",
]

LYRICAL_FEATURES = ("instrumentalness", "speechiness")


class ConfigError(Exception):
    """Raised when config validation fails."""
    pass


class Config:
    """Configuration loader and validator."""

    PARAM_BOUNDS = {
        "catalog": {
            "db_path": None,
        },
        "generate": {
            "default_length": (1, 500),
        },
        "optimize": {
            "replace_percent": (0.01, 1.0),
        },
        "genres": {
            "vocabulary": None,
        },
        "tags": {
            "lyrical_feature": None,
        },
    }

    DEFAULT_CONFIG = {
        "config_version": "1.0",
        "catalog": {
            "db_path": "data/db/catalog.sqlite",
        },
        "generate": {
            "default_length": 20,
        },
        "optimize": {
            "replace_percent": 0.25,
        },
        "genres": {
            "vocabulary": list(DEFAULT_GENRES),
        },
        "tags": {
            "lyrical_feature": "instrumentalness",
        },
    }

    def __init__(self, config_dict: Dict[str, Any]):
        """Initialize config from dictionary."""
        self.data = config_dict
        self._validate()

    @classmethod
    def default(cls) -> "Config":
        """Config built purely from defaults."""
        return cls({
            section: (dict(values) if isinstance(values, dict) else values)
            for section, values in cls.DEFAULT_CONFIG.items()
        })

    @classmethod
    def load(cls, config_path: Optional[str] = None) -> "Config":
        """
        Load config from TOML file.

        Args:
            config_path: Path to moodlist.toml. If None, uses MOODLIST_CONFIG_PATH env var
                        or defaults to configs/moodlist.toml.

        Returns:
            Config instance.

        Raises:
            ConfigError: If config is invalid or unreadable.
        """
        if config_path is None:
            config_path = os.getenv("MOODLIST_CONFIG_PATH", "configs/moodlist.toml")

        config_path = Path(config_path)

        if not config_path.exists():
            logger.warning(f"Config file not found: {config_path}. Using defaults.")
            return cls.default()

        try:
            config_dict = toml.load(config_path)
        except (toml.TomlDecodeError, OSError) as e:
            raise ConfigError(f"Failed to load config from {config_path}: {e}")

        logger.info(f"Loaded config from {config_path}")
        return cls(config_dict)

    def _validate(self) -> None:
        """
        Validate all config parameters against PARAM_BOUNDS.

        Raises:
            ConfigError: If any parameter is out of bounds or malformed.
        """
        for section, params in self.PARAM_BOUNDS.items():
            if section not in self.data:
                logger.warning(f"Missing config section: {section}. Using defaults.")
                self.data[section] = dict(self.DEFAULT_CONFIG.get(section, {}))
                continue

            section_data = self.data[section]

            for param, bounds in params.items():
                if param not in section_data:
                    default_val = self.DEFAULT_CONFIG.get(section, {}).get(param)
                    if default_val is not None:
                        logger.warning(f"Missing param {section}.{param}. Using default: {default_val}")
                        section_data[param] = default_val
                    continue

                value = section_data[param]

                # Non-numeric params are checked below
                if bounds is None:
                    continue

                min_val, max_val = bounds
                if not isinstance(value, (int, float)) or not (min_val <= value <= max_val):
                    raise ConfigError(
                        f"Parameter {section}.{param}={value} out of bounds "
                        f"[{min_val}, {max_val}]"
                    )

        vocabulary = self.data["genres"]["vocabulary"]
        if (
            not isinstance(vocabulary, list)
            or not vocabulary
            or not all(isinstance(g, str) and g for g in vocabulary)
        ):
            raise ConfigError(f"genres.vocabulary must be a non-empty list of strings, got {vocabulary!r}")

        lyrical = self.data["tags"]["lyrical_feature"]
        if lyrical not in LYRICAL_FEATURES:
            raise ConfigError(
                f"tags.lyrical_feature={lyrical!r} must be one of {', '.join(LYRICAL_FEATURES)}"
            )

        logger.debug("Config validation passed")

    @property
    def genres(self) -> List[str]:
        """Configured genre vocabulary, lowercased and deduplicated in order."""
        seen: List[str] = []
        for genre in self.data["genres"]["vocabulary"]:
            genre = genre.strip().lower()
            if genre not in seen:
                seen.append(genre)
        return seen

    def get(self, section: str, param: str, default: Any = None) -> Any:
        """Get a config parameter safely."""
        return self.data.get(section, {}).get(param, default)

    def __getitem__(self, section: str) -> Dict[str, Any]:
        """Allow dict-like access: config["optimize"]"""
        return self.data.get(section, {})

    def __repr__(self) -> str:
        version = self.data.get('config_version', 'unknown')
        return f"Config(version={version})"
