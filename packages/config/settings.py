"""Audit configuration: built-in defaults merged with an optional project file."""
from __future__ import annotations

import copy
import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Sequence, Union

import yaml

logger = logging.getLogger(__name__)

DETECTOR_NAMES = ("reentrancy", "overflow", "gas", "access")
SEVERITY_NAMES = ("high", "medium", "low", "info")
OUTPUT_FORMATS = ("console", "json")

DEFAULT_CONFIG: Dict[str, Any] = {
    "detectors": {name: True for name in DETECTOR_NAMES},
    "severity": {name: True for name in SEVERITY_NAMES},
    "output": {
        "format": "console",
        "verbose": False,
        "colors": True,
    },
    "rules": {
        "maxLoopIterations": 1000,
        "warnOnPublicArrays": True,
        "requireAccessControl": True,
    },
}

# First existing file wins.
CONFIG_CANDIDATES = (
    "audit.config.json",
    "auditor.config.json",
    ".auditorrc.json",
    "audit.config.yaml",
    "audit.config.yml",
)


class ConfigError(ValueError):
    pass


class ConfigManager:
    def __init__(self, config: Optional[Dict[str, Any]] = None, source: Optional[Path] = None):
        self.config = config if config is not None else copy.deepcopy(DEFAULT_CONFIG)
        self.source = source

    @classmethod
    def load(cls, directory: Union[str, Path, None] = None) -> "ConfigManager":
        """Load the first usable candidate file from ``directory`` (default: cwd)."""

        base = Path(directory) if directory is not None else Path.cwd()
        for name in CONFIG_CANDIDATES:
            path = base / name
            if not path.exists():
                continue
            try:
                user_config = _read(path)
            except ConfigError as exc:
                logger.warning("Could not parse config file %s: %s", path, exc)
                continue
            logger.debug("Loaded configuration from %s", path)
            return cls(merge_config(DEFAULT_CONFIG, user_config), source=path)
        return cls()

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "ConfigManager":
        """Load one explicit file; a malformed file falls back to defaults."""

        config_path = Path(path)
        if not config_path.exists():
            raise ConfigError(f"Config file not found: {config_path}")
        try:
            user_config = _read(config_path)
        except ConfigError as exc:
            logger.warning("Could not parse config file %s: %s", config_path, exc)
            return cls()
        return cls(merge_config(DEFAULT_CONFIG, user_config), source=config_path)

    def with_overrides(
        self,
        *,
        detectors: Optional[Sequence[str]] = None,
        severities: Optional[Sequence[str]] = None,
        output_format: Optional[str] = None,
        verbose: Optional[bool] = None,
        colors: Optional[bool] = None,
    ) -> "ConfigManager":
        """Copy of this configuration with command-line selections applied."""

        config = copy.deepcopy(self.config)
        if detectors is not None:
            config["detectors"] = _allow_list(DETECTOR_NAMES, detectors)
        if severities is not None:
            config["severity"] = _allow_list(SEVERITY_NAMES, severities)
        if not isinstance(config.get("output"), dict):
            config["output"] = dict(DEFAULT_CONFIG["output"])
        if output_format is not None:
            config["output"]["format"] = output_format
        if verbose is not None:
            config["output"]["verbose"] = verbose
        if colors is not None:
            config["output"]["colors"] = colors
        return ConfigManager(config, source=self.source)

    def is_detector_enabled(self, name: str) -> bool:
        return self._section("detectors").get(name) is not False

    def should_show_severity(self, severity: str) -> bool:
        return self._section("severity").get(severity.lower()) is not False

    def get_output_format(self) -> str:
        return self._section("output").get("format", "console")

    def is_verbose(self) -> bool:
        return bool(self._section("output").get("verbose", False))

    def use_colors(self) -> bool:
        return bool(self._section("output").get("colors", True))

    def get_rule(self, name: str) -> Any:
        return self._section("rules").get(name)

    def get_config(self) -> Dict[str, Any]:
        return self.config

    def _section(self, name: str) -> Dict[str, Any]:
        section = self.config.get(name)
        return section if isinstance(section, dict) else {}


def merge_config(defaults: Dict[str, Any], user_config: Dict[str, Any]) -> Dict[str, Any]:
    """Mapping sections merge one level deep over the defaults; other values replace."""

    merged = copy.deepcopy(defaults)
    for key, value in user_config.items():
        if isinstance(value, dict):
            section = merged.get(key)
            merged[key] = {**section, **value} if isinstance(section, dict) else dict(value)
        else:
            merged[key] = value
    return merged


def _read(path: Path) -> Dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
        data = json.loads(text) if path.suffix == ".json" else yaml.safe_load(text)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigError(str(exc)) from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError("top-level value must be a mapping")
    return data


def _allow_list(names: Iterable[str], selected: Sequence[str]) -> Dict[str, bool]:
    chosen = {item.lower() for item in selected}
    return {name: name in chosen for name in names}
