"""Detector configuration and the ``.driftdetector.json`` config file."""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from armdrift.errors import ConfigError
from armdrift.ignore import IgnoreRule, IgnoreRuleSet

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = ".driftdetector.json"

DEFAULT_MAX_PROPERTY_DEPTH = 10


@dataclass
class DetectorConfig:
    """Settings that control how resources are compared."""

    ignore_rules: IgnoreRuleSet = field(default_factory=IgnoreRuleSet.create_default)
    # Report properties present in Azure but not declared in the template.
    report_added_properties: bool = True
    max_property_depth: int = DEFAULT_MAX_PROPERTY_DEPTH
    treat_null_as_missing: bool = True


SAMPLE_CONFIG: dict[str, Any] = {
    "ignoreRules": [
        {
            "pattern": "properties.provisioningState",
            "reason": "Azure-managed property",
        },
        {
            "pattern": "properties.**.*Id",
            "reason": "Azure-generated IDs",
        },
        {
            "pattern": "tags.Environment",
            "resourceType": "Microsoft.Web/sites",
            "reason": "Ignore environment tag on App Services",
        },
    ],
    "reportAddedProperties": True,
    "maxPropertyDepth": DEFAULT_MAX_PROPERTY_DEPTH,
    "treatNullAsMissing": True,
}


def _optional_bool(data: dict[str, Any], key: str, default: bool) -> bool:
    value = data.get(key)
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ConfigError(f"'{key}' must be a boolean, got {value!r}")
    return value


def _parse_rule(index: int, raw: Any) -> IgnoreRule:
    if not isinstance(raw, dict):
        raise ConfigError(f"Ignore rule {index} must be an object")
    pattern = raw.get("pattern")
    if not isinstance(pattern, str) or not pattern:
        raise ConfigError(f"Ignore rule {index}: 'pattern' is required")
    resource_type = raw.get("resourceType")
    if resource_type is not None and not isinstance(resource_type, str):
        raise ConfigError(f"Ignore rule {index}: 'resourceType' must be a string")
    reason = raw.get("reason")
    return IgnoreRule(
        pattern=pattern,
        resource_type=resource_type or None,
        reason=str(reason) if reason is not None else None,
    )


def parse_config(data: Any) -> DetectorConfig:
    """Build a DetectorConfig from decoded config-file content.

    Rules from the file are appended to the default rule set.
    """
    if data is None:
        return DetectorConfig()
    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a JSON object")

    rules = IgnoreRuleSet.create_default()
    raw_rules = data.get("ignoreRules") or []
    if not isinstance(raw_rules, list):
        raise ConfigError("'ignoreRules' must be a list")
    for i, raw in enumerate(raw_rules):
        rules.add_rule(_parse_rule(i, raw))

    max_depth = data.get("maxPropertyDepth", DEFAULT_MAX_PROPERTY_DEPTH)
    if max_depth is None:
        max_depth = DEFAULT_MAX_PROPERTY_DEPTH
    if isinstance(max_depth, bool) or not isinstance(max_depth, int) or max_depth < 0:
        raise ConfigError(f"'maxPropertyDepth' must be a non-negative integer, got {max_depth!r}")

    return DetectorConfig(
        ignore_rules=rules,
        report_added_properties=_optional_bool(data, "reportAddedProperties", True),
        max_property_depth=max_depth,
        treat_null_as_missing=_optional_bool(data, "treatNullAsMissing", True),
    )


def load_config_file(path: str | Path) -> DetectorConfig:
    """Load configuration from a specific file."""
    path = Path(path)
    logger.debug("Loading configuration from %s", path)
    try:
        content = path.read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError(f"Cannot read configuration file {path}: {e}") from e

    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in configuration file {path}: {e}") from e

    return parse_config(data)


def load_config(directory: str | Path = ".") -> DetectorConfig:
    """Load ``.driftdetector.json`` from ``directory``, or defaults if there is none."""
    path = Path(directory) / CONFIG_FILE_NAME
    if not path.is_file():
        logger.debug("No config file found at %s, using defaults", path)
        return DetectorConfig()
    return load_config_file(path)


def write_sample_config(directory: str | Path = ".") -> Path:
    """Write a sample ``.driftdetector.json`` into ``directory`` and return its path."""
    path = Path(directory) / CONFIG_FILE_NAME
    if path.exists():
        raise ConfigError(f"Configuration file already exists: {path}")
    path.write_text(json.dumps(SAMPLE_CONFIG, indent=2) + "\n", encoding="utf-8")
    return path
