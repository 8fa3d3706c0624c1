"""Parse ARM (Azure Resource Manager) JSON templates into expected resource states."""

import json
import logging
import re
from pathlib import Path
from typing import Any

from armdrift.errors import TemplateError, TemplateNotFoundError
from armdrift.jsonvalue import ABSENT, Number, dump_json, from_python, load_json
from armdrift.models import ResourceState

logger = logging.getLogger(__name__)

PARAMETER_EXPRESSION = re.compile(r"^\[parameters\('([^']+)'\)\]$")
INTEGER = re.compile(r"^[+-]?\d+$")


def _is_arm_template(document: Any) -> bool:
    if not isinstance(document, dict):
        return False
    schema = document.get("$schema")
    return isinstance(schema, str) and "deploymenttemplate" in schema.lower()


def _as_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, Number):
        return value.raw
    if isinstance(value, bool):
        return "true" if value else "false"
    return dump_json(value)


def _coerce_parameter(name: str, definition: Any, value: Any) -> Any:
    """Convert a provided parameter value to the parameter's declared ``type``."""
    if not isinstance(value, str):
        return from_python(value)

    declared = definition.get("type") if isinstance(definition, dict) else None
    declared = declared.lower() if isinstance(declared, str) else "string"

    if declared == "int":
        if INTEGER.match(value.strip()) is None:
            raise TemplateError(f"Parameter '{name}' expects an int, got {value!r}")
        return Number(str(int(value)))
    if declared == "bool":
        if value.strip().lower() not in ("true", "false"):
            raise TemplateError(f"Parameter '{name}' expects a bool, got {value!r}")
        return value.strip().lower() == "true"
    if declared in ("object", "secureobject", "array"):
        try:
            parsed = load_json(value)
        except json.JSONDecodeError as e:
            raise TemplateError(f"Parameter '{name}' expects JSON for type {declared}: {e}") from e
        expected = list if declared == "array" else dict
        if not isinstance(parsed, expected):
            raise TemplateError(f"Parameter '{name}' expects an {declared}, got {value!r}")
        return parsed
    return value


class ArmTemplateParser:
    """Reads resources, tags and properties from an ARM template."""

    extensions = (".json",)

    def can_parse(self, path: str | Path) -> bool:
        return Path(path).suffix.lower() in self.extensions

    def parse(self, path: str | Path, parameters: dict[str, str] | None = None) -> list[ResourceState]:
        path = Path(path)
        if not path.is_file():
            raise TemplateNotFoundError(f"Template file not found: {path}")

        logger.debug("Parsing ARM template: %s", path)
        try:
            content = path.read_text(encoding="utf-8-sig")
        except (OSError, UnicodeDecodeError) as e:
            raise TemplateError(f"Cannot read template {path}: {e}") from e
        return self.parse_text(content, str(path), parameters)

    def parse_text(
        self,
        content: str,
        source: str,
        parameters: dict[str, str] | None = None,
    ) -> list[ResourceState]:
        """Parse template content. ``source`` is only used in messages."""
        try:
            document = load_json(content)
        except json.JSONDecodeError as e:
            raise TemplateError(f"Invalid JSON in template {source}: {e}") from e

        if not _is_arm_template(document):
            raise TemplateError(f"File is not a valid ARM template: {source}")

        resolved = self._resolve_parameters(document, parameters)

        resources = []
        raw_resources = document.get("resources") or []
        # languageVersion 2.0 templates key resources by symbolic name
        if isinstance(raw_resources, dict):
            raw_resources = list(raw_resources.values())
        for raw in raw_resources:
            state = self._parse_resource(raw, resolved)
            if state is not None:
                resources.append(state)

        logger.info("Parsed %d resources from ARM template %s", len(resources), source)
        return resources

    @staticmethod
    def _resolve_parameters(
        document: dict[str, Any],
        provided: dict[str, str] | None,
    ) -> dict[str, Any]:
        provided_lower = {k.lower(): v for k, v in (provided or {}).items()}
        resolved: dict[str, Any] = {}

        declared = document.get("parameters") or {}
        if not isinstance(declared, dict):
            return resolved

        for name, definition in declared.items():
            if name.lower() in provided_lower:
                value = provided_lower[name.lower()]
                resolved[name.lower()] = _coerce_parameter(name, definition, value)
            elif isinstance(definition, dict) and "defaultValue" in definition:
                resolved[name.lower()] = definition["defaultValue"]

        return resolved

    @staticmethod
    def _resolve_value(value: Any, parameters: dict[str, Any]) -> Any:
        """Substitute a whole-string ``[parameters('x')]`` expression.

        Any other expression is passed through untouched.
        """
        if not isinstance(value, str):
            return value
        match = PARAMETER_EXPRESSION.match(value)
        if match is None:
            return value
        name = match.group(1).lower()
        if name not in parameters:
            return value
        return parameters[name]

    def _resolve_text(self, value: Any, parameters: dict[str, Any]) -> str:
        return _as_text(self._resolve_value(value, parameters))

    def _resolve_tree(self, value: Any, parameters: dict[str, Any]) -> Any:
        if isinstance(value, dict):
            return {k: self._resolve_tree(v, parameters) for k, v in value.items()}
        if isinstance(value, list):
            return [self._resolve_tree(v, parameters) for v in value]
        return self._resolve_value(value, parameters)

    def _parse_resource(self, raw: Any, parameters: dict[str, Any]) -> ResourceState | None:
        if not isinstance(raw, dict):
            return None

        resource_type = raw.get("type")
        name = self._resolve_text(raw["name"], parameters) if raw.get("name") is not None else ""
        if not isinstance(resource_type, str) or not resource_type or not name:
            logger.debug("Skipping resource without type or name: %r", raw.get("name"))
            return None

        location = None
        if raw.get("location") is not None:
            location = self._resolve_text(raw["location"], parameters)

        tags = {}
        raw_tags = self._resolve_value(raw.get("tags"), parameters)
        if isinstance(raw_tags, dict):
            tags = {key: self._resolve_text(value, parameters) for key, value in raw_tags.items()}

        properties = ABSENT
        if "properties" in raw:
            properties = self._resolve_tree(raw["properties"], parameters)

        return ResourceState(
            resource_id=f"/providers/{resource_type}/{name}",
            resource_type=resource_type,
            name=name,
            location=location,
            tags=tags,
            properties=properties,
        )
