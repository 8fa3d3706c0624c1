"""Pick a template parser based on the template's file type."""

from pathlib import Path
from typing import Protocol

from armdrift.errors import UnsupportedTemplateError
from armdrift.models import ResourceState
from armdrift.templates.arm import ArmTemplateParser
from armdrift.templates.bicep import BicepTemplateParser


class TemplateParser(Protocol):
    def can_parse(self, path: str | Path) -> bool: ...

    def parse(
        self, path: str | Path, parameters: dict[str, str] | None = None
    ) -> list[ResourceState]: ...


def default_parsers() -> list[TemplateParser]:
    arm = ArmTemplateParser()
    return [arm, BicepTemplateParser(arm_parser=arm)]


def get_parser(path: str | Path, parsers: list[TemplateParser] | None = None) -> TemplateParser:
    """Return the first parser that handles ``path``."""
    for parser in parsers if parsers is not None else default_parsers():
        if parser.can_parse(path):
            return parser

    raise UnsupportedTemplateError(
        f"No parser available for file type: {Path(path).suffix or '(none)'}. "
        "Supported types: .bicep, .json"
    )
