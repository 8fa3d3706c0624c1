"""Parse Bicep templates by compiling them to ARM JSON with the Bicep CLI."""

import json
import logging
import subprocess
from pathlib import Path

from armdrift.errors import BicepCompileError, TemplateNotFoundError
from armdrift.models import ResourceState
from armdrift.templates.arm import ArmTemplateParser

logger = logging.getLogger(__name__)


class BicepTemplateParser:
    """Compiles ``.bicep`` files with ``bicep build --stdout`` and parses the ARM output."""

    extensions = (".bicep",)

    def __init__(
        self,
        arm_parser: ArmTemplateParser | None = None,
        bicep_command: str = "bicep",
        timeout: int = 120,
    ):
        self._arm_parser = arm_parser or ArmTemplateParser()
        self._bicep_command = bicep_command
        self._timeout = timeout

    def can_parse(self, path: str | Path) -> bool:
        return Path(path).suffix.lower() in self.extensions

    def parse(self, path: str | Path, parameters: dict[str, str] | None = None) -> list[ResourceState]:
        path = Path(path)
        if not path.is_file():
            raise TemplateNotFoundError(f"Bicep file not found: {path}")

        logger.debug("Compiling Bicep template: %s", path)
        arm_json = self.compile(path)
        return self._arm_parser.parse_text(arm_json, str(path), parameters)

    def compile(self, path: Path) -> str:
        """Compile a Bicep file and return the ARM template JSON."""
        try:
            proc = subprocess.run(
                [self._bicep_command, "build", str(path), "--stdout"],
                capture_output=True,
                text=True,
                timeout=self._timeout,
                check=False,
            )
        except FileNotFoundError as e:
            raise BicepCompileError(
                "Failed to start Bicep CLI. Ensure 'bicep' is installed and available in PATH."
            ) from e
        except subprocess.TimeoutExpired as e:
            raise BicepCompileError(f"Bicep compilation timed out after {self._timeout}s") from e

        if proc.returncode != 0:
            raise BicepCompileError(
                f"Bicep compilation failed with exit code {proc.returncode}: {proc.stderr.strip()}"
            )

        try:
            json.loads(proc.stdout)
        except json.JSONDecodeError as e:
            raise BicepCompileError("Bicep compilation produced invalid JSON") from e

        logger.debug("Compiled %s to ARM template", path)
        return proc.stdout
