"""Exceptions raised for input problems before any comparison runs."""


class ArmDriftError(Exception):
    """Base class for armdrift input errors."""


class ConfigError(ArmDriftError):
    """Raised when a configuration file is unreadable or malformed."""


class TemplateError(ArmDriftError):
    """Raised when a template cannot be parsed into resource states."""


class TemplateNotFoundError(TemplateError):
    """Raised when the template file does not exist."""


class UnsupportedTemplateError(TemplateError):
    """Raised when no parser handles the template's file type."""


class BicepCompileError(TemplateError):
    """Raised when the Bicep CLI is unavailable or fails to compile a template."""
