"""Ignore rules that suppress noisy property paths from drift detection."""

import logging
import re
from dataclasses import dataclass
from functools import cached_property

logger = logging.getLogger(__name__)


def wildcard_to_regex(pattern: str) -> str:
    """Translate a wildcard path pattern into an anchored regular expression.

    ``**`` matches anything including dots, ``*`` matches within a single path
    segment and ``?`` matches exactly one character.
    """
    parts = ["^"]
    i = 0
    while i < len(pattern):
        if pattern.startswith("**", i):
            parts.append(".*")
            i += 2
        elif pattern[i] == "*":
            parts.append(r"[^.\[\]]*")
            i += 1
        elif pattern[i] == "?":
            parts.append(".")
            i += 1
        else:
            parts.append(re.escape(pattern[i]))
            i += 1
    parts.append("$")
    return "".join(parts)


@dataclass(frozen=True)
class IgnoreRule:
    """Suppresses property paths matching ``pattern``, optionally for one resource type."""

    pattern: str
    resource_type: str | None = None
    reason: str | None = None

    @cached_property
    def _matcher(self) -> re.Pattern:
        return re.compile(wildcard_to_regex(self.pattern), re.IGNORECASE)

    def matches(self, property_path: str, resource_type: str | None = None) -> bool:
        """Return True if this rule suppresses ``property_path`` for ``resource_type``."""
        if self.resource_type and (
            resource_type is None or self.resource_type.lower() != resource_type.lower()
        ):
            return False
        return self._matcher.match(property_path) is not None


DEFAULT_RULES: list[IgnoreRule] = [
    IgnoreRule("properties.provisioningState", reason="Azure-managed provisioning state"),
    IgnoreRule("properties.createdTime", reason="Timestamp managed by Azure"),
    IgnoreRule("properties.lastModifiedTime", reason="Timestamp managed by Azure"),
    IgnoreRule("properties.uniqueId", reason="Azure-generated unique identifier"),
    IgnoreRule("properties.resourceGuid", reason="Azure-generated GUID"),
    IgnoreRule("properties.etag", reason="Azure ETag for concurrency"),
    IgnoreRule("properties.**.*Id", reason="Azure-generated IDs"),
]


class IgnoreRuleSet:
    """Ordered collection of ignore rules. A path is ignored if any rule matches."""

    def __init__(self, rules: list[IgnoreRule] | None = None):
        self._rules: list[IgnoreRule] = list(rules or [])

    @classmethod
    def create_default(cls) -> "IgnoreRuleSet":
        """A rule set seeded with Azure platform-managed properties."""
        return cls(DEFAULT_RULES)

    @property
    def rules(self) -> tuple[IgnoreRule, ...]:
        return tuple(self._rules)

    def add_rule(self, rule: IgnoreRule) -> None:
        self._rules.append(rule)

    def first_match(self, property_path: str, resource_type: str | None = None) -> IgnoreRule | None:
        """Return the first rule that suppresses the path, or None."""
        for rule in self._rules:
            if rule.matches(property_path, resource_type):
                return rule
        return None

    def should_ignore(self, property_path: str, resource_type: str | None = None) -> bool:
        rule = self.first_match(property_path, resource_type)
        if rule is None:
            return False
        logger.debug("Ignoring %s (%s): %s", property_path, rule.pattern, rule.reason or "no reason")
        return True

    def __len__(self) -> int:
        return len(self._rules)
