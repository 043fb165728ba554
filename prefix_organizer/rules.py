"""Destination rules and filename matching."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class DestinationRule:
    """Where files whose name starts with *prefix* / ends with *suffix* go.

    A rule with neither prefix nor suffix never matches anything.
    """

    target_directory: Path
    prefix: str = ""
    suffix: str = ""

    @property
    def is_empty(self) -> bool:
        return not self.prefix and not self.suffix

    def describe(self) -> str:
        parts = []
        if self.prefix:
            parts.append(f"prefix={self.prefix!r}")
        if self.suffix:
            parts.append(f"suffix={self.suffix!r}")
        return f"{', '.join(parts) or '<empty>'} -> {self.target_directory}"


def matches(filename: str, rule: DestinationRule) -> bool:
    """Return True if *filename* satisfies every condition *rule* sets."""
    if rule.prefix and rule.suffix:
        return filename.startswith(rule.prefix) and filename.endswith(rule.suffix)
    if rule.prefix:
        return filename.startswith(rule.prefix)
    if rule.suffix:
        return filename.endswith(rule.suffix)
    return False


def first_match(
    filename: str, rules: Iterable[DestinationRule]
) -> DestinationRule | None:
    """Return the first rule in order that matches *filename*, if any."""
    for rule in rules:
        if matches(filename, rule):
            return rule
    return None
