"""
Name matchers used to select source databases and tables.

A matcher always compares against the whole name, never a substring.
"""

import fnmatch
import re
from abc import ABC, abstractmethod
from typing import Literal

from ..exceptions import ConfigurationError


MatchStrategy = Literal["regex", "glob", "exact"]


class Matcher(ABC):
    """Predicate over database or table names."""

    def __init__(self, pattern: str):
        self.pattern = pattern

    @abstractmethod
    def matches(self, name: str) -> bool:
        """Return True if ``name`` is selected."""

    def __call__(self, name: str) -> bool:
        return self.matches(name)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.pattern!r})"


class RegexMatcher(Matcher):
    """Full match against a compiled regular expression."""

    def __init__(self, pattern: str):
        super().__init__(pattern)
        try:
            self._regex = re.compile(pattern)
        except re.error as e:
            raise ConfigurationError(f"Invalid name pattern '{pattern}': {e}") from e

    def matches(self, name: str) -> bool:
        return self._regex.fullmatch(name) is not None


class GlobMatcher(Matcher):
    """Case-sensitive shell-style wildcard match."""

    def matches(self, name: str) -> bool:
        return fnmatch.fnmatchcase(name, self.pattern)


class ExactMatcher(Matcher):
    """Match against a comma-separated list of names."""

    def __init__(self, pattern: str):
        super().__init__(pattern)
        self.names = frozenset(n.strip() for n in pattern.split(",") if n.strip())

    def matches(self, name: str) -> bool:
        return name in self.names


def create_matcher(pattern: str, strategy: MatchStrategy = "regex") -> Matcher:
    """Build a matcher for ``pattern`` using the given strategy."""
    if strategy == "regex":
        return RegexMatcher(pattern)
    if strategy == "glob":
        return GlobMatcher(pattern)
    if strategy == "exact":
        return ExactMatcher(pattern)
    raise ConfigurationError(f"Unknown match strategy: {strategy}")
