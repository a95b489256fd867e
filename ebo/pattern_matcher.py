"""
Pattern Matcher for component output.

Detects readiness markers and error keywords in the lines a component
writes while it starts.
"""

from typing import Dict, Iterable, List
import re


class PatternMatcher:
    """
    Matches patterns in component output lines.

    Features:
    - Literal and regex patterns
    - Case-sensitive by default (markers are exact build-tool strings)
    - Multiple pattern detection per line
    - Pattern match counting
    """

    def __init__(self, case_sensitive: bool = True):
        self._flags = 0 if case_sensitive else re.IGNORECASE
        self._patterns: Dict[str, re.Pattern] = {}
        self._counts: Dict[str, int] = {}

    @classmethod
    def from_literals(cls, literals: Iterable[str], case_sensitive: bool = True) -> "PatternMatcher":
        """Build a matcher where each literal string is its own pattern."""
        matcher = cls(case_sensitive=case_sensitive)
        for literal in literals:
            matcher.add_pattern(literal, literal)
        return matcher

    def add_pattern(self, name: str, pattern: str, is_regex: bool = False) -> None:
        """
        Add a pattern to watch for.

        Args:
            name: Pattern identifier
            pattern: String or regex pattern
            is_regex: If False, pattern is escaped for literal matching
        """
        if not is_regex:
            pattern = re.escape(pattern)

        self._patterns[name] = re.compile(pattern, self._flags)
        self._counts[name] = 0

    def get_patterns(self) -> List[str]:
        """Get list of pattern names."""
        return list(self._patterns.keys())

    def check_line(self, line: str) -> List[str]:
        """Return the names of all patterns found in *line*."""
        matched = []
        for name, pattern in self._patterns.items():
            if pattern.search(line):
                self._counts[name] += 1
                matched.append(name)
        return matched

    def matches(self, line: str) -> bool:
        return bool(self.check_line(line))

    def get_counts(self) -> Dict[str, int]:
        """Get count of matches per pattern."""
        return self._counts.copy()
