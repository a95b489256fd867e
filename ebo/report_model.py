"""Typed view of a Playwright JSON report's suite tree.

Raw reports are loosely structured (keys go missing in partial output), so
parsing is tolerant: absent lists become empty, absent titles become
``"Unnamed Suite"``. Traversal lives in :class:`SuiteVisitor`; subclasses
decide what to accumulate.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

UNNAMED_SUITE = "Unnamed Suite"


@dataclass
class Attempt:
    """One run of a test (the first try or a retry)."""
    status: str
    duration: float = 0
    error_message: Optional[str] = None


@dataclass
class TestCase:
    """A spec's execution in one project (browser)."""
    project_name: str
    results: list[Attempt] = field(default_factory=list)

    __test__ = False

    @property
    def attempts(self) -> int:
        return len(self.results)

    @property
    def final(self) -> Optional[Attempt]:
        return self.results[-1] if self.results else None

    @property
    def final_status(self) -> str:
        return self.final.status if self.final else "unknown"


@dataclass
class Spec:
    title: str
    tests: list[TestCase] = field(default_factory=list)


@dataclass
class Suite:
    title: str
    suites: list["Suite"] = field(default_factory=list)
    specs: list[Spec] = field(default_factory=list)


def _list(raw: Any, key: str) -> list:
    value = raw.get(key) if isinstance(raw, dict) else None
    return value if isinstance(value, list) else []


def _error_message(raw: dict) -> Optional[str]:
    error = raw.get("error")
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    for err in _list(raw, "errors"):
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"])
    return None


def parse_attempt(raw: dict) -> Attempt:
    duration = raw.get("duration", 0)
    return Attempt(
        status=str(raw.get("status") or "unknown"),
        duration=duration if isinstance(duration, (int, float)) else 0,
        error_message=_error_message(raw),
    )


def parse_spec(raw: dict) -> Spec:
    tests = [
        TestCase(
            project_name=str(t.get("projectName") or "Unknown"),
            results=[parse_attempt(r) for r in _list(t, "results") if isinstance(r, dict)],
        )
        for t in _list(raw, "tests")
        if isinstance(t, dict)
    ]
    return Spec(title=str(raw.get("title") or ""), tests=tests)


def parse_suite(raw: dict) -> Suite:
    return Suite(
        title=str(raw.get("title") or UNNAMED_SUITE),
        suites=[parse_suite(s) for s in _list(raw, "suites") if isinstance(s, dict)],
        specs=[parse_spec(s) for s in _list(raw, "specs") if isinstance(s, dict)],
    )


def parse_suites(raw: Any) -> list[Suite]:
    """Parse a report's top-level ``suites`` array."""
    if not isinstance(raw, list):
        return []
    return [parse_suite(s) for s in raw if isinstance(s, dict)]


class SuiteVisitor:
    """Recursive-descent walk over a suite tree.

    Override the ``enter_suite`` / ``visit_test`` hooks; the traversal order
    is depth-first, specs of a suite before its child suites.
    """

    def visit_all(self, suites: list[Suite]) -> None:
        for suite in suites:
            self.visit_suite(suite, depth=0)

    def visit_suite(self, suite: Suite, depth: int) -> None:
        self.enter_suite(suite, depth)
        for spec in suite.specs:
            for test in spec.tests:
                self.visit_test(suite, spec, test)
        for child in suite.suites:
            self.visit_suite(child, depth + 1)

    def enter_suite(self, suite: Suite, depth: int) -> None:
        pass

    def visit_test(self, suite: Suite, spec: Spec, test: TestCase) -> None:
        pass
