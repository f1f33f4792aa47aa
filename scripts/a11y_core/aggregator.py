"""Fold attributed violations into summary counts."""
import re
from typing import Iterable, List, Optional, Sequence

from scripts.a11y_core.config import SEVERITY_LEVELS
from scripts.a11y_core.models import (
    AttributedIncomplete,
    AttributedPass,
    AttributedViolation,
    ComponentDescriptor,
    KeyboardReport,
    ScanSummary,
)

# wcag2a, wcag21aa, wcag22aaa
LEVEL_TAG = re.compile(r"^wcag2\d?(a{1,3})$")
# wcag111 -> 1.1.1, wcag1410 -> 1.4.10
CRITERION_TAG = re.compile(r"^wcag(\d)(\d)(\d+)$")

LEVEL_RANK = {"A": 1, "AA": 2, "AAA": 3}


def wcag_level(tags: Iterable[str]) -> str:
    """Highest conformance level named by ``tags``, or ``unknown``."""
    best = None
    for tag in tags:
        match = LEVEL_TAG.match(tag)
        if not match:
            continue
        level = match.group(1).upper()
        if best is None or LEVEL_RANK[level] > LEVEL_RANK[best]:
            best = level
    return best or "unknown"


def criteria_from_tags(tags: Iterable[str]) -> List[str]:
    found = []
    for tag in tags:
        match = CRITERION_TAG.match(tag)
        if match:
            criterion = ".".join(match.groups())
            if criterion not in found:
                found.append(criterion)
    return found


def violation_criteria(violation: AttributedViolation) -> List[str]:
    criteria = criteria_from_tags(violation.tags)
    if not criteria and violation.criterion:
        criteria = [violation.criterion]
    return criteria


class ResultsAggregator:
    """Stateless; every call folds only what it is given."""

    def aggregate(
        self,
        components: Sequence[ComponentDescriptor],
        violations: Sequence[AttributedViolation],
        passes: Optional[Sequence[AttributedPass]] = None,
        incomplete: Optional[Sequence[AttributedIncomplete]] = None,
        keyboard: Optional[KeyboardReport] = None,
    ) -> ScanSummary:
        summary = ScanSummary(
            total_components=len(components),
            total_passes=len(passes or []),
            total_incomplete=len(incomplete or []),
            keyboard_issues=len(keyboard.issues) if keyboard is not None else None,
        )

        touched = set()
        for violation in violations:
            count = len(violation.nodes)
            summary.total_violations += count

            severity = violation.impact if violation.impact in SEVERITY_LEVELS else "minor"
            summary.violations_by_severity[severity] += count
            summary.violations_by_wcag_level[wcag_level(violation.tags)] += count
            for criterion in violation_criteria(violation):
                summary.violations_by_criterion[criterion] = summary.violations_by_criterion.get(criterion, 0) + count

            touched.update(node.component for node in violation.nodes if node.component)

        summary.components_with_violations = len(touched)
        return summary
