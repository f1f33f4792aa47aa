"""Serialize results, gate CI runs, and render a terminal summary."""
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List

from scripts.a11y_core.config import SEVERITY_LEVELS
from scripts.a11y_core.models import KEYBOARD_CATEGORIES, ScanResults

EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_VALIDATION = 2


def write_json(path: Path, data: Any) -> None:
    if isinstance(data, ScanResults):
        data = data.to_dict()
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)


@dataclass
class CIResult:
    passed: bool
    total_violations: int
    critical_violations: int
    threshold: int
    message: str


def format_for_ci(results: ScanResults, threshold: int = 0) -> CIResult:
    total = results.summary.total_violations
    critical = results.summary.violations_by_severity.get("critical", 0)
    passed = total <= threshold
    status = "Passed" if passed else "Failed"
    return CIResult(
        passed=passed,
        total_violations=total,
        critical_violations=critical,
        threshold=threshold,
        message=f"CI Check {status}: {total} violation(s) found (threshold: {threshold})",
    )


def render_summary(results: ScanResults, limit: int = 10) -> str:
    summary = results.summary
    lines: List[str] = [
        f"Scanned {results.url} with {results.browser}",
        f"Framework: {results.framework.strategy if results.framework.detected else 'not detected'}",
        f"Stability: {results.stability.state} ({results.stability.navigation_count} navigation(s))",
        f"Components: {summary.total_components}",
        f"Violations: {summary.total_violations} across {len(results.violations)} rule(s)",
    ]
    severity = ", ".join(f"{s}={summary.violations_by_severity.get(s, 0)}" for s in SEVERITY_LEVELS)
    lines.append(f"  by severity: {severity}")
    levels = ", ".join(f"{k}={v}" for k, v in summary.violations_by_wcag_level.items())
    lines.append(f"  by WCAG level: {levels}")
    if summary.components_with_violations:
        lines.append(f"Components with violations: {summary.components_with_violations}")
    lines.append(f"Passed rules: {summary.total_passes}, needs review: {summary.total_incomplete}")
    if summary.keyboard_issues is not None:
        lines.append(f"Keyboard issues: {summary.keyboard_issues}")
    if results.keyboard is not None:
        for category in KEYBOARD_CATEGORIES:
            lines.append(f"  {category}: {len(results.keyboard.by_category(category))}")

    for violation in results.violations[:limit]:
        lines.append(f"- [{violation.impact}] {violation.id}: {violation.help or violation.description}")
        for node in violation.nodes[:3]:
            owner = " > ".join(node.user_component_path) or node.component or "unattributed"
            lines.append(f"    {owner}: {node.css_selector}")
        if len(violation.nodes) > 3:
            lines.append(f"    ... {len(violation.nodes) - 3} more")
    if len(results.violations) > limit:
        lines.append(f"... {len(results.violations) - limit} more rule(s); see the JSON report")
    return "\n".join(lines)
