"""Map raw rule-engine findings onto the components that rendered them."""
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

from scripts.a11y_core.components import ComponentIndex, filter_user_components, is_framework_component
from scripts.a11y_core.config import BUNDLE_GLOBAL, DEFAULT_FRAMEWORK_PATTERNS, HTML_SNIPPET_LENGTH
from scripts.a11y_core.errors import SelectorResolutionError
from scripts.a11y_core.models import (
    AttributedIncomplete,
    AttributedIncompleteNode,
    AttributedPass,
    AttributedPassNode,
    AttributedViolation,
    AttributedViolationNode,
    ComponentDescriptor,
    ComponentKind,
    CustomCheckViolation,
    FixSuggestion,
    RawNode,
    RawViolation,
    Target,
)

LOGGER = logging.getLogger("a11y-scan")

RESOLVE_TARGETS_JS = f"(targets) => window.{BUNDLE_GLOBAL}.resolveTargets(targets)"

LEVEL_TAGS = {"A": "wcag2a", "AA": "wcag2aa", "AAA": "wcag2aaa"}

FIX_SUGGESTIONS: Dict[str, FixSuggestion] = {
    "landmark-one-main": FixSuggestion(
        "Add a <main> landmark to your page",
        "Wrap your primary page content in a <main> element.",
    ),
    "page-has-heading-one": FixSuggestion(
        "Add an <h1> heading to your page",
        "Every page should have exactly one <h1> element that describes the page's main topic.",
    ),
    "heading-order": FixSuggestion(
        "Fix heading hierarchy",
        "Headings should follow a logical order (h1, h2, h3) without skipping levels.",
    ),
    "region": FixSuggestion(
        "Wrap content in semantic landmarks",
        "Use semantic HTML5 elements like <main>, <nav>, <aside>, <header>, <footer>.",
    ),
    "button-name": FixSuggestion(
        "Add accessible text to the button",
        "Buttons must have text content or an aria-label attribute.",
    ),
    "link-name": FixSuggestion(
        "Add accessible text to the link",
        "Links must have text content or an aria-label describing the destination.",
    ),
    "image-alt": FixSuggestion(
        "Add alt text to the image",
        'Use descriptive text for meaningful images, or empty alt="" for decorative images.',
    ),
    "color-contrast": FixSuggestion(
        "Increase color contrast",
        "Text must have at least 4.5:1 contrast for normal text, 3:1 for large text.",
    ),
    "label": FixSuggestion(
        "Add a label to the form input",
        "Form inputs must have associated labels using <label>, aria-label, or aria-labelledby.",
    ),
    "aria-required-attr": FixSuggestion(
        "Add required ARIA attributes",
        'ARIA roles require specific attributes (e.g., role="checkbox" requires aria-checked).',
    ),
    "aria-valid-attr-value": FixSuggestion("Fix ARIA attribute value", "ARIA attributes must have valid values."),
    "list": FixSuggestion(
        "Use proper list markup",
        "List items (<li>) must be contained in <ul>, <ol>, or <menu> elements.",
    ),
    "html-has-lang": FixSuggestion(
        "Add lang attribute to <html> element",
        "The <html> element must have a lang attribute specifying the page language.",
    ),
    "document-title": FixSuggestion(
        "Add a descriptive <title> to the page",
        "Every page must have a unique, descriptive <title> element.",
    ),
    "meta-viewport": FixSuggestion(
        "Allow users to zoom the page",
        "Avoid user-scalable=no and maximum-scale=1 in viewport meta tag.",
    ),
    "duplicate-id": FixSuggestion("Ensure all IDs are unique", "ID attributes must be unique within the page."),
    "nested-interactive": FixSuggestion(
        "Remove nested interactive elements",
        "Interactive elements (buttons, links) cannot be nested inside each other.",
    ),
    "aria-hidden-focus": FixSuggestion(
        "Remove focusable elements from aria-hidden regions",
        'Elements with aria-hidden="true" should not contain focusable elements.',
    ),
    "scrollable-region-focusable": FixSuggestion(
        "Make scrollable regions keyboard accessible",
        'Scrollable regions need tabindex="0" to be keyboard accessible.',
    ),
    "bypass": FixSuggestion(
        "Add skip navigation link",
        "Provide a skip link to bypass repeated navigation and jump to main content.",
    ),
    "target-size": FixSuggestion(
        "Enlarge the touch target",
        "Pointer targets should be at least 24 by 24 CSS pixels or have enough spacing around them.",
    ),
}


def suggest_fix(rule_id: str) -> Optional[FixSuggestion]:
    return FIX_SUGGESTIONS.get(rule_id)


def extract_html_snippet(html: str, length: int = HTML_SNIPPET_LENGTH) -> str:
    collapsed = " ".join((html or "").split())
    if len(collapsed) > length:
        return collapsed[:length] + "..."
    return collapsed


def selector_text(target: Target) -> str:
    if isinstance(target, list):
        return " >>> ".join(str(part) for part in target)
    return str(target)


@dataclass
class ResolvedElement:
    """A live element as seen through a selector: its handle, DOM ancestors and direct owner."""

    element: Optional[str]
    ancestors: List[str] = field(default_factory=list)
    direct_name: Optional[str] = None
    direct_path: Tuple[str, ...] = ()
    css_selector: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ResolvedElement":
        direct = data.get("direct") if isinstance(data.get("direct"), dict) else {}
        direct_path = [p for p in direct.get("path") or [] if isinstance(p, str)]
        return cls(
            element=data.get("element") if isinstance(data.get("element"), str) else None,
            ancestors=[a for a in data.get("ancestors") or [] if isinstance(a, str)],
            direct_name=direct.get("name") if isinstance(direct.get("name"), str) else None,
            direct_path=tuple(direct_path),
            css_selector=str(data.get("cssSelector") or ""),
        )


class ElementResolver(Protocol):
    def resolve(self, target: Target) -> ResolvedElement:
        """Raise ``SelectorResolutionError`` when ``target`` matches nothing."""
        ...


class PageElementResolver:
    """Resolves selectors against the live page in one batched evaluation.

    ``prefetch`` must be awaited with every target before ``resolve`` is used.
    """

    def __init__(self, page: Page):
        self.page = page
        self._results: Dict[str, Dict[str, Any]] = {}

    @staticmethod
    def _key(target: Target) -> str:
        return json.dumps(target)

    async def prefetch(self, targets: Iterable[Target]) -> None:
        pending: List[Target] = []
        seen = set()
        for target in targets:
            key = self._key(target)
            if key in self._results or key in seen:
                continue
            seen.add(key)
            pending.append(target)
        if not pending:
            return

        try:
            results = await self.page.evaluate(RESOLVE_TARGETS_JS, pending)
        except PlaywrightError as exc:
            LOGGER.warning("Could not resolve %d result target(s): %s", len(pending), exc.message)
            results = None
        if not isinstance(results, list) or len(results) != len(pending):
            results = [{"ok": False, "error": "target resolution unavailable"}] * len(pending)

        for target, result in zip(pending, results):
            self._results[self._key(target)] = result if isinstance(result, dict) else {"ok": False}

    def resolve(self, target: Target) -> ResolvedElement:
        result = self._results.get(self._key(target))
        if result is None:
            raise SelectorResolutionError(target, "target was not prefetched")
        if not result.get("ok"):
            raise SelectorResolutionError(target, str(result.get("error") or "unknown error"))
        return ResolvedElement.from_dict(result)


def first_targets(results: Iterable[RawViolation]) -> List[Target]:
    return [node.target[0] for result in results for node in result.nodes if node.target]


@dataclass
class NodeLocation:
    owner: Optional[ComponentDescriptor]
    css_selector: str
    path: List[str]
    user_path: List[str]


class ViolationAttributor:
    """Attributes violations, passes and incompletes against one component index."""

    def __init__(self, patterns: Sequence[str] = DEFAULT_FRAMEWORK_PATTERNS):
        self.patterns = list(patterns)

    def attribute(
        self, raw_violations: Iterable[RawViolation], index: ComponentIndex, resolver: ElementResolver
    ) -> List[AttributedViolation]:
        attributed = []
        for violation in raw_violations:
            nodes = [self._attribute_node(node, index, resolver) for node in violation.nodes]
            attributed.append(
                AttributedViolation(
                    id=violation.id,
                    impact=violation.impact or "minor",
                    description=violation.description,
                    help=violation.help,
                    help_url=violation.help_url,
                    tags=list(violation.tags),
                    nodes=nodes,
                    fix_suggestion=suggest_fix(violation.id),
                )
            )
        return attributed

    def attribute_passes(
        self, raw_passes: Iterable[RawViolation], index: ComponentIndex, resolver: ElementResolver
    ) -> List[AttributedPass]:
        attributed = []
        for result in raw_passes:
            nodes = []
            for node in result.nodes:
                where = self._locate(node, index, resolver)
                nodes.append(
                    AttributedPassNode(
                        component=where.owner.name if where.owner else None,
                        component_path=where.path,
                        user_component_path=where.user_path,
                        html=node.html,
                        html_snippet=extract_html_snippet(node.html),
                        css_selector=where.css_selector,
                        target=list(node.target),
                    )
                )
            attributed.append(
                AttributedPass(
                    id=result.id,
                    impact=result.impact,
                    description=result.description,
                    help=result.help,
                    help_url=result.help_url,
                    tags=list(result.tags),
                    nodes=nodes,
                )
            )
        return attributed

    def attribute_incomplete(
        self, raw_incomplete: Iterable[RawViolation], index: ComponentIndex, resolver: ElementResolver
    ) -> List[AttributedIncomplete]:
        attributed = []
        for result in raw_incomplete:
            nodes = []
            for node in result.nodes:
                where = self._locate(node, index, resolver)
                nodes.append(
                    AttributedIncompleteNode(
                        component=where.owner.name if where.owner else None,
                        component_path=where.path,
                        user_component_path=where.user_path,
                        html=node.html,
                        html_snippet=extract_html_snippet(node.html),
                        css_selector=where.css_selector,
                        target=list(node.target),
                        message=node.review_message() or node.failure_summary or None,
                        checks=node.checks,
                    )
                )
            attributed.append(
                AttributedIncomplete(
                    id=result.id,
                    impact=result.impact,
                    description=result.description,
                    help=result.help,
                    help_url=result.help_url,
                    tags=list(result.tags),
                    nodes=nodes,
                )
            )
        return attributed

    def _owner(
        self, node: RawNode, index: ComponentIndex, resolver: ElementResolver
    ) -> Tuple[Optional[ComponentDescriptor], Optional[ResolvedElement]]:
        if not node.target:
            return None, None
        try:
            resolved = resolver.resolve(node.target[0])
        except SelectorResolutionError as exc:
            LOGGER.debug("Skipping attribution: %s", exc)
            return None, None

        if resolved.direct_name and index.has_component(resolved.direct_name):
            path = resolved.direct_path or (resolved.direct_name,)
            return ComponentDescriptor(resolved.direct_name, ComponentKind.COMPOSITE, path), resolved

        return index.nearest([resolved.element, *resolved.ancestors]), resolved

    def _locate(self, node: RawNode, index: ComponentIndex, resolver: ElementResolver) -> NodeLocation:
        owner, resolved = self._owner(node, index, resolver)
        css_selector = resolved.css_selector if resolved and resolved.css_selector else ""
        if not css_selector and node.target:
            css_selector = selector_text(node.target[0])
        path = list(owner.path) if owner else []
        return NodeLocation(owner, css_selector, path, filter_user_components(path, self.patterns))

    def _attribute_node(
        self, node: RawNode, index: ComponentIndex, resolver: ElementResolver
    ) -> AttributedViolationNode:
        where = self._locate(node, index, resolver)
        owner = where.owner
        return AttributedViolationNode(
            component=owner.name if owner else None,
            component_path=where.path,
            user_component_path=where.user_path,
            component_kind=owner.kind.value if owner else None,
            html=node.html,
            html_snippet=extract_html_snippet(node.html),
            css_selector=where.css_selector,
            target=list(node.target),
            failure_summary=node.failure_summary,
            is_framework_component=bool(owner) and is_framework_component(owner.name, self.patterns),
            checks=node.checks,
        )


def custom_to_violation(check: CustomCheckViolation) -> AttributedViolation:
    """Wrap a heuristic finding as a single-node, unattributed violation."""
    tags = []
    if check.criterion:
        tags.append("wcag" + check.criterion.replace(".", ""))
    if check.level in LEVEL_TAGS:
        tags.append(LEVEL_TAGS[check.level])

    node = AttributedViolationNode(
        component=None,
        component_path=[],
        user_component_path=[],
        component_kind=None,
        html=check.html,
        html_snippet=extract_html_snippet(check.html),
        css_selector=check.selector,
        target=[check.selector] if check.selector else [],
        failure_summary=check.description,
    )
    return AttributedViolation(
        id=check.id,
        impact=check.impact,
        description=check.description,
        help=check.description,
        help_url="",
        tags=tags,
        nodes=[node],
        source="custom-check",
        criterion=check.criterion or None,
        fix_suggestion=suggest_fix(check.id),
    )
