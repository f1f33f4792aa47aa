"""Heuristic checks for criteria the rule engine does not cover."""
import logging
from typing import Awaitable, Callable, List, Sequence

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

from scripts.a11y_core.models import CustomCheckViolation

LOGGER = logging.getLogger("a11y-scan")

MINIMUM_TARGET_SIZE = 24

CustomCheck = Callable[[Page], Awaitable[List[CustomCheckViolation]]]

# WCAG 2.5.8 Target Size (Minimum), level AA. Inline targets, native
# checkbox/radio controls and targets with 24px of clear spacing are exempt.
TARGET_SIZE_JS = """(minimum) => {
    const INTERACTIVE = [
        'button', 'a[href]', 'input:not([type="hidden"])', 'select', 'textarea',
        '[role="button"]', '[role="link"]', '[role="checkbox"]', '[role="radio"]',
        '[role="switch"]', '[role="tab"]', '[role="menuitem"]', '[role="option"]',
        '[role="slider"]', '[tabindex]:not([tabindex="-1"])', '[onclick]'
    ].join(', ');

    const selectorFor = (el) => {
        if (el.id) {
            return '#' + CSS.escape(el.id);
        }
        const parts = [];
        let current = el;
        while (current && current !== document.body && current !== document.documentElement) {
            let part = current.tagName.toLowerCase();
            const parent = current.parentElement;
            if (parent) {
                const same = Array.from(parent.children).filter((c) => c.tagName === current.tagName);
                if (same.length > 1) {
                    part += ':nth-of-type(' + (same.indexOf(current) + 1) + ')';
                }
            }
            parts.unshift(part);
            current = parent;
        }
        return parts.join(' > ');
    };

    const visible = (el, rect) => {
        const style = getComputedStyle(el);
        return style.display !== 'none' && style.visibility !== 'hidden' && style.opacity !== '0'
            && rect.width > 0 && rect.height > 0;
    };

    const inline = (el) => {
        const display = getComputedStyle(el).display;
        const parent = el.parentElement;
        if (!parent || (display !== 'inline' && display !== 'inline-block')) {
            return false;
        }
        const rest = (parent.textContent || '').replace(el.textContent || '', '').trim();
        return rest.length > 0;
    };

    const userAgentControlled = (el) => {
        const type = (el.getAttribute('type') || '').toLowerCase();
        if (el.tagName !== 'INPUT' || !['checkbox', 'radio', 'color', 'range', 'file'].includes(type)) {
            return false;
        }
        return getComputedStyle(el).getPropertyValue('appearance') !== 'none';
    };

    const targets = Array.from(document.querySelectorAll(INTERACTIVE));
    const spaced = (el, rect) => targets.every((other) => {
        if (other === el) {
            return true;
        }
        const o = other.getBoundingClientRect();
        const dx = (rect.left + rect.width / 2) - (o.left + o.width / 2);
        const dy = (rect.top + rect.height / 2) - (o.top + o.height / 2);
        const reach = minimum + Math.min(rect.width, rect.height) / 2 + Math.min(o.width, o.height) / 2;
        return Math.sqrt(dx * dx + dy * dy) >= reach;
    });

    const found = [];
    for (const el of targets) {
        const rect = el.getBoundingClientRect();
        if (!visible(el, rect)) {
            continue;
        }
        if (rect.width >= minimum && rect.height >= minimum) {
            continue;
        }
        if (inline(el) || userAgentControlled(el) || spaced(el, rect)) {
            continue;
        }
        const width = Math.round(rect.width * 100) / 100;
        const height = Math.round(rect.height * 100) / 100;
        found.push({
            id: 'target-size',
            criterion: '2.5.8',
            level: 'AA',
            element: el.tagName.toLowerCase(),
            selector: selectorFor(el),
            html: el.outerHTML.slice(0, 200),
            impact: 'serious',
            description: 'Target size is ' + width + 'x' + height + 'px, below the ' + minimum + 'x' + minimum + 'px minimum',
            details: {width: width, height: height}
        });
    }
    return found;
}"""


async def check_target_size(page: Page) -> List[CustomCheckViolation]:
    records = await page.evaluate(TARGET_SIZE_JS, MINIMUM_TARGET_SIZE)
    return [CustomCheckViolation.from_dict(r) for r in records or [] if isinstance(r, dict)]


DEFAULT_CHECKS: Sequence[CustomCheck] = (check_target_size,)


async def run_custom_checks(page: Page, checks: Sequence[CustomCheck] = DEFAULT_CHECKS) -> List[CustomCheckViolation]:
    """Run each check in turn; a check that fails in the page is logged and skipped."""
    found: List[CustomCheckViolation] = []
    for check in checks:
        name = getattr(check, "__name__", repr(check))
        try:
            results = await check(page)
        except PlaywrightError as exc:
            LOGGER.warning("Custom check %s failed: %s", name, exc.message)
            continue
        LOGGER.debug("Custom check %s: %d violation(s)", name, len(results))
        found.extend(results)
    return found
