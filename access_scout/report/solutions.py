# File: access_scout/report/solutions.py
"""access_scout.report.solutions: советы по исправлению для известных правил axe.

Каждое правило описано заголовком, пояснением, критериями WCAG и примером
кода «до/после». Если у нарушения есть HTML первого узла, пример строится
из него; иначе берётся шаблонный фрагмент.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from access_scout.models import Violation

__all__ = ["Solution", "CodeExample", "get_solution", "SOLUTIONS"]


@dataclass(frozen=True, slots=True)
class CodeExample:
    before: str
    after: str


@dataclass(frozen=True, slots=True)
class Solution:
    title: str
    description: str
    code_example: CodeExample
    wcag_criteria: List[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class _Rule:
    title: str
    description: str
    wcag: List[str]
    before: str
    after: str
    # переписывает реальный HTML узла; при None пример всегда шаблонный
    rewrite: Optional[Callable[[str], str]] = None

    def build(self, html: str) -> Solution:
        if html and self.rewrite is not None:
            example = CodeExample(before=html, after=self.rewrite(html))
        else:
            example = CodeExample(before=self.before, after=self.after)
        return Solution(self.title, self.description, example, list(self.wcag))


def _sub(pattern: str, repl: str, note: str) -> Callable[[str], str]:
    compiled = re.compile(pattern)

    def _rewrite(html: str) -> str:
        return f"{compiled.sub(repl, html, count=1)}\n\n<!-- {note} -->"

    return _rewrite


def _lower_heading(html: str) -> str:
    fixed = re.sub(r"<h(\d)", lambda m: f"<h{max(1, int(m.group(1)) - 1)}", html, count=1)
    return f"{fixed}\n\n<!-- Ensure proper heading hierarchy -->"


SOLUTIONS: Dict[str, _Rule] = {
    "color-contrast": _Rule(
        title="Fix Color Contrast",
        description=(
            "Ensure text has sufficient contrast against its background "
            "(minimum 4.5:1 for normal text, 3:1 for large text)."
        ),
        wcag=["1.4.3 Contrast (Minimum)", "1.4.6 Contrast (Enhanced)"],
        before='<div style="color: #777; background: #fff;">\n  Low contrast text\n</div>',
        after='<div style="color: #333; background: #fff;">\n  Good contrast text\n</div>',
        rewrite=_sub(r"color:\s*#[0-9a-fA-F]{3,6}", "color: #333", "Use darker colors like #333 or #000 for better contrast"),
    ),
    "image-alt": _Rule(
        title="Add Alt Text to Images",
        description="All images must have descriptive alt text for screen readers.",
        wcag=["1.1.1 Non-text Content"],
        before='<img src="logo.png">',
        after='<img src="logo.png" alt="Company Logo">\n\n<!-- For decorative images -->\n<img src="decoration.png" alt="" role="presentation">',
        rewrite=_sub(r"<img\s", '<img alt="Descriptive text here" ', 'Replace "Descriptive text here" with actual description'),
    ),
    "button-name": _Rule(
        title="Add Accessible Name to Button",
        description="Buttons must have discernible text or an accessible name.",
        wcag=["4.1.2 Name, Role, Value"],
        before='<button>\n  <i class="icon-search"></i>\n</button>',
        after='<button aria-label="Search">\n  <i class="icon-search"></i>\n</button>',
        rewrite=_sub(r"<button(\s|>)", r'<button aria-label="Button action"\1', "Or add visible text inside the button"),
    ),
    "link-name": _Rule(
        title="Add Accessible Name to Link",
        description="Links must have discernible text that describes their purpose.",
        wcag=["2.4.4 Link Purpose (In Context)", "4.1.2 Name, Role, Value"],
        before='<a href="/read-more">\n  <img src="arrow.png">\n</a>',
        after='<a href="/read-more" aria-label="Read more about accessibility">\n  <img src="arrow.png" alt="">\n</a>',
        rewrite=_sub(r"<a\s", '<a aria-label="Descriptive link text" ', "Add descriptive aria-label or visible text"),
    ),
    "label": _Rule(
        title="Add Label to Form Input",
        description="Form inputs must have associated labels.",
        wcag=["1.3.1 Info and Relationships", "3.3.2 Labels or Instructions"],
        before='<input type="text" placeholder="Enter email">',
        after='<label for="email">Email Address</label>\n<input type="text" id="email" placeholder="Enter email">',
        rewrite=_sub(r"<input\s", '<input aria-label="Input label" ', "Or associate a visible <label for> with the input id"),
    ),
    "html-has-lang": _Rule(
        title="Add Language Attribute to HTML",
        description="The html element must have a lang attribute to identify the page language.",
        wcag=["3.1.1 Language of Page"],
        before="<html>\n  <head>...</head>\n  <body>...</body>\n</html>",
        after='<html lang="en">\n  <head>...</head>\n  <body>...</body>\n</html>',
    ),
    "landmark-one-main": _Rule(
        title="Add Main Landmark",
        description="Page must have one main landmark to identify the primary content.",
        wcag=["1.3.1 Info and Relationships", "2.4.1 Bypass Blocks"],
        before='<div class="content">\n  <h1>Page Title</h1>\n  <p>Content...</p>\n</div>',
        after="<main>\n  <h1>Page Title</h1>\n  <p>Content...</p>\n</main>",
    ),
    "region": _Rule(
        title="Use Landmark Regions",
        description="Content should be contained within landmark regions for better navigation.",
        wcag=["1.3.1 Info and Relationships"],
        before='<div class="header">...</div>\n<div class="content">...</div>\n<div class="footer">...</div>',
        after="<header>...</header>\n<main>...</main>\n<footer>...</footer>",
    ),
    "heading-order": _Rule(
        title="Fix Heading Order",
        description="Headings must be in a logical order (h1, h2, h3...) without skipping levels.",
        wcag=["1.3.1 Info and Relationships", "2.4.6 Headings and Labels"],
        before="<h1>Main Title</h1>\n<h3>Subsection</h3> <!-- Skipped h2 -->",
        after="<h1>Main Title</h1>\n<h2>Section</h2>\n<h3>Subsection</h3>",
        rewrite=_lower_heading,
    ),
    "page-has-heading-one": _Rule(
        title="Add H1 Heading",
        description="Page must contain exactly one h1 element as the main heading.",
        wcag=["1.3.1 Info and Relationships", "2.4.6 Headings and Labels"],
        before='<div class="title">Welcome</div>',
        after="<h1>Welcome</h1>",
    ),
    "duplicate-id": _Rule(
        title="Fix Duplicate IDs",
        description="ID attributes must be unique across the page.",
        wcag=["4.1.1 Parsing"],
        before='<div id="header">First</div>\n<div id="header">Second</div> <!-- Duplicate! -->',
        after='<div id="header-1">First</div>\n<div id="header-2">Second</div>',
        rewrite=_sub(r'id="([^"]+)"', r'id="\1-unique"', "Make each ID unique"),
    ),
    "meta-viewport": _Rule(
        title="Fix Meta Viewport",
        description="Meta viewport should not prevent zooming for accessibility.",
        wcag=["1.4.4 Resize Text"],
        before='<meta name="viewport" content="width=device-width, initial-scale=1, maximum-scale=1, user-scalable=no">',
        after='<meta name="viewport" content="width=device-width, initial-scale=1">',
    ),
    "tabindex": _Rule(
        title="Fix Tab Index",
        description="Avoid positive tabindex values. Use 0 or -1 for custom tab order.",
        wcag=["2.4.3 Focus Order"],
        before='<button tabindex="3">Click me</button>',
        after='<button tabindex="0">Click me</button>',
        rewrite=_sub(r'tabindex="\d+"', 'tabindex="0"', "Use 0 for normal tab order, -1 to remove from tab order"),
    ),
    "aria-valid-attr-value": _Rule(
        title="Fix Invalid ARIA Attribute Value",
        description="ARIA attributes must have valid values.",
        wcag=["4.1.2 Name, Role, Value"],
        before='<button aria-pressed="yes">Toggle</button>',
        after='<button aria-pressed="true">Toggle</button>',
        rewrite=_sub(r'aria-pressed="[^"]*"', 'aria-pressed="true"', "Use true/false for boolean ARIA attributes"),
    ),
}


def get_solution(violation: Violation) -> Solution:
    """Совет для нарушения; для неизвестных правил строится из самого нарушения."""
    html = violation.nodes[0].html if violation.nodes else ""
    rule = SOLUTIONS.get(violation.id)
    if rule is not None:
        return rule.build(html)
    return Solution(
        title=f"Fix: {violation.help or 'Accessibility Issue'}",
        description=violation.description or "Review the WCAG guidelines for this issue.",
        code_example=CodeExample(
            before=html or "<!-- Issue detected in your code -->",
            after=f"{html}\n\n<!-- Apply the fix based on the failure summary above -->"
            if html
            else "<!-- Apply recommended fix from WCAG guidelines -->",
        ),
        wcag_criteria=[tag for tag in violation.tags if tag.startswith("wcag")],
    )
