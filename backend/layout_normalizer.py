"""Force a render node into a deterministic, print-safe layout.

The display mode of every element is derived from its tag alone, so whatever
flex/grid or collapsed state the markup picked up elsewhere cannot leak into
the captured image as blank space or missing rows.
"""
from __future__ import annotations

import logging
from typing import Dict, List

from bs4 import Tag

from report_models import RenderNode


logger = logging.getLogger(__name__)

TABLE_DISPLAY = {
    "table": "table",
    "thead": "table-header-group",
    "tbody": "table-row-group",
    "tfoot": "table-footer-group",
    "tr": "table-row",
    "td": "table-cell",
    "th": "table-cell",
    "caption": "table-caption",
    "colgroup": "table-column-group",
    "col": "table-column",
}

NON_VISUAL_TAGS = {"style", "script", "head", "meta", "link", "title", "br", "wbr", "template", "noscript"}
HEADING_TAGS = {"h1", "h2", "h3", "h4", "h5", "h6"}

KEEP_TOGETHER_CLASS = "report-group"

CELL_STYLE = {
    "border": "1px solid #ddd",
    "padding": "8px",
    "text-align": "left",
}
TABLE_STYLE = {
    "width": "100%",
    "border-collapse": "collapse",
    "margin-bottom": "10px",
}
HEADER_CELL_STYLE = {
    "background-color": "#f2f2f2",
    "font-weight": "bold",
}
AVOID_BREAK_INSIDE = {
    "page-break-inside": "avoid",
    "break-inside": "avoid",
}
AVOID_BREAK_AFTER = {
    "page-break-after": "avoid",
    "break-after": "avoid",
}


def parse_style(style: str | None) -> Dict[str, str]:
    """Split an inline style attribute into ordered declarations.

    Semicolons inside parentheses (``url(data:...;base64,...)``) are kept.
    """
    declarations: Dict[str, str] = {}
    if not style:
        return declarations

    chunks: List[str] = []
    depth = 0
    current = []
    for ch in style:
        if ch == "(":
            depth += 1
        elif ch == ")" and depth:
            depth -= 1
        if ch == ";" and depth == 0:
            chunks.append("".join(current))
            current = []
            continue
        current.append(ch)
    chunks.append("".join(current))

    for chunk in chunks:
        if ":" not in chunk:
            continue
        name, value = chunk.split(":", 1)
        name = name.strip().lower()
        value = value.strip()
        if name and value:
            declarations[name] = value
    return declarations


def format_style(declarations: Dict[str, str]) -> str:
    return ";".join(f"{name}:{value}" for name, value in declarations.items()) + (";" if declarations else "")


def _important(value: str) -> str:
    return value if value.endswith("!important") else f"{value} !important"


def apply_style(tag: Tag, overrides: Dict[str, str], *, important: bool = True) -> None:
    declarations = parse_style(tag.get("style"))
    for name, value in overrides.items():
        declarations.pop(name, None)
        declarations[name] = _important(value) if important else value
    tag["style"] = format_style(declarations)


def display_for(tag: Tag) -> str:
    return TABLE_DISPLAY.get(tag.name.lower(), "block")


def mark_keep_together(tag: Tag) -> None:
    """Flag a record block so a page break never cuts through it."""
    classes = tag.get("class") or []
    if KEEP_TOGETHER_CLASS not in classes:
        tag["class"] = list(classes) + [KEEP_TOGETHER_CLASS]
    apply_style(tag, AVOID_BREAK_INSIDE)


def _normalize_element(tag: Tag) -> None:
    name = tag.name.lower()
    overrides: Dict[str, str] = {
        "display": display_for(tag),
        "visibility": "visible",
        "opacity": "1",
    }

    if name == "table":
        overrides.update(TABLE_STYLE)
    elif name == "tr":
        overrides.update(AVOID_BREAK_INSIDE)
    elif name in ("td", "th"):
        overrides.update(CELL_STYLE)
        if name == "th":
            overrides.update(HEADER_CELL_STYLE)
    elif name in HEADING_TAGS:
        overrides.update(AVOID_BREAK_AFTER)

    classes = tag.get("class") or []
    if KEEP_TOGETHER_CLASS in classes:
        overrides.update(AVOID_BREAK_INSIDE)

    # Inline display wins over the [hidden] attribute, but drop it anyway so
    # the markup reads the same as what gets captured.
    if tag.has_attr("hidden"):
        del tag["hidden"]
    if tag.get("aria-hidden") == "true":
        del tag["aria-hidden"]

    apply_style(tag, overrides)


def normalize(node: RenderNode) -> RenderNode:
    """Rewrite every element below ``node.root`` in place and return *node*."""
    count = 0
    for tag in node.iter_elements():
        if tag.name is None or tag.name.lower() in NON_VISUAL_TAGS:
            continue
        _normalize_element(tag)
        count += 1
    logger.debug("Layout normalizer forced display on %d element(s)", count)
    return node


__all__ = [
    "KEEP_TOGETHER_CLASS",
    "apply_style",
    "display_for",
    "format_style",
    "mark_keep_together",
    "normalize",
    "parse_style",
]
