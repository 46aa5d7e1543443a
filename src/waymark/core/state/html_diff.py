"""
Structural HTML Diff

Flattens a page body into signature lines (meaningful text and interactive
elements), compares two pages by those lines, and extracts the smallest
subtree that contains the change.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from bs4 import BeautifulSoup
from bs4.element import (Comment, Declaration, Doctype, NavigableString,
                         ProcessingInstruction, Tag)

logger = logging.getLogger(__name__)

INTERACTIVE_TAGS = frozenset(['a', 'button', 'input', 'select', 'textarea', 'details', 'summary'])
INTERACTIVE_ROLES = frozenset([
    'button', 'link', 'checkbox', 'radio', 'combobox', 'listbox', 'textbox', 'switch', 'tab'
])
SKIPPED_TAGS = frozenset(['script', 'style', 'noscript', 'template'])
_NON_TEXT_STRINGS = (Comment, Declaration, Doctype, ProcessingInstruction)


@dataclass
class HtmlDiffResult:
    """Differences between two HTML documents."""
    added: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    similarity: int = 100
    summary: str = 'No changes detected'
    subtree: Optional[str] = None

    @property
    def has_changes(self) -> bool:
        return bool(self.added or self.removed)


def _parse_body(html: Optional[str]) -> Tag:
    soup = BeautifulSoup(html or '', 'html.parser')
    return soup.body or soup


def _is_interactive(tag: Tag) -> bool:
    if tag.name in INTERACTIVE_TAGS:
        return True
    return tag.get('role') in INTERACTIVE_ROLES


def _element_content(tag: Tag) -> str:
    text = ' '.join(tag.get_text(' ', strip=True).split())
    if text:
        return text
    if tag.name == 'input':
        for attr in ('placeholder', 'value', 'name'):
            if tag.get(attr):
                return tag[attr]
    if tag.name == 'a' and tag.get('href'):
        return tag['href']
    return ''


def flatten_html(root: Tag, min_text_length: int = 5) -> List[Tuple[str, Tag]]:
    """
    Flatten a parsed tree into (signature line, owning element) pairs.

    Interactive elements produce one line each and are not descended into;
    text shorter than min_text_length is ignored.
    """
    lines: List[Tuple[str, Tag]] = []

    def visit(node) -> None:
        if isinstance(node, NavigableString):
            if isinstance(node, _NON_TEXT_STRINGS):
                return
            text = ' '.join(str(node).split())
            if len(text) >= min_text_length:
                lines.append((f"TEXT:{text}", node.parent))
            return
        if not isinstance(node, Tag) or node.name in SKIPPED_TAGS:
            return
        if _is_interactive(node):
            content = _element_content(node)
            label = node.name.upper()
            lines.append((f"{label}:{content}" if content else label, node))
            return
        for child in node.children:
            visit(child)

    visit(root)
    return lines


def _lowest_common_ancestor(nodes: List[Tag]) -> Optional[Tag]:
    if not nodes:
        return None
    chains = [list(reversed([node] + list(node.parents))) for node in nodes]
    common = None
    for level in zip(*chains):
        first = level[0]
        if any(item is not first for item in level[1:]):
            break
        common = first
    return common


def _render_subtree(nodes: List[Tag]) -> Optional[str]:
    ancestor = _lowest_common_ancestor(nodes)
    if ancestor is None:
        return None
    if isinstance(ancestor, BeautifulSoup):
        ancestor = ancestor.body or ancestor
    return str(ancestor)


def _summarize(added: List[str], removed: List[str], similarity: int) -> str:
    if not added and not removed:
        return 'No changes detected'

    parts = []
    if similarity < 100:
        parts.append(f"{similarity}% similar")
    if added:
        parts.append(f"{len(added)} addition{'s' if len(added) > 1 else ''}")
    if removed:
        parts.append(f"{len(removed)} removal{'s' if len(removed) > 1 else ''}")
    return ', '.join(parts)


def html_diff(previous_html: Optional[str], current_html: Optional[str],
              min_text_length: int = 5) -> HtmlDiffResult:
    """
    Compare two HTML documents.

    Args:
        previous_html: Earlier page content
        current_html: Later page content
        min_text_length: Shortest text run that counts as content

    Returns:
        HtmlDiffResult with added/removed lines in document order and the
        minimal changed subtree
    """
    previous_lines = flatten_html(_parse_body(previous_html), min_text_length)
    current_lines = flatten_html(_parse_body(current_html), min_text_length)

    previous_set = {line for line, _ in previous_lines}
    current_set = {line for line, _ in current_lines}

    added = [line for line in dict.fromkeys(line for line, _ in current_lines) if line not in previous_set]
    removed = [line for line in dict.fromkeys(line for line, _ in previous_lines) if line not in current_set]

    union = previous_set | current_set
    similarity = 100 if not union else round(len(previous_set & current_set) / len(union) * 100)

    subtree = None
    if added:
        added_set = set(added)
        subtree = _render_subtree([node for line, node in current_lines if line in added_set])
    elif removed:
        removed_set = set(removed)
        subtree = _render_subtree([node for line, node in previous_lines if line in removed_set])

    result = HtmlDiffResult(
        added=added,
        removed=removed,
        similarity=similarity,
        summary=_summarize(added, removed, similarity),
        subtree=subtree
    )
    logger.debug(f"HTML diff: {result.summary}")
    return result
