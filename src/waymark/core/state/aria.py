"""
Accessibility Snapshot Utilities

Parses Playwright-style aria snapshots (indented "- role "name" [attr]: value"
lines), reduces them to the interactive elements, and compares two snapshots
line by line.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

INTERACTIVE_ROLES = frozenset([
    'button', 'link', 'textbox', 'searchbox', 'checkbox', 'radio', 'radiogroup',
    'switch', 'combobox', 'listbox', 'listitem', 'menu', 'menubar', 'menuitem',
    'menuitemcheckbox', 'menuitemradio', 'option', 'tab', 'tabpanel', 'tablist',
    'slider', 'spinbutton', 'tree', 'treeitem', 'grid', 'gridcell', 'row',
    'rowheader', 'columnheader', 'toolbar', 'progressbar', 'buttonmenu',
    'comboboxbutton', 'gridcellbutton',
])

# Containers whose children are lifted to the parent level
IGNORED_CONTAINER_ROLES = frozenset(['navigation'])

MAX_LINK_NAME_LENGTH = 30


@dataclass
class AriaNode:
    """One parsed line of an aria snapshot."""
    role: str
    name: Optional[str] = None
    value: Any = None
    attributes: Dict[str, Any] = field(default_factory=dict)
    children: List['AriaNode'] = field(default_factory=list)


def _normalize_scalar(raw: str) -> Any:
    value = raw.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
        value = value[1:-1]
    lowered = value.lower()
    if lowered == 'true':
        return True
    if lowered == 'false':
        return False
    if lowered == 'null':
        return None
    return value


def _scalar_text(value: Any) -> str:
    if value is True:
        return 'true'
    if value is False:
        return 'false'
    return str(value)


def _is_quote(text: str, index: int) -> bool:
    return text[index] in ('"', "'") and (index == 0 or text[index - 1] != '\\')


def _tokenize_attributes(text: str) -> List[str]:
    tokens = []
    current = ''
    quote_char = ''
    for index, char in enumerate(text):
        if _is_quote(text, index):
            if quote_char == char:
                quote_char = ''
            elif not quote_char:
                quote_char = char
            current += char
            continue
        if not quote_char and char in (' ', ','):
            if current.strip():
                tokens.append(current.strip())
            current = ''
            continue
        current += char
    if current.strip():
        tokens.append(current.strip())
    return tokens


def _parse_attributes(text: str) -> Dict[str, Any]:
    attributes = {}
    for token in _tokenize_attributes(text):
        key, separator, raw_value = token.partition('=')
        if not separator:
            attributes[token.lower()] = True
            continue
        attributes[key.strip().lower()] = _normalize_scalar(raw_value)
    return attributes


def _parse_header(header: str) -> Optional[Tuple[str, Optional[str], Dict[str, Any]]]:
    """Split 'role "name" [attrs]' into its parts."""
    length = len(header)
    index = 0
    while index < length and header[index] == ' ':
        index += 1

    role_end = index
    while role_end < length and header[role_end] not in (' ', '[', '"', "'"):
        role_end += 1

    role = header[index:role_end].strip().lower()
    if not role:
        return None

    name = None
    attributes: Dict[str, Any] = {}
    index = role_end
    while index < length:
        char = header[index]
        if char == ' ':
            index += 1
            continue
        if char in ('"', "'"):
            quote_char = char
            index += 1
            value = ''
            while index < length:
                if header[index] == quote_char and header[index - 1] != '\\':
                    index += 1
                    break
                value += header[index]
                index += 1
            if name is None:
                name = value
            continue
        if char == '[':
            end = header.find(']', index)
            content = header[index + 1:] if end == -1 else header[index + 1:end]
            attributes.update(_parse_attributes(content))
            index = length if end == -1 else end + 1
            continue
        break

    return role, name, attributes


def _split_header_value(content: str) -> Tuple[str, Optional[str]]:
    """Find the top-level ':' separating the header from an inline value."""
    active_quote = None
    bracket_depth = 0
    for index, char in enumerate(content):
        if _is_quote(content, index):
            if active_quote == char:
                active_quote = None
            elif active_quote is None:
                active_quote = char
            continue
        if active_quote is not None:
            continue
        if char == '[':
            bracket_depth += 1
        elif char == ']':
            bracket_depth = max(0, bracket_depth - 1)
        elif char == ':' and bracket_depth == 0:
            value = content[index + 1:].lstrip()
            return content[:index].rstrip(), (value or None)
    return content.strip(), None


def _prune_nodes(nodes: List[AriaNode]) -> List[AriaNode]:
    result = []
    for node in nodes:
        children = _prune_nodes(node.children)
        if node.role in IGNORED_CONTAINER_ROLES:
            result.extend(children)
            continue
        if node.role not in INTERACTIVE_ROLES and not children:
            continue
        result.append(AriaNode(node.role, node.name, node.value, dict(node.attributes), children))
    return result


def parse_aria_snapshot(snapshot: Optional[str]) -> List[AriaNode]:
    """
    Parse an aria snapshot into a pruned tree.

    Non-interactive leaves are dropped and navigation containers flattened.
    """
    if not snapshot:
        return []

    roots: List[AriaNode] = []
    stack: List[Tuple[int, AriaNode]] = []

    for line in snapshot.splitlines():
        if not line.strip():
            continue
        indent = len(line) - len(line.lstrip())
        trimmed = line[indent:]
        if not trimmed.startswith('-'):
            continue
        content = trimmed[1:].strip()
        if not content:
            continue

        header, value = _split_header_value(content)
        parsed = _parse_header(header)
        if parsed is None:
            continue
        role, name, attributes = parsed

        node = AriaNode(role=role, attributes=attributes)
        if name and name.strip():
            node.name = name.strip()
        if value is not None:
            normalized = _normalize_scalar(value)
            if normalized != '':
                node.value = normalized

        depth = indent // 2
        while stack and stack[-1][0] >= depth:
            stack.pop()
        if stack:
            stack[-1][1].children.append(node)
        else:
            roots.append(node)
        stack.append((depth, node))

    return _prune_nodes(roots)


def _build_interactive_entry(node: AriaNode) -> Optional[Dict[str, Any]]:
    if node.role not in INTERACTIVE_ROLES:
        return None

    entry: Dict[str, Any] = {'role': node.role}
    if node.name and node.name.strip():
        entry['name'] = node.name.strip()
    if node.value is not None and _scalar_text(node.value).strip():
        entry['value'] = node.value
    for key, value in node.attributes.items():
        if value is None or value == '':
            continue
        entry[key] = value

    entry_name = entry.get('name', '')
    has_value = 'value' in entry
    should_include = len(entry) > 1

    if node.role in ('button', 'link') and not entry_name and not has_value:
        should_include = False
    if node.role == 'link' and len(entry_name) > MAX_LINK_NAME_LENGTH:
        should_include = False

    return entry if should_include else None


def _format_summary(entry: Dict[str, Any]) -> str:
    role = entry.get('role') or ''
    if not role:
        return ''

    parts = [role]
    name = entry.get('name')
    if isinstance(name, str) and name.strip():
        parts.append(f'"{name.strip()}"')

    attribute_keys = sorted(key for key in entry if key not in ('role', 'name', 'value'))
    attributes = [
        key if entry[key] is True else f"{key}={_scalar_text(entry[key])}"
        for key in attribute_keys
    ]
    if attributes:
        parts.append(f"[{' '.join(attributes)}]")

    line = ' '.join(parts).strip()
    if entry.get('value') is not None:
        value_text = _scalar_text(entry['value']).strip()
        if value_text:
            line = f"{line}: {value_text}"
    return line


def collect_interactive_nodes(snapshot: Optional[str]) -> List[Dict[str, Any]]:
    """Return interactive entries in document order."""
    result = []

    def visit(node: AriaNode) -> None:
        if node.role not in IGNORED_CONTAINER_ROLES:
            entry = _build_interactive_entry(node)
            if entry:
                result.append(entry)
        for child in node.children:
            visit(child)

    for node in parse_aria_snapshot(snapshot):
        visit(node)
    return result


def summarize_interactive_nodes(snapshot: Optional[str]) -> List[str]:
    """One summary line per interactive element, e.g. 'button "Save" [disabled]'."""
    if not snapshot:
        return []
    summaries = (_format_summary(entry) for entry in collect_interactive_nodes(snapshot))
    return [line for line in summaries if line]


def _flatten_interactive_nodes(snapshot: Optional[str]) -> List[Tuple[str, str]]:
    result = []

    def visit(node: AriaNode, path: str) -> None:
        if node.role not in IGNORED_CONTAINER_ROLES:
            entry = _build_interactive_entry(node)
            if entry:
                summary = _format_summary(entry)
                if summary:
                    result.append((path, summary))
        for index, child in enumerate(node.children):
            visit(child, f"{path}.{index}")

    for index, node in enumerate(parse_aria_snapshot(snapshot)):
        visit(node, str(index))
    return result


def _format_section(label: str, items: List[str]) -> List[str]:
    counts = Counter(items)
    if not counts:
        return [f"  {label}: []"]
    lines = [f"  {label}:"]
    for item in sorted(counts):
        count = counts[item]
        lines.append(f"    - {item} (x{count})" if count > 1 else f"    - {item}")
    return lines


def diff_aria_snapshots(previous: Optional[str], current: Optional[str]) -> Optional[str]:
    """
    Compare the interactive elements of two aria snapshots.

    Returns:
        An 'ariaDiff:' block listing added and removed lines, or None when
        the interactive surface is unchanged
    """
    previous_entries = _flatten_interactive_nodes(previous)
    current_entries = _flatten_interactive_nodes(current)
    previous_totals = Counter(summary for _, summary in previous_entries)
    current_totals = Counter(summary for _, summary in current_entries)

    added: List[str] = []
    removed: List[str] = []
    for summary in set(previous_totals) | set(current_totals):
        before = previous_totals[summary]
        after = current_totals[summary]
        if after > before:
            added.extend([summary] * (after - before))
        if before > after:
            removed.extend([summary] * (before - after))

    # In-place changes that leave the totals balanced
    current_by_path = dict(current_entries)
    for path, before_summary in dict(previous_entries).items():
        after_summary = current_by_path.get(path)
        if not after_summary or after_summary == before_summary:
            continue
        if current_totals[after_summary] != previous_totals[after_summary]:
            continue
        if current_totals[before_summary] != previous_totals[before_summary]:
            continue
        before_elsewhere = any(p != path and s == before_summary for p, s in current_entries)
        after_elsewhere = any(p != path and s == after_summary for p, s in previous_entries)
        if before_elsewhere and after_elsewhere:
            continue
        added.append(after_summary)
        removed.append(before_summary)

    if not added and not removed:
        return None

    lines = ['ariaDiff:']
    lines.extend(_format_section('added', added))
    lines.extend(_format_section('removed', removed))
    return '\n'.join(lines)
