"""HTML serialization for sanitized fragments."""

# ruff: noqa: PERF401

from __future__ import annotations

import re
import textwrap
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .constants import (
    BLOCK_ELEMENTS,
    HTML_SPACE_CHARACTERS,
    PREFORMATTED_ELEMENTS,
    RAWTEXT_ELEMENTS,
    RCDATA_ELEMENTS,
    VOID_ELEMENTS,
)
from .node import NodeArena, NodeKind

if TYPE_CHECKING:
    from .policy import Policy

XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>'
DOCTYPE = "<!DOCTYPE html>"

_INVALID_ATTR_NAME = re.compile(r"[\s\"'<>/=]")
_RAWTEXT_CLOSE_PATTERN = re.compile(
    "</(?=" + "|".join(sorted(RAWTEXT_ELEMENTS | RCDATA_ELEMENTS | {"plaintext"})) + ")", re.IGNORECASE
)


@dataclass(frozen=True, slots=True)
class SerializeOptions:
    """Output formatting; only ever changes whitespace and declarations."""

    omit_xml_declaration: bool = True
    omit_doctype: bool = True
    format_output: bool = False
    preserve_space: bool = True
    indent_size: int = 2
    line_width: int = 80

    @classmethod
    def from_policy(cls, policy: Policy) -> SerializeOptions:
        return cls(
            omit_xml_declaration=policy.omit_xml_declaration,
            omit_doctype=policy.omit_doctype,
            format_output=policy.format_output,
            preserve_space=policy.preserve_space,
        )


def _escape_text(text: str | None) -> str:
    if not text:
        return ""
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def _escape_attr_value(value: str | None) -> str:
    if not value:
        return ""
    # "<" and ">" are escaped too so that no re-parse (including inside
    # <noscript> or an SVG title) can find markup in a value.
    return value.replace("&", "&amp;").replace('"', "&quot;").replace("<", "&lt;").replace(">", "&gt;")


def _escape_comment(data: str | None) -> str:
    if not data:
        return ""
    return data.replace("<", "&lt;").replace(">", "&gt;")


def _escape_rawtext(name: str, text: str) -> str:
    # Raw text cannot be escaped, only kept from closing its element, or a
    # raw text ancestor a browser may see, early.
    text = _RAWTEXT_CLOSE_PATTERN.sub(r"<\\/", text)
    if name == "script":
        text = text.replace("<!--", "<\\!--")
    return text


def serialize_start_tag(name: str, attrs: list[list[str]] | None) -> str:
    parts: list[str] = ["<", name]
    for key, value in attrs or ():
        if _INVALID_ATTR_NAME.search(key):
            continue
        parts.extend([" ", key, '="', _escape_attr_value(value), '"'])
    parts.append(">")
    return "".join(parts)


def serialize_end_tag(name: str) -> str:
    return f"</{name}>"


def _collapse_html_space_characters(text: str) -> str:
    """Collapse runs of HTML whitespace characters to a single space.

    Does not trim.
    """
    if "\t" not in text and "\n" not in text and "\r" not in text and "\f" not in text and "  " not in text:
        return text
    return re.sub(r"[ \t\n\r\f]+", " ", text)


def _wrap(text: str, prefix: str, line_width: int) -> str:
    core = text.strip(HTML_SPACE_CHARACTERS)
    if not core:
        return text
    lines = textwrap.wrap(
        core,
        width=max(line_width - len(prefix), 20),
        break_long_words=False,
        break_on_hyphens=False,
    )
    leading = " " if text[0] in HTML_SPACE_CHARACTERS else ""
    trailing = " " if text[-1] in HTML_SPACE_CHARACTERS else ""
    return leading + ("\n" + prefix).join(lines) + trailing


def _is_whitespace_text_node(arena: NodeArena, node: int) -> bool:
    return arena.kinds[node] == NodeKind.TEXT and not arena.data[node].strip(HTML_SPACE_CHARACTERS)


def _should_pretty_indent_children(arena: NodeArena, children: list[int]) -> bool:
    has_element = False
    for child in children:
        kind = arena.kinds[child]
        if kind == NodeKind.COMMENT:
            return False
        if kind == NodeKind.TEXT:
            if arena.data[child].strip(HTML_SPACE_CHARACTERS):
                return False
            continue
        # Only blocks may be moved onto their own lines; added whitespace
        # between inline elements would render.
        if arena.names[child] not in BLOCK_ELEMENTS:
            return False
        has_element = True
    return has_element


def serialize(arena: NodeArena, options: SerializeOptions | None = None) -> str:
    """Render a fragment as HTML.

    Text is escaped so that re-parsing the output yields the same tree:
    there is no way for character data or an attribute value to introduce a
    tag or attribute boundary.
    """
    options = options or SerializeOptions()
    parts: list[str] = []
    if not options.omit_xml_declaration:
        parts.append(XML_DECLARATION + "\n")
    if not options.omit_doctype:
        parts.append(DOCTYPE + "\n")

    # Work items are literal strings or (node, depth, in_pre) to render,
    # taken from the end; children are pushed in reverse.
    stack: list[str | tuple[int, int, bool]] = []
    stack.extend(reversed(_child_items(arena, NodeArena.ROOT, -1, options, in_pre=False)))
    while stack:
        item = stack.pop()
        if isinstance(item, str):
            parts.append(item)
            continue
        node, depth, in_pre = item
        if _write_node(arena, node, depth, parts, stack, options, in_pre=in_pre):
            break
    return "".join(parts)


def _child_items(
    arena: NodeArena, parent: int, depth: int, options: SerializeOptions, *, in_pre: bool
) -> list[str | tuple[int, int, bool]]:
    """The children of ``parent`` in output order, with any indentation."""
    children = arena.children[parent]
    if options.format_output and not in_pre and _should_pretty_indent_children(arena, children):
        prefix = " " * (options.indent_size * (depth + 1))
        items: list[str | tuple[int, int, bool]] = []
        for child in children:
            if _is_whitespace_text_node(arena, child):
                continue
            if depth >= 0 or items:
                items.append("\n" + prefix)
            items.append((child, depth + 1, False))
        if depth >= 0:
            items.append("\n" + " " * (options.indent_size * depth))
        return items

    return [(child, depth + 1, in_pre) for child in children]


def _write_node(
    arena: NodeArena,
    node: int,
    depth: int,
    parts: list[str],
    stack: list[str | tuple[int, int, bool]],
    options: SerializeOptions,
    *,
    in_pre: bool,
) -> bool:
    """Write ``node``, pushing its children and end tag onto ``stack``.

    Returns True once output must stop.
    """
    kind = arena.kinds[node]

    if kind == NodeKind.TEXT:
        text = arena.data[node]
        if not in_pre:
            if not options.preserve_space:
                text = _collapse_html_space_characters(text)
            if options.format_output and len(text) > options.line_width:
                text = _wrap(text, " " * (options.indent_size * max(depth, 0)), options.line_width)
        parts.append(_escape_text(text))
        return False

    if kind == NodeKind.COMMENT:
        parts.append(f"<!--{_escape_comment(arena.data[node])}-->")
        return False

    name = arena.names[node]
    parts.append(serialize_start_tag(name, arena.attrs[node]))
    if name in VOID_ELEMENTS:
        return False

    if name in RAWTEXT_ELEMENTS:
        parts.append(_escape_rawtext(name, arena.text_content(node)))
        parts.append(serialize_end_tag(name))
        return False
    if name == "plaintext":
        # Nothing can follow <plaintext>: a re-parse would read it as text.
        parts.append(_escape_rawtext(name, arena.text_content(node)))
        return True

    stack.append(serialize_end_tag(name))
    in_pre = in_pre or name in PREFORMATTED_ELEMENTS
    stack.extend(reversed(_child_items(arena, node, depth, options, in_pre=in_pre)))
    return False
